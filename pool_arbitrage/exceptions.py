"""
Exception hierarchy for the pool arbitrage core.

Rule rejections from the validation pipeline are values, not exceptions.
These types cover configuration problems, malformed inputs and audit
sink faults.
"""

from typing import Any, Dict, Optional


class PoolArbitrageError(Exception):
    """Base exception for all pool arbitrage related errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(PoolArbitrageError):
    """Raised when there are configuration-related issues."""

    pass


class ValidationError(PoolArbitrageError):
    """Raised when an input has the wrong shape (missing trace id, bad address)."""

    pass


class AuditLogError(PoolArbitrageError):
    """Raised when an audit record cannot be serialized or read."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.path = path
