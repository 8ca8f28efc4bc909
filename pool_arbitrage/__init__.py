"""
Cross-DEX arbitrage scanning and asset validation core.

The scanning engine lives in the sibling ``dex`` package; this package holds
configuration, the six-stage asset validation pipeline, data providers,
the audit log and metrics.
"""

PROJECT_NAME = "pool-arbitrage"
VERSION = "0.1.0"

from pool_arbitrage.config_loader import load_engine_config
from pool_arbitrage.config_schema import EngineConfig
from pool_arbitrage.exceptions import (
    AuditLogError,
    ConfigurationError,
    PoolArbitrageError,
    ValidationError,
)

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "EngineConfig",
    "load_engine_config",
    "PoolArbitrageError",
    "ConfigurationError",
    "ValidationError",
    "AuditLogError",
]
