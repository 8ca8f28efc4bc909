"""
Common helpers for the pool arbitrage core.

Audit clock and JSON encoding, basis point conversions, numeric guards,
batching and logger construction.
"""

import json
import logging
import math
import time
from dataclasses import asdict, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Iterator, List, Optional, TypeVar, Union

T = TypeVar("T")

PROJECT_HANDLER_NAME = "pool_arbitrage.console"


# Timestamp utilities
def now_ms() -> int:
    """Current Unix time in integer milliseconds (audit event clock)."""
    return int(time.time() * 1000)


# JSON utilities
def to_json_line(data: Any) -> str:
    """
    Serialize a record as one compact JSON line terminated by a newline.

    Raises:
        ValueError: If the record contains NaN/Infinity (not valid JSON)
        TypeError: If the record contains an unserializable object
    """
    return (
        json.dumps(
            data,
            ensure_ascii=False,
            separators=(",", ":"),
            allow_nan=False,
            default=_json_default_handler,
        )
        + "\n"
    )


def _json_default_handler(obj: Any) -> Any:
    """Default JSON serialization handler for custom types."""
    if isinstance(obj, Enum):
        return obj.value
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


# Math utilities
def bps_to_fraction(bps: float) -> float:
    """Convert basis points to a fraction (100 bps = 0.01)."""
    return bps / 10000.0


def fraction_to_bps(fraction: float) -> float:
    """Convert a fraction to basis points (0.01 = 100 bps)."""
    return fraction * 10000.0


def is_finite_number(value: Any) -> bool:
    """True for real numbers that are neither NaN nor infinite (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def all_finite(*values: Any) -> bool:
    """True when every value passes is_finite_number."""
    return all(is_finite_number(v) for v in values)


def chunked(items: Iterable[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive lists of at most `size` items."""
    if size <= 0:
        raise ValueError(f"Batch size must be positive: {size}")
    batch: List[T] = []
    for item in items:
        batch.append(item)
        if len(batch) == size:
            yield batch
            batch = []
    if batch:
        yield batch


def same_token(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive token identity (EVM addresses are case-insensitive)."""
    if not a or not b:
        return False
    return a.lower() == b.lower()


# Logging utilities
def get_logger(name: str, level: Union[str, int] = logging.INFO) -> logging.Logger:
    """
    Get a logger with the project's structured format.

    A console handler is attached only while the root logger is unconfigured;
    once logging_config.setup() runs, records propagate to the root handler.

    Args:
        name: Logger name (typically __name__)
        level: Logging level applied when the logger has none yet

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)

    if logger.level == logging.NOTSET:
        logger.setLevel(level)

    if not logger.handlers and not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
                datefmt="%H:%M:%S",
            )
        )
        handler.set_name(PROJECT_HANDLER_NAME)
        logger.addHandler(handler)

    return logger
