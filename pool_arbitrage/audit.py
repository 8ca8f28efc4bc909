"""
Append-only audit trail for asset validation decisions.

Events are keyed by trace id ("{chain_id}:{address}") and ordered by their
millisecond timestamp. The JSONL sink writes each event as one complete line
with a single os.write on an O_APPEND descriptor, so concurrent writers in
one process never interleave partial lines.
"""

import json
import os
import threading
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Protocol, Union

from .exceptions import AuditLogError
from .metrics import ArbitrageMetrics
from .utils import get_logger, now_ms, to_json_line

logger = get_logger(__name__)

AuditOp = Literal[
    "discover", "validate", "approve", "reject", "generate_pairs", "add_to_trading"
]

AUDIT_OPS = (
    "discover",
    "validate",
    "approve",
    "reject",
    "generate_pairs",
    "add_to_trading",
)

DEFAULT_QUERY_LIMIT = 100


@dataclass(frozen=True)
class AuditEvent:
    """
    One audit record.

    Attributes:
        ts: Epoch milliseconds
        trace_id: Stable asset identifier
        op: Operation that produced the event
        asset: Asset summary (symbol, address, chain id, ...)
        pair: Pair plan summary
        result: Validation result ({valid, reason, message})
        reason: Free-form reason or error message
        user: Operator who triggered the operation
    """

    ts: int
    trace_id: str
    op: str
    asset: Optional[Dict[str, Any]] = None
    pair: Optional[Dict[str, Any]] = None
    result: Optional[Dict[str, Any]] = None
    reason: Optional[str] = None
    user: Optional[str] = None

    def __post_init__(self):
        if not self.trace_id:
            raise AuditLogError("Audit event requires a trace_id")
        if self.op not in AUDIT_OPS:
            raise AuditLogError(f"Unknown audit op: {self.op}")

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form; absent optional fields are omitted."""
        data: Dict[str, Any] = {"ts": self.ts, "trace_id": self.trace_id, "op": self.op}
        for key in ("asset", "pair", "result", "reason", "user"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditEvent":
        return cls(
            ts=int(data["ts"]),
            trace_id=data["trace_id"],
            op=data["op"],
            asset=data.get("asset"),
            pair=data.get("pair"),
            result=data.get("result"),
            reason=data.get("reason"),
            user=data.get("user"),
        )


class AuditSink(Protocol):
    """Storage behind the audit log."""

    def append(self, event: AuditEvent) -> bool:
        """Persist one event; False if it could not be written."""
        ...

    def read(self, trace_id: Optional[str], limit: int) -> List[AuditEvent]:
        """Last `limit` events, optionally for one trace id, oldest first."""
        ...


class InMemoryAuditSink:
    """List-backed sink for tests and dry runs."""

    def __init__(self):
        self.events: List[AuditEvent] = []
        self._lock = threading.Lock()

    def append(self, event: AuditEvent) -> bool:
        with self._lock:
            self.events.append(event)
        return True

    def read(self, trace_id: Optional[str], limit: int) -> List[AuditEvent]:
        with self._lock:
            events = [e for e in self.events if trace_id is None or e.trace_id == trace_id]
        return events[-limit:] if limit > 0 else []


class JsonlAuditSink:
    """Newline-delimited JSON file sink."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._fd: Optional[int] = None
        self._lock = threading.Lock()

    def _open(self) -> int:
        if self._fd is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._fd = os.open(
                str(self.path), os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o644
            )
        return self._fd

    def append(self, event: AuditEvent) -> bool:
        try:
            line = to_json_line(event.to_dict()).encode("utf-8")
        except (TypeError, ValueError) as e:
            logger.error(f"Audit event for {event.trace_id} is not serializable: {e}")
            return False

        with self._lock:
            try:
                written = os.write(self._open(), line)
            except OSError as e:
                logger.error(f"Failed to write audit log {self.path}: {e}")
                return False

        if written != len(line):
            logger.error(
                f"Short audit write to {self.path}: {written}/{len(line)} bytes"
            )
            return False
        return True

    def read(self, trace_id: Optional[str], limit: int) -> List[AuditEvent]:
        if limit <= 0 or not self.path.exists():
            return []

        tail: deque = deque(maxlen=limit)
        skipped = 0
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        event = AuditEvent.from_dict(json.loads(line))
                    except (json.JSONDecodeError, KeyError, TypeError, ValueError, AuditLogError):
                        skipped += 1
                        continue
                    if trace_id is None or event.trace_id == trace_id:
                        tail.append(event)
        except OSError as e:
            raise AuditLogError(
                f"Cannot read audit log: {e}", path=str(self.path)
            ) from e

        if skipped:
            logger.warning(f"Skipped {skipped} unparsable audit line(s) in {self.path}")
        return list(tail)

    def close(self) -> None:
        with self._lock:
            if self._fd is not None:
                os.close(self._fd)
                self._fd = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class AuditLog:
    """
    Front end used by the validator: stamps events and counts them.

    Write failures are logged and reported through the return value; they
    never interrupt the caller.
    """

    def __init__(
        self,
        sink: AuditSink,
        metrics: Optional[ArbitrageMetrics] = None,
        default_limit: int = DEFAULT_QUERY_LIMIT,
    ):
        self.sink = sink
        self.metrics = metrics
        self.default_limit = default_limit

    @classmethod
    def to_file(cls, path: Union[str, Path], **kwargs) -> "AuditLog":
        return cls(JsonlAuditSink(path), **kwargs)

    def record(
        self,
        op: AuditOp,
        trace_id: str,
        asset: Optional[Dict[str, Any]] = None,
        pair: Optional[Dict[str, Any]] = None,
        result: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
        user: Optional[str] = None,
    ) -> bool:
        """Append one event stamped with the current time."""
        event = AuditEvent(
            ts=now_ms(),
            trace_id=trace_id,
            op=op,
            asset=asset,
            pair=pair,
            result=result,
            reason=reason,
            user=user,
        )
        persisted = self.sink.append(event)
        if not persisted:
            logger.warning(f"Audit event {op} for {trace_id} was not persisted")
        if self.metrics:
            self.metrics.record_audit_event(op, persisted)
        return persisted

    def query(
        self, trace_id: Optional[str] = None, limit: Optional[int] = None
    ) -> List[AuditEvent]:
        """Most recent events (oldest first), optionally for one trace id."""
        return self.sink.read(trace_id, self.default_limit if limit is None else limit)
