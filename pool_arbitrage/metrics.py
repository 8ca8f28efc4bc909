"""
Prometheus metrics for the opportunity scanner and the asset validator.

Metrics live on an injectable CollectorRegistry so tests and multiple
scanners in one process do not collide on the default registry.
"""

import threading
import time
from typing import Any, Dict, Optional

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from .utils import get_logger

logger = get_logger(__name__)

NAMESPACE = "pool_arbitrage"


class ArbitrageMetrics:
    """
    Counters and histograms for scanning, validation and auditing.

    - Scans completed, ticks dropped and scan failures
    - Opportunities found per chain and leg count
    - Validation outcomes by status and rejection reason
    - Audit events by operation, audit write failures
    - Provider request failures
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else CollectorRegistry()
        self._initialize_metrics()

        self._app = None
        self._runner = None
        self._site = None

        self._lock = threading.RLock()

    def _initialize_metrics(self):
        # === SCANNER ===
        self.scans_total = Counter(
            f"{NAMESPACE}_scans_total",
            "Completed scanner ticks",
            registry=self.registry,
        )
        self.ticks_skipped_total = Counter(
            f"{NAMESPACE}_ticks_skipped_total",
            "Ticks dropped because a scan was still running",
            registry=self.registry,
        )
        self.scan_errors_total = Counter(
            f"{NAMESPACE}_scan_errors_total",
            "Ticks aborted by a data fetch failure",
            registry=self.registry,
        )
        self.scan_duration_seconds = Histogram(
            f"{NAMESPACE}_scan_duration_seconds",
            "Wall time of one scan",
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
            registry=self.registry,
        )
        self.opportunities_total = Counter(
            f"{NAMESPACE}_opportunities_total",
            "Opportunities that passed the scanner filters",
            ["chain_id", "legs"],
            registry=self.registry,
        )
        self.best_net_pnl_bps = Gauge(
            f"{NAMESPACE}_best_net_pnl_bps",
            "Net edge of the top opportunity in the last scan",
            registry=self.registry,
        )

        # === VALIDATION ===
        self.validations_total = Counter(
            f"{NAMESPACE}_validations_total",
            "Asset validation outcomes",
            ["status", "reason"],
            registry=self.registry,
        )
        self.pair_plans_total = Counter(
            f"{NAMESPACE}_pair_plans_total",
            "Pair plans built during validation",
            registry=self.registry,
        )

        # === AUDIT ===
        self.audit_events_total = Counter(
            f"{NAMESPACE}_audit_events_total",
            "Audit events appended",
            ["op"],
            registry=self.registry,
        )
        self.audit_write_failures_total = Counter(
            f"{NAMESPACE}_audit_write_failures_total",
            "Audit events that could not be persisted",
            registry=self.registry,
        )

        # === PROVIDERS ===
        self.provider_failures_total = Counter(
            f"{NAMESPACE}_provider_failures_total",
            "Failed provider requests (degraded to empty results)",
            ["provider"],
            registry=self.registry,
        )

    # === RECORDING ===

    def record_scan(self, duration_sec: float, opportunities) -> None:
        """Record a completed scan and the opportunities it produced."""
        with self._lock:
            self.scans_total.inc()
            self.scan_duration_seconds.observe(duration_sec)
            for opp in opportunities:
                self.opportunities_total.labels(
                    chain_id=str(opp.chain_id), legs=str(opp.legs)
                ).inc()
            if opportunities:
                self.best_net_pnl_bps.set(opportunities[0].net_pnl_bps)

    def record_tick_skipped(self) -> None:
        with self._lock:
            self.ticks_skipped_total.inc()

    def record_scan_error(self) -> None:
        with self._lock:
            self.scan_errors_total.inc()

    def record_validation(self, status: str, reason: Optional[str] = None) -> None:
        with self._lock:
            self.validations_total.labels(status=status, reason=reason or "").inc()

    def record_pair_plans(self, count: int) -> None:
        with self._lock:
            self.pair_plans_total.inc(count)

    def record_audit_event(self, op: str, persisted: bool = True) -> None:
        with self._lock:
            self.audit_events_total.labels(op=op).inc()
            if not persisted:
                self.audit_write_failures_total.inc()

    def record_provider_failure(self, provider: str) -> None:
        with self._lock:
            self.provider_failures_total.labels(provider=provider).inc()

    def get_sample(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Current value of a sample, 0.0 when it has not been observed."""
        value = self.registry.get_sample_value(name, labels or {})
        return value if value is not None else 0.0

    # === SERVER MANAGEMENT ===

    async def start_server(
        self, port: int = 8000, host: str = "0.0.0.0", path: str = "/metrics"
    ) -> bool:
        """Start the Prometheus exposition server."""
        try:
            self._app = web.Application()
            self._app.router.add_get(path, self._metrics_handler)
            self._app.router.add_get("/health", self._health_handler)

            self._runner = web.AppRunner(self._app)
            await self._runner.setup()

            self._site = web.TCPSite(self._runner, host, port)
            await self._site.start()

            logger.info(f"Metrics server listening on http://{host}:{port}{path}")
            return True

        except OSError as e:
            logger.error(f"Failed to start metrics server: {e}")
            return False

    async def stop_server(self) -> None:
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        self._site = None
        self._runner = None
        logger.info("Metrics server stopped")

    async def _metrics_handler(self, request):
        output = generate_latest(self.registry)
        # aiohttp rejects a content_type that carries a charset parameter
        content_type = CONTENT_TYPE_LATEST.split(";")[0]
        return web.Response(text=output.decode("utf-8"), content_type=content_type)

    async def _health_handler(self, request):
        return web.json_response(
            {"status": "healthy", "service": "pool_arbitrage", "ts": time.time()}
        )

    def get_metrics_summary(self) -> Dict[str, Any]:
        return {
            "scans": self.get_sample(f"{NAMESPACE}_scans_total"),
            "ticks_skipped": self.get_sample(f"{NAMESPACE}_ticks_skipped_total"),
            "scan_errors": self.get_sample(f"{NAMESPACE}_scan_errors_total"),
            "timestamp": time.time(),
        }
