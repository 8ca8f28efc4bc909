"""
Periodic cross-DEX opportunity scanner.

Each tick snapshots pools for every enabled chain, enumerates 2-leg and 3-leg
cycles, prices them over a test-amount ladder and keeps the ones that clear
the profit, gas and atomicity filters. Ticks never overlap: a tick that fires
while a scan is still running is dropped, not queued.
"""

import asyncio
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Literal, Optional

from pool_arbitrage.config_schema import EngineConfig
from pool_arbitrage.metrics import ArbitrageMetrics
from pool_arbitrage.providers.pool_source import PoolSource
from pool_arbitrage.utils import get_logger

from .cycles import Cycle, CycleFinder
from .pool_graph import PoolGraph
from .profit import ProfitEstimator
from .types import ArbitrageRoute, Pool

logger = get_logger(__name__)

ScanStatus = Literal["idle", "scanning"]
OpportunityCallback = Callable[[List[ArbitrageRoute]], None]

TOP_N_LOG = 5


@dataclass
class ScannerState:
    """Mutable scanner state, owned by the caller and injected."""

    status: ScanStatus = "idle"
    last_results: List[ArbitrageRoute] = field(default_factory=list)
    last_scan_ts: Optional[float] = None
    scans_completed: int = 0
    ticks_skipped: int = 0
    scan_errors: int = 0
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def try_begin(self) -> bool:
        """Move idle -> scanning; False if a scan is already running."""
        with self._lock:
            if self.status == "scanning":
                self.ticks_skipped += 1
                return False
            self.status = "scanning"
            return True

    def finish(self, results: Optional[List[ArbitrageRoute]] = None) -> None:
        with self._lock:
            if results is None:
                self.scan_errors += 1
            else:
                self.last_results = results
                self.scans_completed += 1
            self.last_scan_ts = time.time()
            self.status = "idle"


class OpportunityScanner:
    """
    Finds and ranks arbitrage cycles across the configured chains.

    Args:
        config: Engine configuration snapshot
        pool_source: Supplies the pool snapshot for a chain
        state: Scanner state (a fresh one is created if omitted)
        estimator: Profit model (built from config if omitted)
        metrics: Optional Prometheus metrics
        on_opportunities: Called with every non-empty result list
    """

    def __init__(
        self,
        config: EngineConfig,
        pool_source: PoolSource,
        state: Optional[ScannerState] = None,
        estimator: Optional[ProfitEstimator] = None,
        metrics: Optional[ArbitrageMetrics] = None,
        on_opportunities: Optional[OpportunityCallback] = None,
    ):
        self.config = config
        self.settings = config.scanner
        self.pool_source = pool_source
        self.state = state if state is not None else ScannerState()
        self.estimator = estimator or ProfitEstimator.from_config(config)
        self.metrics = metrics
        self.on_opportunities = on_opportunities

        self._task: Optional[asyncio.Task] = None
        self._stopping = False

    # === SINGLE TICK ===

    def tick(self) -> Optional[List[ArbitrageRoute]]:
        """
        Run one scan synchronously.

        Returns:
            Ranked opportunities, an empty list if data fetching failed, or
            None if the tick was dropped because a scan is in progress
        """
        if not self._begin():
            return None
        started = time.monotonic()
        try:
            pools_by_chain = self._fetch_all()
        except Exception as e:
            return self._fail(e)
        return self._complete(pools_by_chain, started)

    async def tick_async(self) -> Optional[List[ArbitrageRoute]]:
        """Same as tick(), with the pool fetch run in the default executor."""
        if not self._begin():
            return None
        started = time.monotonic()
        loop = asyncio.get_running_loop()
        try:
            pools_by_chain = await loop.run_in_executor(None, self._fetch_all)
        except Exception as e:
            return self._fail(e)
        return self._complete(pools_by_chain, started)

    def _begin(self) -> bool:
        if self.state.try_begin():
            return True
        logger.warning("Scan still running, dropping tick")
        if self.metrics:
            self.metrics.record_tick_skipped()
        return False

    def _fail(self, error: Exception) -> List[ArbitrageRoute]:
        logger.error(f"Pool fetch failed, skipping tick: {error}", exc_info=True)
        self.state.finish(None)
        if self.metrics:
            self.metrics.record_scan_error()
        return []

    def _complete(
        self, pools_by_chain: Dict[int, List[Pool]], started: float
    ) -> List[ArbitrageRoute]:
        try:
            results = self.find_opportunities(pools_by_chain)
        except Exception:
            self.state.finish(None)
            raise
        self.state.finish(results)

        if self.metrics:
            self.metrics.record_scan(time.monotonic() - started, results)
        self._log_summary(results)
        if results and self.on_opportunities:
            self.on_opportunities(results)
        return results

    def _fetch_all(self) -> Dict[int, List[Pool]]:
        pools_by_chain: Dict[int, List[Pool]] = {}
        for chain in self.config.active_chains():
            pools_by_chain[chain.chain_id] = list(self.pool_source.get_pools(chain))
        return pools_by_chain

    # === EVALUATION ===

    def find_opportunities(
        self, pools_by_chain: Dict[int, List[Pool]]
    ) -> List[ArbitrageRoute]:
        """Price every cycle on every chain and rank the survivors."""
        found: List[ArbitrageRoute] = []
        for chain_id, pools in pools_by_chain.items():
            finder = CycleFinder(
                PoolGraph(pools), max_routes_per_token=self.settings.max_routes_per_token
            )
            for cycle in finder.two_leg_cycles():
                route = self._best_two_leg(cycle, chain_id)
                if route is not None and self._passes_filters(route):
                    found.append(route)
            found.extend(self._best_triangles(finder.three_leg_cycles(), chain_id))

        found.sort(key=lambda r: r.net_pnl_bps, reverse=True)
        return found

    def _best_triangles(
        self, cycles: List[Cycle], chain_id: int
    ) -> List[ArbitrageRoute]:
        """One route per set of pools: the best start token and direction."""
        best: Dict[str, ArbitrageRoute] = {}
        for cycle in cycles:
            route = self.estimator.best_route(
                cycle.pools,
                chain_id,
                ladder=self.settings.three_leg_ladder,
                start_token=cycle.start_token,
            )
            if route is None or not self._passes_filters(route):
                continue
            current = best.get(cycle.route_id)
            if current is None or route.net_pnl_bps > current.net_pnl_bps:
                best[cycle.route_id] = route
        return list(best.values())

    def _best_two_leg(self, cycle: Cycle, chain_id: int) -> Optional[ArbitrageRoute]:
        """Buy on either venue: price the pair in both orders, keep the better."""
        p1, p2 = cycle.pools
        best = None
        for pools in ([p1, p2], [p2, p1]):
            route = self.estimator.best_route(
                pools,
                chain_id,
                ladder=self.settings.two_leg_ladder,
                start_token=cycle.start_token,
            )
            if route is not None and (best is None or route.net_pnl_bps > best.net_pnl_bps):
                best = route
        return best

    def _passes_filters(self, route: ArbitrageRoute) -> bool:
        return (
            route.net_pnl_bps > self.settings.min_pnl_bps
            and route.gas_cost_eth < self.settings.max_gas_cost_eth
            and route.atomic_safe
        )

    def _log_summary(self, results: List[ArbitrageRoute]) -> None:
        if not results:
            logger.info("Scan complete: no opportunities")
            return
        logger.info(f"Scan complete: {len(results)} opportunities")
        for i, r in enumerate(results[:TOP_N_LOG], 1):
            logger.info(
                f"  #{i} chain={r.chain_id} {' -> '.join(r.route)} "
                f"net={r.net_pnl_bps:.2f}bps amount={r.amount_in} "
                f"[{r.reason}] {r.execution_hint}"
            )

    # === PERIODIC DRIVER ===

    async def run(
        self, interval_sec: Optional[float] = None, max_ticks: Optional[int] = None
    ) -> None:
        """
        Fire a tick every interval_sec until stopped or max_ticks fired.

        Ticks run as tasks so a slow scan does not delay the schedule; ticks
        that land on a running scan are dropped.
        """
        interval = interval_sec if interval_sec is not None else self.settings.interval_sec
        self._stopping = False
        pending = set()
        fired = 0

        try:
            while not self._stopping and (max_ticks is None or fired < max_ticks):
                task = asyncio.create_task(self.tick_async())
                pending.add(task)
                task.add_done_callback(pending.discard)
                task.add_done_callback(self._tick_done)
                fired += 1
                if max_ticks is not None and fired >= max_ticks:
                    break
                await asyncio.sleep(interval)
        finally:
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    def _tick_done(self, task: asyncio.Task) -> None:
        """Surface a tick that raised instead of leaving it unretrieved."""
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            return
        logger.error(f"Scan tick failed: {error}", exc_info=error)
        if self.metrics:
            self.metrics.record_scan_error()

    def start(self, interval_sec: Optional[float] = None) -> asyncio.Task:
        """Run the periodic driver as a background task."""
        if self._task is not None and not self._task.done():
            return self._task
        self._task = asyncio.create_task(self.run(interval_sec))
        return self._task

    async def stop(self) -> None:
        """Stop the background driver; an in-flight tick is allowed to finish."""
        self._stopping = True
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()
