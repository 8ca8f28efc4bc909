"""
Net profitability of candidate cycles after fees, price impact and gas.

All amounts are in units of the cycle's input token; gas is costed in the
chain's native token and subtracted as if the input token were native, which
holds for the WETH-denominated cycles the scanner targets.
"""

import math
from typing import Dict, List, Optional, Sequence

from pool_arbitrage.config_schema import DEFAULT_GAS_PRICE_GWEI, EngineConfig
from pool_arbitrage.utils import all_finite, fraction_to_bps, get_logger

from .adapters.simulator import (
    DEFAULT_IMPACT_FACTOR,
    DEFAULT_IMPACT_MODEL,
    ImpactModel,
    simulate_route,
)
from .types import ArbitrageRoute, Pool

logger = get_logger(__name__)

# Gas model (units)
BASE_TX_GAS = 21_000
GAS_PER_SWAP = 150_000
MULTI_HOP_OVERHEAD_GAS = 50_000

DEFAULT_MIN_PNL_BPS = 5.0
DEFAULT_GAS_PRICE_FALLBACK_GWEI = 20.0
FEE_SPREAD_THRESHOLD_BPS = 20.0

TWO_LEG_LADDER = (0.01, 0.05, 0.1, 0.5, 1.0)
THREE_LEG_LADDER = (0.01, 0.05, 0.1)

TWAP_DEX_MARKERS = ("v3", "aerodrome")


def gas_units(legs: int) -> int:
    """Gas units for a cycle with the given number of swaps."""
    units = BASE_TX_GAS + legs * GAS_PER_SWAP
    if legs > 1:
        units += MULTI_HOP_OVERHEAD_GAS
    return units


def classify_reason(pools: Sequence[Pool]) -> str:
    """
    Tag why a cycle may be mispriced.

    INTER-DEX: more than one distinct DEX
    FEE_ARBITRAGE: fee tiers differ by more than 20 bps
    TWAP_DELAY: a DEX whose oracle/pricing lags (v3 pools, aerodrome)
    """
    tags: List[str] = []
    dex_ids = [p.dex_id.lower() for p in pools]

    if len(set(dex_ids)) > 1:
        tags.append("INTER-DEX")

    fees = [p.fee_bps for p in pools]
    if fees and max(fees) - min(fees) > FEE_SPREAD_THRESHOLD_BPS:
        tags.append("FEE_ARBITRAGE")

    if any(marker in dex for dex in dex_ids for marker in TWAP_DEX_MARKERS):
        tags.append("TWAP_DELAY")

    return " + ".join(tags) if tags else "PRICE_INEFFICIENCY"


class ProfitEstimator:
    """
    Prices a cycle at a given input amount and rejects unprofitable ones.

    Args:
        min_pnl_bps: Routes at or below this net edge are rejected
        impact_factor: Flat per-hop execution haircut
        impact_model: "fixed" haircut, or "reserves" to price hops on the
            constant-product curve where the pool carries reserves
        gas_price_gwei: Gas price per chain id
        default_gas_price_gwei: Used for chains missing from the table
    """

    def __init__(
        self,
        min_pnl_bps: float = DEFAULT_MIN_PNL_BPS,
        impact_factor: float = DEFAULT_IMPACT_FACTOR,
        impact_model: ImpactModel = DEFAULT_IMPACT_MODEL,
        gas_price_gwei: Optional[Dict[int, float]] = None,
        default_gas_price_gwei: float = DEFAULT_GAS_PRICE_FALLBACK_GWEI,
    ):
        self.min_pnl_bps = min_pnl_bps
        self.impact_factor = impact_factor
        self.impact_model = impact_model
        self.gas_price_gwei = dict(
            DEFAULT_GAS_PRICE_GWEI if gas_price_gwei is None else gas_price_gwei
        )
        self.default_gas_price_gwei = default_gas_price_gwei

    @classmethod
    def from_config(cls, config: EngineConfig) -> "ProfitEstimator":
        """Build an estimator whose gas table honours per-chain overrides."""
        table = dict(config.scanner.gas_price_gwei)
        for chain in config.chains:
            table[chain.chain_id] = config.gas_price_gwei(chain.chain_id)
        return cls(
            min_pnl_bps=config.scanner.min_pnl_bps,
            impact_factor=config.scanner.price_impact_factor,
            impact_model=config.scanner.impact_model,
            gas_price_gwei=table,
            default_gas_price_gwei=config.scanner.default_gas_price_gwei,
        )

    def gas_cost_eth(self, legs: int, chain_id: int) -> float:
        """Native-token gas cost of a cycle with `legs` swaps."""
        gwei = self.gas_price_gwei.get(chain_id, self.default_gas_price_gwei)
        return gas_units(legs) * gwei * 1e-9

    def estimate_route(
        self,
        pools: Sequence[Pool],
        amount_in: float,
        chain_id: int,
        start_token: Optional[str] = None,
    ) -> Optional[ArbitrageRoute]:
        """
        Price one cycle at one amount.

        Returns:
            ArbitrageRoute, or None if a hop cannot be simulated, the route
            does not close, any figure is non-finite, or the net edge does
            not exceed min_pnl_bps
        """
        if not pools or not math.isfinite(amount_in) or amount_in <= 0:
            return None

        start = start_token or pools[0].token0
        simulated = simulate_route(
            amount_in, pools, start, self.impact_factor, self.impact_model
        )
        if simulated is None:
            return None
        amount_out, end_token = simulated
        if end_token.lower() != start.lower():
            logger.debug(f"Route does not close: {start} -> {end_token}")
            return None

        legs = len(pools)
        gas_cost = self.gas_cost_eth(legs, chain_id)
        net_pnl = amount_out - amount_in - gas_cost
        net_pnl_bps = fraction_to_bps(net_pnl / amount_in)

        if not all_finite(amount_out, gas_cost, net_pnl, net_pnl_bps):
            return None
        if net_pnl_bps <= self.min_pnl_bps:
            return None

        return ArbitrageRoute(
            chain_id=chain_id,
            route=[p.hop_descriptor() for p in pools],
            legs=legs,
            input_token=start,
            amount_in=amount_in,
            amount_out=amount_out,
            net_pnl=net_pnl,
            net_pnl_bps=net_pnl_bps,
            gas_cost_eth=gas_cost,
            reason=classify_reason(pools),
            atomic_safe=True,
            execution_hint="flashloan" if legs == 2 else "atomic_multicall",
            pools=list(pools),
        )

    def best_route(
        self,
        pools: Sequence[Pool],
        chain_id: int,
        ladder: Optional[Sequence[float]] = None,
        start_token: Optional[str] = None,
    ) -> Optional[ArbitrageRoute]:
        """
        Best-scoring amount from a test ladder.

        The ladder defaults by cycle length. Ties keep the earlier amount.
        """
        if ladder is None:
            ladder = TWO_LEG_LADDER if len(pools) == 2 else THREE_LEG_LADDER

        best: Optional[ArbitrageRoute] = None
        for amount in ladder:
            route = self.estimate_route(pools, amount, chain_id, start_token)
            if route is None:
                continue
            if best is None or route.net_pnl_bps > best.net_pnl_bps:
                best = route
        return best
