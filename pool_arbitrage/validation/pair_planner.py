"""
Route construction and profit estimation for asset/quote pair plans.

Routes are enumerated from the asset to each quote token over the asset's
rich pools, checked hop by hop for token connectivity and priced against
liquidity-weighted reference rates: a hop earns an edge when its pool quotes
better than the average of all pools for the same pair.
"""

import math
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from dex.adapters.simulator import simulate_swap, swap_rate
from dex.types import Pool, make_pair_key

from ..config_schema import EngineConfig
from ..utils import all_finite, fraction_to_bps, get_logger, same_token
from .types import AssetCandidate, PairCandidate, PairPlan

logger = get_logger(__name__)


def check_connectivity(
    pools: Sequence[Pool], token_in: str, token_out: str
) -> List[str]:
    """
    Hop-by-hop token continuity of a route.

    Returns:
        Empty list if every hop i holds the token carried out of hop i-1 and
        the last output is token_out; otherwise the mismatch tags
        ("TOKEN_MISMATCH:<i>", "FINAL_TOKEN_MISMATCH")
    """
    carried = token_in
    for i, pool in enumerate(pools):
        nxt = pool.other_token(carried)
        if nxt is None:
            return [f"TOKEN_MISMATCH:{i}"]
        carried = nxt
    if not same_token(carried, token_out):
        return ["FINAL_TOKEN_MISMATCH"]
    return []


def enumerate_routes(
    pools: Sequence[Pool], token_in: str, token_out: str, max_hops: int, max_routes: int
) -> List[List[Pool]]:
    """
    Simple pool paths from token_in to token_out with 1..max_hops hops.

    Each token is visited at most once. Shorter routes come first; at most
    max_routes are returned.
    """
    by_token: Dict[str, List[Pool]] = defaultdict(list)
    for pool in pools:
        if pool.token0.lower() == pool.token1.lower():
            continue
        by_token[pool.token0.lower()].append(pool)
        by_token[pool.token1.lower()].append(pool)

    target = token_out.lower()
    routes: List[List[Pool]] = []
    # Breadth-first so shorter routes win the cap
    frontier: List[Tuple[str, List[Pool], Tuple[str, ...]]] = [
        (token_in.lower(), [], (token_in.lower(),))
    ]

    for _ in range(max_hops):
        next_frontier = []
        for token, path, visited in frontier:
            for pool in by_token.get(token, []):
                nxt = pool.other_token(token).lower()
                if nxt in visited:
                    continue
                new_path = path + [pool]
                if nxt == target:
                    routes.append(new_path)
                    if len(routes) >= max_routes:
                        return routes
                else:
                    next_frontier.append((nxt, new_path, visited + (nxt,)))
        frontier = next_frontier

    return routes


def reference_rates(pools: Iterable[Pool]) -> Dict[str, float]:
    """
    Liquidity-weighted mean mid rate per pair, in the pair key's direction.

    The mean is taken in log space so the reference for b -> a is exactly
    the inverse of the one for a -> b. The rate for key "a-b" converts a
    into b. Pools without a usable price are left out; pairs with no
    liquidity data fall back to equal weights.
    """
    samples: Dict[str, List[Tuple[float, float]]] = defaultdict(list)
    for pool in pools:
        key = make_pair_key(pool.token0, pool.token1)
        first = key.split("-", 1)[0]
        rate = swap_rate(pool, first)
        if rate is None or not math.isfinite(rate):
            continue
        weight = pool.liquidity_usd if pool.liquidity_usd > 0 else 0.0
        samples[key].append((math.log(rate), weight))

    rates: Dict[str, float] = {}
    for key, entries in samples.items():
        total = sum(w for _, w in entries)
        if total > 0:
            rates[key] = math.exp(sum(lr * w for lr, w in entries) / total)
        else:
            rates[key] = math.exp(sum(lr for lr, _ in entries) / len(entries))
    return rates


def _reference_for(
    rates: Dict[str, float], token_in: str, token_out: str
) -> Optional[float]:
    key = make_pair_key(token_in, token_out)
    rate = rates.get(key)
    if rate is None or rate <= 0:
        return None
    if key.split("-", 1)[0] == token_in.lower():
        return rate
    return 1.0 / rate


def estimate_plan_profit(
    route: Sequence[Pool],
    token_in: str,
    rates: Dict[str, float],
    config: EngineConfig,
) -> Optional[Tuple[float, float]]:
    """
    (est_gross_bps, est_profit_bps) for a route, or None if a hop cannot be priced.

    edge(hop) = simulated output of 1 unit / reference rate for that pair
    gross = prod(edge) - 1
    net = prod(edge) * (1 - GAS_COST_FRACTION) - 1
    """
    impact = config.scanner.price_impact_factor
    multiplier = 1.0
    carried = token_in
    for pool in route:
        nxt = pool.other_token(carried)
        if nxt is None:
            return None
        out = simulate_swap(1.0, pool, carried, impact)
        reference = _reference_for(rates, carried, nxt)
        if out is None or reference is None:
            return None
        multiplier *= out / reference
        carried = nxt

    gross_bps = fraction_to_bps(multiplier - 1)
    net_bps = fraction_to_bps(multiplier * (1 - config.policy.gas_cost_fraction) - 1)
    if not all_finite(gross_bps, net_bps):
        return None
    return round(gross_bps, 2), round(net_bps, 2)


def build_plans(
    asset: AssetCandidate,
    candidates: Sequence[PairCandidate],
    rich_pools: Sequence[Pool],
    config: EngineConfig,
) -> List[PairPlan]:
    """
    Priced plans for every pair candidate.

    Candidates whose quote address is unknown on the asset's chain produce
    no plans. Routes failing the connectivity check or pricing are dropped.
    """
    policy = config.policy
    rates = reference_rates(asset.pools)
    gas_usd = policy.plan_notional_usd * policy.gas_cost_fraction
    plans: List[PairPlan] = []

    for candidate in candidates:
        quote_address = candidate.token_out_address
        if not quote_address:
            logger.debug(
                f"{asset.trace_id}: no address for {candidate.token_out} "
                f"on chain {asset.chain_id}, skipping"
            )
            continue

        routes = enumerate_routes(
            rich_pools,
            asset.address,
            quote_address,
            max_hops=policy.max_hops,
            max_routes=policy.max_routes_per_pair,
        )
        for route in routes:
            mismatch = check_connectivity(route, asset.address, quote_address)
            if mismatch:
                logger.warning(
                    f"{asset.trace_id}: dropping route to {candidate.token_out}: "
                    f"{', '.join(mismatch)}"
                )
                continue

            estimate = estimate_plan_profit(route, asset.address, rates, config)
            if estimate is None:
                logger.debug(
                    f"{asset.trace_id}: cannot price route to {candidate.token_out}"
                )
                continue
            gross_bps, profit_bps = estimate

            plans.append(
                PairPlan(
                    trace_id=asset.trace_id,
                    token_in=candidate.token_in,
                    token_out=candidate.token_out,
                    token_in_address=asset.address,
                    token_out_address=quote_address,
                    route=[p.dex_id for p in route],
                    hops=len(route),
                    est_profit_bps=profit_bps,
                    est_gross_bps=gross_bps,
                    est_gas_usd=gas_usd,
                    est_slippage_bps=policy.slippage_bps,
                    atomic=False,
                    pools_used=list(route),
                )
            )

    logger.info(
        f"{asset.trace_id}: built {len(plans)} plan(s) for {len(candidates)} pair(s)"
    )
    return plans
