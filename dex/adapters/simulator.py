"""
Swap simulation from pool mid prices or pool reserves.

The default "fixed" model makes every hop pay the pool fee and a flat
price-impact haircut:

    amount_out = amount_in * rate * (1 - fee_bps / 10000) * impact_factor

where rate is the pool price for token0 -> token1 and its inverse for
token1 -> token0. The flat factor (0.998) stands in for real depth.

The "reserves" model prices the hop on the constant-product curve
(dex.adapters.v2.swap_out) so impact grows with trade size. Pools without
reserve data fall back to the fixed model.
"""

import math
from typing import List, Literal, Optional, Sequence, Tuple

from pool_arbitrage.utils import all_finite, bps_to_fraction

from ..types import Pool
from .v2 import swap_out_bps

ImpactModel = Literal["fixed", "reserves"]

DEFAULT_IMPACT_FACTOR = 0.998
DEFAULT_IMPACT_MODEL: ImpactModel = "fixed"


def swap_rate(pool: Pool, token_in: Optional[str] = None) -> Optional[float]:
    """
    Mid rate for swapping out of token_in through pool.

    Returns None when the pool has no usable price or token_in is not in it.
    """
    price = pool.price
    if price is None or not math.isfinite(price) or price <= 0:
        return None
    if token_in is None or token_in.lower() == pool.token0.lower():
        return price
    if token_in.lower() == pool.token1.lower():
        return 1.0 / price
    return None


def swap_reserves(
    pool: Pool, token_in: Optional[str] = None
) -> Optional[Tuple[float, float]]:
    """
    (reserve_in, reserve_out) for swapping out of token_in through pool.

    Returns None when either reserve is missing or not positive, or
    token_in is not in the pool.
    """
    r0, r1 = pool.reserve0, pool.reserve1
    if r0 is None or r1 is None or not all_finite(r0, r1) or r0 <= 0 or r1 <= 0:
        return None
    if token_in is None or token_in.lower() == pool.token0.lower():
        return r0, r1
    if token_in.lower() == pool.token1.lower():
        return r1, r0
    return None


def simulate_swap(
    amount_in: float,
    pool: Pool,
    token_in: Optional[str] = None,
    impact_factor: float = DEFAULT_IMPACT_FACTOR,
    model: ImpactModel = DEFAULT_IMPACT_MODEL,
) -> Optional[float]:
    """
    Simulated output of one swap.

    Args:
        amount_in: Input amount in token_in units
        pool: Pool to swap through
        token_in: Input token; None means token0 -> token1
        impact_factor: Flat execution haircut applied after the fee
        model: "fixed" or "reserves"

    Returns:
        Output amount, or None if data is missing or the result is not finite
    """
    if not math.isfinite(amount_in) or amount_in < 0:
        return None
    if model == "reserves":
        reserves = swap_reserves(pool, token_in)
        if reserves is not None:
            return swap_out_bps(amount_in, reserves[0], reserves[1], pool.fee_bps)
    rate = swap_rate(pool, token_in)
    if rate is None:
        return None

    amount_out = amount_in * rate * (1 - bps_to_fraction(pool.fee_bps)) * impact_factor
    if not math.isfinite(amount_out):
        return None
    return amount_out


def simulate_route(
    amount_in: float,
    pools: Sequence[Pool],
    start_token: str,
    impact_factor: float = DEFAULT_IMPACT_FACTOR,
    model: ImpactModel = DEFAULT_IMPACT_MODEL,
) -> Optional[Tuple[float, str]]:
    """
    Chain swaps through pools, carrying each hop's output token forward.

    Returns:
        (amount_out, end_token), or None if a hop does not hold the carried
        token or any hop cannot be simulated
    """
    amount = amount_in
    token = start_token
    for pool in pools:
        next_token = pool.other_token(token)
        if next_token is None:
            return None
        amount = simulate_swap(amount, pool, token, impact_factor, model)
        if amount is None:
            return None
        token = next_token
    return amount, token


def route_tokens(pools: Sequence[Pool], start_token: str) -> Optional[List[str]]:
    """Token path visited by a route (start and every hop output)."""
    path = [start_token]
    for pool in pools:
        nxt = pool.other_token(path[-1])
        if nxt is None:
            return None
        path.append(nxt)
    return path
