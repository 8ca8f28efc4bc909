"""
Constant-product (x*y=k) swap model for Uniswap V2 style pools.

This is the reserve-based alternative to the fixed-impact simulator: output
shrinks with trade size instead of a flat impact factor. Decimal arithmetic
is used so that large reserves do not lose precision.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple

BPS = Decimal(10000)


def swap_out(
    amount_in: Decimal, reserve_in: Decimal, reserve_out: Decimal, fee: Decimal
) -> Decimal:
    """
    Output amount for a constant-product swap with the fee taken on input.

        amount_in_with_fee = amount_in * (1 - fee)
        amount_out = amount_in_with_fee * reserve_out / (reserve_in + amount_in_with_fee)

    Args:
        amount_in: Input token amount
        reserve_in: Pool reserve of the input token
        reserve_out: Pool reserve of the output token
        fee: Fee as a fraction (0.003 for 30 bps)

    Raises:
        ValueError: On non-positive amount or reserves, or fee outside [0, 1)
    """
    if amount_in <= 0:
        raise ValueError(f"amount_in must be positive: {amount_in}")
    if reserve_in <= 0 or reserve_out <= 0:
        raise ValueError(
            f"Reserves must be positive: in={reserve_in}, out={reserve_out}"
        )
    if fee < 0 or fee >= 1:
        raise ValueError(f"Fee must be in [0, 1): {fee}")

    effective_in = amount_in * (Decimal(1) - fee)
    return effective_in * reserve_out / (reserve_in + effective_in)


def price_quote_in_out(
    amount_in: Decimal, reserve_in: Decimal, reserve_out: Decimal, fee: Decimal
) -> Tuple[Decimal, Decimal]:
    """Output amount and execution price (amount_out / amount_in)."""
    amount_out = swap_out(amount_in, reserve_in, reserve_out, fee)
    return amount_out, amount_out / amount_in


def price_impact_bps(
    amount_in: Decimal, reserve_in: Decimal, reserve_out: Decimal, fee: Decimal
) -> Decimal:
    """
    Loss versus the fee-adjusted mid price, in basis points.

    This is the size-dependent counterpart of the flat 0.998 impact factor
    used by the fixed-impact simulator (which corresponds to 20 bps).
    """
    amount_out = swap_out(amount_in, reserve_in, reserve_out, fee)
    ideal_out = amount_in * (Decimal(1) - fee) * reserve_out / reserve_in
    return (Decimal(1) - amount_out / ideal_out) * BPS


def swap_out_bps(
    amount_in: float, reserve_in: float, reserve_out: float, fee_bps: float
) -> Optional[float]:
    """
    Float wrapper around swap_out taking the fee in basis points.

    Returns None when the inputs cannot describe a valid swap.
    """
    try:
        result = swap_out(
            Decimal(str(amount_in)),
            Decimal(str(reserve_in)),
            Decimal(str(reserve_out)),
            Decimal(str(fee_bps)) / BPS,
        )
    except (ValueError, InvalidOperation):
        return None
    return float(result)
