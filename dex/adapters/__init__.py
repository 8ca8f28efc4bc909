"""
Swap models: fixed-impact simulation and the constant-product alternative.
"""

from .simulator import (
    DEFAULT_IMPACT_FACTOR,
    DEFAULT_IMPACT_MODEL,
    ImpactModel,
    route_tokens,
    simulate_route,
    simulate_swap,
    swap_rate,
    swap_reserves,
)
from .v2 import price_impact_bps, price_quote_in_out, swap_out, swap_out_bps

__all__ = [
    "DEFAULT_IMPACT_FACTOR",
    "DEFAULT_IMPACT_MODEL",
    "ImpactModel",
    "simulate_swap",
    "simulate_route",
    "swap_rate",
    "swap_reserves",
    "route_tokens",
    "swap_out",
    "swap_out_bps",
    "price_quote_in_out",
    "price_impact_bps",
]
