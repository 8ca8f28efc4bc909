"""
Market data providers: DexScreener pools/prices and GoPlus safety scores.
"""

from .dexscreener import CHAIN_SLUGS, DexScreenerClient, PoolQuote
from .pool_source import ConfiguredPoolSource, PoolSource, StaticPoolSource
from .security import SafetyReport, SecurityScoreClient, score_token

__all__ = [
    "CHAIN_SLUGS",
    "DexScreenerClient",
    "PoolQuote",
    "PoolSource",
    "StaticPoolSource",
    "ConfiguredPoolSource",
    "SafetyReport",
    "SecurityScoreClient",
    "score_token",
]
