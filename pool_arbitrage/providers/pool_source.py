"""
Pool snapshot sources for the opportunity scanner.
"""

from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from dex.types import Pool

from ..config_schema import ChainConfig
from ..utils import get_logger, same_token
from .dexscreener import DexScreenerClient, PoolQuote

logger = get_logger(__name__)


class PoolSource(Protocol):
    """Anything that can return the current pools of a chain."""

    def get_pools(self, chain: ChainConfig) -> List[Pool]: ...


class StaticPoolSource:
    """Fixed pools, grouped by chain id. Used for replays and tests."""

    def __init__(self, pools: Iterable[Pool]):
        self._pools: Dict[int, List[Pool]] = {}
        for pool in pools:
            self._pools.setdefault(pool.chain_id, []).append(pool)

    def get_pools(self, chain: ChainConfig) -> List[Pool]:
        return list(self._pools.get(chain.chain_id, []))


class ConfiguredPoolSource:
    """
    Pools listed in the chain config, priced through DexScreener.

    Pools on DEXs that are disabled for the chain are skipped. A pool the
    provider returned no quote for is still returned, with price None, so
    the simulator treats it as data-unavailable.
    """

    def __init__(self, client: DexScreenerClient):
        self.client = client

    def get_pools(self, chain: ChainConfig) -> List[Pool]:
        enabled = set(chain.enabled_dex_ids())
        entries = [
            e for e in chain.pools if not chain.dexes or e.dex_id.lower() in enabled
        ]
        if not entries:
            return []

        quotes = self.client.get_pool_prices(
            chain.chain_id, [e.pair_address for e in entries]
        )

        pools = []
        for entry in entries:
            quote = quotes.get(entry.pair_address.lower())
            fee_bps = (
                entry.fee_bps
                if entry.fee_bps is not None
                else chain.fee_bps_for(entry.dex_id)
            )
            reserve0, reserve1 = _oriented_reserves(quote, entry.token0)
            pools.append(
                Pool(
                    chain_id=chain.chain_id,
                    dex_id=entry.dex_id,
                    pair_address=entry.pair_address,
                    token0=entry.token0,
                    token1=entry.token1,
                    fee_bps=fee_bps,
                    liquidity_usd=quote.liquidity_usd if quote else 0.0,
                    price=_oriented_price(quote, entry.token0),
                    reserve0=reserve0,
                    reserve1=reserve1,
                )
            )

        priced = sum(1 for p in pools if p.price is not None)
        logger.debug(f"Chain {chain.chain_id}: {priced}/{len(pools)} pools priced")
        return pools


def _oriented_price(quote: Optional[PoolQuote], token0: str) -> Optional[float]:
    """Quote price expressed as token0 in token1 units."""
    if quote is None:
        return None
    if same_token(quote.base_token, token0):
        return quote.price_native
    if same_token(quote.quote_token, token0):
        return 1.0 / quote.price_native
    return None


def _oriented_reserves(
    quote: Optional[PoolQuote], token0: str
) -> Tuple[Optional[float], Optional[float]]:
    """Quote token balances as (token0, token1)."""
    if quote is None:
        return None, None
    if same_token(quote.base_token, token0):
        return quote.liquidity_base, quote.liquidity_quote
    if same_token(quote.quote_token, token0):
        return quote.liquidity_quote, quote.liquidity_base
    return None, None
