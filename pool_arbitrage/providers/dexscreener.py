"""
DexScreener pool and price client.

Pair lookups are batched (the API accepts up to 30 comma-separated addresses
per request) with a short pause between batches. A batch that fails or times
out contributes nothing to the result; callers see fewer pools, never an
exception. Prices are cached per (chain_id, pair address).
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import requests

from dex.types import Pool

from ..exceptions import ConfigurationError
from ..metrics import ArbitrageMetrics
from ..utils import chunked, get_logger, is_finite_number, same_token

logger = get_logger(__name__)

PROVIDER_NAME = "dexscreener"

# DexScreener chain slugs by EVM chain id
CHAIN_SLUGS = {
    1: "ethereum",
    10: "optimism",
    25: "cronos",
    56: "bsc",
    100: "gnosis",
    137: "polygon",
    8453: "base",
    42161: "arbitrum",
    534352: "scroll",
}


@dataclass(frozen=True)
class PoolQuote:
    """
    One DexScreener pair.

    Attributes:
        chain_id: EVM chain id
        dex_id: DexScreener dex id (e.g., "uniswap", "aerodrome")
        pair_address: Pair contract address (lowercased)
        base_token: Base token address
        base_symbol: Base token symbol
        quote_token: Quote token address
        quote_symbol: Quote token symbol
        price_native: Base price in quote token units
        price_usd: Base price in USD, when reported
        liquidity_usd: Pool TVL in USD
        volume_24h: 24h volume in USD
        fetched_at: Unix time of the fetch
        liquidity_base: Base token balance of the pool, when reported
        liquidity_quote: Quote token balance of the pool, when reported
    """

    chain_id: int
    dex_id: str
    pair_address: str
    base_token: str
    base_symbol: str
    quote_token: str
    quote_symbol: str
    price_native: float
    price_usd: Optional[float]
    liquidity_usd: float
    volume_24h: float
    fetched_at: float
    liquidity_base: Optional[float] = None
    liquidity_quote: Optional[float] = None

    def to_pool(self, fee_bps: float = 30.0) -> Pool:
        """Scanner view of this pair; base is token0, quote is token1."""
        return Pool(
            chain_id=self.chain_id,
            dex_id=self.dex_id,
            pair_address=self.pair_address,
            token0=self.base_token,
            token1=self.quote_token,
            fee_bps=fee_bps,
            liquidity_usd=self.liquidity_usd,
            price=self.price_native,
            reserve0=self.liquidity_base,
            reserve1=self.liquidity_quote,
        )


def _to_float(value: Any) -> Optional[float]:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if is_finite_number(result) else None


def parse_pair(chain_id: int, pair: Dict[str, Any], fetched_at: float) -> Optional[PoolQuote]:
    """
    Convert one API pair object to a PoolQuote.

    Pairs without a positive native price or without liquidity data are
    skipped (None).
    """
    price = _to_float(pair.get("priceNative"))
    liquidity = pair.get("liquidity")
    if price is None or price <= 0 or not isinstance(liquidity, dict):
        return None

    base = pair.get("baseToken") or {}
    quote = pair.get("quoteToken") or {}
    address = pair.get("pairAddress")
    if not address or not base.get("address") or not quote.get("address"):
        return None

    volume = pair.get("volume") or {}
    return PoolQuote(
        chain_id=chain_id,
        dex_id=str(pair.get("dexId", "unknown")).lower(),
        pair_address=address.lower(),
        base_token=base["address"],
        base_symbol=str(base.get("symbol", "")),
        quote_token=quote["address"],
        quote_symbol=str(quote.get("symbol", "")),
        price_native=price,
        price_usd=_to_float(pair.get("priceUsd")),
        liquidity_usd=_to_float(liquidity.get("usd")) or 0.0,
        volume_24h=_to_float(volume.get("h24")) or 0.0,
        fetched_at=fetched_at,
        liquidity_base=_to_float(liquidity.get("base")),
        liquidity_quote=_to_float(liquidity.get("quote")),
    )


class DexScreenerClient:
    """
    Narrow DexScreener query interface.

    Args:
        base_url: API root
        timeout_sec: Per-request timeout
        batch_size: Addresses per request (API limit 30)
        batch_delay_sec: Pause between batches
        cache_ttl_sec: Price cache lifetime
        session: requests session (injectable for tests)
        metrics: Optional metrics for failed batches
        sleep: Sleep function used between batches
        clock: Time source for the cache
    """

    def __init__(
        self,
        base_url: str = "https://api.dexscreener.com",
        timeout_sec: float = 10.0,
        batch_size: int = 30,
        batch_delay_sec: float = 0.2,
        cache_ttl_sec: float = 30.0,
        session: Optional[requests.Session] = None,
        metrics: Optional[ArbitrageMetrics] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.batch_size = batch_size
        self.batch_delay_sec = batch_delay_sec
        self.cache_ttl_sec = cache_ttl_sec
        self.session = session or requests.Session()
        self.metrics = metrics
        self._sleep = sleep
        self._clock = clock
        self._price_cache: Dict[Tuple[int, str], PoolQuote] = {}

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "DexScreenerClient":
        """Build from ProviderSettings."""
        return cls(
            base_url=settings.dexscreener_url,
            timeout_sec=settings.timeout_sec,
            batch_size=settings.batch_size,
            batch_delay_sec=settings.batch_delay_sec,
            cache_ttl_sec=settings.price_cache_ttl_sec,
            **kwargs,
        )

    @staticmethod
    def chain_slug(chain_id: int) -> str:
        slug = CHAIN_SLUGS.get(chain_id)
        if slug is None:
            raise ConfigurationError(
                f"Chain {chain_id} is not supported by DexScreener",
                details={"supported": sorted(CHAIN_SLUGS)},
            )
        return slug

    # === QUERIES ===

    def get_token_pools(
        self, chain_id: int, token_address: str, quote_address: Optional[str] = None
    ) -> List[PoolQuote]:
        """
        Pools trading token_address on chain_id, optionally against one quote.

        Returns [] when the token is unknown or the request fails.
        """
        slug = self.chain_slug(chain_id)
        url = f"{self.base_url}/latest/dex/tokens/{token_address}"
        pairs = self._get_pairs(url)
        now = self._clock()

        quotes = []
        for pair in pairs:
            if pair.get("chainId") != slug:
                continue
            quote = parse_pair(chain_id, pair, now)
            if quote is None:
                continue
            if quote_address and not (
                same_token(quote.quote_token, quote_address)
                or same_token(quote.base_token, quote_address)
            ):
                continue
            quotes.append(quote)

        logger.debug(f"{len(quotes)} pools for {token_address} on chain {chain_id}")
        return quotes

    def get_pool_prices(
        self, chain_id: int, pair_addresses: Sequence[str]
    ) -> Dict[str, PoolQuote]:
        """
        Current quotes for known pair addresses, keyed by lowercased address.

        Cached entries younger than cache_ttl_sec are served without a request.
        Addresses the API does not know, or whose batch failed, are absent.
        """
        slug = self.chain_slug(chain_id)
        now = self._clock()
        result: Dict[str, PoolQuote] = {}
        uncached: List[str] = []

        for address in pair_addresses:
            key = (chain_id, address.lower())
            cached = self._price_cache.get(key)
            if cached is not None and now - cached.fetched_at < self.cache_ttl_sec:
                result[address.lower()] = cached
            else:
                uncached.append(address)

        batches = list(chunked(uncached, self.batch_size))
        for i, batch in enumerate(batches):
            if i > 0 and self.batch_delay_sec > 0:
                self._sleep(self.batch_delay_sec)
            url = f"{self.base_url}/latest/dex/pairs/{slug}/{','.join(batch)}"
            fetched_at = self._clock()
            for pair in self._get_pairs(url):
                quote = parse_pair(chain_id, pair, fetched_at)
                if quote is None:
                    continue
                self._price_cache[(chain_id, quote.pair_address)] = quote
                result[quote.pair_address] = quote

        return result

    def clear_cache(self) -> None:
        self._price_cache.clear()

    def _get_pairs(self, url: str) -> List[Dict[str, Any]]:
        """GET url and return its 'pairs' list; [] on any request failure."""
        try:
            response = self.session.get(
                url, timeout=self.timeout_sec, headers={"Accept": "application/json"}
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            logger.warning(f"DexScreener request failed ({url}): {e}")
            if self.metrics:
                self.metrics.record_provider_failure(PROVIDER_NAME)
            return []
        except ValueError as e:
            logger.warning(f"DexScreener returned invalid JSON ({url}): {e}")
            if self.metrics:
                self.metrics.record_provider_failure(PROVIDER_NAME)
            return []

        pairs = data.get("pairs") if isinstance(data, dict) else None
        return pairs if isinstance(pairs, list) else []
