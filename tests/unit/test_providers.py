"""
Unit tests for the DexScreener and GoPlus clients and the configured pool source.

HTTP is replaced with a mocked requests session.
"""

from unittest.mock import MagicMock

import pytest
import requests
from prometheus_client import CollectorRegistry

from pool_arbitrage.config_schema import validate_engine_config
from pool_arbitrage.exceptions import ConfigurationError
from pool_arbitrage.metrics import ArbitrageMetrics
from pool_arbitrage.providers import (
    ConfiguredPoolSource,
    DexScreenerClient,
    SecurityScoreClient,
    StaticPoolSource,
)
from pool_arbitrage.providers.dexscreener import parse_pair
from pool_arbitrage.providers.security import score_token

WETH = "0x4200000000000000000000000000000000000006"
USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
TOKEN = "0x0000000000000000000000000000000000001234"


def api_pair(pair_address, base=TOKEN, quote=WETH, price="1.5", liquidity=2_000_000,
             chain="base", dex="uniswap"):
    return {
        "chainId": chain,
        "dexId": dex,
        "pairAddress": pair_address,
        "baseToken": {"address": base, "symbol": "TKN"},
        "quoteToken": {"address": quote, "symbol": "WETH"},
        "priceNative": price,
        "priceUsd": "3000.0",
        "liquidity": {"usd": liquidity},
        "volume": {"h24": 12345},
    }


def response(payload):
    resp = MagicMock()
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


@pytest.fixture
def metrics():
    return ArbitrageMetrics(CollectorRegistry())


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def clock():
    now = {"t": 1000.0}
    return now


@pytest.fixture
def client(session, metrics, sleeps, clock):
    return DexScreenerClient(
        session=session,
        metrics=metrics,
        sleep=sleeps.append,
        clock=lambda: clock["t"],
    )


class TestParsePair:
    def test_fields(self):
        quote = parse_pair(8453, api_pair("0xABCD"), 1.0)
        assert quote.pair_address == "0xabcd"
        assert quote.base_token == TOKEN
        assert quote.quote_token == WETH
        assert quote.price_native == 1.5
        assert quote.price_usd == 3000.0
        assert quote.liquidity_usd == 2_000_000
        assert quote.volume_24h == 12345

    @pytest.mark.parametrize("price", [None, "0", "-1", "abc", "nan"])
    def test_unusable_price_skipped(self, price):
        assert parse_pair(8453, api_pair("0x1", price=price), 1.0) is None

    def test_missing_liquidity_skipped(self):
        pair = api_pair("0x1")
        del pair["liquidity"]
        assert parse_pair(8453, pair, 1.0) is None

    def test_reserves_from_liquidity(self):
        pair = api_pair("0x1")
        pair["liquidity"].update({"base": 1500, "quote": "1000.5"})
        pool = parse_pair(8453, pair, 1.0).to_pool(fee_bps=30)
        assert (pool.reserve0, pool.reserve1) == (1500.0, 1000.5)

    def test_reserves_absent_when_unreported(self):
        pool = parse_pair(8453, api_pair("0x1"), 1.0).to_pool(fee_bps=30)
        assert pool.reserve0 is None
        assert pool.reserve1 is None

    def test_to_pool_orientation(self):
        pool = parse_pair(8453, api_pair("0x1"), 1.0).to_pool(fee_bps=5)
        assert pool.token0 == TOKEN
        assert pool.token1 == WETH
        assert pool.price == 1.5
        assert pool.fee_bps == 5


class TestDexScreenerClient:
    def test_token_pools_filtered_by_chain(self, client, session):
        session.get.return_value = response(
            {"pairs": [api_pair("0x1"), api_pair("0x2", chain="ethereum")]}
        )
        quotes = client.get_token_pools(8453, TOKEN)

        assert [q.pair_address for q in quotes] == ["0x1"]
        url = session.get.call_args.args[0]
        assert url == f"https://api.dexscreener.com/latest/dex/tokens/{TOKEN}"
        assert session.get.call_args.kwargs["timeout"] == 10.0

    def test_token_pools_filtered_by_quote(self, client, session):
        session.get.return_value = response(
            {"pairs": [api_pair("0x1"), api_pair("0x2", quote=USDC)]}
        )
        quotes = client.get_token_pools(8453, TOKEN, quote_address=USDC.lower())
        assert [q.pair_address for q in quotes] == ["0x2"]

    def test_unsupported_chain(self, client):
        with pytest.raises(ConfigurationError):
            client.get_token_pools(999999, TOKEN)

    def test_prices_batched_with_delay(self, client, session, sleeps):
        addresses = [f"0x{i:040x}" for i in range(65)]
        session.get.side_effect = lambda url, **kw: response(
            {"pairs": [api_pair(a) for a in url.rsplit("/", 1)[1].split(",")]}
        )

        quotes = client.get_pool_prices(8453, addresses)

        assert session.get.call_count == 3
        batch_sizes = [
            len(call.args[0].rsplit("/", 1)[1].split(",")) for call in session.get.call_args_list
        ]
        assert batch_sizes == [30, 30, 5]
        assert "/latest/dex/pairs/base/" in session.get.call_args_list[0].args[0]
        assert sleeps == [0.2, 0.2]
        assert set(quotes) == set(addresses)

    def test_failed_batch_degrades(self, client, session, metrics):
        addresses = [f"0x{i:040x}" for i in range(31)]
        ok = response({"pairs": [api_pair(addresses[30])]})
        session.get.side_effect = [requests.Timeout("slow"), ok]

        quotes = client.get_pool_prices(8453, addresses)

        assert list(quotes) == [addresses[30]]
        assert metrics.get_sample(
            "pool_arbitrage_provider_failures_total", {"provider": "dexscreener"}
        ) == 1

    def test_http_error_degrades(self, client, session):
        resp = MagicMock()
        resp.raise_for_status.side_effect = requests.HTTPError("429")
        session.get.return_value = resp
        assert client.get_token_pools(8453, TOKEN) == []

    def test_invalid_json_degrades(self, client, session):
        resp = MagicMock()
        resp.json.side_effect = ValueError("not json")
        session.get.return_value = resp
        assert client.get_pool_prices(8453, ["0x1"]) == {}

    def test_price_cache(self, client, session, clock):
        session.get.return_value = response({"pairs": [api_pair("0x1")]})

        client.get_pool_prices(8453, ["0x1"])
        client.get_pool_prices(8453, ["0x1"])
        assert session.get.call_count == 1

        clock["t"] += 31
        client.get_pool_prices(8453, ["0x1"])
        assert session.get.call_count == 2

        client.clear_cache()
        client.get_pool_prices(8453, ["0x1"])
        assert session.get.call_count == 3

    def test_cache_keyed_by_lowercase_address(self, client, session):
        session.get.return_value = response({"pairs": [api_pair("0xAB")]})
        client.get_pool_prices(8453, ["0xAB"])
        quotes = client.get_pool_prices(8453, ["0xab"])
        assert session.get.call_count == 1
        assert "0xab" in quotes


class TestSecurityScores:
    def test_clean_token(self):
        report = score_token({"is_open_source": "1", "buy_tax": "0", "sell_tax": "0.01"})
        assert report.score == 100
        assert report.flags == []

    def test_penalties(self):
        report = score_token(
            {
                "is_mintable": "1",
                "is_proxy": "1",
                "is_open_source": "0",
                "sell_tax": "0.25",
                "token_symbol": "TKN",
                "decimals": "6",
            }
        )
        assert report.score == 100 - 15 - 10 - 20 - 20
        assert report.flags == ["IS_MINTABLE", "IS_PROXY", "CLOSED_SOURCE", "HIGH_SELL_TAX"]
        assert report.symbol == "TKN"
        assert report.decimals == 6

    def test_score_floored_at_zero(self):
        report = score_token({"is_honeypot": "1", "cannot_sell_all": "1"})
        assert report.score == 0

    def test_get_scores(self, session, metrics):
        session.get.return_value = response(
            {"code": 1, "result": {TOKEN: {"is_proxy": "1"}, WETH.lower(): {}}}
        )
        client = SecurityScoreClient(session=session, metrics=metrics)

        reports = client.get_scores(8453, [TOKEN, WETH])

        assert list(reports) == [TOKEN]
        assert reports[TOKEN].score == 90
        url = session.get.call_args.args[0]
        assert url == "https://api.gopluslabs.io/api/v1/token_security/8453"
        assert session.get.call_args.kwargs["params"] == {
            "contract_addresses": f"{TOKEN},{WETH}"
        }

    def test_api_error_code(self, session, metrics):
        session.get.return_value = response({"code": 2, "message": "rate limited"})
        client = SecurityScoreClient(session=session, metrics=metrics)

        assert client.get_scores(8453, [TOKEN]) == {}
        assert metrics.get_sample(
            "pool_arbitrage_provider_failures_total", {"provider": "goplus"}
        ) == 1

    def test_request_failure(self, session):
        session.get.side_effect = requests.ConnectionError("down")
        assert SecurityScoreClient(session=session).get_scores(8453, [TOKEN]) == {}


class TestPoolSources:
    @pytest.fixture
    def chain(self):
        config = validate_engine_config(
            {
                "chains": [
                    {
                        "chain_id": 8453,
                        "dexes": [
                            {"dex_id": "uniswap", "fee_bps": 30},
                            {"dex_id": "aerodrome", "fee_bps": 5},
                            {"dex_id": "sushiswap", "enabled": False},
                        ],
                        "pools": [
                            {"dex_id": "uniswap", "pair_address": "0xP1", "token0": WETH, "token1": USDC},
                            {"dex_id": "aerodrome", "pair_address": "0xP2", "token0": USDC, "token1": WETH},
                            {"dex_id": "aerodrome", "pair_address": "0xP3", "token0": WETH, "token1": USDC, "fee_bps": 1},
                            {"dex_id": "sushiswap", "pair_address": "0xP4", "token0": WETH, "token1": USDC},
                        ],
                    }
                ]
            }
        )
        return config.get_chain(8453)

    def test_configured_pools_priced_and_oriented(self, chain):
        provider = MagicMock()
        quote = parse_pair(8453, api_pair("0xp1", base=WETH, quote=USDC, price="2000"), 1.0)
        quote2 = parse_pair(8453, api_pair("0xp2", base=WETH, quote=USDC, price="2000"), 1.0)
        provider.get_pool_prices.return_value = {"0xp1": quote, "0xp2": quote2}

        pools = ConfiguredPoolSource(provider).get_pools(chain)

        assert [p.pair_address for p in pools] == ["0xP1", "0xP2", "0xP3"]
        requested = provider.get_pool_prices.call_args.args[1]
        assert "0xP4" not in requested
        p1, p2, p3 = pools
        assert p1.price == 2000
        assert p2.price == pytest.approx(1 / 2000)
        assert p2.fee_bps == 5
        assert p3.fee_bps == 1
        assert p3.price is None
        assert p3.liquidity_usd == 0.0

    def test_configured_pool_reserves_follow_token_order(self, chain):
        provider = MagicMock()
        pair = api_pair("0xp1", base=WETH, quote=USDC, price="2000")
        pair["liquidity"].update({"base": 1000, "quote": 2_000_000})
        quote = parse_pair(8453, pair, 1.0)
        provider.get_pool_prices.return_value = {"0xp1": quote, "0xp2": quote}

        p1, p2, p3 = ConfiguredPoolSource(provider).get_pools(chain)

        assert (p1.reserve0, p1.reserve1) == (1000.0, 2_000_000.0)
        assert (p2.reserve0, p2.reserve1) == (2_000_000.0, 1000.0)
        assert (p3.reserve0, p3.reserve1) == (None, None)

    def test_static_source_groups_by_chain(self, chain, make_pool):
        pools = [make_pool(WETH, USDC, 2000.0), make_pool(WETH, USDC, 2000.0, chain_id=1)]
        assert StaticPoolSource(pools).get_pools(chain) == pools[:1]
