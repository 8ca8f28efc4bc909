"""Shared fixtures for scanner and validation tests."""

import pytest
from prometheus_client import CollectorRegistry

from dex.types import Pool
from pool_arbitrage.audit import AuditLog, InMemoryAuditSink
from pool_arbitrage.config_schema import validate_engine_config
from pool_arbitrage.metrics import ArbitrageMetrics

BASE_CHAIN = 8453
WETH = "0x4200000000000000000000000000000000000006"
USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"


def engine_config_dict(**overrides):
    """Engine config mapping for a single Base chain with WETH/USDC quotes."""
    data = {
        "chains": [
            {
                "chain_id": BASE_CHAIN,
                "name": "base",
                "dexes": [
                    {"dex_id": "uniswapv2", "fee_bps": 30},
                    {"dex_id": "sushiswap", "fee_bps": 30},
                    {"dex_id": "uniswapv3", "fee_bps": 30},
                    {"dex_id": "aerodrome", "fee_bps": 5},
                ],
                "quote_tokens": {"WETH": WETH, "usdc": USDC},
            },
            {"chain_id": 1, "name": "ethereum", "enabled": False},
        ],
    }
    data.update(overrides)
    return data


@pytest.fixture
def engine_config():
    return validate_engine_config(engine_config_dict())


@pytest.fixture
def make_pool():
    """Factory for pools with sensible defaults."""

    def _make(
        token0,
        token1,
        price,
        dex_id="uniswapv2",
        pair_address=None,
        fee_bps=30,
        liquidity_usd=2_000_000,
        chain_id=BASE_CHAIN,
        reserve0=None,
        reserve1=None,
    ):
        if pair_address is None:
            pair_address = f"0x{abs(hash((token0, token1, dex_id, price))) % 16**40:040x}"
        return Pool(
            chain_id=chain_id,
            dex_id=dex_id,
            pair_address=pair_address,
            token0=token0,
            token1=token1,
            fee_bps=fee_bps,
            liquidity_usd=liquidity_usd,
            price=price,
            reserve0=reserve0,
            reserve1=reserve1,
        )

    return _make


@pytest.fixture
def metrics():
    return ArbitrageMetrics(CollectorRegistry())


@pytest.fixture
def memory_sink():
    return InMemoryAuditSink()


@pytest.fixture
def audit_log(memory_sink, metrics):
    return AuditLog(memory_sink, metrics=metrics)
