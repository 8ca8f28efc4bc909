"""Tests for the config_loader and config_schema modules."""

import pytest
import yaml
from pathlib import Path
from tempfile import NamedTemporaryFile

from pool_arbitrage.config_loader import (
    apply_env_overrides,
    build_engine_config,
    load_engine_config,
    load_yaml_config,
)
from pool_arbitrage.config_schema import (
    DEFAULT_GAS_PRICE_GWEI,
    EngineConfig,
    PolicyParams,
    validate_engine_config,
)
from pool_arbitrage.exceptions import ConfigurationError

EXAMPLE_CONFIG = Path(__file__).resolve().parents[2] / "configs" / "engine.example.yaml"


def write_yaml(data):
    f = NamedTemporaryFile(mode="w", suffix=".yaml", delete=False)
    with f:
        if isinstance(data, str):
            f.write(data)
        else:
            yaml.dump(data, f)
    return Path(f.name)


def test_load_yaml_config_valid():
    """Test loading a valid YAML configuration."""
    config_data = {"chains": [{"chain_id": 8453}], "policy": {"ROI_MIN_BPS": 7}}
    path = write_yaml(config_data)
    try:
        assert load_yaml_config(path) == config_data
    finally:
        path.unlink()


def test_load_yaml_config_file_not_found():
    with pytest.raises(ConfigurationError, match="Configuration file not found"):
        load_yaml_config("/non/existent/file.yaml")


def test_load_yaml_config_empty_file():
    path = write_yaml("")
    try:
        with pytest.raises(ConfigurationError, match="Empty configuration file"):
            load_yaml_config(path)
    finally:
        path.unlink()


def test_load_yaml_config_invalid_yaml():
    path = write_yaml("invalid: yaml: content: [")
    try:
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_yaml_config(path)
    finally:
        path.unlink()


def test_load_yaml_config_not_a_mapping():
    path = write_yaml("- just\n- a list\n")
    try:
        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            load_yaml_config(path)
    finally:
        path.unlink()


def test_policy_defaults():
    """Test PolicyParams with defaults."""
    policy = PolicyParams()
    assert policy.tvl_min_usd == 1_000_000
    assert policy.roi_min_bps == 5
    assert policy.gas_cost_fraction == 0.0002
    assert policy.min_safety_score == 70
    assert policy.min_hops == 2
    assert policy.max_hops == 3
    assert policy.slippage_bps == 50


def test_policy_accepts_upper_case_names():
    policy = PolicyParams(**{"TVL_MIN_USD": 250_000, "MAX_HOPS": 4, "SLIPPAGE_BPS": 25})
    assert policy.tvl_min_usd == 250_000
    assert policy.max_hops == 4
    assert policy.slippage_bps == 25


def test_policy_rejects_inverted_hop_range():
    with pytest.raises(ValueError, match="MIN_HOPS"):
        PolicyParams(min_hops=3, max_hops=2)


def test_policy_normalizes_symbols_and_dexes():
    policy = PolicyParams(quote_tokens=[" usdc", "Weth"], supported_dexes=["UniswapV2"])
    assert policy.quote_tokens == ("USDC", "WETH")
    assert policy.supported_dexes == ("uniswapv2",)


def test_config_is_frozen():
    config = validate_engine_config({"chains": [{"chain_id": 8453}]})
    with pytest.raises(ValueError):
        config.policy.roi_min_bps = 1


def test_duplicate_chain_ids_rejected():
    with pytest.raises(ValueError, match="Duplicate chain_id"):
        validate_engine_config({"chains": [{"chain_id": 1}, {"chain_id": 1}]})


def test_pool_with_identical_tokens_rejected():
    with pytest.raises(ValueError, match="identical tokens"):
        validate_engine_config(
            {
                "chains": [
                    {
                        "chain_id": 1,
                        "pools": [
                            {
                                "dex_id": "uniswapv2",
                                "pair_address": "0xpair",
                                "token0": "0xAbC",
                                "token1": "0xabc",
                            }
                        ],
                    }
                ]
            }
        )


def test_chain_helpers():
    config = validate_engine_config(
        {
            "chains": [
                {
                    "chain_id": 8453,
                    "dexes": [
                        {"dex_id": "Aerodrome", "fee_bps": 5},
                        {"dex_id": "sushiswap", "enabled": False},
                    ],
                    "quote_tokens": {"usdc": "0xusdc"},
                    "gas_price_gwei": 0.2,
                },
                {"chain_id": 1, "enabled": False},
            ]
        }
    )
    chain = config.get_chain(8453)
    assert chain.enabled_dex_ids() == ["aerodrome"]
    assert chain.fee_bps_for("aerodrome") == 5
    assert chain.fee_bps_for("unknown") == 30.0
    assert chain.quote_tokens == {"USDC": "0xusdc"}
    assert [c.chain_id for c in config.active_chains()] == [8453]
    assert config.get_chain(56) is None
    assert config.gas_price_gwei(8453) == 0.2
    assert config.gas_price_gwei(1) == DEFAULT_GAS_PRICE_GWEI[1]


def test_apply_env_overrides():
    raw = {"policy": {"ROI_MIN_BPS": 5}}
    result = apply_env_overrides(
        raw,
        {
            "ARB_ROI_MIN_BPS": "12",
            "ARB_SCAN_INTERVAL_SEC": "2.5",
            "ARB_AUDIT_LOG": "/tmp/audit.jsonl",
        },
    )
    assert result["policy"] == {"roi_min_bps": "12"}
    assert result["scanner"]["interval_sec"] == "2.5"
    assert result["audit"]["path"] == "/tmp/audit.jsonl"
    # The input mapping is untouched
    assert raw == {"policy": {"ROI_MIN_BPS": 5}}


def test_build_engine_config_wraps_schema_errors():
    with pytest.raises(ConfigurationError, match="Invalid engine configuration") as exc_info:
        build_engine_config({"chains": [{"chain_id": -1}]})
    assert exc_info.value.details["errors"]


def test_load_engine_config_with_env():
    path = write_yaml(
        {"chains": [{"chain_id": 8453}], "policy": {"MIN_SAFETY_SCORE": 60}}
    )
    try:
        config = load_engine_config(
            environ={"ARB_CONFIG": str(path), "ARB_MIN_SAFETY_SCORE": "80"}
        )
    finally:
        path.unlink()
    assert isinstance(config, EngineConfig)
    assert config.policy.min_safety_score == 80


def test_load_engine_config_requires_path():
    with pytest.raises(ConfigurationError, match="ARB_CONFIG"):
        load_engine_config(environ={})


def test_example_config_loads():
    config = load_engine_config(EXAMPLE_CONFIG, environ={})
    assert config.get_chain(8453).enabled
    assert config.policy.tvl_min_usd > 0
