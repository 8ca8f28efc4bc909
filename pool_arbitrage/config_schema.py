"""
Configuration schema validation using Pydantic.

An EngineConfig is an immutable snapshot: the caller loads it once and passes
it to the scanner and the validator; neither ever mutates it.
"""

from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_QUOTE_TOKENS = ("USDC", "USDT", "DAI", "WETH", "ETH", "WBTC", "BTC")

DEFAULT_SUPPORTED_DEXES = (
    "uniswapv2",
    "uniswapv3",
    "sushiswap",
    "pancakeswap",
    "aerodrome",
    "velodrome",
    "balancer",
    "curve",
)

# Gas price in gwei per chain id
DEFAULT_GAS_PRICE_GWEI = {
    1: 15.0,
    10: 0.1,
    25: 3.0,
    56: 3.0,
    100: 1.0,
    137: 30.0,
    8453: 0.05,
    42161: 0.1,
    534352: 0.05,
}


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")


class PolicyParams(_Frozen):
    """Global asset validation policy constants."""

    tvl_min_usd: float = Field(default=1_000_000, ge=0, alias="TVL_MIN_USD")
    roi_min_bps: float = Field(default=5, alias="ROI_MIN_BPS")
    gas_cost_fraction: float = Field(
        default=0.0002, ge=0, lt=1, alias="GAS_COST_FRACTION"
    )
    min_safety_score: float = Field(default=70, ge=0, le=100, alias="MIN_SAFETY_SCORE")
    min_hops: int = Field(default=2, ge=1, le=10, alias="MIN_HOPS")
    max_hops: int = Field(default=3, ge=1, le=10, alias="MAX_HOPS")
    slippage_bps: float = Field(default=50, ge=0, le=10000, alias="SLIPPAGE_BPS")
    plan_notional_usd: float = Field(default=25_000, gt=0, alias="PLAN_NOTIONAL_USD")
    max_routes_per_pair: int = Field(default=10, ge=1, le=1000)
    quote_tokens: Tuple[str, ...] = DEFAULT_QUOTE_TOKENS
    supported_dexes: Tuple[str, ...] = DEFAULT_SUPPORTED_DEXES

    @field_validator("quote_tokens")
    @classmethod
    def validate_quote_tokens(cls, v):
        if not v:
            raise ValueError("quote_tokens cannot be empty")
        return tuple(s.strip().upper() for s in v)

    @field_validator("supported_dexes")
    @classmethod
    def validate_supported_dexes(cls, v):
        return tuple(d.strip().lower() for d in v)

    @model_validator(mode="after")
    def validate_hop_range(self):
        if self.min_hops > self.max_hops:
            raise ValueError(
                f"MIN_HOPS ({self.min_hops}) must not exceed MAX_HOPS ({self.max_hops})"
            )
        return self


class DexEntry(_Frozen):
    """A DEX configured on one chain."""

    dex_id: str = Field(min_length=1)
    enabled: bool = True
    fee_bps: float = Field(default=30, ge=0, lt=10000)


class PoolEntry(_Frozen):
    """A pool the scanner watches on one chain."""

    dex_id: str = Field(min_length=1)
    pair_address: str = Field(min_length=1)
    token0: str = Field(min_length=1)
    token1: str = Field(min_length=1)
    fee_bps: Optional[float] = Field(default=None, ge=0, lt=10000)

    @model_validator(mode="after")
    def validate_tokens(self):
        if self.token0.lower() == self.token1.lower():
            raise ValueError(f"Pool {self.pair_address} has identical tokens")
        return self


class ChainConfig(_Frozen):
    """One chain: its DEX allowlist, watched pools and quote token addresses."""

    chain_id: int = Field(gt=0)
    name: str = ""
    enabled: bool = True
    dexes: Tuple[DexEntry, ...] = ()
    pools: Tuple[PoolEntry, ...] = ()
    quote_tokens: Dict[str, str] = Field(default_factory=dict)
    gas_price_gwei: Optional[float] = Field(default=None, ge=0)

    @field_validator("quote_tokens")
    @classmethod
    def normalize_quote_tokens(cls, v):
        return {symbol.strip().upper(): address for symbol, address in v.items()}

    def enabled_dex_ids(self) -> List[str]:
        """Lower-cased ids of the DEXs enabled on this chain."""
        return [d.dex_id.lower() for d in self.dexes if d.enabled]

    def fee_bps_for(self, dex_id: str, default: float = 30.0) -> float:
        """Configured fee for a DEX on this chain."""
        for dex in self.dexes:
            if dex.dex_id.lower() == dex_id.lower():
                return dex.fee_bps
        return default


class ScannerSettings(_Frozen):
    """Opportunity scanner thresholds and simulation constants."""

    interval_sec: float = Field(default=5.0, gt=0)
    min_pnl_bps: float = 5.0
    max_gas_cost_eth: float = Field(default=0.0005, gt=0)
    price_impact_factor: float = Field(default=0.998, gt=0, le=1)
    impact_model: Literal["fixed", "reserves"] = "fixed"
    two_leg_ladder: Tuple[float, ...] = (0.01, 0.05, 0.1, 0.5, 1.0)
    three_leg_ladder: Tuple[float, ...] = (0.01, 0.05, 0.1)
    max_routes_per_token: int = Field(default=10, ge=1, le=1000)
    default_gas_price_gwei: float = Field(default=20.0, ge=0)
    gas_price_gwei: Dict[int, float] = Field(
        default_factory=lambda: dict(DEFAULT_GAS_PRICE_GWEI)
    )

    @field_validator("two_leg_ladder", "three_leg_ladder")
    @classmethod
    def validate_ladder(cls, v):
        if not v:
            raise ValueError("test amount ladder cannot be empty")
        for amount in v:
            if amount <= 0:
                raise ValueError(f"ladder amounts must be positive: {amount}")
        return v


class ProviderSettings(_Frozen):
    """Third-party data provider endpoints and rate-limit behaviour."""

    dexscreener_url: str = "https://api.dexscreener.com"
    goplus_url: str = "https://api.gopluslabs.io"
    timeout_sec: float = Field(default=10.0, ge=5, le=10)
    batch_size: int = Field(default=30, ge=1, le=30)
    batch_delay_sec: float = Field(default=0.2, ge=0, le=5)
    price_cache_ttl_sec: float = Field(default=30.0, ge=0)


class AuditSettings(_Frozen):
    """Where the append-only audit log lives."""

    path: str = "logs/asset-orchestrator-audit.jsonl"
    default_query_limit: int = Field(default=100, ge=1)


class MetricsSettings(_Frozen):
    """Prometheus exposition server."""

    enabled: bool = False
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)


class EngineConfig(_Frozen):
    """Complete configuration snapshot for one process."""

    chains: Tuple[ChainConfig, ...] = ()
    policy: PolicyParams = Field(default_factory=PolicyParams)
    scanner: ScannerSettings = Field(default_factory=ScannerSettings)
    providers: ProviderSettings = Field(default_factory=ProviderSettings)
    audit: AuditSettings = Field(default_factory=AuditSettings)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)

    @model_validator(mode="after")
    def validate_unique_chains(self):
        seen = set()
        for chain in self.chains:
            if chain.chain_id in seen:
                raise ValueError(f"Duplicate chain_id in config: {chain.chain_id}")
            seen.add(chain.chain_id)
        return self

    def get_chain(self, chain_id: int) -> Optional[ChainConfig]:
        """Chain config by id, or None when unknown."""
        for chain in self.chains:
            if chain.chain_id == chain_id:
                return chain
        return None

    def active_chains(self) -> List[ChainConfig]:
        """Enabled chains in config order."""
        return [c for c in self.chains if c.enabled]

    def gas_price_gwei(self, chain_id: int) -> float:
        """Gas price for a chain: chain override, then scanner table, then fallback."""
        chain = self.get_chain(chain_id)
        if chain is not None and chain.gas_price_gwei is not None:
            return chain.gas_price_gwei
        return self.scanner.gas_price_gwei.get(
            chain_id, self.scanner.default_gas_price_gwei
        )


def validate_engine_config(config_dict: Dict) -> EngineConfig:
    """Validate a raw configuration mapping into an EngineConfig."""
    return EngineConfig.model_validate(config_dict)
