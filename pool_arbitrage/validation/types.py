"""
Data types for the asset validation pipeline.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from dex.types import Pool

from ..exceptions import ValidationError

ValidationStatus = Literal["pending", "validating", "valid", "rejected"]
OutcomeStatus = Literal["approved", "rejected", "failed"]


class RejectionReason(str, Enum):
    """Why a pipeline stage rejected an asset."""

    NOT_CONFIGURED = "NOT_CONFIGURED"
    LOW_LIQ = "LOW_LIQ"
    LOW_SCORE = "LOW_SCORE"
    NO_PAIRS = "NO_PAIRS"
    NO_PROFIT = "NO_PROFIT"
    NOT_ATOMIC = "NOT_ATOMIC"


def make_trace_id(chain_id: int, address: str) -> str:
    return f"{chain_id}:{address}"


@dataclass
class AssetCandidate:
    """
    A token proposed for trading on one chain.

    Attributes:
        trace_id: "{chain_id}:{address}", required before validation
        chain_id: EVM chain id
        address: Token contract address
        symbol: Token symbol
        decimals: Token decimals
        name: Token name
        score: Safety score 0-100
        flags: Hazard flags behind the score
        pools: Pools the token trades in
        dexes: DEX ids the token is listed on
    """

    trace_id: str
    chain_id: int
    address: str
    symbol: str = "UNKNOWN"
    decimals: int = 18
    name: str = ""
    score: float = 0.0
    flags: List[str] = field(default_factory=list)
    pools: List[Pool] = field(default_factory=list)
    dexes: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.trace_id:
            raise ValidationError(
                "Asset candidate requires a trace_id",
                details={"chain_id": self.chain_id, "address": self.address},
            )

    @classmethod
    def create(cls, chain_id: int, address: str, **kwargs) -> "AssetCandidate":
        return cls(trace_id=make_trace_id(chain_id, address), chain_id=chain_id, address=address, **kwargs)

    def summary(self) -> Dict[str, Any]:
        """Compact form used in audit events."""
        return {"symbol": self.symbol, "address": self.address, "chain_id": self.chain_id}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trace_id": self.trace_id,
            "chain_id": self.chain_id,
            "address": self.address,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "name": self.name,
            "score": self.score,
            "flags": list(self.flags),
            "pools": [p.to_dict() for p in self.pools],
            "dexes": list(self.dexes),
        }


@dataclass
class AssetWithValidation(AssetCandidate):
    """An asset plus where it stands in validation."""

    validation_status: ValidationStatus = "pending"
    validation_reason: Optional[RejectionReason] = None
    validation_message: Optional[str] = None
    validated_at: Optional[int] = None
    pairs: List["PairPlan"] = field(default_factory=list)

    @classmethod
    def from_candidate(cls, asset: AssetCandidate, **kwargs) -> "AssetWithValidation":
        base = {k: getattr(asset, k) for k in AssetCandidate.__dataclass_fields__}
        if isinstance(asset, AssetWithValidation):
            base.update(
                validation_status=asset.validation_status,
                validation_reason=asset.validation_reason,
                validation_message=asset.validation_message,
                validated_at=asset.validated_at,
                pairs=list(asset.pairs),
            )
        base.update(kwargs)
        return cls(**base)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            validation_status=self.validation_status,
            validation_reason=self.validation_reason.value if self.validation_reason else None,
            validation_message=self.validation_message,
            validated_at=self.validated_at,
            pairs=[p.to_dict() for p in self.pairs],
        )
        return data


@dataclass(frozen=True)
class PairCandidate:
    """Asset -> quote pairing produced by stage 4."""

    token_in: str
    token_out: str
    token_in_address: str
    token_out_address: Optional[str] = None


@dataclass
class PairPlan:
    """
    A priced, hop-by-hop route from an asset to a quote token.

    For plans built by the planner, hops == len(route) == len(pools_used).
    """

    trace_id: str
    token_in: str
    token_out: str
    token_in_address: str
    token_out_address: str
    route: List[str]
    hops: int
    est_profit_bps: float
    est_gross_bps: float
    est_gas_usd: float
    est_slippage_bps: float
    atomic: bool = False
    pools_used: List[Pool] = field(default_factory=list)
    reasons_block: List[str] = field(default_factory=list)

    def summary(self) -> Dict[str, Any]:
        return {
            "token_in": self.token_in,
            "token_out": self.token_out,
            "route": list(self.route),
            "hops": self.hops,
            "est_profit_bps": self.est_profit_bps,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trace_id": self.trace_id,
            "token_in": self.token_in,
            "token_out": self.token_out,
            "token_in_address": self.token_in_address,
            "token_out_address": self.token_out_address,
            "route": list(self.route),
            "hops": self.hops,
            "est_profit_bps": self.est_profit_bps,
            "est_gross_bps": self.est_gross_bps,
            "est_gas_usd": self.est_gas_usd,
            "est_slippage_bps": self.est_slippage_bps,
            "atomic": self.atomic,
            "pools_used": [p.to_dict() for p in self.pools_used],
            "reasons_block": list(self.reasons_block),
        }


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of one stage: pass, or fail with a reason."""

    valid: bool
    reason: Optional[RejectionReason] = None
    message: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    @classmethod
    def ok(cls, message: Optional[str] = None, **data) -> "ValidationResult":
        return cls(valid=True, message=message, data=data or None)

    @classmethod
    def fail(
        cls, reason: RejectionReason, message: str, **data
    ) -> "ValidationResult":
        return cls(valid=False, reason=reason, message=message, data=data or None)

    def to_dict(self) -> Dict[str, Any]:
        """Audit form: valid, reason and message only (stage data can be large)."""
        result: Dict[str, Any] = {"valid": self.valid}
        if self.reason is not None:
            result["reason"] = self.reason.value
        if self.message is not None:
            result["message"] = self.message
        return result


@dataclass
class ValidationOutcome:
    """
    What validate() hands back to the caller.

    status is "approved" or "rejected" for rule decisions and "failed" when
    an internal fault stopped the pipeline.
    """

    status: OutcomeStatus
    result: ValidationResult
    asset: AssetWithValidation
    plans: List[PairPlan] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def approved(self) -> bool:
        return self.status == "approved"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "result": self.result.to_dict(),
            "asset": self.asset.to_dict(),
            "plans": [p.to_dict() for p in self.plans],
            "stats": dict(self.stats),
            "error": self.error,
        }


def with_status(asset: AssetWithValidation, **changes) -> AssetWithValidation:
    """Copy of an asset with validation fields changed."""
    return replace(asset, **changes)
