"""
Asset validation orchestrator.

Ties discovery, the six validation stages, route planning and the audit log
together. Every operation leaves a trail in the audit log under the asset's
trace id; rule rejections are returned as outcomes, never raised.
"""

import time
from typing import Dict, List, Optional, Sequence

from web3 import Web3

from dex.types import Pool

from ..audit import AuditEvent, AuditLog
from ..config_schema import EngineConfig
from ..exceptions import ConfigurationError, ValidationError
from ..metrics import ArbitrageMetrics
from ..providers.dexscreener import DexScreenerClient, PoolQuote
from ..providers.security import SecurityScoreClient
from ..utils import get_logger, now_ms
from .pair_planner import build_plans
from .stages import (
    pair_candidates,
    run_full_pipeline,
    stage_atomicity,
    stage_liquidity,
    stage_profit_precheck,
)
from .types import (
    AssetCandidate,
    AssetWithValidation,
    PairPlan,
    RejectionReason,
    ValidationOutcome,
    ValidationResult,
    make_trace_id,
)

logger = get_logger(__name__)

NO_SECURITY_DATA = "NO_SECURITY_DATA"


class AssetValidator:
    """
    Discovers, validates and promotes assets.

    Args:
        config: Engine configuration snapshot
        audit: Audit log all decisions are written to
        pool_client: DexScreener client (needed by discover only)
        security_client: GoPlus client (needed by discover only)
        metrics: Optional Prometheus metrics
    """

    def __init__(
        self,
        config: EngineConfig,
        audit: AuditLog,
        pool_client: Optional[DexScreenerClient] = None,
        security_client: Optional[SecurityScoreClient] = None,
        metrics: Optional[ArbitrageMetrics] = None,
    ):
        self.config = config
        self.audit = audit
        self.pool_client = pool_client
        self.security_client = security_client
        self.metrics = metrics

    @classmethod
    def from_config(
        cls, config: EngineConfig, metrics: Optional[ArbitrageMetrics] = None
    ) -> "AssetValidator":
        """Validator with live providers and a JSONL audit log from config."""
        return cls(
            config=config,
            audit=AuditLog.to_file(
                config.audit.path,
                metrics=metrics,
                default_limit=config.audit.default_query_limit,
            ),
            pool_client=DexScreenerClient.from_settings(config.providers, metrics=metrics),
            security_client=SecurityScoreClient.from_settings(
                config.providers, metrics=metrics
            ),
            metrics=metrics,
        )

    # === DISCOVERY ===

    def discover(
        self, chain_id: int, address: str, user: Optional[str] = None
    ) -> Optional[AssetCandidate]:
        """
        Build an AssetCandidate from provider data.

        Returns None (and audits NO_SECURITY_DATA) when the safety provider
        has nothing for the token.

        Failures are audited as a reject event before they propagate.

        Raises:
            ValidationError: If address is not an EVM address
            ConfigurationError: If providers are not wired in or the chain is
                not supported by the pool provider
        """
        trace_id = make_trace_id(chain_id, address)
        try:
            return self._discover(chain_id, address, trace_id, user)
        except Exception as e:
            self._record_failure(
                "discover", trace_id, e, user, asset={"address": address, "chain_id": chain_id}
            )
            raise

    def _discover(
        self, chain_id: int, address: str, trace_id: str, user: Optional[str]
    ) -> Optional[AssetCandidate]:
        if not Web3.is_address(address):
            raise ValidationError(
                f"Not an EVM address: {address!r}", details={"chain_id": chain_id}
            )
        if self.pool_client is None or self.security_client is None:
            raise ConfigurationError("discover() needs a pool client and a security client")

        reports = self.security_client.get_scores(chain_id, [address])
        report = reports.get(address.lower())
        if report is None:
            logger.warning(f"{trace_id}: no security data, not a candidate")
            self.audit.record(
                "discover",
                trace_id,
                asset={"address": address, "chain_id": chain_id},
                result={"valid": False, "message": NO_SECURITY_DATA},
                reason=NO_SECURITY_DATA,
                user=user,
            )
            return None

        quotes = self.pool_client.get_token_pools(chain_id, address)
        asset_pools = [self._to_pool(q) for q in quotes]
        connectors = self._connector_pools(chain_id, address, quotes)

        symbol = report.symbol or _symbol_from_quotes(address, quotes) or "UNKNOWN"
        asset = AssetCandidate.create(
            chain_id,
            address,
            symbol=symbol,
            decimals=report.decimals if report.decimals is not None else 18,
            name=report.name or "",
            score=report.score,
            flags=list(report.flags),
            pools=asset_pools + connectors,
            dexes=sorted({p.dex_id for p in asset_pools}),
        )

        self.audit.record(
            "discover",
            trace_id,
            asset={**asset.summary(), "score": asset.score, "pools": len(asset.pools)},
            result={"valid": True},
            user=user,
        )
        logger.info(
            f"{trace_id}: discovered {symbol} score={asset.score} "
            f"pools={len(asset_pools)} connectors={len(connectors)}"
        )
        return asset

    def _to_pool(self, quote: PoolQuote) -> Pool:
        chain = self.config.get_chain(quote.chain_id)
        fee = chain.fee_bps_for(quote.dex_id) if chain is not None else 30.0
        return quote.to_pool(fee_bps=fee)

    def _connector_pools(
        self, chain_id: int, address: str, quotes: Sequence[PoolQuote]
    ) -> List[Pool]:
        """Pools between allowlisted quote tokens the asset trades against."""
        chain = self.config.get_chain(chain_id)
        if chain is None or not chain.quote_tokens:
            return []
        quote_addresses = {a.lower() for a in chain.quote_tokens.values()}

        counter_tokens = []
        for q in quotes:
            other = q.quote_token if q.base_token.lower() == address.lower() else q.base_token
            if other.lower() in quote_addresses and other.lower() not in counter_tokens:
                counter_tokens.append(other.lower())

        seen = {q.pair_address for q in quotes}
        pools: List[Pool] = []
        for token in counter_tokens:
            for q in self.pool_client.get_token_pools(chain_id, token):
                if q.pair_address in seen:
                    continue
                if {q.base_token.lower(), q.quote_token.lower()} <= quote_addresses:
                    seen.add(q.pair_address)
                    pools.append(self._to_pool(q))
        return pools

    # === VALIDATION ===

    def validate(
        self, asset: AssetCandidate, user: Optional[str] = None
    ) -> ValidationOutcome:
        """
        Run the full pipeline for one asset.

        Audit trail: validate, then exactly one of approve / reject.
        """
        started = time.monotonic()
        working = AssetWithValidation.from_candidate(asset, validation_status="validating")
        self.audit.record("validate", asset.trace_id, asset=asset.summary(), user=user)

        try:
            outcome = self._run_pipeline(working, user)
        except Exception as e:
            logger.error(f"{asset.trace_id}: validation fault: {e}", exc_info=True)
            message = f"{type(e).__name__}: {e}"
            self.audit.record(
                "reject",
                asset.trace_id,
                asset=asset.summary(),
                result={"valid": False, "message": message},
                reason=message,
                user=user,
            )
            outcome = ValidationOutcome(
                status="failed",
                result=ValidationResult(valid=False, message=message),
                asset=AssetWithValidation.from_candidate(
                    working,
                    validation_status="rejected",
                    validation_message=message,
                    validated_at=now_ms(),
                ),
                error=message,
            )

        outcome.stats["elapsed_ms"] = round((time.monotonic() - started) * 1000, 2)
        if self.metrics:
            reason = outcome.result.reason.value if outcome.result.reason else None
            self.metrics.record_validation(outcome.status, reason)
        return outcome

    def _run_pipeline(
        self, asset: AssetWithValidation, user: Optional[str]
    ) -> ValidationOutcome:
        stats: Dict[str, int] = {"pools": len(asset.pools)}

        pre = run_full_pipeline(asset, self.config)
        if not pre.valid:
            return self._reject(asset, pre, [], stats, user)

        rich_pools = pre.data["rich_pools"]
        candidates = pre.data["pair_candidates"]
        stats.update(rich_pools=len(rich_pools), pair_candidates=len(candidates))

        plans = build_plans(asset, candidates, rich_pools, self.config)
        stats["plans"] = len(plans)
        if self.metrics:
            self.metrics.record_pair_plans(len(plans))

        profit = stage_profit_precheck(plans, self.config)
        if not profit.valid:
            return self._reject(asset, profit, plans, stats, user)

        profitable = profit.data["profitable_pairs"]
        self._apply_atomicity(profitable)
        approved = [p for p in profitable if p.atomic]
        stats.update(profitable=len(profitable), atomic=len(approved))

        if not approved:
            reasons = sorted({r for p in profitable for r in p.reasons_block})
            result = ValidationResult.fail(
                RejectionReason.NOT_ATOMIC,
                f"No profitable plan is atomic: {'; '.join(reasons)}",
                reasons=reasons,
            )
            return self._reject(asset, result, plans, stats, user)

        approved.sort(key=lambda p: p.est_profit_bps, reverse=True)
        validated = AssetWithValidation.from_candidate(
            asset,
            validation_status="valid",
            validation_reason=None,
            validation_message=f"{len(approved)} atomic profitable plan(s)",
            validated_at=now_ms(),
            pairs=approved,
        )
        result = ValidationResult.ok(validated.validation_message)
        self.audit.record(
            "approve",
            asset.trace_id,
            asset=asset.summary(),
            pair=approved[0].summary(),
            result=result.to_dict(),
            user=user,
        )
        logger.info(
            f"{asset.trace_id}: approved {asset.symbol} with {len(approved)} plan(s), "
            f"best {approved[0].est_profit_bps} bps"
        )
        return ValidationOutcome(
            status="approved", result=result, asset=validated, plans=plans, stats=stats
        )

    def _reject(
        self,
        asset: AssetWithValidation,
        result: ValidationResult,
        plans: List[PairPlan],
        stats: Dict[str, int],
        user: Optional[str],
    ) -> ValidationOutcome:
        self.audit.record(
            "reject",
            asset.trace_id,
            asset=asset.summary(),
            result=result.to_dict(),
            reason=result.reason.value if result.reason else None,
            user=user,
        )
        logger.info(f"{asset.trace_id}: rejected ({result.reason}): {result.message}")
        rejected = AssetWithValidation.from_candidate(
            asset,
            validation_status="rejected",
            validation_reason=result.reason,
            validation_message=result.message,
            validated_at=now_ms(),
            pairs=[],
        )
        return ValidationOutcome(
            status="rejected", result=result, asset=rejected, plans=plans, stats=stats
        )

    def _apply_atomicity(self, plans: Sequence[PairPlan]) -> None:
        """Stage 6 on each plan: sets atomic and reasons_block."""
        for plan in plans:
            result = stage_atomicity(plan, self.config)
            plan.atomic = result.valid
            plan.reasons_block = [] if result.valid else list(result.data["reasons"])

    # === PAIRS AND PROMOTION ===

    def generate_pairs(
        self, asset: AssetCandidate, user: Optional[str] = None
    ) -> List[PairPlan]:
        """Plans for an asset, annotated for atomicity; audited with counts."""
        liquidity = stage_liquidity(asset, self.config)
        rich_pools = liquidity.data["rich_pools"] if liquidity.valid else []
        plans = build_plans(asset, pair_candidates(asset, self.config), rich_pools, self.config)
        self._apply_atomicity(plans)

        roi_min = self.config.policy.roi_min_bps
        self.audit.record(
            "generate_pairs",
            asset.trace_id,
            asset=asset.summary(),
            pair={
                "count": len(plans),
                "atomic": sum(1 for p in plans if p.atomic),
                "profitable": sum(1 for p in plans if p.est_profit_bps >= roi_min),
            },
            user=user,
        )
        return plans

    def add_to_trading(
        self,
        asset: AssetWithValidation,
        pairs: Sequence[PairPlan],
        user: Optional[str] = None,
    ) -> AssetWithValidation:
        """
        Mark a validated asset eligible for trading with the given pairs.

        Refusals are audited as a reject event before they propagate.

        Raises:
            ValidationError: If the asset is not validated or pairs is empty
        """
        status = getattr(asset, "validation_status", None)
        error = None
        if status != "valid":
            error = ValidationError(
                f"{asset.trace_id} is not validated", details={"validation_status": status}
            )
        elif not pairs:
            error = ValidationError(f"{asset.trace_id}: no pairs to add")
        if error is not None:
            self._record_failure(
                "add_to_trading", asset.trace_id, error, user, asset=asset.summary()
            )
            raise error

        self.audit.record(
            "add_to_trading",
            asset.trace_id,
            asset=asset.summary(),
            pair={
                "count": len(pairs),
                "routes": [" > ".join(p.route) for p in pairs],
            },
            user=user,
        )
        logger.info(f"{asset.trace_id}: added to trading with {len(pairs)} pair(s)")
        return AssetWithValidation.from_candidate(asset, pairs=list(pairs))

    def query_audit(
        self, trace_id: Optional[str] = None, limit: Optional[int] = None
    ) -> List[AuditEvent]:
        """Last `limit` audit events, optionally for one trace id."""
        return self.audit.query(trace_id, limit)

    def _record_failure(
        self,
        op: str,
        trace_id: str,
        error: Exception,
        user: Optional[str],
        asset: Optional[Dict] = None,
    ) -> None:
        """Best-effort reject event for an operation that is about to raise."""
        message = f"{type(error).__name__}: {error}"
        logger.warning(f"{trace_id}: {op} failed: {message}")
        self.audit.record(
            "reject",
            trace_id,
            asset=asset,
            result={"valid": False, "op": op, "message": message},
            reason=message,
            user=user,
        )


def _symbol_from_quotes(address: str, quotes: Sequence[PoolQuote]) -> Optional[str]:
    for q in quotes:
        if q.base_token.lower() == address.lower() and q.base_symbol:
            return q.base_symbol
        if q.quote_token.lower() == address.lower() and q.quote_symbol:
            return q.quote_symbol
    return None
