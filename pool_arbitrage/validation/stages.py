"""
The six asset validation stages.

Every stage is a pure function of its input and an EngineConfig snapshot and
returns a ValidationResult; rule failures are values, never exceptions.

    1. PreConfig       chain enabled, a declared DEX is configured
    2. Liquidity       at least one pool at or above TVL_MIN_USD
    3. SafetyScore     score at or above MIN_SAFETY_SCORE
    4. PairGeneration  at least one quote token to pair against
    5. ProfitPrecheck  at least one plan at or above ROI_MIN_BPS
    6. Atomicity       a plan fits in one transaction on supported DEXs
"""

from typing import List, Sequence

from ..config_schema import EngineConfig
from ..utils import same_token
from .types import (
    AssetCandidate,
    PairCandidate,
    PairPlan,
    RejectionReason,
    ValidationResult,
)


def stage_pre_config(asset: AssetCandidate, config: EngineConfig) -> ValidationResult:
    """Stage 1: the asset's chain and at least one of its DEXs are configured."""
    chain = config.get_chain(asset.chain_id)
    if chain is None:
        return ValidationResult.fail(
            RejectionReason.NOT_CONFIGURED,
            f"Chain {asset.chain_id} is not configured",
        )
    if not chain.enabled:
        return ValidationResult.fail(
            RejectionReason.NOT_CONFIGURED, f"Chain {asset.chain_id} is disabled"
        )

    if asset.dexes:
        enabled = set(chain.enabled_dex_ids())
        if not any(dex.lower() in enabled for dex in asset.dexes):
            return ValidationResult.fail(
                RejectionReason.NOT_CONFIGURED,
                f"None of the asset's DEXs ({', '.join(asset.dexes)}) "
                f"is enabled on chain {asset.chain_id}",
            )

    return ValidationResult.ok()


def stage_liquidity(asset: AssetCandidate, config: EngineConfig) -> ValidationResult:
    """
    Stage 2: at least one pool trading the asset has TVL >= TVL_MIN_USD.

    On success, data["rich_pools"] holds every pool (including connector
    pools between quote tokens) at or above the threshold.
    """
    threshold = config.policy.tvl_min_usd
    rich_pools = [p for p in asset.pools if p.liquidity_usd >= threshold]
    asset_rich = [p for p in rich_pools if p.has_token(asset.address)]

    if not asset_rich:
        return ValidationResult.fail(
            RejectionReason.LOW_LIQ,
            f"No pool with liquidity >= ${threshold / 1_000_000:.1f}M "
            f"({len(asset.pools)} pools found)",
        )

    return ValidationResult.ok(rich_pools=rich_pools)


def stage_safety_score(asset: AssetCandidate, config: EngineConfig) -> ValidationResult:
    """Stage 3: safety score meets MIN_SAFETY_SCORE."""
    minimum = config.policy.min_safety_score
    if asset.score < minimum:
        flags = ", ".join(asset.flags) if asset.flags else "none"
        return ValidationResult.fail(
            RejectionReason.LOW_SCORE,
            f"Score {asset.score} < {minimum} required. Flags: {flags}",
        )
    return ValidationResult.ok()


def pair_candidates(asset: AssetCandidate, config: EngineConfig) -> List[PairCandidate]:
    """Asset paired with every allowlisted quote token except itself."""
    chain = config.get_chain(asset.chain_id)
    quote_addresses = chain.quote_tokens if chain is not None else {}
    symbol = asset.symbol.upper()

    candidates = []
    for quote in config.policy.quote_tokens:
        if quote == symbol:
            continue
        quote_address = quote_addresses.get(quote)
        if quote_address and same_token(quote_address, asset.address):
            continue
        candidates.append(
            PairCandidate(
                token_in=asset.symbol,
                token_out=quote,
                token_in_address=asset.address,
                token_out_address=quote_address,
            )
        )
    return candidates


def stage_pair_generation(asset: AssetCandidate, config: EngineConfig) -> ValidationResult:
    """Stage 4: at least one asset/quote pair candidate exists."""
    candidates = pair_candidates(asset, config)
    if not candidates:
        return ValidationResult.fail(
            RejectionReason.NO_PAIRS,
            f"Cannot build base/quote pairs for {asset.symbol}",
        )
    return ValidationResult.ok(pair_candidates=candidates)


def stage_profit_precheck(
    plans: Sequence[PairPlan], config: EngineConfig
) -> ValidationResult:
    """Stage 5: at least one plan reaches ROI_MIN_BPS."""
    minimum = config.policy.roi_min_bps
    profitable = [p for p in plans if p.est_profit_bps >= minimum]

    if not profitable:
        if plans:
            best = max(p.est_profit_bps for p in plans)
            message = f"No pair reaches {minimum} bps ROI. Best: {best} bps"
        else:
            message = f"No pair plans could be built; {minimum} bps ROI required"
        return ValidationResult.fail(RejectionReason.NO_PROFIT, message)

    return ValidationResult.ok(profitable_pairs=profitable)


def atomicity_reasons(plan: PairPlan, config: EngineConfig) -> List[str]:
    """Every reason a plan cannot execute atomically (empty if it can)."""
    policy = config.policy
    reasons = []

    if plan.hops < policy.min_hops or plan.hops > policy.max_hops:
        reasons.append(f"HOPS_INVALID:{plan.hops}")

    if not plan.route or len(plan.route) != plan.hops:
        reasons.append("ROUTE_MISMATCH")

    if len(plan.pools_used) < plan.hops:
        reasons.append("POOLS_MISSING")

    supported = set(policy.supported_dexes)
    unsupported = [dex for dex in plan.route if dex.lower() not in supported]
    if unsupported:
        reasons.append(f"DEX_UNSUPPORTED:{','.join(unsupported)}")

    return reasons


def stage_atomicity(plan: PairPlan, config: EngineConfig) -> ValidationResult:
    """Stage 6: hop count in range, route and pools consistent, DEXs supported."""
    reasons = atomicity_reasons(plan, config)
    if reasons:
        return ValidationResult.fail(
            RejectionReason.NOT_ATOMIC,
            f"Route cannot execute atomically: {'; '.join(reasons)}",
            reasons=reasons,
        )
    return ValidationResult.ok()


PRE_PLAN_STAGES = (
    ("pre_config", stage_pre_config),
    ("liquidity", stage_liquidity),
    ("safety_score", stage_safety_score),
    ("pair_generation", stage_pair_generation),
)


def run_full_pipeline(asset: AssetCandidate, config: EngineConfig) -> ValidationResult:
    """
    Stages 1-4 in order, stopping at the first failure.

    On success data carries passed="all_checks", the rich pools from stage 2
    and the pair candidates from stage 4.
    """
    data = {}
    for _, stage in PRE_PLAN_STAGES:
        result = stage(asset, config)
        if not result.valid:
            return result
        if result.data:
            data.update(result.data)

    return ValidationResult.ok(
        passed="all_checks",
        rich_pools=data.get("rich_pools", []),
        pair_candidates=data.get("pair_candidates", []),
    )
