"""
Six-stage asset validation pipeline, pair planning and orchestration.
"""

from .orchestrator import AssetValidator
from .pair_planner import build_plans, check_connectivity, enumerate_routes
from .stages import (
    run_full_pipeline,
    stage_atomicity,
    stage_liquidity,
    stage_pair_generation,
    stage_pre_config,
    stage_profit_precheck,
    stage_safety_score,
)
from .types import (
    AssetCandidate,
    AssetWithValidation,
    PairCandidate,
    PairPlan,
    RejectionReason,
    ValidationOutcome,
    ValidationResult,
)

__all__ = [
    "AssetValidator",
    "AssetCandidate",
    "AssetWithValidation",
    "PairCandidate",
    "PairPlan",
    "RejectionReason",
    "ValidationOutcome",
    "ValidationResult",
    "build_plans",
    "check_connectivity",
    "enumerate_routes",
    "run_full_pipeline",
    "stage_pre_config",
    "stage_liquidity",
    "stage_safety_score",
    "stage_pair_generation",
    "stage_profit_precheck",
    "stage_atomicity",
]
