"""
Configuration loading for the scanner and the asset validator.

Reads a YAML file, applies environment overrides and validates the result
into an immutable EngineConfig snapshot.
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from pydantic import ValidationError as PydanticValidationError

from .config_schema import EngineConfig, validate_engine_config
from .exceptions import ConfigurationError

ENV_CONFIG_PATH = "ARB_CONFIG"
ENV_AUDIT_LOG = "ARB_AUDIT_LOG"

# Environment variable -> (section, key)
ENV_POLICY_OVERRIDES = {
    "ARB_TVL_MIN_USD": ("policy", "tvl_min_usd"),
    "ARB_ROI_MIN_BPS": ("policy", "roi_min_bps"),
    "ARB_MIN_SAFETY_SCORE": ("policy", "min_safety_score"),
    "ARB_SCAN_INTERVAL_SEC": ("scanner", "interval_sec"),
    "ARB_PROVIDER_TIMEOUT_SEC": ("providers", "timeout_sec"),
}


def load_yaml_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Load and parse a YAML configuration file into a dict."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if config_dict is None:
        raise ConfigurationError(f"Empty configuration file: {config_path}")
    if not isinstance(config_dict, dict):
        raise ConfigurationError(
            f"Configuration file must contain a mapping: {config_path}"
        )

    return config_dict


def apply_env_overrides(
    config_dict: Dict[str, Any], environ: Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    """
    Return a copy of config_dict with environment overrides applied.

    Values stay strings; pydantic coerces them during validation. An
    override replaces the key in any spelling (e.g. ROI_MIN_BPS).
    """
    environ = os.environ if environ is None else environ
    result = {k: (dict(v) if isinstance(v, dict) else v) for k, v in config_dict.items()}

    for env_name, (section, key) in ENV_POLICY_OVERRIDES.items():
        if env_name in environ:
            values = result.setdefault(section, {})
            for existing in [k for k in values if k.lower() == key]:
                del values[existing]
            values[key] = environ[env_name]

    if ENV_AUDIT_LOG in environ:
        result.setdefault("audit", {})
        result["audit"]["path"] = environ[ENV_AUDIT_LOG]

    return result


def build_engine_config(config_dict: Dict[str, Any]) -> EngineConfig:
    """Validate a raw mapping, converting schema errors to ConfigurationError."""
    try:
        return validate_engine_config(config_dict)
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"Invalid engine configuration: {e.error_count()} error(s)",
            details={"errors": e.errors(include_url=False)},
        ) from e


def load_engine_config(
    config_path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> EngineConfig:
    """
    Load the engine configuration snapshot.

    Args:
        config_path: YAML path; defaults to $ARB_CONFIG
        environ: Environment mapping (defaults to os.environ)

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    environ = os.environ if environ is None else environ
    config_path = config_path or environ.get(ENV_CONFIG_PATH)
    if not config_path:
        raise ConfigurationError(
            f"No configuration path given and ${ENV_CONFIG_PATH} is not set"
        )

    raw = load_yaml_config(config_path)
    return build_engine_config(apply_env_overrides(raw, environ))
