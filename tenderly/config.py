"""Configuration loading for Tenderly.

Settings live in a nested dict loaded from ``config/tenderly.yaml`` and merged
over the defaults below. A handful of environment variables override the file.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "tenderly.yaml"

DEFAULT_CONFIG: Dict[str, Any] = {
    "llm": {
        "primary": "bedrock",
        "bedrock": {
            "inference_profile_arn": "",
            "region": "us-east-2",
            "max_retries": 1,
        },
    },
    "ai": {
        "max_prompt_chars": 48000,
        "chat_history_window": 5,
        "improvement_history_window": 10,
        "max_tokens": 4096,
    },
    "translation": {
        "languages": ["en", "ms"],
        "max_chars": 20000,
        "detect_source": False,
    },
    "storage": {
        "backend": "dynamodb",
        "region": "us-east-2",
        "proposals_table": "proposals",
        "versions_table": "proposal_versions",
    },
    "attestation": {
        "backend": "dynamodb",
        "table": "attestations",
        "network": "algorand-testnet",
    },
    "lifecycle": {
        "stale_save_check": True,
    },
}

# env var -> (section, key[, subkey])
_ENV_OVERRIDES = {
    "AI_PROVIDER": ("llm", "primary"),
    "BEDROCK_IP_ARN": ("llm", "bedrock", "inference_profile_arn"),
    "TENDERLY_STORAGE": ("storage", "backend"),
    "TENDERLY_PROPOSALS_TABLE": ("storage", "proposals_table"),
    "TENDERLY_VERSIONS_TABLE": ("storage", "versions_table"),
    "TENDERLY_ATTESTATIONS_TABLE": ("attestation", "table"),
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _set_path(config: Dict[str, Any], path: tuple, value: Any) -> None:
    node = config
    for key in path[:-1]:
        node = node.setdefault(key, {})
    node[path[-1]] = value


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML, falling back to defaults.

    Args:
        config_path: Optional path to a YAML file. Defaults to ``TENDERLY_CONFIG``
            or ``config/tenderly.yaml``.

    Returns:
        Configuration dictionary
    """
    path = config_path or os.getenv("TENDERLY_CONFIG") or str(DEFAULT_CONFIG_PATH)

    file_config: Dict[str, Any] = {}
    if path and os.path.exists(path):
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        logger.debug(f"Loaded configuration from {path}")
    else:
        logger.debug(f"No configuration file at {path}, using defaults")

    config = _deep_merge(DEFAULT_CONFIG, file_config)

    for env_var, path_keys in _ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value:
            _set_path(config, path_keys, value)

    region = os.getenv("AWS_DEFAULT_REGION")
    if region:
        config["storage"]["region"] = region
        config["llm"]["bedrock"]["region"] = region

    if os.getenv("NO_NETWORK") == "1":
        logger.info("NO_NETWORK=1 detected, using fake provider and in-memory backends")
        config["llm"]["primary"] = "fake"
        config["storage"]["backend"] = "memory"
        config["attestation"]["backend"] = "memory"

    return config
