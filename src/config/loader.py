"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. Built-in defaults (``_DEFAULTS`` below)
  2. ``config/config.yaml`` -- tunables checked into the repo
  3. ``.env`` file / environment variables, via :class:`Settings`

``_deep_merge`` merges nested sections key by key, so a YAML file that only
sets ``retrieval.top_k`` keeps every other retrieval default.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import yaml

from src.config.settings import Settings
from src.utils.errors import ConfigurationError

_DEFAULTS: dict[str, Any] = {
    "app": {"name": "eventkb", "version": "0.1.0"},
    "ingestion": {
        "chunk_size": 3000,
        "chunk_overlap": 300,
        "embedding_concurrency": 1,
        "upsert_batch_size": 100,
    },
    "retrieval": {"top_k": 5, "similarity_threshold": 0.5},
    "llm": {"temperature": 0.1, "max_tokens": 1000, "excerpt_chars": 200},
    "lifecycle": {
        "grace_period_hours": 24,
        "batch_size": 100,
        "sweep_hour": 2,
        "sweep_minute": 0,
        "reconcile_orphans": True,
        "orphan_min_age_seconds": 3600,
    },
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file is not
            an error; built-in defaults apply.
        settings: Pre-built settings; a fresh ``Settings()`` when omitted.

    Returns:
        Fully resolved configuration dictionary.

    Raises:
        ConfigurationError: If the YAML is malformed or the chunking
            parameters are inconsistent.
    """
    config = copy.deepcopy(_DEFAULTS)

    config_path = Path(path)
    if config_path.exists():
        try:
            with open(config_path) as f:
                yaml_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}") from exc
        if not isinstance(yaml_config, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping")
        _deep_merge(config, yaml_config)

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "llm": {
            "provider": settings.llm_provider,
            "available_providers": settings.get_available_llm_providers(),
        },
        "timeouts": {
            "ingestion": settings.ingestion_timeout_seconds,
            "request": settings.request_timeout_seconds,
            "teardown": settings.teardown_timeout_seconds,
        },
        "logging": {
            "level": settings.log_level,
        },
    }
    _deep_merge(config, env_overrides)

    ingestion = config["ingestion"]
    if not ingestion["chunk_size"] > ingestion["chunk_overlap"] >= 0:
        raise ConfigurationError(
            "ingestion.chunk_size must exceed ingestion.chunk_overlap, "
            "and the overlap must be non-negative"
        )
    return config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
