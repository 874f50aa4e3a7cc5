"""Loader for the YAML safety file."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from opsbot_safety.policy.models import EngineConfig

logger = logging.getLogger(__name__)


def load_engine_config(path: str | Path) -> EngineConfig:
    """Read ``{version, safety, rules}`` from ``path``; an empty file yields defaults."""
    config_path = Path(path)
    if not config_path.is_file():
        raise FileNotFoundError(f"Safety file not found: {config_path}")
    with config_path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in safety file {config_path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(
            f"Safety file {config_path} must contain a mapping, got {type(data).__name__}"
        )

    engine_config = EngineConfig.from_yaml(data)
    logger.debug(
        "Parsed safety file %s: %d context override(s), %d rule set(s)",
        config_path,
        len(engine_config.safety.context_overrides),
        len(engine_config.rules),
    )
    return engine_config
