"""Configuration management for the command safety engine."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

_config_logger = logging.getLogger(__name__)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")


class SafetySettings(BaseModel):
    path: str | None = Field(
        default=None,
        description="Optional YAML file holding the safety config and extra rule sets",
    )


class WorkflowSettings(BaseModel):
    history_size: int = Field(
        default=100,
        ge=1,
        le=10_000,
        description="How many terminal plans and decisions are kept in memory.",
    )


class Settings(BaseModel):
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    safety: SafetySettings = Field(default_factory=SafetySettings)
    workflow: WorkflowSettings = Field(default_factory=WorkflowSettings)


ENV_KEYS = {
    "log_level": "OPSBOT_LOG_LEVEL",
    "log_file": "OPSBOT_LOG_FILE",
    "safety_path": "OPSBOT_SAFETY_PATH",
    "history_size": "OPSBOT_HISTORY_SIZE",
}


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_path(path: str) -> str:
    candidate = Path(path)
    root = _project_root().resolve()
    if candidate.is_absolute():
        resolved = candidate.resolve()
    else:
        resolved = (root / candidate).resolve()
    if not resolved.is_relative_to(root):
        raise ValueError(f"Path traversal detected: '{path}' resolves outside project root")
    return str(resolved)


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def _env_path(key: str) -> str | None:
    value = os.getenv(key, "").strip()
    return _resolve_path(value) if value else None


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=_project_root() / ".env")

    settings_data: dict[str, object] = {
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": _env_path(ENV_KEYS["log_file"]),
        },
        "safety": {
            "path": _env_path(ENV_KEYS["safety_path"]),
        },
        "workflow": {
            "history_size": _env_int(
                ENV_KEYS["history_size"],
                WorkflowSettings().history_size,
            ),
        },
    }

    try:
        settings = Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    if settings.logging.file:
        Path(settings.logging.file).parent.mkdir(parents=True, exist_ok=True)

    return settings
