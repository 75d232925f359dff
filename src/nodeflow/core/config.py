# src/nodeflow/core/config.py
"""
Configuration schema and loading for nodeflow.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

import os
import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

# ${VAR} or ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


class EditorSettings(BaseModel):
    """Canvas editing behavior of the state manager."""

    model_config = {"frozen": True}

    history_limit: int = Field(default=50, gt=0, description="Maximum undo entries kept")
    grid_size: int = Field(default=20, ge=0, description="Snap grid in canvas units (0 disables snapping)")
    duplicate_offset: float = Field(default=40.0, description="Canvas offset applied to duplicated nodes")


class ValidationSettings(BaseModel):
    """Workflow-level validation policy."""

    model_config = {"frozen": True}

    auth_required_apps: tuple[str, ...] = Field(
        default=("google-sheets", "gmail", "slack"),
        description="Trigger apps that must carry credentials in config",
    )
    auth_config_keys: tuple[str, ...] = Field(
        default=("apiKey", "oauthToken"),
        description="Config keys that count as credentials",
    )

    @field_validator("auth_config_keys")
    @classmethod
    def _require_some_auth_key(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v:
            raise ValueError("auth_config_keys must name at least one config key")
        return v


class LoggingSettings(BaseModel):
    """Log output configuration."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    json_output: bool = False

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class NodeflowSettings(BaseModel):
    """Top-level nodeflow configuration.

    Every section has defaults, so an empty settings file (or none at all)
    yields a working configuration.
    """

    model_config = {"frozen": True}

    editor: EditorSettings = Field(default_factory=EditorSettings)
    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    catalog_paths: tuple[Path, ...] = Field(
        default=(),
        description="Extra schema catalog YAML files loaded on top of the built-in catalog",
    )


DEFAULT_SETTINGS = NodeflowSettings()


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Args:
        config: Configuration dict (may contain nested structures)

    Returns:
        New dict with environment variables expanded
    """

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            if match.group(2) is not None:
                return match.group(2)
            # No env var and no default - keep original (will likely fail validation)
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def _lower_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value


def load_settings(config_path: Path | None = None) -> NodeflowSettings:
    """Load settings from an optional YAML file with environment overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (NODEFLOW_*) - highest priority
    2. Config file, when given
    3. Defaults from the Pydantic schema - lowest priority

    Environment variable format: NODEFLOW_EDITOR__HISTORY_LIMIT for nested keys.

    Args:
        config_path: Path to YAML configuration file, or None for env + defaults

    Returns:
        Validated NodeflowSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config_path is given but doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if config_path is not None and not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="NODEFLOW",
        settings_files=[str(config_path)] if config_path is not None else [],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): _lower_keys(v) for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    raw_config = _expand_env_vars(raw_config)

    return NodeflowSettings(**raw_config)
