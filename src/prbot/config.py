"""Runtime settings for the bot, loaded from an optional YAML file."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .plan import PlanLimits


class ConfigError(ValueError):
    """Raised when the settings file cannot be read or fails validation."""


class SettingsModel(BaseModel):
    """Base Pydantic model with strict field handling."""

    model_config = ConfigDict(extra="forbid")


class LimitSettings(SettingsModel):
    max_files: int = Field(default=5, ge=1)
    max_lines: int = Field(default=500, ge=1)
    max_path_length: int = Field(default=200, ge=1)

    def to_plan_limits(self) -> PlanLimits:
        return PlanLimits(
            max_files=self.max_files,
            max_lines=self.max_lines,
            max_path_length=self.max_path_length,
        )


class ModelSettings(SettingsModel):
    name: str = "gpt-4o-mini"
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    base_url: str = "https://api.openai.com/v1/chat/completions"
    timeout: float = Field(default=60.0, gt=0)
    max_attempts: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=0.5, ge=0)


class ContextSettings(SettingsModel):
    max_files: int = Field(default=200, ge=0)
    max_sample_files: int = Field(default=12, ge=0)
    head_lines: int = Field(default=30, ge=0)


class GitSettings(SettingsModel):
    remote: str = "origin"
    branch_prefix: str = "gpt/"
    user_name: str = "gpt-pr-bot"
    user_email: str = "actions@users.noreply.github.com"


class GitHubSettings(SettingsModel):
    api_url: str = "https://api.github.com"
    timeout: float = Field(default=30.0, gt=0)


class BotSettings(SettingsModel):
    """Top-level settings; every section is optional."""

    limits: LimitSettings = Field(default_factory=LimitSettings)
    model: ModelSettings = Field(default_factory=ModelSettings)
    context: ContextSettings = Field(default_factory=ContextSettings)
    git: GitSettings = Field(default_factory=GitSettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config {path}: {error}") from error
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration must be a mapping at the top level: {path}")
    return data


def load_settings(config_path: Optional[Path] = None) -> BotSettings:
    """Load settings from ``config_path``, or return defaults when it is ``None``.

    Settings are never discovered from the checked-out repository: the pull
    request author controls that tree, and the settings carry the plan caps and
    the endpoints that receive the API tokens.
    """
    if config_path is None:
        return BotSettings()
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    data = _load_yaml(config_path)
    try:
        return BotSettings.model_validate(data)
    except ValidationError as error:
        raise ConfigError(f"Invalid settings in {config_path}: {error}") from error


__all__ = [
    "BotSettings",
    "ConfigError",
    "ContextSettings",
    "GitHubSettings",
    "GitSettings",
    "LimitSettings",
    "ModelSettings",
    "load_settings",
]
