"""Configuration for freightline.

Configuration is a YAML file validated into :class:`FreightlineConfig`, with
a handful of environment variables taking precedence:

    FREIGHTLINE_KUBECONFIG   kubernetes.kubeconfig
    FREIGHTLINE_CONTEXT      kubernetes.context
    FREIGHTLINE_API_GROUP    kubernetes.group
    FREIGHTLINE_LOG_LEVEL    logging.level
    FREIGHTLINE_ACTOR        actor

Example:
    >>> config = load_config(Path("freightline.yaml"))
    >>> config.kubernetes.group
    'freightline.io'
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from freightline.promotion.events import PROMOTION_CREATED

VALID_WEBHOOK_EVENTS = frozenset({PROMOTION_CREATED})

_ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    "FREIGHTLINE_KUBECONFIG": ("kubernetes", "kubeconfig"),
    "FREIGHTLINE_CONTEXT": ("kubernetes", "context"),
    "FREIGHTLINE_API_GROUP": ("kubernetes", "group"),
    "FREIGHTLINE_LOG_LEVEL": ("logging", "level"),
    "FREIGHTLINE_ACTOR": ("actor",),
}


class ConfigError(Exception):
    """Raised when a configuration file cannot be read or validated."""

    exit_code: int = 2


class AuthorizationConfig(BaseModel):
    """Who may promote into a Stage.

    With neither list set, every authenticated actor is allowed. Otherwise an
    actor is allowed if it is named in ``allowed_operators`` OR belongs to a
    group in ``allowed_groups``.

    Examples:
        >>> AuthorizationConfig(allowed_groups=["release-managers"]).allowed_groups
        ['release-managers']
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    allowed_groups: list[str] | None = Field(
        default=None,
        description="Groups allowed to promote into the Stage",
    )
    allowed_operators: list[str] | None = Field(
        default=None,
        description="Specific actors allowed to promote into the Stage",
    )


class AuthorizationPolicy(BaseModel):
    """Per-Stage authorization rules with an optional Project-wide default."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    default: AuthorizationConfig | None = Field(
        default=None,
        description="Rule for Stages without their own entry",
    )
    stages: dict[str, AuthorizationConfig] = Field(
        default_factory=dict,
        description="Rules keyed by Stage name",
    )

    def for_stage(self, stage: str) -> AuthorizationConfig | None:
        return self.stages.get(stage, self.default)


class WebhookConfig(BaseModel):
    """Webhook endpoint notified of domain events.

    Examples:
        >>> config = WebhookConfig(url="https://hooks.example.com/x", events=["promotion_created"])
        >>> config.timeout_seconds
        30
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str = Field(..., min_length=1, description="Webhook endpoint URL")
    events: list[str] = Field(
        default_factory=lambda: [PROMOTION_CREATED],
        min_length=1,
        description="Event types to deliver",
    )
    headers: dict[str, str] | None = Field(
        default=None,
        description="Custom headers for requests",
    )
    timeout_seconds: int = Field(default=30, ge=1, le=300)
    retry_count: int = Field(default=3, ge=0, le=10)

    @field_validator("events")
    @classmethod
    def validate_events(cls, v: list[str]) -> list[str]:
        """Validate all events are known event types."""
        invalid = set(v) - VALID_WEBHOOK_EVENTS
        if invalid:
            raise ValueError(
                f"Invalid event types: {invalid}. Valid types: {sorted(VALID_WEBHOOK_EVENTS)}"
            )
        return v


class KubernetesConfig(BaseModel):
    """Connection settings for the Kubernetes-backed store."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kubeconfig: str | None = Field(default=None, description="Path to a kubeconfig file")
    context: str | None = Field(default=None, description="kubeconfig context to use")
    in_cluster: bool = Field(default=False, description="Use the in-cluster service account")
    group: str = Field(default="freightline.io", description="API group of the resources")
    version: str = Field(default="v1alpha1", description="API version of the resources")
    request_timeout_seconds: float = Field(default=30.0, gt=0)


class LoggingConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    level: str = Field(default="INFO")
    json_output: bool = Field(default=True, description="JSON lines instead of console format")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


class FreightlineConfig(BaseModel):
    """Top-level configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kubernetes: KubernetesConfig = Field(default_factory=KubernetesConfig)
    authorization: AuthorizationPolicy = Field(default_factory=AuthorizationPolicy)
    webhooks: list[WebhookConfig] = Field(default_factory=list)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    actor: str | None = Field(default=None, description="Actor name used by the CLI")


def _apply_env_overrides(data: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    for var, path in _ENV_OVERRIDES.items():
        value = env.get(var, "").strip()
        if not value:
            continue
        target = data
        for key in path[:-1]:
            section = target.get(key)
            if not isinstance(section, dict):
                section = {}
                target[key] = section
            target = section
        target[path[-1]] = value
    return data


def load_config(
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> FreightlineConfig:
    """Load configuration from YAML and apply environment overrides.

    Args:
        path: YAML file to read, or None for defaults only.
        env: Environment to read overrides from; defaults to ``os.environ``.

    Returns:
        Validated configuration.

    Raises:
        ConfigError: If the file cannot be read, parsed or validated.
    """
    data: dict[str, Any] = {}
    if path is not None:
        try:
            with open(path) as f:
                loaded = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"Failed to read config {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML: {e}") from e
        if loaded is not None:
            if not isinstance(loaded, dict):
                raise ConfigError(f"Config {path} must be a mapping")
            data = loaded

    data = _apply_env_overrides(data, os.environ if env is None else env)
    try:
        return FreightlineConfig.model_validate(data)
    except ValueError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


__all__ = [
    "AuthorizationConfig",
    "AuthorizationPolicy",
    "ConfigError",
    "FreightlineConfig",
    "KubernetesConfig",
    "LoggingConfig",
    "WebhookConfig",
    "load_config",
]
