"""Configuration management.

Loads from TOML config files + environment variables.
Uses pydantic-settings for validation and env var overriding.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from .enums import TopicType


# ---------------------------------------------------------------------------
# Sub-configs
# ---------------------------------------------------------------------------

class PublisherConfig(BaseModel):
    topic_type: TopicType = TopicType.CUSTOM
    topic_endpoint: str = ""
    topic_name: str = ""  # Namespace topics only
    topic_access_key: str = ""
    timeout_seconds: float = 30.0

    def validate_publisher(self) -> None:
        """Fail fast on settings the publishing client cannot work with."""
        from .errors import ConfigError

        if not self.topic_endpoint:
            raise ConfigError("Publisher requires a topic endpoint.")
        if self.topic_type == TopicType.NAMESPACE and not self.topic_name:
            raise ConfigError("Namespace topics require a topic name.")


class SubscriberConfig(BaseModel):
    # Empty list accepts events from every topic.
    subscribed_topics: list[str] = Field(default_factory=list)


class ObservabilityConfig(BaseModel):
    log_level: str = "INFO"
    log_format: str = "json"  # "json" or "console"
    metrics_port: int = 0  # 0 disables the Prometheus endpoint


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """Top-level settings.

    Loaded from TOML config files, overridden by environment variables
    (``EVENT_PROPAGATION_PUBLISHER__TOPIC_ENDPOINT=...``).
    """

    publisher: PublisherConfig = Field(default_factory=PublisherConfig)
    subscriber: SubscriberConfig = Field(default_factory=SubscriberConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    model_config = {"env_prefix": "EVENT_PROPAGATION_", "env_nested_delimiter": "__"}


def load_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Load settings from TOML file + env vars.

    Args:
        config_path: Path to TOML config file (optional).
        overrides: Dict of overrides to apply on top.
    """
    data: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            import tomli

            with open(path, "rb") as f:
                data = tomli.load(f)

    if overrides:
        data.update(overrides)

    return Settings(**data)
