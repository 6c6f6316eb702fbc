"""Configuration settings and loading."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from geoipqa.errors import ConfigValidationError, ErrorContext


class HarnessConfig(BaseSettings):
    """Configuration for a geoipqa run."""

    model_config = SettingsConfigDict(
        env_prefix="GEOIPQA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    plugin_dir: str = "../repos/logstash-filter-geoip"
    results_dir: str = "results"
    gem_dir: str = "geoip-plugin"
    compose_file: str = "docker-compose.yml"
    project_name: str | None = None
    es_host: str = "localhost"
    request_timeout: float = 30.0

    # Readiness: 30 attempts at 2s, never more than ~60s.
    probe_attempts: int = 30
    probe_interval: float = 2.0

    # GeoLite2 background download can take 1-2 minutes.
    database_wait_attempts: int = 60
    database_wait_interval: float = 2.0

    # Replaces the fixed post-index sleep with a bounded search poll.
    settle_attempts: int = 10
    settle_interval: float = 1.0

    logstash_wait_attempts: int = 45
    logstash_wait_interval: float = 2.0

    command_timeout: float = 1800.0
    test_ip: str = "8.8.8.8"
    verbose: bool = False

    @field_validator(
        "probe_attempts",
        "database_wait_attempts",
        "settle_attempts",
        "logstash_wait_attempts",
    )
    @classmethod
    def validate_attempts(cls, v: int, info: ValidationInfo) -> int:
        if v < 1:
            raise ConfigValidationError(
                message=f"{info.field_name} must be at least 1, got {v}",
                field=info.field_name,
                value=v,
                context=ErrorContext(extra={"minimum": 1}),
            )
        return v

    @field_validator(
        "probe_interval",
        "database_wait_interval",
        "settle_interval",
        "logstash_wait_interval",
        "request_timeout",
    )
    @classmethod
    def validate_non_negative(cls, v: float, info: ValidationInfo) -> float:
        if v < 0:
            raise ConfigValidationError(
                message=f"{info.field_name} must not be negative, got {v}",
                field=info.field_name,
                value=v,
            )
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Init kwargs carry the YAML file; GEOIPQA_* variables take precedence.
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @property
    def results_path(self) -> Path:
        return Path(self.results_dir)

    @property
    def plugin_path(self) -> Path:
        return Path(self.plugin_dir)

    def es_url(self, port: int) -> str:
        """Base URL of the search engine published on ``port``."""
        return f"http://{self.es_host}:{port}"


def load_config(config_path: str | Path | None = None) -> HarnessConfig:
    """Load configuration from file and environment.

    Priority: CLI args > env vars (``GEOIPQA_<FIELD>``, then ``.env``) >
    config file > defaults. Every field can be overridden from the
    environment.
    """
    config_data: dict[str, Any] = {}

    if config_path is not None:
        config_path = Path(config_path)
        if config_path.exists():
            with open(config_path) as f:
                config_data = yaml.safe_load(f) or {}
        if not isinstance(config_data, dict):
            raise ConfigValidationError(
                message=f"Config file {config_path} must contain a mapping",
                value=type(config_data).__name__,
            )

    return HarnessConfig(**config_data)
