"""Configuration management for geoipqa."""

from geoipqa.config.settings import HarnessConfig, load_config

__all__ = [
    "HarnessConfig",
    "load_config",
]
