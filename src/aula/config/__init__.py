"""Configuration module."""

from aula.config.app_config import (
    AppConfig,
    clear_config_cache,
    load_app_config,
)

__all__ = [
    "AppConfig",
    "clear_config_cache",
    "load_app_config",
]
