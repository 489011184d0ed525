"""Application configuration loader.

Loads centralized configuration from data/config/aula_config_v1.yaml
(or the file named by the AULA_CONFIG environment variable), falling back
to built-in defaults when no file exists. Secrets are never stored in the
file: each section names the environment variable that holds them.

Usage:
    from aula.config.app_config import load_app_config

    config = load_app_config()
    url = config.script.get_url()
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/aula_config_v1.yaml")
CONFIG_ENV_VAR = "AULA_CONFIG"


def _env(name: str | None) -> str | None:
    if name:
        return os.environ.get(name) or None
    return None


@dataclass
class DatabaseConfig:
    """Location of the SQLite database."""

    path: str = "db/aula.db"


@dataclass
class AuthConfig:
    """Token signing and service credentials."""

    secret_env: str = "AULA_SECRET_KEY"
    token_max_age_seconds: int = 60 * 60 * 12
    service_key_env: str = "AULA_SERVICE_KEY"
    # Used only when the secret env var is not set (local development)
    dev_secret: str = "aula-dev-secret"

    def get_secret(self) -> str:
        """Get the token signing secret."""
        return _env(self.secret_env) or self.dev_secret

    def get_service_key(self) -> str | None:
        """Get the key accepted by worker endpoints, if any."""
        return _env(self.service_key_env)


@dataclass
class LLMSettings:
    """LLM provider selection."""

    provider: str = "lmstudio"
    model: str = "default"
    base_url: str | None = None
    temperature: float = 0.4
    max_tokens: int = 4096
    timeout: int = 120
    api_key_env: str | None = None
    supports_json_object: bool | None = None

    def get_api_key(self) -> str | None:
        """Get API key from environment variable."""
        return _env(self.api_key_env)


@dataclass
class ScriptConfig:
    """Remote script endpoint (Drive/Sheets operations)."""

    url_env: str = "AULA_SCRIPT_URL"
    token_env: str = "AULA_SCRIPT_TOKEN"
    timeout: int = 60
    retries: int = 1
    retry_delay_seconds: float = 2.0

    def get_url(self) -> str | None:
        """Get endpoint URL from environment variable."""
        return _env(self.url_env)

    def get_token(self) -> str | None:
        """Get bearer token from environment variable."""
        return _env(self.token_env)


@dataclass
class GradingConfig:
    """Thresholds and queue behaviour."""

    risk_attendance_threshold: float = 80.0
    risk_grade_threshold: float = 70.0
    passing_grade: float = 70.0
    queue_max_attempts: int = 3
    plagiarism_pause_seconds: float = 1.5
    attendance_session_minutes: int = 15
    worker_poll_seconds: float = 10.0


@dataclass
class PuzzleConfig:
    """Layout generator limits."""

    crossword_max_retries: int = 5
    crossword_max_passes: int = 3
    crossword_margin: int = 1
    word_search_max_retries: int = 5
    word_search_backtrack_limit: int = 2000


@dataclass
class AppConfig:
    """Application-wide configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    llm: LLMSettings = field(default_factory=LLMSettings)
    script: ScriptConfig = field(default_factory=ScriptConfig)
    grading: GradingConfig = field(default_factory=GradingConfig)
    puzzles: PuzzleConfig = field(default_factory=PuzzleConfig)


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "database": {"path": "db/aula.db"},
        "auth": {
            "secret_env": "AULA_SECRET_KEY",
            "token_max_age_seconds": 43200,
            "service_key_env": "AULA_SERVICE_KEY",
        },
        "llm": {
            "provider": "lmstudio",
            "model": "default",
            "temperature": 0.4,
            "max_tokens": 4096,
            "timeout": 120,
        },
        "script": {
            "url_env": "AULA_SCRIPT_URL",
            "token_env": "AULA_SCRIPT_TOKEN",
            "timeout": 60,
            "retries": 1,
            "retry_delay_seconds": 2.0,
        },
        "grading": {
            "risk_attendance_threshold": 80.0,
            "risk_grade_threshold": 70.0,
            "passing_grade": 70.0,
            "queue_max_attempts": 3,
            "plagiarism_pause_seconds": 1.5,
            "attendance_session_minutes": 15,
            "worker_poll_seconds": 10.0,
        },
        "puzzles": {
            "crossword_max_retries": 5,
            "crossword_max_passes": 3,
            "crossword_margin": 1,
            "word_search_max_retries": 5,
            "word_search_backtrack_limit": 2000,
        },
    }


def _merge(defaults: dict[str, Any], data: dict[str, Any]) -> dict[str, Any]:
    """Overlay file sections on top of defaults (one level deep)."""
    result = copy.deepcopy(defaults)
    for section, values in (data or {}).items():
        if isinstance(values, dict) and isinstance(result.get(section), dict):
            result[section].update(values)
        else:
            result[section] = values
    return result


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    return AppConfig(
        database=DatabaseConfig(**data.get("database", {})),
        auth=AuthConfig(**data.get("auth", {})),
        llm=LLMSettings(**data.get("llm", {})),
        script=ScriptConfig(**data.get("script", {})),
        grading=GradingConfig(**data.get("grading", {})),
        puzzles=PuzzleConfig(**data.get("puzzles", {})),
    )


def _config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    return Path(override) if override else CONFIG_FILE


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    path = _config_path()
    if path.exists():
        logger.debug("loading_app_config", source=str(path))
        loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        data = _merge(_get_defaults(), loaded)
    else:
        logger.info("using_default_config")
        data = _get_defaults()

    _cached_config = _parse_config(data)
    return _cached_config


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
