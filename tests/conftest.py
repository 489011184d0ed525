"""Shared pytest fixtures.

Every test gets a fresh SQLite database under tmp_path and a clean
configuration cache, so nothing leaks between tests or into db/.
"""

from unittest.mock import MagicMock

import pytest

from aula.config import clear_config_cache
from aula.db import init_db

SECRET_KEY = "test-secret"
SERVICE_KEY = "test-service-key"


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point config at defaults and secrets at known test values."""
    monkeypatch.setenv("AULA_CONFIG", str(tmp_path / "missing_config.yaml"))
    monkeypatch.setenv("AULA_SECRET_KEY", SECRET_KEY)
    monkeypatch.setenv("AULA_SERVICE_KEY", SERVICE_KEY)
    monkeypatch.delenv("AULA_SCRIPT_URL", raising=False)
    monkeypatch.delenv("AULA_SCRIPT_TOKEN", raising=False)
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def db(tmp_path):
    """Initialized database in a temporary directory."""
    db_path = tmp_path / "aula.db"
    init_db(db_path)
    return db_path


@pytest.fixture
def mock_llm():
    """LLM client that never touches the network."""
    client = MagicMock()
    client.config = MagicMock()
    client.config.provider = "lmstudio"
    client.config.model = "test-model"
    return client


@pytest.fixture
def mock_script():
    """Configured remote script client answering 'success' by default."""
    script = MagicMock()
    script.is_configured = True
    script.call.return_value = {"status": "success"}
    return script


@pytest.fixture
def offline_script():
    """Remote script client with no URL configured."""
    script = MagicMock()
    script.is_configured = False
    return script
