"""
pytest configuration for the topology services.

Adds src directory to Python path for imports and keeps the developer's
environment from leaking into configuration tests.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

from config import ENV_NAMES, ServiceConfig  # noqa: E402
from config.config import CONFIG_PATH_ENV  # noqa: E402
from core.logging.context import clear_log_context  # noqa: E402
from core.types import AccessGrant  # noqa: E402


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Unset every setting the services read so tests start from defaults."""
    for env_name in list(ENV_NAMES.values()) + [CONFIG_PATH_ENV]:
        monkeypatch.delenv(env_name, raising=False)
    clear_log_context()
    yield
    clear_log_context()


def make_grant(token: str = "test-token", minutes: int = 60) -> AccessGrant:
    return AccessGrant(token=token, expires_at=datetime.now(timezone.utc) + timedelta(minutes=minutes))


@pytest.fixture
def grant():
    return make_grant()


@pytest.fixture
def provider(grant):
    """Token provider double; acquire_token returns a fresh grant."""
    fake = MagicMock()
    fake.acquire_token = AsyncMock(return_value=grant)
    fake.close = AsyncMock()
    fake.get_diagnostics = MagicMock(
        return_value={"auth_mode": "managed_identity", "cached_token_age_seconds": {}}
    )
    return fake


@pytest.fixture
def full_config():
    return ServiceConfig(
        key_vault_url="https://kv-test.vault.azure.net/",
        storage_account_name="sttest",
        sql_server="sql-test.database.windows.net",
        sql_database="appdb",
        function_app_url="https://func-private.azurewebsites.net",
    )
