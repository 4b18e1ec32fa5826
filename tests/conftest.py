import pytest

from app.core.config import get_settings


@pytest.fixture(autouse=True)
def in_memory_database(monkeypatch):
    # Every test gets a fresh in-memory SQLite database
    monkeypatch.setenv("WEBAPI_DATABASE", "sqlite+aiosqlite://")
    monkeypatch.delenv("DATABASE_URL", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def anyio_backend():
    return "asyncio"
