"""
Pytest configuration.

Adds the project root to the Python path so tests can import domain,
repositories, services and api. Every test runs against an in-memory
Supabase stand-in (see tests/fakes.py); nothing touches the network.
"""

import sys
from pathlib import Path

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config.settings import get_settings  # noqa: E402
from domain.context import ActorContext, Role  # noqa: E402
from repositories.client import set_client  # noqa: E402
from tests.fakes import BUSINESS_ID, FakeSupabase  # noqa: E402


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch: pytest.MonkeyPatch):
    """No backoff sleeps, no SMS provider unless a test configures one."""

    monkeypatch.setenv("SALES_IO_RETRY_ATTEMPTS", "3")
    monkeypatch.setenv("SALES_IO_RETRY_WAIT_SECONDS", "0")
    monkeypatch.setenv("SALES_STOCK_UPDATE_ATTEMPTS", "5")
    monkeypatch.setenv("SALES_CURRENCY", "KES")
    monkeypatch.delenv("INFOBIP_BASE_URL", raising=False)
    monkeypatch.delenv("INFOBIP_API_KEY", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_db():
    db = FakeSupabase()
    set_client(db)
    yield db
    set_client(None)


@pytest.fixture
def boss() -> ActorContext:
    return ActorContext(actor_id="user-boss", business_id=BUSINESS_ID, role=Role.BOSS)


@pytest.fixture
def associate() -> ActorContext:
    return ActorContext(actor_id="user-assoc", business_id=BUSINESS_ID, role=Role.ASSOCIATE)
