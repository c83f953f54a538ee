"""
Shared fixtures for trading-journal tests.

Every test gets its own SQLite file under tmp_path. Caches are in-memory
doubles that count calls, plus one that fails every operation.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Optional

import pytest
from fastapi.testclient import TestClient

from tradejournal.api.webapp import create_app
from tradejournal.auth.tokens import TokenManager
from tradejournal.journal.models import TradingJournal, User
from tradejournal.services.access import AccessControl
from tradejournal.services.entries import EntryService
from tradejournal.services.journals import JournalService
from tradejournal.services.users import UserService
from tradejournal.storage.database import Database
from tradejournal.storage.entries import EntryStore
from tradejournal.storage.journals import JournalStore
from tradejournal.storage.users import UserStore
from tradejournal.utils.config import Settings
from tradejournal.utils.exceptions import CacheError

JWT_SECRET = "test-secret-key-that-is-long-enough-0123456789"
BASE_DAY = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


# ─────────────────────────────────────────────────────────
# Cache doubles
# ─────────────────────────────────────────────────────────

class InMemoryCache:
    def __init__(self):
        self.data: dict[str, str] = {}
        self.gets = 0
        self.sets = 0
        self.deletes = 0
        self.last_ttl: Optional[int] = None

    async def get(self, key: str) -> Optional[str]:
        self.gets += 1
        return self.data.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self.sets += 1
        self.last_ttl = ttl_seconds
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.deletes += 1
        self.data.pop(key, None)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class FailingCache:
    def __init__(self):
        self.calls = 0

    async def get(self, key: str) -> Optional[str]:
        self.calls += 1
        raise CacheError("cache unavailable")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self.calls += 1
        raise CacheError("cache unavailable")

    async def delete(self, key: str) -> None:
        self.calls += 1
        raise CacheError("cache unavailable")

    async def ping(self) -> bool:
        return False

    async def close(self) -> None:
        return None


# ─────────────────────────────────────────────────────────
# Settings / storage
# ─────────────────────────────────────────────────────────

@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_path=str(tmp_path / "tradejournal.db"),
        jwt_secret=JWT_SECRET,
        redis_url="",
        log_file="",
        rate_limit_rps=1000.0,
        rate_limit_burst=1000,
        request_timeout_seconds=10.0,
    )


@pytest.fixture
def db(settings):
    database = Database(settings.database_path)
    yield database
    database.close()


@pytest.fixture
def user_store(db) -> UserStore:
    return UserStore(db)


@pytest.fixture
def journal_store(db) -> JournalStore:
    return JournalStore(db)


@pytest.fixture
def entry_store(db) -> EntryStore:
    return EntryStore(db)


@pytest.fixture
def make_user(user_store) -> Callable[..., User]:
    counter = {"n": 0}

    def _make(email: Optional[str] = None, username: Optional[str] = None) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=email or f"trader{n}@example.com",
            username=username or f"trader{n}",
            password_hash="not-a-real-hash",
        )
        return user_store.create(user)

    return _make


@pytest.fixture
def make_journal(journal_store) -> Callable[..., TradingJournal]:
    def _make(user: User, name: str = "Main", description: str = "") -> TradingJournal:
        return journal_store.create(TradingJournal(user_id=user.id, name=name, description=description))

    return _make


@pytest.fixture
def entry_fields() -> Callable[..., dict[str, Any]]:
    """Valid entry fields; override any of them by keyword."""
    def _fields(**overrides: Any) -> dict[str, Any]:
        fields = {
            "day": BASE_DAY,
            "asset": "EURUSD",
            "ltf": "15M",
            "htf": "4H",
            "entry_charts": ["https://charts.example.com/a.png"],
            "session": "london",
            "trade_type": "intraday",
            "setup": "break and retest",
            "direction": "buy",
            "entry_type": "limit",
            "realized": 120.5,
            "max_rr": 2.5,
            "result": "TP",
            "notes": "clean entry",
        }
        fields.update(overrides)
        return fields

    return _fields


# ─────────────────────────────────────────────────────────
# Services
# ─────────────────────────────────────────────────────────

@pytest.fixture
def tokens() -> TokenManager:
    return TokenManager(JWT_SECRET, 15, 10080)


@pytest.fixture
def access(db, journal_store, entry_store) -> AccessControl:
    return AccessControl(db, journal_store, entry_store)


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
def failing_cache() -> FailingCache:
    return FailingCache()


@pytest.fixture
def journal_service(db, journal_store, access, cache) -> JournalService:
    return JournalService(db, journal_store, access, cache, cache_ttl=900)


@pytest.fixture
def entry_service(db, entry_store, journal_store, access) -> EntryService:
    return EntryService(db, entry_store, journal_store, access)


@pytest.fixture
def user_service(db, user_store, tokens) -> UserService:
    return UserService(db, user_store, tokens)


# ─────────────────────────────────────────────────────────
# HTTP
# ─────────────────────────────────────────────────────────

@pytest.fixture
def app_cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
def client(settings, app_cache):
    app = create_app(settings, cache=app_cache)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers(client) -> Callable[..., dict[str, str]]:
    """Sign up a fresh user and return its bearer header."""
    counter = {"n": 0}

    def _headers(username: Optional[str] = None) -> dict[str, str]:
        counter["n"] += 1
        name = username or f"http_trader{counter['n']}"
        resp = client.post("/api/v1/auth/sign-up", json={
            "email": f"{name}@example.com",
            "username": name,
            "password": "correct-horse-battery",
        })
        assert resp.status_code == 201, resp.text
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}

    return _headers


@pytest.fixture
def entry_payload() -> Callable[..., dict[str, Any]]:
    def _payload(**overrides: Any) -> dict[str, Any]:
        payload = {
            "day": "2024-03-01T09:30:00Z",
            "asset": "GBPUSD",
            "ltf": "5M",
            "htf": "1H",
            "entry_charts": ["https://charts.example.com/b.png"],
            "session": "new_york",
            "trade_type": "intraday",
            "setup": "liquidity sweep",
            "direction": "sell",
            "entry_type": "market",
            "realized": -50.0,
            "max_rr": 1.5,
            "result": "SL",
            "notes": "",
        }
        payload.update(overrides)
        return payload

    return _payload