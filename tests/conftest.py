# Copyright (C) 2024 Uraba Logistics Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pytest fixtures. Tests run against a throwaway SQLite file database."""

import itertools
import os
import tempfile

# Must be set before any uraba_server import: the engine is built at import time.
_DB_DIR = tempfile.mkdtemp(prefix="uraba-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["NODE_ENV"] = "test"
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from httpx import ASGITransport, AsyncClient

from uraba_server.auth import hash_password, issue_user_token
from uraba_server.database import async_session_maker, engine
from uraba_server.main import app
from uraba_server.models import Base, User
from uraba_server.rate_limit import reset_rate_limits
from uraba_server.routers import tokens as tokens_router
from uraba_server.services.tokens import InMemoryTokenStore, get_token_store

CODE_TTL = 5 * 60
SESSION_TTL = 24 * 3600


class FakeClock:
    """Manually advanced time source for the token store."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def reset_database() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def token_store(clock: FakeClock) -> InMemoryTokenStore:
    return InMemoryTokenStore(code_ttl_seconds=CODE_TTL, session_ttl_seconds=SESSION_TTL, clock=clock)


@pytest.fixture
async def client(token_store: InMemoryTokenStore):
    await reset_database()
    app.dependency_overrides[get_token_store] = lambda: token_store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def db_session():
    await reset_database()
    async with async_session_maker() as session:
        yield session


@pytest.fixture
def sent_codes(monkeypatch) -> dict[str, str]:
    """Capture access codes instead of emailing them."""
    sent: dict[str, str] = {}

    async def fake_send(to: str, code: str, ttl_minutes: int) -> None:
        sent[to] = code

    monkeypatch.setattr(tokens_router, "send_access_code_email", fake_send)
    return sent


_user_seq = itertools.count(1)


@pytest.fixture
def make_user():
    """Factory inserting a user directly. Pass password=None for a hashless legacy account."""

    async def _make(role: str = "client", verified: bool = True, password: str | None = "secret123", **fields) -> User:
        n = next(_user_seq)
        values = {
            "first_name": f"User{n}",
            "last_name": "Test",
            "document_number": f"DOC{n:06d}",
            "email": f"user{n}@example.com",
            "address": "Calle 1 # 2-3, Apartado",
            "phone": "3000000000",
            "role": role,
            "password_hash": hash_password(password) if password else None,
            "is_email_verified": verified,
        }
        values.update(fields)
        user = User(**values)
        async with async_session_maker() as session:
            session.add(user)
            await session.commit()
            await session.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user: User, is_temporary: bool = False) -> dict[str, str]:
        return {"Authorization": f"Bearer {issue_user_token(user, is_temporary=is_temporary)}"}

    return _headers
