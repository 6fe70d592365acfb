# Copyright (C) 2024 Uraba Logistics Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""App wiring: health, lifespan-owned sweep task, configuration, staff bootstrap."""

import pytest
from httpx import ASGITransport, AsyncClient

from uraba_server.config import Settings
from uraba_server.main import app, lifespan
from uraba_server.scripts.create_staff import create_staff_user
from uraba_server.services.tokens import get_token_store


@pytest.mark.anyio
async def test_health(client: AsyncClient):
    r = await client.get("/api/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
    r = await client.get("/")
    assert r.json()["api"] == "/api"


@pytest.mark.anyio
async def test_unknown_route_uses_error_body(client: AsyncClient):
    r = await client.get("/api/nope")
    assert r.status_code == 404
    assert r.json() == {"error": "Not Found"}


@pytest.mark.anyio
async def test_unhandled_error_returns_generic_500():
    class BrokenStore:
        def issue(self, email: str) -> str:
            raise RuntimeError("connection string leaked")

    app.dependency_overrides[get_token_store] = BrokenStore
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            r = await ac.post("/api/send-token", json={"email": "a@example.com"})
    finally:
        app.dependency_overrides.clear()
    assert r.status_code == 500
    assert r.json() == {"error": "Internal server error"}


@pytest.mark.anyio
async def test_lifespan_owns_sweep_task(db_session):
    async with lifespan(app):
        task = app.state.token_sweep_task
        assert not task.done()
    assert task.cancelled()


@pytest.mark.anyio
async def test_create_staff_user(db_session):
    user = await create_staff_user(
        db_session,
        first_name="Pedro",
        last_name="Mena",
        document_number="8000",
        email="pedro@example.com",
        password="pw",
        role="messenger",
    )
    assert user.id is not None
    assert user.role == "messenger"
    assert user.is_email_verified is True
    assert user.password_hash and user.password_hash != "pw"

    with pytest.raises(ValueError):
        await create_staff_user(
            db_session,
            first_name="Otro",
            last_name="Mena",
            document_number="8001",
            email="pedro@example.com",
            password="pw",
            role="operator",
        )


@pytest.mark.anyio
async def test_create_staff_rejects_client_role(db_session):
    with pytest.raises(ValueError):
        await create_staff_user(
            db_session,
            first_name="C",
            last_name="L",
            document_number="1",
            email="c@example.com",
            password="pw",
            role="client",
        )


def test_database_url_normalised_to_asyncpg():
    s = Settings(_env_file=None, database_url="postgres://u:p@db.example.com:5432/app")
    assert s.sqlalchemy_database_url == "postgresql+asyncpg://u:p@db.example.com:5432/app"
    s = Settings(_env_file=None, database_url="sqlite+aiosqlite:///x.db")
    assert s.sqlalchemy_database_url == "sqlite+aiosqlite:///x.db"


def test_database_url_from_discrete_settings():
    s = Settings(
        _env_file=None,
        database_url=None,
        db_host="pg",
        db_port=6543,
        db_name="uraba",
        db_user="svc",
        db_password="pw",
    )
    assert s.sqlalchemy_database_url == "postgresql+asyncpg://svc:pw@pg:6543/uraba"


def test_production_flag():
    assert Settings(_env_file=None, node_env="production").is_production
    assert not Settings(_env_file=None, node_env="development").is_production


def test_code_ttl_bounds():
    with pytest.raises(ValueError):
        Settings(_env_file=None, verification_code_ttl_minutes=10)
