"""Tests for database connection parameters."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from logos.db import (
    Database,
    database_configured,
    database_url,
    db_params_from_env,
    should_retry_with_ssl_disable,
)

pytestmark = pytest.mark.unit

_ENV_VARS = (
    "DATABASE_URL",
    "POSTGRES_HOST",
    "POSTGRES_PORT",
    "POSTGRES_USER",
    "POSTGRES_PASSWORD",
    "POSTGRES_DB",
    "POSTGRES_SSLMODE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)


def test_defaults():
    assert db_params_from_env() == {
        "host": "localhost",
        "port": 5432,
        "user": "logos",
        "password": "logos",
        "database": "logos",
        "ssl": None,
    }
    assert database_configured() is False


def test_database_url_wins(monkeypatch):
    monkeypatch.setenv("POSTGRES_HOST", "ignored")
    monkeypatch.setenv("DATABASE_URL", "postgres://crm:pw@db.internal:6543/crm?sslmode=require")
    params = db_params_from_env()
    assert params["host"] == "db.internal"
    assert params["port"] == 6543
    assert params["database"] == "crm"
    assert params["ssl"] == "require"
    assert database_configured() is True
    assert database_url() == "postgres://crm:pw@db.internal:6543/crm?sslmode=require"


def test_url_built_from_postgres_vars(monkeypatch):
    monkeypatch.setenv("POSTGRES_HOST", "pg")
    monkeypatch.setenv("POSTGRES_USER", "crm")
    monkeypatch.setenv("POSTGRES_PASSWORD", "p@ss/word")
    monkeypatch.setenv("POSTGRES_SSLMODE", "VERIFY-FULL")
    assert database_url() == "postgresql://crm:p%40ss%2Fword@pg:5432/logos?sslmode=verify-full"


def test_invalid_sslmode_is_ignored(monkeypatch, caplog):
    monkeypatch.setenv("POSTGRES_SSLMODE", "sometimes")
    assert db_params_from_env()["ssl"] is None
    assert "invalid PostgreSQL sslmode" in caplog.text


def test_ssl_retry_only_for_starttls_loss():
    lost = ConnectionError("unexpected connection_lost() call")
    assert should_retry_with_ssl_disable(lost, None) is True
    assert should_retry_with_ssl_disable(lost, "require") is False
    assert should_retry_with_ssl_disable(OSError("refused"), None) is False


async def test_connect_retries_with_ssl_disabled():
    pool = AsyncMock()
    lost = ConnectionError("unexpected connection_lost() call")
    create_pool = AsyncMock(side_effect=[lost, pool])
    db = Database(db_name="crm")
    with patch("logos.db.asyncpg.create_pool", create_pool):
        assert await db.connect() is pool
    assert create_pool.await_args_list[1].kwargs["ssl"] == "disable"

    await db.close()
    pool.close.assert_awaited_once()
    assert db.pool is None
