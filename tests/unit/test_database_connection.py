"""
Tests for pulse/database/connection.py
"""

import pytest
from unittest.mock import patch

from pulse.database import connection
from pulse.database.connection import Database, normalize_database_url
from pulse.database.exceptions import DatabaseConnectionError


class TestNormalizeDatabaseUrl:

    def test_postgres_scheme(self):
        assert normalize_database_url("postgres://u:p@db:5432/pulse") == "postgresql+asyncpg://u:p@db:5432/pulse"

    def test_postgresql_scheme(self):
        assert normalize_database_url("postgresql://u:p@db/pulse") == "postgresql+asyncpg://u:p@db/pulse"

    def test_driver_already_set(self):
        assert normalize_database_url("postgresql+asyncpg://db/pulse") == "postgresql+asyncpg://db/pulse"
        assert normalize_database_url("sqlite+aiosqlite://") == "sqlite+aiosqlite://"


class TestDatabase:

    @pytest.mark.asyncio
    async def test_pool_status_before_initialize(self):
        status = await Database("sqlite+aiosqlite://").get_pool_status()
        assert status["status"] == "not_initialized"

    @pytest.mark.asyncio
    async def test_sqlite_health(self, db):
        health = await db.health_check()

        assert health["status"] == "healthy"
        assert health["pool"] == {"pool_type": "StaticPool", "status": "no_pooling"}

    @pytest.mark.asyncio
    async def test_session_without_url_raises(self):
        with patch.object(connection.settings, "database_url", ""):
            db = Database()
            assert await db.initialize() is False

            with pytest.raises(DatabaseConnectionError):
                async with db.session():
                    pass

            health = await db.health_check()
            assert health["status"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, db):
        engine = db.engine
        assert await db.initialize() is True
        assert db.engine is engine
