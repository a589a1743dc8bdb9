"""
Tests per la configurazione dell'engine e delle sessioni.
"""

import pytest
from sqlalchemy import text
from sqlalchemy.pool import StaticPool

from invoicing.core.config import settings
from invoicing.core.database import build_engine, engine_options, session_scope


class TestEngineOptions:
    """Tests for engine_options."""

    def test_postgres_uses_pool_settings(self):
        options = engine_options("postgresql+asyncpg://user:pw@db:5432/invoicing")

        assert options["pool_pre_ping"] is True
        assert options["pool_size"] == settings.db_pool_size
        assert options["max_overflow"] == settings.db_max_overflow
        assert "poolclass" not in options

    def test_sqlite_single_shared_connection(self):
        options = engine_options("sqlite+aiosqlite://")

        assert options["poolclass"] is StaticPool
        assert options["connect_args"] == {"check_same_thread": False}
        assert "pool_size" not in options


class TestSqliteEngine:
    """Tests for build_engine on SQLite."""

    async def test_savepoint_rollback(self, engine):
        """Test il rollback di un SAVEPOINT lascia intatto il resto della transazione."""
        async with engine.connect() as conn:
            await conn.execute(text("CREATE TABLE scratch_values (v INTEGER)"))
            await conn.execute(text("INSERT INTO scratch_values VALUES (1)"))
            nested = await conn.begin_nested()
            await conn.execute(text("INSERT INTO scratch_values VALUES (2)"))
            await nested.rollback()
            values = (await conn.execute(text("SELECT v FROM scratch_values"))).scalars().all()

        assert values == [1]

    async def test_build_engine_dialect(self):
        sqlite_engine = build_engine("sqlite+aiosqlite://")
        try:
            assert sqlite_engine.dialect.name == "sqlite"
        finally:
            await sqlite_engine.dispose()


class TestSessionScope:
    """Tests for session_scope."""

    async def test_rollback_on_error(self, engine, monkeypatch, session_factory):
        """Test un'eccezione dentro lo scope annulla le scritture non committate."""
        monkeypatch.setattr("invoicing.core.database.AsyncSessionLocal", session_factory)
        async with engine.begin() as conn:
            await conn.execute(text("CREATE TABLE scratch_values (v INTEGER)"))

        with pytest.raises(RuntimeError):
            async with session_scope() as session:
                await session.execute(text("INSERT INTO scratch_values VALUES (1)"))
                raise RuntimeError("errore simulato")

        async with session_factory() as check:
            count = (await check.execute(text("SELECT COUNT(*) FROM scratch_values"))).scalar()
        assert count == 0
