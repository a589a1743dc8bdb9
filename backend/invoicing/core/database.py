"""
Accesso al database - SQLAlchemy 2.0 Async
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

In produzione l'engine punta a PostgreSQL (asyncpg) con pool di
connessioni: il ledger pagamenti si appoggia ai lock di riga
(SELECT ... FOR UPDATE) della stessa connessione per tutta la transazione.

Con un URL SQLite (test, sviluppo locale) l'engine usa una sola
connessione condivisa e apre esplicitamente la transazione, così
SAVEPOINT e rollback della numerazione fatture funzionano anche lì.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, AsyncIterator, Optional

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from invoicing.core.config import settings
from invoicing.models import Base

# Logger per questo modulo
logger = logging.getLogger(__name__)


def engine_options(url: str) -> dict[str, Any]:
    """
    Opzioni di create_async_engine in base al backend.

    SQLite non accetta pool_size/max_overflow: usa StaticPool, unica
    connessione condivisa (necessaria per i database in memoria).
    """
    if make_url(url).get_backend_name() == "sqlite":
        return {
            "echo": settings.debug,
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    return {
        "echo": settings.debug,
        "pool_pre_ping": True,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
    }


def build_engine(url: Optional[str] = None) -> AsyncEngine:
    """Crea l'engine per l'URL dato (default: settings.database_url)."""
    url = url or settings.database_url
    new_engine = create_async_engine(url, **engine_options(url))

    if new_engine.dialect.name == "sqlite":
        # pysqlite non emette BEGIN: senza questo i SAVEPOINT non funzionano
        @event.listens_for(new_engine.sync_engine, "connect")
        def _sqlite_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(new_engine.sync_engine, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN")

    return new_engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory dell'applicazione.

    expire_on_commit=False: i service restituiscono fattura e pagamento
    dopo il commit e le route li serializzano senza nuovi round-trip.
    """
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine: AsyncEngine = build_engine()
AsyncSessionLocal = build_session_factory(engine)


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """
    Sessione per lavori fuori dalle richieste HTTP (seed dei preset, script).

    Come per le richieste, il commit spetta ai service: qui si annulla
    solo quanto rimasto aperto da un'eccezione.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency FastAPI: una sessione per richiesta.

    I service di fatture e pagamenti fanno commit e rollback da soli;
    se la route fallisce dopo, la transazione rimasta aperta viene annullata.
    """
    async with session_scope() as session:
        yield session


async def init_db() -> None:
    """Verifica all'avvio che il database sia raggiungibile."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database %s raggiungibile", engine.dialect.name)
    except Exception as e:
        logger.error("Errore connessione database: %s", e)
        raise


async def reset_schema(bind: AsyncEngine) -> None:
    """Elimina e ricrea tutte le tabelle (solo sviluppo e test)."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    logger.warning("Schema database ricreato su %s", bind.dialect.name)


async def close_db() -> None:
    """Chiude il pool; chiamata allo shutdown."""
    await engine.dispose()
    logger.info("Connessioni database chiuse")
