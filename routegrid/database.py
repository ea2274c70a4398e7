"""Database engine, session management, and table creation."""

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from .config import RouteGridConfig
from .models.base import Base
from .utils.logging import get_logger

logger = get_logger("routegrid.database")

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _is_memory_sqlite(url: str) -> bool:
    return _is_sqlite(url) and (":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"))


def _install_sqlite_pragmas(engine: AsyncEngine, config: RouteGridConfig) -> None:
    """Apply per-connection PRAGMAs to every pooled SQLite connection."""

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute(f"PRAGMA busy_timeout={config.db_busy_timeout}")
            cursor.execute(f"PRAGMA synchronous={config.db_synchronous}")
        finally:
            cursor.close()


def get_engine(config: RouteGridConfig) -> AsyncEngine:
    """Get or create the async database engine."""
    global _engine
    if _engine is None:
        url = config.database_url
        options: dict = {"echo": config.debug, "future": True}
        if _is_memory_sqlite(url):
            # One shared connection, otherwise every session sees an empty database
            options.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
        elif _is_sqlite(url):
            options.update(pool_pre_ping=True, connect_args={"timeout": 30})
        else:
            options.update(pool_pre_ping=True)

        _engine = create_async_engine(url, **options)
        if _is_sqlite(url):
            _install_sqlite_pragmas(_engine, config)
        logger.debug("engine_created", dialect=_engine.dialect.name)
    return _engine


def get_session_factory(config: RouteGridConfig) -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(config), expire_on_commit=False)
    return _session_factory


async def _enable_wal_mode(config: RouteGridConfig) -> None:
    """Switch a file-backed SQLite database to WAL; the mode persists in the file."""
    url = config.database_url
    if not config.db_wal_mode or not _is_sqlite(url) or _is_memory_sqlite(url):
        return
    async with get_engine(config).begin() as conn:
        mode = (await conn.execute(text("PRAGMA journal_mode=WAL"))).scalar()
    logger.info(
        "sqlite_pragmas_applied",
        journal_mode=mode,
        busy_timeout=config.db_busy_timeout,
        synchronous=config.db_synchronous,
    )


async def create_tables(config: RouteGridConfig) -> None:
    """Create all database tables and apply SQLite settings."""
    async with get_engine(config).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await _enable_wal_mode(config)
    logger.info("tables_ready", tables=sorted(Base.metadata.tables))


async def close_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("engine_disposed")
    _engine = None
    _session_factory = None
