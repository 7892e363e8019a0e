"""Async database engine and session factory.

``init_database`` is called once from the application lifespan; the survey
store obtains sessions from ``get_session_factory``.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from clm_assessment.core.models import SurveyBase
from clm_assessment.observability import get_logger

logger = get_logger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_database(database_url: str, echo: bool = False) -> async_sessionmaker[AsyncSession]:
    """Create the engine and session factory for ``database_url``.

    Args:
        database_url: SQLAlchemy async URL (postgresql+asyncpg://, sqlite+aiosqlite://).
        echo: Log emitted SQL.

    Returns:
        The configured session factory.
    """
    global _engine, _session_factory

    connect_args: dict[str, object] = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    _engine = create_async_engine(database_url, echo=echo, connect_args=connect_args)
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)

    logger.info(
        "Database initialised",
        database=database_url.split("@")[-1],
    )
    return _session_factory


async def create_schema() -> None:
    """Create all survey tables that do not exist yet.

    Used for SQLite deployments; PostgreSQL deployments run the Alembic
    migrations instead.
    """
    if _engine is None:
        raise RuntimeError("Database not initialised; call init_database() first")
    async with _engine.begin() as connection:
        await connection.run_sync(SurveyBase.metadata.create_all)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the session factory created by ``init_database``."""
    if _session_factory is None:
        raise RuntimeError("Database not initialised; call init_database() first")
    return _session_factory


async def dispose_database() -> None:
    """Close all pooled connections."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
