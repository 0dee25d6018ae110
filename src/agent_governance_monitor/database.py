"""Primary database engine, declarative base, and repository base class.

Key exports:
- Base                 — declarative base owning the metadata
- MonitorModel         — abstract model base with id, created_at, updated_at
- JSONType             — JSON column type, JSONB on PostgreSQL
- init_database(...)   — call at startup to create the engine and session factory
- close_database()     — call at shutdown to dispose the engine
- get_db_session()     — FastAPI dependency yielding a session per request
- BaseRepository[T]    — shared constructor and lookup helpers for repositories
"""

import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from typing import Generic, TypeVar

from sqlalchemy import JSON, DateTime, select
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from agent_governance_monitor.errors import NotFoundError
from agent_governance_monitor.observability import get_logger

logger = get_logger(__name__)

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Declarative base owning the shared metadata."""


class MonitorModel(Base):
    """Abstract base for all governance monitor models.

    Attributes:
        id: UUID primary key, generated client-side.
        created_at: Row creation timestamp (UTC).
        updated_at: Last modification timestamp (UTC).
    """

    __abstract__ = True

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )


# Module-level engine and session factory, set by init_database()
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_database(database_url: str, pool_size: int = 10, echo: bool = False) -> None:
    """Initialize the primary database engine and session factory.

    Args:
        database_url: SQLAlchemy async URL, e.g. postgresql+asyncpg://...
        pool_size: Connection pool size (ignored for SQLite).
        echo: Log emitted SQL statements.
    """
    global _engine, _session_factory  # noqa: PLW0603

    engine_kwargs: dict[str, object] = {"echo": echo, "pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        engine_kwargs["pool_size"] = pool_size

    _engine = create_async_engine(database_url, **engine_kwargs)
    _session_factory = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    logger.info("Primary database engine initialized", pool_size=pool_size)


async def close_database() -> None:
    """Dispose the primary database engine."""
    global _engine  # noqa: PLW0603

    if _engine is not None:
        logger.info("Disposing primary database engine")
        await _engine.dispose()
        _engine = None


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields a primary database session.

    Commits when the request handler returns normally, rolls back otherwise.

    Yields:
        AsyncSession bound to the primary database.

    Raises:
        RuntimeError: If init_database() has not been called yet.
    """
    if _session_factory is None:
        raise RuntimeError(
            "Primary database has not been initialized. "
            "Call init_database() in the application lifespan handler."
        )

    async with _session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


ModelT = TypeVar("ModelT", bound=MonitorModel)


class BaseRepository(Generic[ModelT]):
    """Shared plumbing for SQLAlchemy repositories.

    Args:
        session: The async session all queries run on.
        model: The ORM model class this repository manages.
    """

    def __init__(self, session: AsyncSession, model: type[ModelT]) -> None:
        self._session = session
        self._model = model

    async def get(self, entity_id: uuid.UUID) -> ModelT:
        """Fetch one row by primary key.

        Args:
            entity_id: The row UUID.

        Returns:
            The ORM instance.

        Raises:
            NotFoundError: If no row has this id.
        """
        result = await self._session.execute(select(self._model).where(self._model.id == entity_id))
        entity = result.scalar_one_or_none()
        if entity is None:
            raise NotFoundError(resource=self._model.__name__, resource_id=str(entity_id))
        return entity

    async def commit(self) -> None:
        """Commit everything written on this session so far.

        Used where a write must survive a failure later in the same request,
        since get_db_session() rolls back on any exception.
        """
        await self._session.commit()

    async def _add(self, entity: ModelT) -> ModelT:
        """Persist a new ORM instance and return it refreshed."""
        self._session.add(entity)
        await self._session.flush()
        await self._session.refresh(entity)
        return entity
