"""Database configuration and async session management."""

from datetime import datetime, timezone
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from .config import settings


def utcnow() -> datetime:
    """Naive UTC timestamp; every stored datetime uses this convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalise an incoming datetime to the stored naive-UTC convention."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def configure_transactions(engine: AsyncEngine) -> AsyncEngine:
    """
    Give SQLite write-serialised transactions.

    PostgreSQL serialises admission with row locks (SELECT ... FOR UPDATE)
    under its default READ COMMITTED isolation, so nothing is needed there.
    pysqlite/aiosqlite defer BEGIN until the first DML statement and ignore
    FOR UPDATE, which lets two connections read the same seat sum. Taking
    over BEGIN and issuing BEGIN IMMEDIATE makes every transaction acquire
    the database write lock up front; concurrent writers wait on the busy
    timeout instead of interleaving.
    """
    if engine.dialect.name != "sqlite":
        return engine

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with the transaction semantics the ledger relies on."""
    if database_url.startswith("sqlite"):
        engine = create_async_engine(
            database_url,
            echo=echo,
            poolclass=NullPool,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
    else:
        engine = create_async_engine(
            database_url,
            echo=echo,
            pool_pre_ping=True,
        )
    return configure_transactions(engine)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Create async engine
engine = build_engine(settings.database_url, echo=settings.debug)

# Create async session factory
async_session_factory = build_session_factory(engine)

# Create declarative base for models
Base = declarative_base()


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function that yields database sessions.

    Yields:
        AsyncSession: Database session
    """
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# Alias for FastAPI dependency injection
get_db = get_async_session


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Dependency returning the factory, for operations that own their transactions."""
    return async_session_factory


async def init_db() -> None:
    """Initialize the database by creating all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
