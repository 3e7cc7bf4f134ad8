"""Database connections for the relational store."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from fieldroute.config import settings


class Base(DeclarativeBase):
    pass


_engine_options = {}
if settings.database_url.startswith("sqlite"):
    # aiosqlite connections are tied to the event loop that opened them.
    _engine_options["poolclass"] = NullPool

engine = create_async_engine(
    settings.database_url,
    echo=False,
    future=True,
    **_engine_options,
)


if engine.dialect.name == "sqlite":

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
        # Route deletion relies on ON DELETE CASCADE for its stops.
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


def _init_schema(connection) -> None:
    # Import models so every table is registered on the metadata.
    import fieldroute.models  # noqa: F401

    Base.metadata.create_all(connection)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(_init_schema)


@asynccontextmanager
async def lifespan_db():
    await init_db()
    yield
    await engine.dispose()
