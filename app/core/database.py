"""
Database configuration and session management

Connection pooling is configured for PostgreSQL; SQLite (tests, local tooling)
uses the driver's default pool and SQLAlchemy-managed transactions so
savepoints work.
"""
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from app.core.config import settings

pool_config = {}

if settings.DATABASE_URL.startswith("sqlite"):
    pool_config = {}
elif settings.ENVIRONMENT == "production":
    pool_config = {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "pool_pre_ping": True,  # Verify connections before use
    }
else:
    pool_config = {
        "pool_size": 2,
        "max_overflow": 5,
        "pool_pre_ping": True,
    }


def enable_sqlite_savepoints(async_engine) -> None:
    """
    Make SAVEPOINT (`begin_nested`) work on SQLite.

    pysqlite opens transactions lazily on its own and breaks nested ones;
    this hands BEGIN over to SQLAlchemy.
    """
    @event.listens_for(async_engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(async_engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    future=True,
    **pool_config,
)

if settings.DATABASE_URL.startswith("sqlite"):
    enable_sqlite_savepoints(engine)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncSession:
    """Dependency for getting async database sessions"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def get_db_session():
    """
    Context manager for database sessions outside FastAPI request context.

    Use this in CLI scripts (permission sync, role seeding) and background work.

    Usage:
        async with get_db_session() as db:
            result = await db.execute(...)
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
