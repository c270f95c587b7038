from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from conduit.cache import cache
from conduit.config import settings
from conduit.middleware import install_query_counter

# Module-level engine variable allows tests to override with a test engine.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)


def install_sqlite_pragmas(engine) -> None:
    """
    Align SQLite with PostgreSQL where the services depend on it: ``LIKE``
    is case-sensitive (the tag filter) and foreign keys are enforced
    (ON DELETE CASCADE).  No-op for other dialects.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _set_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA case_sensitive_like = ON")
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()


# Register the per-request SQL query counter on the production engine.
install_query_counter(engine)
install_sqlite_pragmas(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db():
    """
    Yield one session per request.

    The whole request is a single transaction: services only flush, and the
    commit happens here once the handler returns.  Any exception rolls back
    every statement issued during the request, which is what keeps the
    favorites membership rows and ``favorites_count`` in step.  Cached article
    details marked stale during the request are dropped again after commit.
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
            await cache.flush_pending(session)
        except Exception:
            await session.rollback()
            raise
