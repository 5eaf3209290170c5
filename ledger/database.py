"""
Database engine, session management, and base model class.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - engine: The async database engine (connection pool for production DBs)
  - AsyncSessionLocal: Factory for creating async database sessions
  - Base: Declarative base class that all ORM models inherit from
  - get_db(): FastAPI dependency that provides a session per request
  - storage_guard(): translates driver errors into ledger errors

Session lifecycle:
  Each API request gets its own session via get_db(). The session commits
  on success and rolls back on any exception. The transfer engine is the
  exception: it opens and commits its own sessions so that the per-account
  locks can be held until the commit has happened.
"""

from contextlib import contextmanager

from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from ledger.config import settings
from ledger.exceptions import ConcurrencyConflictError, PersistenceError


# echo=True in debug mode logs all SQL statements
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
)

# expire_on_commit=False prevents lazy-load errors after commit: without it,
# reading an attribute of a committed object would trigger a synchronous
# refresh, which fails in async context.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


async def get_db():
    """
    FastAPI dependency that provides a database session.

    Usage in a route:
        @router.get("/items")
        async def list_items(db: AsyncSession = Depends(get_db)):
            ...

    The session is committed on success and rolled back on any exception,
    then closed when the request completes.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# SQLSTATEs for serialization_failure and deadlock_detected
_PG_CONFLICT_CODES = {"40001", "40P01"}


def is_lock_conflict(exc: DBAPIError) -> bool:
    """True when the driver error means "try again", not "storage is broken"."""
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code in _PG_CONFLICT_CODES:
        return True
    # SQLite reports both database- and table-level busy states this way
    return "is locked" in str(orig)


@contextmanager
def storage_guard(operation: str):
    """
    Translate SQLAlchemy errors raised inside the block into ledger errors.

    Lock timeouts and serialization failures become ConcurrencyConflictError
    (retryable). Everything else becomes PersistenceError, including an
    integer the driver can't bind (OverflowError is raised by sqlite3 before
    SQLAlchemy gets a chance to wrap it).

    Usage:
        with storage_guard("append"):
            await db.flush()
    """
    try:
        yield
    except DBAPIError as exc:
        if is_lock_conflict(exc):
            raise ConcurrencyConflictError(f"Storage busy during {operation}") from exc
        raise PersistenceError(operation, str(exc.orig)) from exc
    except SQLAlchemyError as exc:
        raise PersistenceError(operation, str(exc)) from exc
    except OverflowError as exc:
        raise PersistenceError(operation, f"value out of range: {exc}") from exc
