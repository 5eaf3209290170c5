"""
Test fixtures for the Ledger API test suite.

This module provides shared fixtures used across all test files:

  - db_engine / session_factory / db_session: Fresh SQLite database per test
  - impatient_session_factory: Same database, short busy timeout
  - transfer_engine: A TransferEngine bound to the test database
  - client: Async HTTP test client with the test database injected
  - make_account: Inserts an account with a chosen balance
  - get_account: Re-reads an account in a fresh session

Key design decisions:
  - Each test gets its own SQLite file under pytest's tmp_path. An
    in-memory aiosqlite database is a single shared connection, which
    would let concurrent sessions commit or roll back each other's work;
    a file gives every session its own connection, so the concurrency
    tests exercise real SQLite locking.
  - We override FastAPI's get_db and get_transfer_engine dependencies so
    the application code works exactly as it does in production.
  - Accounts are inserted directly with a starting balance rather than
    funded through deposits, so a transfer test only exercises transfers.
"""

import itertools
import logging

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from ledger.database import Base, get_db
from ledger.dependencies import get_transfer_engine
from ledger.main import app
from ledger.models.account import Account
from ledger.models.transaction import Transaction
from ledger.services.transfer_engine import TransferEngine


@pytest.fixture(autouse=True)
def restore_ledger_logger():
    """Put the process-wide "ledger" logger's handlers, level and propagate flag back after each test."""
    logger = logging.getLogger("ledger")
    handlers, level, propagate = logger.handlers[:], logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def impatient_session_factory(db_engine, tmp_path):
    """
    Sessions on the same database file that give up on a held write lock
    after 50ms instead of the default 5s, so lock contention surfaces as
    "database is locked" quickly.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"timeout": 0.05},
    )
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Provide an async session bound to the test engine."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def transfer_engine(session_factory):
    """A transfer engine on the test database, crediting targets inline."""
    return TransferEngine(
        session_factory=session_factory,
        max_retries=3,
        retry_backoff=0,
        credit_target=True,
    )


@pytest_asyncio.fixture
async def client(session_factory, transfer_engine):
    """
    Async HTTP test client with the test database injected.

    Both request-scoped sessions and the shared transfer engine point at
    the per-test database.
    """

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_transfer_engine] = lambda: transfer_engine

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_account(session_factory):
    """
    Factory that inserts and commits an account.

    Sort codes and account numbers are sequential unless given, so tests
    can create deliberate duplicates of one or the other.
    """
    counter = itertools.count(1)

    async def _make(
        owner_name: str = "Alice Smith",
        balance_cents: int = 0,
        bank_name: str = "Test Bank",
        sort_code: str | None = None,
        account_number: str | None = None,
    ) -> Account:
        n = next(counter)
        account = Account(
            bank_name=bank_name,
            owner_name=owner_name,
            sort_code=sort_code or f"10-20-{n:02d}",
            account_number=account_number or f"{n:08d}",
            current_balance_cents=balance_cents,
        )
        async with session_factory() as session:
            session.add(account)
            await session.commit()
        return account

    return _make


@pytest.fixture
def get_account(session_factory):
    """Re-read an account from the database in a fresh session."""

    async def _get(account_id) -> Account | None:
        async with session_factory() as session:
            return await session.get(Account, account_id)

    return _get


@pytest.fixture
def count_transactions(session_factory):
    """Count every persisted transaction record."""

    async def _count() -> int:
        async with session_factory() as session:
            return await session.scalar(select(func.count()).select_from(Transaction))

    return _count
