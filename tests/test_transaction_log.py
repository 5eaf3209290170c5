"""
Tests for the transaction log.

These tests verify:
  - append assigns an id at persistence time
  - History is per source account and chronological
  - The history is lazy and restartable
  - Pagination through all(limit, offset)
  - Streaming errors are translated and the stream is always closed
"""

import sqlite3
import uuid
from contextlib import aclosing
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from ledger.exceptions import ConcurrencyConflictError, PersistenceError
from ledger.models.transaction import Transaction
from ledger.services import transaction_log
from ledger.services.account_store import AccountIdentity


def record(source, target, amount_cents, when=None) -> Transaction:
    when = when or datetime.now(timezone.utc)
    return Transaction(
        amount_cents=amount_cents,
        source_account_id=source.id,
        target_account_id=target.id,
        target_owner_name=target.owner_name,
        initiation_date=when,
        completion_date=when,
    )


class TestAppend:

    async def test_append_assigns_id(self, db_session, make_account):
        source = await make_account()
        target = await make_account("Bob Jones")
        txn = record(source, target, 1000)
        assert txn.id is None

        appended = await transaction_log.append(db_session, txn)

        assert appended.id is not None
        assert appended.target_owner_name == "Bob Jones"


class TestListBySource:

    async def test_empty_history(self, db_session, make_account):
        account = await make_account()

        history = transaction_log.list_by_source(db_session, account.id)

        assert await history.all() == []
        assert [txn async for txn in history] == []

    async def test_ordered_by_initiation_date(self, db_session, make_account):
        source = await make_account()
        target = await make_account()
        base = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

        # Inserted out of order on purpose
        for offset_minutes, amount in [(30, 300), (0, 100), (60, 600), (15, 150)]:
            await transaction_log.append(
                db_session,
                record(source, target, amount, base + timedelta(minutes=offset_minutes)),
            )
        await db_session.commit()

        history = [txn async for txn in transaction_log.list_by_source(db_session, source.id)]

        assert [txn.amount_cents for txn in history] == [100, 150, 300, 600]

    async def test_only_outgoing_transactions(self, db_session, make_account):
        a = await make_account("A")
        b = await make_account("B")
        await transaction_log.append(db_session, record(a, b, 100))
        await transaction_log.append(db_session, record(b, a, 200))
        await db_session.commit()

        from_a = await transaction_log.list_by_source(db_session, a.id).all()
        from_b = await transaction_log.list_by_source(db_session, b.id).all()

        assert [txn.amount_cents for txn in from_a] == [100]
        assert [txn.amount_cents for txn in from_b] == [200]

    async def test_history_is_restartable(self, db_session, make_account):
        source = await make_account()
        target = await make_account()
        await transaction_log.append(db_session, record(source, target, 100))
        await db_session.commit()

        history = transaction_log.list_by_source(db_session, source.id)
        first_pass = [txn.amount_cents async for txn in history]

        await transaction_log.append(db_session, record(source, target, 200))
        await db_session.commit()
        second_pass = [txn.amount_cents async for txn in history]

        assert first_pass == [100]
        assert second_pass == [100, 200]

    async def test_pagination(self, db_session, make_account):
        source = await make_account()
        target = await make_account()
        base = datetime(2024, 3, 1, tzinfo=timezone.utc)
        for i in range(5):
            await transaction_log.append(
                db_session, record(source, target, (i + 1) * 100, base + timedelta(days=i))
            )
        await db_session.commit()

        history = transaction_log.list_by_source(db_session, source.id)
        page = await history.all(limit=2, offset=1)

        assert [txn.amount_cents for txn in page] == [200, 300]

    async def test_engine_transfers_are_non_decreasing(
        self, transfer_engine, make_account, session_factory
    ):
        """Every completed transfer shows up, in non-decreasing initiation order."""
        source = await make_account(balance_cents=100000)
        target = await make_account()
        src = AccountIdentity(source.sort_code, source.account_number)
        dst = AccountIdentity(target.sort_code, target.account_number)

        results = [await transfer_engine.transfer(src, dst, 100 * (i + 1)) for i in range(6)]

        async with session_factory() as session:
            history = await transaction_log.list_by_source(session, source.id).all()

        assert {txn.id for txn in history} == {r.transaction_id for r in results}
        dates = [txn.initiation_date for txn in history]
        assert dates == sorted(dates)


class StreamedRows:
    """Stands in for an AsyncScalarResult: yields rows, then optionally fails."""

    def __init__(self, rows, error=None):
        self._rows = rows
        self._error = error
        self.close = AsyncMock()

    def __aiter__(self):
        return self._generate()

    async def _generate(self):
        for row in self._rows:
            yield row
        if self._error is not None:
            raise self._error


def session_streaming(stream) -> MagicMock:
    db = MagicMock()
    db.stream_scalars = AsyncMock(return_value=stream)
    return db


class TestHistoryStreaming:

    async def test_error_while_iterating_is_translated(self):
        stream = StreamedRows(
            ["first"],
            error=OperationalError("SELECT ...", {}, sqlite3.OperationalError("disk I/O error")),
        )
        history = transaction_log.list_by_source(session_streaming(stream), uuid.uuid4())
        seen = []

        with pytest.raises(PersistenceError):
            async for txn in history:
                seen.append(txn)

        assert seen == ["first"]
        stream.close.assert_awaited_once()

    async def test_lock_while_iterating_is_a_conflict(self):
        stream = StreamedRows(
            [],
            error=OperationalError("SELECT ...", {}, sqlite3.OperationalError("database is locked")),
        )
        history = transaction_log.list_by_source(session_streaming(stream), uuid.uuid4())

        with pytest.raises(ConcurrencyConflictError):
            async for _ in history:
                pass

    async def test_result_closed_after_full_iteration(self):
        stream = StreamedRows(["first", "second"])
        history = transaction_log.list_by_source(session_streaming(stream), uuid.uuid4())

        assert [txn async for txn in history] == ["first", "second"]
        stream.close.assert_awaited_once()

    async def test_result_closed_when_caller_stops_early(self):
        stream = StreamedRows(["first", "second", "third"])
        history = transaction_log.list_by_source(session_streaming(stream), uuid.uuid4())

        async with aclosing(aiter(history)) as transactions:
            async for txn in transactions:
                break

        assert txn == "first"
        stream.close.assert_awaited_once()
