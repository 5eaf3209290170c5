"""
Transaction log — append-only store of completed transfers.

Records are only ever inserted. History is read per source account in
chronological order (initiation_date ascending, with the record id as a
stable tie-break for transfers stamped in the same instant).
"""

import uuid
from collections.abc import AsyncIterator

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledger.database import storage_guard
from ledger.models.transaction import Transaction


async def append(db: AsyncSession, record: Transaction) -> Transaction:
    """
    Persist a new transaction record.

    The record is flushed (so its id is assigned and constraints are
    checked) but not committed; it commits together with the balance
    changes it describes.

    Raises:
        PersistenceError: If the insert fails.
        ConcurrencyConflictError: If the store is locked by another writer.
    """
    with storage_guard("transaction append"):
        db.add(record)
        await db.flush()
    return record


class SourceHistory:
    """
    Outgoing transactions of one account, oldest first.

    Lazy and restartable: nothing is queried until iteration starts, and
    every `async for` runs a fresh streamed query, so a second pass sees
    transfers recorded after the first.

    The streamed result is closed when iteration ends. A caller that may
    stop early should close the iterator explicitly:

        async with aclosing(aiter(history)) as transactions:
            async for txn in transactions:
                ...
    """

    def __init__(self, db: AsyncSession, account_id: uuid.UUID):
        self._db = db
        self.account_id = account_id

    def _query(self) -> Select:
        return (
            select(Transaction)
            .where(Transaction.source_account_id == self.account_id)
            .order_by(Transaction.initiation_date.asc(), Transaction.id.asc())
        )

    def __aiter__(self) -> AsyncIterator[Transaction]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Transaction]:
        with storage_guard("transaction history"):
            result = await self._db.stream_scalars(self._query())
            try:
                async for txn in result:
                    yield txn
            finally:
                await result.close()

    async def all(self, limit: int | None = None, offset: int = 0) -> list[Transaction]:
        """Materialize the history, optionally one page of it."""
        query = self._query().offset(offset)
        if limit is not None:
            query = query.limit(limit)
        with storage_guard("transaction history"):
            result = await self._db.scalars(query)
            return list(result.all())


def list_by_source(db: AsyncSession, account_id: uuid.UUID) -> SourceHistory:
    """Outgoing transactions for an account, in initiation order."""
    return SourceHistory(db, account_id)
