"""
Transfer engine — the core financial business logic.

THIS IS THE MOST CRITICAL FILE IN THE PROJECT. A transfer:

  1. Resolves both accounts by (sort code, account number)
  2. Rejects non-positive amounts and transfers to the same account
  3. Locks the accounts involved (ascending id order)
  4. Re-reads the source balance under the lock and checks that the
     transfer leaves it strictly positive
  5. Debits the source, credits the target and appends the transaction
     record in ONE database transaction
  6. Returns TransferResult.completed(...) or TransferResult.rejected(...)

Atomicity:
  The debit, the credit and the record insert share one database
  transaction. If the append (or anything else) fails after the debit was
  flushed, the whole unit is rolled back: the debit is compensated by the
  rollback itself and PersistenceError is raised. A committed debit
  without its record is therefore impossible.

Concurrency:
  In-process callers are serialized per account by AccountLockRegistry,
  held until after the commit. Writers the locks can't see (another
  process, the deposit path) are caught by the version compare-and-swap
  in account_store.update_balance(); the engine re-reads and retries
  such ConcurrencyConflictErrors a bounded number of times.

Rejections (account not found, invalid amount, same account, insufficient
funds) are reported in the result, not raised, and never write anything.
Storage faults and exhausted retries are raised.

There is no idempotency key: calling transfer() twice with the same
arguments moves the money twice.
"""

import asyncio
import enum
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledger.config import settings
from ledger.database import AsyncSessionLocal, storage_guard
from ledger.exceptions import (
    AccountNotFoundError,
    ConcurrencyConflictError,
    InsufficientFundsError,
    InvalidAmountError,
    PersistenceError,
    RejectionReason,
    SameAccountError,
    TransferRejectedError,
)
from ledger.models.account import Account
from ledger.models.transaction import Transaction
from ledger.services import account_store, transaction_log
from ledger.services.account_store import AccountIdentity, Action
from ledger.services.locks import AccountLockRegistry

logger = logging.getLogger(__name__)


class TransferStatus(str, enum.Enum):
    COMPLETED = "completed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class TransferResult:
    """Outcome of TransferEngine.transfer()."""
    status: TransferStatus
    transaction: Transaction | None = None
    error: TransferRejectedError | None = None

    @classmethod
    def completed(cls, transaction: Transaction) -> "TransferResult":
        return cls(status=TransferStatus.COMPLETED, transaction=transaction)

    @classmethod
    def rejected(cls, error: TransferRejectedError) -> "TransferResult":
        return cls(status=TransferStatus.REJECTED, error=error)

    @property
    def ok(self) -> bool:
        return self.status == TransferStatus.COMPLETED

    @property
    def transaction_id(self) -> uuid.UUID | None:
        return self.transaction.id if self.transaction is not None else None

    @property
    def reason(self) -> RejectionReason | None:
        return self.error.reason if self.error is not None else None

    def raise_for_status(self) -> None:
        """Re-raise the rejection, if any. Used by the structured HTTP endpoint."""
        if self.error is not None:
            raise self.error


def is_amount_available(amount_cents: int, balance_cents: int) -> bool:
    """
    True if withdrawing amount_cents leaves a strictly positive balance.

    A transfer of the entire balance is NOT available. Overdraft and credit
    lines are not supported.
    """
    return (balance_cents - amount_cents) > 0


class TransferEngine:
    """
    Executes transfers. One instance is shared by all requests so that they
    share its lock registry.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        locks: AccountLockRegistry | None = None,
        max_retries: int = settings.TRANSFER_MAX_RETRIES,
        retry_backoff: float = settings.TRANSFER_RETRY_BACKOFF_SECONDS,
        credit_target: bool = settings.CREDIT_TARGET_ON_TRANSFER,
    ):
        self.session_factory = session_factory
        self.locks = locks or AccountLockRegistry()
        self.max_retries = max(1, max_retries)
        self.retry_backoff = retry_backoff
        self.credit_target = credit_target

    async def transfer(
        self,
        source: AccountIdentity,
        target: AccountIdentity,
        amount_cents: int,
        reference: str | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> TransferResult:
        """
        Move amount_cents from source to target.

        Returns:
            TransferResult.completed(transaction) on success, or
            TransferResult.rejected(error) for a validation failure.

        Raises:
            PersistenceError: Storage failed; nothing was committed.
            ConcurrencyConflictError: Still conflicting after max_retries.
        """
        try:
            source_account, target_account = await self._resolve(source, target)

            if amount_cents <= 0:
                raise InvalidAmountError(amount_cents)
            if source_account.id == target_account.id:
                raise SameAccountError(source_account.id)

            txn = await self._execute_with_retry(
                source_account.id,
                target_account.id,
                amount_cents,
                reference,
                latitude,
                longitude,
            )
        except TransferRejectedError as exc:
            logger.info(
                "Transfer %s -> %s rejected (%s): %s",
                source, target, exc.reason.value, exc.detail,
            )
            return TransferResult.rejected(exc)

        logger.info(
            "Transfer %s completed: %d cents %s -> %s",
            txn.id, amount_cents, txn.source_account_id, txn.target_account_id,
        )
        return TransferResult.completed(txn)

    async def _resolve(
        self,
        source: AccountIdentity,
        target: AccountIdentity,
    ) -> tuple[Account, Account]:
        # Identities are immutable, so resolving them before taking the
        # locks is safe; balances are re-read under the lock.
        async with self.session_factory() as db:
            source_account = await account_store.find_by_identity(
                db, source.sort_code, source.account_number
            )
            target_account = await account_store.find_by_identity(
                db, target.sort_code, target.account_number
            )

        if source_account is None:
            raise AccountNotFoundError.for_identity(source.sort_code, source.account_number)
        if target_account is None:
            raise AccountNotFoundError.for_identity(target.sort_code, target.account_number)
        return source_account, target_account

    async def _execute_with_retry(
        self,
        source_id: uuid.UUID,
        target_id: uuid.UUID,
        amount_cents: int,
        reference: str | None,
        latitude: float | None,
        longitude: float | None,
    ) -> Transaction:
        attempt = 1
        while True:
            try:
                return await self._execute(
                    source_id, target_id, amount_cents, reference, latitude, longitude
                )
            except ConcurrencyConflictError as exc:
                if attempt >= self.max_retries:
                    logger.error(
                        "Transfer %s -> %s gave up after %d attempts: %s",
                        source_id, target_id, attempt, exc.detail,
                    )
                    raise
                logger.warning(
                    "Transfer %s -> %s conflicted (attempt %d/%d): %s",
                    source_id, target_id, attempt, self.max_retries, exc.detail,
                )
                await asyncio.sleep(self.retry_backoff * attempt)
                attempt += 1

    async def _execute(
        self,
        source_id: uuid.UUID,
        target_id: uuid.UUID,
        amount_cents: int,
        reference: str | None,
        latitude: float | None,
        longitude: float | None,
    ) -> Transaction:
        lock_ids = (source_id, target_id) if self.credit_target else (source_id,)

        async with self.locks.hold(*lock_ids):
            async with self.session_factory() as db:
                try:
                    # Commit happens on leaving db.begin(); failures there
                    # are translated by storage_guard like any other.
                    with storage_guard("transfer commit"):
                        async with db.begin():
                            return await self._apply(
                                db,
                                source_id,
                                target_id,
                                amount_cents,
                                reference,
                                latitude,
                                longitude,
                            )
                except PersistenceError as exc:
                    logger.error(
                        "Transfer %s -> %s rolled back, nothing committed: %s",
                        source_id, target_id, exc.detail,
                    )
                    raise

    async def _apply(
        self,
        db: AsyncSession,
        source_id: uuid.UUID,
        target_id: uuid.UUID,
        amount_cents: int,
        reference: str | None,
        latitude: float | None,
        longitude: float | None,
    ) -> Transaction:
        source = await account_store.get_by_id(db, source_id)
        target = await account_store.get_by_id(db, target_id)
        if source is None:
            raise AccountNotFoundError(source_id)
        if target is None:
            raise AccountNotFoundError(target_id)

        if not is_amount_available(amount_cents, source.current_balance_cents):
            raise InsufficientFundsError(
                account_id=source.id,
                requested_cents=amount_cents,
                available_cents=source.current_balance_cents,
            )

        await account_store.update_balance(db, source, amount_cents, Action.WITHDRAW)
        if self.credit_target:
            await account_store.update_balance(db, target, amount_cents, Action.DEPOSIT)

        # Synchronous transfer: initiated and completed in the same instant
        now = datetime.now(timezone.utc)
        record = Transaction(
            amount_cents=amount_cents,
            source_account_id=source.id,
            target_account_id=target.id,
            target_owner_name=target.owner_name,
            initiation_date=now,
            completion_date=now,
            reference=reference,
            latitude=latitude,
            longitude=longitude,
        )
        return await transaction_log.append(db, record)
