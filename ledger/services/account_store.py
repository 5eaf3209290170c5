"""
Account store — lookups and the only code path that changes a balance.

Lookups:
  - find_by_identity: exact (sort code, account number) match
  - find_by_account_number: number only; several matches is an error,
    never an arbitrary pick
  - get_by_id: always re-reads the row, bypassing stale identity-map state

Balance changes:
  apply_delta() issues a single statement:

      UPDATE accounts
         SET current_balance_cents = current_balance_cents + :delta,
             version = version + 1
       WHERE id = :id [AND version = :expected_version]
   RETURNING *

  The addition happens inside the database, so two concurrent deltas can
  never overwrite each other (no read-modify-write in Python). Passing
  expected_version turns the statement into a compare-and-swap: if another
  writer got there first, no row matches and ConcurrencyConflictError is
  raised so the caller can re-read and retry.

  update_balance() is the direction-aware wrapper used by the transfer
  engine, and by anything that needs to compensate a transfer.
"""

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ledger.database import storage_guard
from ledger.exceptions import (
    AccountNotFoundError,
    AmbiguousAccountError,
    ConcurrencyConflictError,
    InvalidAmountError,
)
from ledger.models.account import Account


class Action(str, enum.Enum):
    """Direction of a balance change."""
    WITHDRAW = "withdraw"
    DEPOSIT = "deposit"


@dataclass(frozen=True)
class AccountIdentity:
    """The external address of an account."""
    sort_code: str
    account_number: str

    def __str__(self) -> str:
        return f"{self.sort_code} {self.account_number}"


async def find_by_identity(
    db: AsyncSession,
    sort_code: str,
    account_number: str,
) -> Account | None:
    """Return the account with this exact sort code and number, or None."""
    with storage_guard("account lookup"):
        result = await db.execute(
            select(Account)
            .where(Account.sort_code == sort_code)
            .where(Account.account_number == account_number)
        )
        return result.scalar_one_or_none()


async def find_by_account_number(
    db: AsyncSession,
    account_number: str,
) -> Account | None:
    """
    Look up an account by number alone.

    Account numbers are only unique within a sort code. Rather than
    silently returning whichever row the database happens to yield first,
    duplicates are reported so the caller can ask for the sort code.

    Raises:
        AmbiguousAccountError: If more than one account has this number.
    """
    with storage_guard("account lookup"):
        result = await db.execute(
            select(Account)
            .where(Account.account_number == account_number)
            .order_by(Account.sort_code)
        )
        matches = list(result.scalars().all())

    if len(matches) > 1:
        raise AmbiguousAccountError(account_number, len(matches))
    return matches[0] if matches else None


async def get_by_id(db: AsyncSession, account_id: uuid.UUID) -> Account | None:
    """Fetch an account by id, refreshing any copy already in the session."""
    with storage_guard("account lookup"):
        return await db.get(Account, account_id, populate_existing=True)


async def apply_delta(
    db: AsyncSession,
    account_id: uuid.UUID,
    delta_cents: int,
    expected_version: int | None = None,
) -> Account:
    """
    Atomically add delta_cents to an account's balance.

    Args:
        db: Database session. The change is flushed, not committed.
        account_id: The account to change.
        delta_cents: Negative for a debit, positive for a credit.
        expected_version: If given, only apply the change when the row is
                          still at this version.

    Returns:
        The account with its new balance and version.

    Raises:
        AccountNotFoundError: If the account doesn't exist.
        ConcurrencyConflictError: If expected_version no longer matches,
                                  or the store is locked by another writer.
        PersistenceError: On any other storage failure (including the
                          non-negative balance CHECK constraint).
    """
    stmt = (
        update(Account)
        .where(Account.id == account_id)
        .values(
            current_balance_cents=Account.current_balance_cents + delta_cents,
            version=Account.version + 1,
            updated_at=datetime.now(timezone.utc),
        )
        .returning(Account)
    )
    if expected_version is not None:
        stmt = stmt.where(Account.version == expected_version)

    with storage_guard("balance update"):
        result = await db.scalars(stmt, execution_options={"populate_existing": True})
        account = result.one_or_none()

        if account is None:
            exists = await db.scalar(select(Account.id).where(Account.id == account_id))

    if account is not None:
        return account
    if exists is None:
        raise AccountNotFoundError(account_id)
    raise ConcurrencyConflictError(
        f"Account {account_id} changed after version {expected_version} was read"
    )


async def update_balance(
    db: AsyncSession,
    account: Account,
    amount_cents: int,
    action: Action,
) -> Account:
    """
    Withdraw from or deposit to an account.

    The change is guarded by the version of the `account` snapshot passed
    in: if the balance moved since that snapshot was read, nothing is
    written and ConcurrencyConflictError is raised.

    Raises:
        InvalidAmountError: If amount_cents is not positive.
        AccountNotFoundError / ConcurrencyConflictError / PersistenceError:
            See apply_delta().
    """
    if amount_cents <= 0:
        raise InvalidAmountError(amount_cents)

    delta = -amount_cents if action == Action.WITHDRAW else amount_cents
    return await apply_delta(db, account.id, delta, expected_version=account.version)
