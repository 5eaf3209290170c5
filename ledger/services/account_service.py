"""
Account service — account creation, lookup and funding.

This module handles:
  - Account creation (with unique sort code / account number generation)
  - Account lookup by full identity, including the account's outgoing
    transaction history
  - Account lookup by account number alone
  - Deposits, the only way money enters the ledger

Balance changes themselves go through account_store; this module never
assigns to current_balance_cents directly.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from ledger.exceptions import AccountNotFoundError, InvalidAmountError
from ledger.models.account import Account
from ledger.models.transaction import Transaction
from ledger.services import account_store, transaction_log
from ledger.services.code_generator import generate_account_number, generate_sort_code

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 10


@dataclass
class AccountDetail:
    """An account together with its outgoing transactions, oldest first."""
    account: Account
    transactions: list[Transaction]


async def create_account(
    db: AsyncSession,
    bank_name: str,
    owner_name: str,
) -> Account:
    """
    Open a new account with a zero balance.

    Generates a (sort code, account number) pair that isn't in use yet,
    retrying on collision.

    Returns:
        The newly created Account instance.
    """
    for _ in range(MAX_CODE_ATTEMPTS):
        sort_code = generate_sort_code()
        account_number = generate_account_number()
        existing = await account_store.find_by_identity(db, sort_code, account_number)
        if existing is None:
            break
    else:
        # Effectively impossible with 10^14 combinations
        raise RuntimeError("Failed to generate a unique sort code and account number")

    account = Account(
        bank_name=bank_name,
        owner_name=owner_name,
        sort_code=sort_code,
        account_number=account_number,
        current_balance_cents=0,
    )
    db.add(account)
    await db.flush()

    logger.info("Opened account %s (%s %s)", account.id, sort_code, account_number)
    return account


async def get_account(
    db: AsyncSession,
    sort_code: str,
    account_number: str,
) -> AccountDetail:
    """
    Get an account by sort code and account number, with its transactions.

    Raises:
        AccountNotFoundError: If no account has this identity.
    """
    account = await account_store.find_by_identity(db, sort_code, account_number)
    if account is None:
        raise AccountNotFoundError.for_identity(sort_code, account_number)

    transactions = await transaction_log.list_by_source(db, account.id).all()
    return AccountDetail(account=account, transactions=transactions)


async def get_account_by_number(db: AsyncSession, account_number: str) -> Account:
    """
    Get an account by account number alone.

    Raises:
        AccountNotFoundError: If no account has this number.
        AmbiguousAccountError: If several sort codes share this number.
    """
    account = await account_store.find_by_account_number(db, account_number)
    if account is None:
        raise AccountNotFoundError(account_number)
    return account


async def get_account_by_id(db: AsyncSession, account_id: uuid.UUID) -> Account:
    """
    Raises:
        AccountNotFoundError: If the account doesn't exist.
    """
    account = await account_store.get_by_id(db, account_id)
    if account is None:
        raise AccountNotFoundError(account_id)
    return account


async def deposit(
    db: AsyncSession,
    account_id: uuid.UUID,
    amount_cents: int,
) -> Account:
    """
    Add funds to an account.

    A deposit can't make a balance invalid, so it's applied as a plain
    atomic increment without a version check; any transfer that read the
    old balance will notice the version change and retry.

    Raises:
        InvalidAmountError: If amount_cents is not positive.
        AccountNotFoundError: If the account doesn't exist.
    """
    if amount_cents <= 0:
        raise InvalidAmountError(amount_cents)

    account = await account_store.apply_delta(db, account_id, amount_cents)
    logger.info("Deposited %d cents to account %s", amount_cents, account_id)
    return account
