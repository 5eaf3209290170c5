"""
Accounts router — account opening, lookup, funding and history.

Endpoints:
  POST /accounts                                — Open a new account
  GET  /accounts?sort_code=..&account_number=.. — Account + its transactions
  GET  /accounts/by-number/{account_number}     — Lookup by number alone
  POST /accounts/{account_id}/deposits          — Fund an account
  GET  /accounts/{account_id}/transactions      — Outgoing history, oldest first
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ledger.database import get_db
from ledger.schemas.account import (
    AccountCreateRequest,
    AccountDetailResponse,
    AccountResponse,
    DepositRequest,
)
from ledger.schemas.transaction import TransactionResponse
from ledger.services import account_service, transaction_log

router = APIRouter()


@router.post(
    "",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open a new bank account",
)
async def create_account(
    request: AccountCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Open an account with a zero balance and a freshly generated sort code
    and account number.
    """
    return await account_service.create_account(
        db=db,
        bank_name=request.bank_name,
        owner_name=request.owner_name,
    )


@router.get(
    "",
    response_model=AccountDetailResponse,
    summary="Look up an account by sort code and account number",
)
async def get_account(
    sort_code: str = Query(..., description="e.g. 53-68-92"),
    account_number: str = Query(..., description="8 digits"),
    db: AsyncSession = Depends(get_db),
):
    """
    Return the account together with every transfer it has sent, oldest
    first. Returns 404 if no account has this identity.
    """
    detail = await account_service.get_account(db, sort_code, account_number)
    return AccountDetailResponse.model_validate(detail)


@router.get(
    "/by-number/{account_number}",
    response_model=AccountResponse,
    summary="Look up an account by account number alone",
)
async def get_account_by_number(
    account_number: str,
    db: AsyncSession = Depends(get_db),
):
    """
    Returns 409 if the number exists under more than one sort code; use
    the full sort code + account number lookup instead.
    """
    return await account_service.get_account_by_number(db, account_number)


@router.post(
    "/{account_id}/deposits",
    response_model=AccountResponse,
    summary="Deposit funds into an account",
)
async def deposit(
    account_id: uuid.UUID,
    request: DepositRequest,
    db: AsyncSession = Depends(get_db),
):
    """All amounts are in **integer cents** (e.g. £10.50 = 1050)."""
    return await account_service.deposit(db, account_id, request.amount_cents)


@router.get(
    "/{account_id}/transactions",
    response_model=list[TransactionResponse],
    summary="List transfers sent from an account",
)
async def list_transactions(
    account_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Outgoing transactions in initiation order, oldest first, paginated."""
    await account_service.get_account_by_id(db, account_id)
    return await transaction_log.list_by_source(db, account_id).all(limit=limit, offset=offset)
