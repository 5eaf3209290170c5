"""
Pydantic schemas for Account endpoints.

All monetary amounts are expressed in integer cents.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from ledger.models.transaction import MAX_AMOUNT_CENTS
from ledger.schemas.transaction import TransactionResponse


class AccountCreateRequest(BaseModel):
    """Request body for POST /accounts."""
    bank_name: str = Field(min_length=1, max_length=100)
    owner_name: str = Field(min_length=1, max_length=100)


class AccountResponse(BaseModel):
    """Public representation of a bank account."""
    id: uuid.UUID
    sort_code: str
    account_number: str
    bank_name: str
    owner_name: str
    current_balance_cents: int
    created_at: datetime

    model_config = {"from_attributes": True}


class AccountDetailResponse(BaseModel):
    """An account plus its outgoing transactions, oldest first."""
    account: AccountResponse
    transactions: list[TransactionResponse]

    model_config = {"from_attributes": True}


class DepositRequest(BaseModel):
    """Request body for POST /accounts/{id}/deposits."""
    amount_cents: int = Field(
        gt=0,
        le=MAX_AMOUNT_CENTS,
        description="Amount in cents (must be positive)",
    )
