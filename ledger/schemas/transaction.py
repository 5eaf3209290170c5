"""
Pydantic schemas for Transaction and Transfer endpoints.

Two request shapes exist for the same operation:

  - TransferRequest (POST /transfers): snake_case, amount in integer cents,
    rejections reported with their reason code.
  - LegacyTransactionInput (POST /transactions): the original camelCase
    body with the amount in major units (e.g. 10.50); the response is a
    bare true/false.

Amounts are deliberately not constrained to be positive here: a
non-positive amount is a transfer rejection (invalid_amount) with its own
reason code, not a schema error. Amounts above MAX_AMOUNT_CENTS are schema
errors (422) and never reach the database.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ledger.models.transaction import MAX_AMOUNT_CENTS
from ledger.services.account_store import AccountIdentity
from ledger.services.transfer_engine import TransferStatus


class AccountIdentityInput(BaseModel):
    """
    (sort code, account number) as sent by clients.

    Accepts both snake_case and camelCase field names (sortCode /
    accountNumber). Formats aren't validated here: an identity that
    doesn't match any account is a rejection, not a malformed request.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    sort_code: str = Field(min_length=1, max_length=8)
    account_number: str = Field(min_length=1, max_length=8)

    def to_identity(self) -> AccountIdentity:
        return AccountIdentity(sort_code=self.sort_code, account_number=self.account_number)


class TransactionResponse(BaseModel):
    """Public representation of a transaction."""
    id: uuid.UUID
    amount_cents: int
    source_account_id: uuid.UUID
    target_account_id: uuid.UUID
    target_owner_name: str
    initiation_date: datetime
    completion_date: datetime
    reference: str | None
    latitude: float | None
    longitude: float | None

    model_config = {"from_attributes": True}


class TransferRequest(BaseModel):
    """Request body for POST /transfers."""
    source_account: AccountIdentityInput
    target_account: AccountIdentityInput
    amount_cents: int = Field(le=MAX_AMOUNT_CENTS, description="Amount in cents")
    reference: str | None = Field(None, max_length=255)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)


class TransferResponse(BaseModel):
    """Response body for a completed transfer."""
    status: TransferStatus
    transaction_id: uuid.UUID
    transaction: TransactionResponse


class LegacyTransactionInput(BaseModel):
    """Request body for POST /transactions (camelCase, amount in major units)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    source_account: AccountIdentityInput
    target_account: AccountIdentityInput
    amount: Decimal = Field(
        decimal_places=2,
        le=Decimal(MAX_AMOUNT_CENTS) / 100,
        description="Amount in major units, e.g. 10.50",
    )
    reference: str | None = Field(None, max_length=255)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)

    @property
    def amount_cents(self) -> int:
        return int(self.amount * 100)
