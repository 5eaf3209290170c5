"""
Custom exception classes and FastAPI exception handlers.

The service layer raises domain-specific errors (like InsufficientFundsError)
without importing HTTP concepts. The handler layer translates them into
HTTP responses with a consistent body: {"detail": ..., "error_type": ...}.

Exception hierarchy:
    LedgerError (base)
    ├── TransferRejectedError       — terminal validation failure, no mutation
    │   ├── AccountNotFoundError    — identity or id doesn't resolve
    │   ├── InvalidAmountError      — amount <= 0
    │   ├── SameAccountError        — source and target are one account
    │   └── InsufficientFundsError  — debit would not leave a positive balance
    ├── AmbiguousAccountError       — account number matches several sort codes
    ├── ConcurrencyConflictError    — lost an optimistic check / storage lock
    └── PersistenceError            — storage fault during debit or append

Rejections are safe to retry with corrected input. ConcurrencyConflictError
is retried inside the transfer engine before it ever reaches a caller.
"""

import enum
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class RejectionReason(str, enum.Enum):
    """Why a transfer was rejected. The value doubles as the API error_type."""
    ACCOUNT_NOT_FOUND = "account_not_found"
    INVALID_AMOUNT = "invalid_amount"
    SAME_ACCOUNT = "same_account"
    INSUFFICIENT_FUNDS = "insufficient_funds"


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class LedgerError(Exception):
    """Base exception for all ledger domain errors."""

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Transfer rejections
# ---------------------------------------------------------------------------

class TransferRejectedError(LedgerError):
    """Base for validation failures. Nothing has been written when raised."""

    reason: RejectionReason


class AccountNotFoundError(TransferRejectedError):
    """Raised when an account id or (sort code, account number) doesn't exist."""

    reason = RejectionReason.ACCOUNT_NOT_FOUND

    def __init__(self, account_ref: uuid.UUID | str):
        self.account_ref = account_ref
        super().__init__(f"Account {account_ref} not found")

    @classmethod
    def for_identity(cls, sort_code: str, account_number: str) -> "AccountNotFoundError":
        return cls(f"{sort_code} {account_number}")


class InvalidAmountError(TransferRejectedError):
    """Raised when an amount is zero or negative."""

    reason = RejectionReason.INVALID_AMOUNT

    def __init__(self, amount_cents: int):
        self.amount_cents = amount_cents
        super().__init__(f"Amount must be positive, got {amount_cents} cents")


class SameAccountError(TransferRejectedError):
    """Raised when source and target resolve to the same account."""

    reason = RejectionReason.SAME_ACCOUNT

    def __init__(self, account_id: uuid.UUID):
        self.account_id = account_id
        super().__init__("Cannot transfer to the same account")


class InsufficientFundsError(TransferRejectedError):
    """
    Raised when a transfer would not leave the source with a positive balance.

    Attributes:
        account_id: The account that lacks sufficient funds.
        requested_cents: The amount the caller tried to move.
        available_cents: The current balance of the account.
    """

    reason = RejectionReason.INSUFFICIENT_FUNDS

    def __init__(
        self,
        account_id: uuid.UUID,
        requested_cents: int,
        available_cents: int,
    ):
        self.account_id = account_id
        self.requested_cents = requested_cents
        self.available_cents = available_cents
        super().__init__(
            f"Insufficient funds: requested {requested_cents} cents, "
            f"available {available_cents} cents"
        )


# ---------------------------------------------------------------------------
# Lookup and storage errors
# ---------------------------------------------------------------------------

class AmbiguousAccountError(LedgerError):
    """Raised when an account number alone matches accounts under several sort codes."""

    def __init__(self, account_number: str, matches: int):
        self.account_number = account_number
        self.matches = matches
        super().__init__(
            f"Account number {account_number} matches {matches} accounts; "
            f"a sort code is required"
        )


class ConcurrencyConflictError(LedgerError):
    """Raised when a balance changed underneath us or the store was locked."""

    def __init__(self, detail: str = "Concurrent update conflict"):
        super().__init__(detail)


class PersistenceError(LedgerError):
    """Raised when the storage layer fails during a debit, credit or append."""

    def __init__(self, operation: str, cause: str | None = None):
        self.operation = operation
        message = f"Storage failure during {operation}"
        if cause:
            message = f"{message}: {cause}"
        super().__init__(message)


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    This is called once during app startup in main.py.
    """

    @app.exception_handler(InsufficientFundsError)
    async def insufficient_funds_handler(
        request: Request, exc: InsufficientFundsError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,  # Unprocessable Entity — the request was valid but business rules reject it
            content={
                "detail": exc.detail,
                "error_type": exc.reason.value,
                "requested_cents": exc.requested_cents,
                "available_cents": exc.available_cents,
            },
        )

    @app.exception_handler(AccountNotFoundError)
    async def account_not_found_handler(
        request: Request, exc: AccountNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"detail": exc.detail, "error_type": exc.reason.value},
        )

    @app.exception_handler(TransferRejectedError)
    async def transfer_rejected_handler(
        request: Request, exc: TransferRejectedError
    ) -> JSONResponse:
        # InvalidAmountError, SameAccountError
        return JSONResponse(
            status_code=422,
            content={"detail": exc.detail, "error_type": exc.reason.value},
        )

    @app.exception_handler(AmbiguousAccountError)
    async def ambiguous_account_handler(
        request: Request, exc: AmbiguousAccountError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": exc.detail, "error_type": "ambiguous_account"},
        )

    @app.exception_handler(ConcurrencyConflictError)
    async def concurrency_conflict_handler(
        request: Request, exc: ConcurrencyConflictError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": exc.detail, "error_type": "concurrency_conflict"},
        )

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(
        request: Request, exc: PersistenceError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=503,
            content={"detail": exc.detail, "error_type": "persistence_error"},
        )
