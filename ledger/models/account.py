"""
Account model — a bank account addressed by (sort code, account number).

Each account has:
  - A sort code ("NN-NN-NN") and an 8-digit account number, generated at
    creation time. The pair is unique; the account number alone is not.
  - Descriptive bank and owner names
  - A balance in integer cents
  - A version counter for optimistic concurrency control

Balance management:
  `current_balance_cents` is only ever changed by a single atomic UPDATE
  issued from account_store.apply_delta(), which also bumps `version`.
  The transfer engine reads (balance, version) under a lock and then
  updates "where version = <what I read>", so a balance that changed in
  between is detected instead of silently overwritten.

  CHECK constraints keep the balance between zero and MAX_BALANCE_CENTS.
  The transfer engine's own rule is stricter (a debit must leave the
  balance strictly positive); the constraints are the final safety net.
  The upper bound keeps every balance well inside a signed 64-bit integer:
  SQLite would otherwise turn an overflowing sum into a REAL.

Why integer cents?
  Floating-point numbers introduce rounding errors in financial
  calculations (0.1 + 0.2 != 0.3 in IEEE 754). Integer cents are exact:
  £10.99 is stored as 1099.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, String, Integer, DateTime, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger.database import Base

# £1 quadrillion, in cents
MAX_BALANCE_CENTS = 10**17


class Account(Base):
    __tablename__ = "accounts"

    __table_args__ = (
        CheckConstraint(
            "current_balance_cents >= 0",
            name="ck_accounts_non_negative_balance",
        ),
        CheckConstraint(
            f"current_balance_cents <= {MAX_BALANCE_CENTS}",
            name="ck_accounts_max_balance",
        ),
        UniqueConstraint(
            "sort_code",
            "account_number",
            name="uq_accounts_sort_code_account_number",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    sort_code: Mapped[str] = mapped_column(
        String(8),
        nullable=False,
    )

    # Non-unique on its own: the same number may exist under another sort code
    account_number: Mapped[str] = mapped_column(
        String(8),
        nullable=False,
        index=True,
    )

    bank_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    owner_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    current_balance_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    # Incremented with every balance change
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Account {self.sort_code} {self.account_number} id={self.id}>"
