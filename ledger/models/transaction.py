"""
Transaction model — the immutable record of one completed transfer.

A row is written exactly once, in the same database transaction as the
balance changes it describes, and never updated or deleted afterwards.

Key fields:
  - amount_cents: Always positive
  - source_account_id / target_account_id: The two accounts involved
  - target_owner_name: Snapshot of the target's owner at transfer time.
    It is copied, not joined, so later renames don't rewrite history.
  - initiation_date / completion_date: Transfers are synchronous, so both
    are stamped with the same instant
  - reference: Caller-supplied memo
  - latitude / longitude: Optional location of the initiating request

History queries always ask for "transactions from account X, oldest
first", so the table carries a composite index on
(source_account_id, initiation_date).
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, String, Float, DateTime, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from ledger.database import Base

# Largest amount a single transfer or deposit may move (£10 trillion)
MAX_AMOUNT_CENTS = 10**15


class Transaction(Base):
    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_transactions_positive_amount"),
        Index(
            "ix_transactions_source_initiation",
            "source_account_id",
            "initiation_date",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    amount_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    source_account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
    )

    target_account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    target_owner_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    initiation_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    completion_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    reference: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    latitude: Mapped[float | None] = mapped_column(
        Float,
        nullable=True,
    )
    longitude: Mapped[float | None] = mapped_column(
        Float,
        nullable=True,
    )
