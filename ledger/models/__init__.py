"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all() runs
  2. Other modules can import from ledger.models directly
"""

from ledger.models.account import Account  # noqa: F401
from ledger.models.transaction import Transaction  # noqa: F401
