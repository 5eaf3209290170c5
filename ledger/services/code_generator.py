"""
Sort code and account number generation.

UK-style formats: a sort code is three pairs of digits ("40-47-84") and an
account number is eight digits. Uniqueness of the pair is checked by the
caller (account_service.create_account) and enforced by the database.
"""

import random
import string

SORT_CODE_GROUPS = 3
ACCOUNT_NUMBER_LENGTH = 8


def generate_sort_code() -> str:
    """Generate a random sort code, e.g. "53-68-92"."""
    return "-".join(
        "".join(random.choices(string.digits, k=2)) for _ in range(SORT_CODE_GROUPS)
    )


def generate_account_number() -> str:
    """Generate a random 8-digit account number."""
    return "".join(random.choices(string.digits, k=ACCOUNT_NUMBER_LENGTH))
