"""
FastAPI dependencies.

get_transfer_engine hands every request the same TransferEngine, so all
requests share one AccountLockRegistry. Tests replace it through
app.dependency_overrides with an engine bound to the test database.
"""

from ledger.services.transfer_engine import TransferEngine

_transfer_engine: TransferEngine | None = None


def get_transfer_engine() -> TransferEngine:
    """Return the process-wide transfer engine, creating it on first use."""
    global _transfer_engine
    if _transfer_engine is None:
        _transfer_engine = TransferEngine()
    return _transfer_engine
