"""
Transactions router — the legacy transfer endpoint.

Endpoints:
  POST /transactions — Make a transfer; responds with true or false

Existing clients send the original camelCase body with the amount in
major units and expect a bare boolean: true when the transfer completed,
false for any rejection. The rejection reason is still logged by the
transfer engine; clients that need it should use POST /transfers.

Storage failures are not rejections and still surface as 503 / 409.
"""

from fastapi import APIRouter, Depends

from ledger.dependencies import get_transfer_engine
from ledger.schemas.transaction import LegacyTransactionInput
from ledger.services.transfer_engine import TransferEngine

router = APIRouter()


@router.post(
    "",
    response_model=bool,
    summary="Make a transfer (legacy boolean response)",
)
async def make_transfer(
    transaction_input: LegacyTransactionInput,
    engine: TransferEngine = Depends(get_transfer_engine),
) -> bool:
    result = await engine.transfer(
        source=transaction_input.source_account.to_identity(),
        target=transaction_input.target_account.to_identity(),
        amount_cents=transaction_input.amount_cents,
        reference=transaction_input.reference,
        latitude=transaction_input.latitude,
        longitude=transaction_input.longitude,
    )
    return result.ok
