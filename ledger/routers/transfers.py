"""
Transfers router — structured money transfers between accounts.

Endpoints:
  POST /transfers — Transfer money from one account to another

A completed transfer debits the source, credits the target and records
one transaction, all in a single database transaction.

Rejections are returned as errors carrying a reason code in `error_type`:
  404 account_not_found, 422 invalid_amount / same_account /
  insufficient_funds. Storage failures return 503 and exhausted
  concurrency retries 409.
"""

from fastapi import APIRouter, Depends, status

from ledger.dependencies import get_transfer_engine
from ledger.schemas.transaction import TransferRequest, TransferResponse, TransactionResponse
from ledger.services.transfer_engine import TransferEngine

router = APIRouter()


@router.post(
    "",
    response_model=TransferResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Transfer money between accounts",
)
async def create_transfer(
    request: TransferRequest,
    engine: TransferEngine = Depends(get_transfer_engine),
):
    """
    Transfer money from one account to another.

    - **source_account / target_account**: sort_code + account_number
    - **amount_cents**: Positive integer in cents (e.g. £50.00 = 5000)
    - The source must keep a balance above zero after the transfer
    - Cannot transfer to the same account
    """
    result = await engine.transfer(
        source=request.source_account.to_identity(),
        target=request.target_account.to_identity(),
        amount_cents=request.amount_cents,
        reference=request.reference,
        latitude=request.latitude,
        longitude=request.longitude,
    )
    result.raise_for_status()

    return TransferResponse(
        status=result.status,
        transaction_id=result.transaction_id,
        transaction=TransactionResponse.model_validate(result.transaction),
    )
