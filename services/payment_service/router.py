"""
M-Pesa result callbacks.

Daraja cannot send our JWTs or API key, so the callback route is public; it
only ever moves a pending transaction to a final state, matched by the
CheckoutRequestID we issued.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security.dependencies import verify_internal_api_key

from .schemas import MpesaCallback, MpesaTransactionResponse
from .service import PaymentService

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "payment", "status": "running"}


@router.post("/mpesa/callback")
async def mpesa_callback(payload: MpesaCallback, db: AsyncSession = Depends(get_db)):
    await PaymentService.handle_callback(db, payload)
    # Daraja only needs an acknowledgement
    return {"ResultCode": 0, "ResultDesc": "Accepted"}


@router.get(
    "/orders/{order_id}",
    response_model=list[MpesaTransactionResponse],
    dependencies=[Depends(verify_internal_api_key)],
)
async def list_order_transactions(order_id: int, db: AsyncSession = Depends(get_db)):
    return await PaymentService.list_order_transactions(db, order_id)
