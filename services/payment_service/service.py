import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.order_service.models import Order
from .models import MpesaTransaction
from .repository import MpesaTransactionRepository
from .schemas import MpesaCallback, StkPushResponse

logger = structlog.get_logger(__name__)


class PaymentService:
    @staticmethod
    async def record_stk_push(db: AsyncSession, order: Order, stk: StkPushResponse) -> MpesaTransaction:
        """Links an accepted STK push to its order. Caller owns the transaction."""
        tx = MpesaTransaction(
            order_id=order.id,
            amount=order.total,
            phone_number=order.phone_number or "Unknown",
            status="pending",
            products=[
                {"product": item.product_id, "quantity": item.quantity, "price": str(item.price)}
                for item in order.items
            ],
            checkout_request_id=stk.checkout_request_id,
            merchant_request_id=stk.merchant_request_id,
        )
        tx = await MpesaTransactionRepository.create_transaction(db, tx)

        order.mpesa_checkout_request_id = stk.checkout_request_id
        order.mpesa_receipt_number = order.mpesa_receipt_number or ""
        db.add(order)
        await db.flush()
        return tx

    @staticmethod
    async def handle_callback(db: AsyncSession, payload: MpesaCallback) -> MpesaTransaction | None:
        callback = payload.body.stk_callback
        log = logger.bind(checkout_request_id=callback.checkout_request_id)

        async with db.begin():
            tx = await MpesaTransactionRepository.get_by_checkout_request_id(
                db, callback.checkout_request_id
            )
            if tx is None:
                log.warning("mpesa_callback_unknown_checkout")
                return None

            if tx.status != "pending":
                # Daraja retries callbacks; the first one wins
                log.info("mpesa_callback_duplicate", status=tx.status)
                return tx

            tx.result_code = callback.result_code
            tx.result_desc = callback.result_desc
            order = await db.get(Order, tx.order_id)

            if callback.result_code == 0:
                receipt = callback.metadata_value("MpesaReceiptNumber")
                tx.status = "completed"
                tx.mpesa_receipt_number = str(receipt) if receipt is not None else None
                if order is not None:
                    order.payment_status = "paid"
                    order.mpesa_receipt_number = tx.mpesa_receipt_number
            else:
                tx.status = "failed"
                if order is not None:
                    order.payment_status = "failed"

            await db.flush()

        log.info("mpesa_callback_processed", status=tx.status, order_id=tx.order_id)
        return tx

    @staticmethod
    async def list_order_transactions(db: AsyncSession, order_id: int):
        async with db.begin():
            return await MpesaTransactionRepository.list_for_order(db, order_id)
