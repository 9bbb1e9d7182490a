import random
import time
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from services.auth_service.repository import UserRepository
from services.payment_service.gateway import MpesaGateway
from services.payment_service.service import PaymentService
from services.product_service.repository import ProductRepository
from shared.config.orders import (
    NON_CANCELLABLE_STATUSES,
    ORDER_NUMBER_ATTEMPTS,
    SHIPPING_RATE,
)
from shared.errors import (
    Forbidden,
    GatewayFailure,
    InsufficientStock,
    InvalidInput,
    InvalidState,
    NotFound,
    ServerError,
)
from shared.observability import (
    ecomm_order_cancellations_total,
    ecomm_order_value,
    ecomm_orders_created_total,
    ecomm_stk_push_total,
)
from .models import Order, OrderItem
from .repository import OrderRepository
from .schemas import OrderCreate

logger = structlog.get_logger(__name__)

CENTS = Decimal("0.01")


def compute_totals(subtotal: Decimal) -> tuple[Decimal, Decimal]:
    """Returns (shipping, total); shipping is rounded half-up to cents."""
    shipping = (subtotal * SHIPPING_RATE).quantize(CENTS, rounding=ROUND_HALF_UP)
    return shipping, subtotal + shipping


def generate_order_number(now_ms: int | None = None, suffix: int | None = None) -> str:
    """'#-<last 8 digits of epoch ms>-<000..999>'"""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    if suffix is None:
        suffix = random.randrange(1000)
    return f"#-{str(now_ms)[-8:]}-{suffix:03d}"


class OrderService:
    @staticmethod
    async def _unique_order_number(db: AsyncSession) -> str:
        for _ in range(ORDER_NUMBER_ATTEMPTS):
            candidate = generate_order_number()
            if not await OrderRepository.order_number_exists(db, candidate):
                return candidate
        raise ServerError("Could not allocate an order number")

    @staticmethod
    async def create_order(db: AsyncSession, buyer_id: int, data: OrderCreate, gateway: MpesaGateway) -> dict:
        log = logger.bind(buyer_id=buyer_id)

        # All-or-nothing: a failing item rolls back the stock taken for earlier ones
        async with db.begin():
            phone_number = data.phone_number
            if data.payment_method == "mpesa" and not phone_number:
                phone_number = await UserRepository.get_phone_number(db, buyer_id)
                if not phone_number:
                    raise InvalidInput("Phone number is required for M-Pesa payments")

            subtotal = Decimal("0")
            order_items = []
            seller_id = None

            for item in data.items:
                product = await ProductRepository.get_product_by_id(db, item.product, for_update=True)
                if not product:
                    raise NotFound("Product not found")
                if product.stock < item.quantity:
                    raise InsufficientStock(f"Insufficient stock for {product.name}")
                if not await ProductRepository.decrement_stock(db, product.id, item.quantity):
                    raise InsufficientStock(f"Insufficient stock for {product.name}")

                subtotal += product.price * item.quantity
                order_items.append(
                    OrderItem(
                        product_id=product.id,
                        name=product.name,
                        price=product.price,
                        quantity=item.quantity,
                        image=product.image,
                    )
                )
                # Seller of record is the first product that has one
                if seller_id is None and product.seller_id is not None:
                    seller_id = product.seller_id

            shipping, total = compute_totals(subtotal)

            order = Order(
                order_number=await OrderService._unique_order_number(db),
                buyer_id=buyer_id,
                seller_id=seller_id,
                items=order_items,
                payment_method=data.payment_method,
                phone_number=phone_number,
                shipping_info=data.shipping_info.model_dump(exclude_none=True) if data.shipping_info else None,
                subtotal=subtotal,
                shipping=shipping,
                total=total,
                payment_status="pending",
                status="pending",
            )
            order = await OrderRepository.create_order(db, order)

        ecomm_orders_created_total.labels(payment_method=data.payment_method).inc()
        ecomm_order_value.observe(float(total))
        log.info("order_created", order_id=order.id, order_number=order.order_number, total=str(total))

        result = {"success": True, "order": order}
        if data.payment_method == "mpesa":
            result.update(await OrderService._initiate_mpesa(db, order, gateway))
        return result

    @staticmethod
    async def _initiate_mpesa(db: AsyncSession, order: Order, gateway: MpesaGateway) -> dict:
        """The order stands even if the STK push fails; payment is retried out-of-band."""
        log = logger.bind(order_id=order.id)
        try:
            stk = await gateway.initiate_payment(
                amount=order.total,
                products=[
                    {"product": it.product_id, "quantity": it.quantity, "price": str(it.price)}
                    for it in order.items
                ],
                phone_number=order.phone_number,
                account_reference=str(order.id),
                transaction_desc=f"payment for order {order.order_number}",
            )
        except GatewayFailure as e:
            ecomm_stk_push_total.labels(status="failed").inc()
            log.warning("mpesa_stk_push_failed", error=e.message)
            return {"message": "Failed to initiate Mpesa payment"}

        try:
            async with db.begin():
                await PaymentService.record_stk_push(db, order, stk)
        except SQLAlchemyError as e:
            # The prompt is already on the buyer's phone; the callback cannot be matched
            ecomm_stk_push_total.labels(status="unrecorded").inc()
            log.error(
                "mpesa_transaction_not_recorded",
                checkout_request_id=stk.checkout_request_id,
                error=str(e),
                exc_type=type(e).__name__,
            )
            # Rollback expired the order
            async with db.begin():
                await db.refresh(order)
            return {"mpesa": stk, "message": "Mpesa payment initiated but could not be recorded"}

        ecomm_stk_push_total.labels(status="accepted").inc()
        log.info("mpesa_transaction_recorded", checkout_request_id=stk.checkout_request_id)
        return {"mpesa": stk}

    @staticmethod
    async def get_order(db: AsyncSession, order_id: int, user_id: int) -> Order:
        async with db.begin():
            order = await OrderRepository.get_order(db, order_id)
        if not order:
            raise NotFound("Order not found")
        if user_id not in (order.buyer_id, order.seller_id):
            raise Forbidden("Not authorized to view this order")
        return order

    @staticmethod
    async def list_buyer_orders(db: AsyncSession, buyer_id: int, user_id: int):
        if buyer_id != user_id:
            raise Forbidden("Not authorized to view these orders")
        async with db.begin():
            return await OrderRepository.list_by_buyer(db, buyer_id)

    @staticmethod
    async def list_seller_orders(db: AsyncSession, seller_id: int, user_id: int):
        if seller_id != user_id:
            raise Forbidden("Not authorized to view these orders")
        async with db.begin():
            return await OrderRepository.list_by_seller(db, seller_id)

    @staticmethod
    async def update_status(db: AsyncSession, order_id: int, status: str) -> Order:
        async with db.begin():
            order = await OrderRepository.get_order(db, order_id, for_update=True)
            if not order:
                raise NotFound("Order not found")

            old_status = order.status
            order.status = status
            if status == "delivered" and old_status != "delivered":
                order.actual_delivery = datetime.now(timezone.utc)

            order = await OrderRepository.update_order(db, order)

        logger.info("order_status_updated", order_id=order_id, old_status=old_status, status=status)
        return order

    @staticmethod
    async def cancel_order(db: AsyncSession, order_id: int, user_id: int) -> Order:
        log = logger.bind(order_id=order_id, user_id=user_id)
        try:
            async with db.begin():
                order = await OrderRepository.get_order(db, order_id, for_update=True)
                if not order:
                    raise NotFound("Order not found")

                if (order.status or "").lower() in NON_CANCELLABLE_STATUSES:
                    raise InvalidState("Order cannot be cancelled")

                # Buyer or seller may cancel
                if user_id not in (order.buyer_id, order.seller_id):
                    raise Forbidden("Not authorized to cancel this order")

                # Conditional flip guards against a concurrent cancel restoring stock twice
                if not await OrderRepository.mark_cancelled(db, order.id):
                    raise InvalidState("Order cannot be cancelled")

                for item in order.items:
                    if item.product_id is None:
                        continue
                    await ProductRepository.increment_stock(db, item.product_id, item.quantity)

                await db.refresh(order)
        except (NotFound, InvalidState, Forbidden) as e:
            ecomm_order_cancellations_total.labels(outcome=type(e).__name__).inc()
            log.info("order_cancel_rejected", reason=e.message)
            raise

        ecomm_order_cancellations_total.labels(outcome="cancelled").inc()
        log.info("order_cancelled", restored_items=len(order.items))
        return order
