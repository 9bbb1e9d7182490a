from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.orders import NON_CANCELLABLE_STATUSES
from .models import Order

class OrderRepository:
    @staticmethod
    async def create_order(db: AsyncSession, order: Order):
        db.add(order)
        await db.flush()
        await db.refresh(order)
        return order

    @staticmethod
    async def get_order(db: AsyncSession, order_id: int, for_update: bool = False):
        stmt = select(Order).where(Order.id == order_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def order_number_exists(db: AsyncSession, order_number: str) -> bool:
        result = await db.execute(select(Order.id).where(Order.order_number == order_number))
        return result.first() is not None

    @staticmethod
    async def update_order(db: AsyncSession, order: Order):
        db.add(order)
        await db.flush()
        await db.refresh(order)
        return order

    @staticmethod
    async def mark_cancelled(db: AsyncSession, order_id: int) -> bool:
        """Moves the order to 'cancelled' only if it is still cancellable."""
        stmt = (
            update(Order)
            .where(
                Order.id == order_id,
                func.lower(Order.status).not_in(NON_CANCELLABLE_STATUSES),
            )
            .values(status="cancelled")
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    async def list_by_buyer(db: AsyncSession, buyer_id: int):
        result = await db.execute(
            select(Order)
            .where(Order.buyer_id == buyer_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def list_by_seller(db: AsyncSession, seller_id: int):
        result = await db.execute(
            select(Order)
            .where(Order.seller_id == seller_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        return result.scalars().all()
