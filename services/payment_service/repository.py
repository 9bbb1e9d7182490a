from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import MpesaTransaction


class MpesaTransactionRepository:
    @staticmethod
    async def create_transaction(db: AsyncSession, tx: MpesaTransaction):
        db.add(tx)
        await db.flush()
        await db.refresh(tx)
        return tx

    @staticmethod
    async def get_by_checkout_request_id(db: AsyncSession, checkout_request_id: str):
        result = await db.execute(
            select(MpesaTransaction)
            .where(MpesaTransaction.checkout_request_id == checkout_request_id)
            .with_for_update()
        )
        return result.scalars().first()

    @staticmethod
    async def list_for_order(db: AsyncSession, order_id: int):
        result = await db.execute(
            select(MpesaTransaction)
            .where(MpesaTransaction.order_id == order_id)
            .order_by(MpesaTransaction.id)
        )
        return result.scalars().all()
