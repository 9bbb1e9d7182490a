from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from .models import Product

class ProductRepository:

    @staticmethod
    async def create_product(db: AsyncSession, product: Product):
        db.add(product)
        await db.flush()
        await db.refresh(product)
        return product

    @staticmethod
    async def get_all_products(db: AsyncSession):
        result = await db.execute(select(Product).order_by(Product.id))
        return result.scalars().all()

    @staticmethod
    async def get_products_by_seller(db: AsyncSession, seller_id: int):
        result = await db.execute(
            select(Product).where(Product.seller_id == seller_id).order_by(Product.id)
        )
        return result.scalars().all()

    @staticmethod
    async def get_product_by_id(db: AsyncSession, product_id: int, for_update: bool = False):
        stmt = select(Product).where(Product.id == product_id)
        if for_update:
            # Row lock on databases that support it; ignored by SQLite
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def update_product(db: AsyncSession, product: Product):
        db.add(product)
        await db.flush()
        await db.refresh(product)
        return product

    @staticmethod
    async def delete_product(db: AsyncSession, product: Product):
        await db.delete(product)
        await db.flush()

    @staticmethod
    async def decrement_stock(db: AsyncSession, product_id: int, quantity: int) -> bool:
        """Atomically takes `quantity` units. False if the stock would go negative."""
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    async def increment_stock(db: AsyncSession, product_id: int, quantity: int) -> bool:
        """Additive restore; never reads the current value."""
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    async def increment_review_count(db: AsyncSession, product_id: int) -> None:
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(review_count=Product.review_count + 1)
            .execution_options(synchronize_session=False)
        )
        await db.execute(stmt)
