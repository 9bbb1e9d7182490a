from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from services.auth_service.models import User
from services.product_service.models import Product
from .models import Review


class ReviewRepository:
    @staticmethod
    async def create_review(db: AsyncSession, review: Review):
        db.add(review)
        await db.flush()
        await db.refresh(review)
        return review

    @staticmethod
    async def get_all_reviews(db: AsyncSession):
        result = await db.execute(select(Review).order_by(Review.id))
        return result.scalars().all()

    @staticmethod
    async def get_reviews_for_product(db: AsyncSession, product_id: int):
        """Rows of (Review, product name, reviewer name or None)."""
        result = await db.execute(
            select(Review, Product.name, User.name)
            .join(Product, Product.id == Review.product_id)
            .outerjoin(User, User.id == Review.user_id)
            .where(Review.product_id == product_id)
            .order_by(Review.id)
        )
        return result.all()
