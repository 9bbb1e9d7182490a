import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.product_service.repository import ProductRepository
from shared.errors import NotFound
from shared.observability import ecomm_reviews_total
from .models import Review
from .repository import ReviewRepository
from .schemas import ReviewCreate, ReviewDetailResponse

logger = structlog.get_logger(__name__)


class ReviewService:
    @staticmethod
    async def leave_review(db: AsyncSession, user_id: int | None, data: ReviewCreate) -> Review:
        async with db.begin():
            product = await ProductRepository.get_product_by_id(db, data.product)
            if not product:
                raise NotFound("Product not found")

            review = await ReviewRepository.create_review(
                db,
                Review(
                    product_id=product.id,
                    user_id=user_id,
                    content=data.content,
                    stars=data.stars,
                ),
            )
            await ProductRepository.increment_review_count(db, product.id)

        ecomm_reviews_total.inc()
        logger.info("review_created", review_id=review.id, product_id=product.id)
        return review

    @staticmethod
    async def list_reviews(db: AsyncSession):
        async with db.begin():
            return await ReviewRepository.get_all_reviews(db)

    @staticmethod
    async def list_product_reviews(db: AsyncSession, product_id: int) -> list[ReviewDetailResponse]:
        async with db.begin():
            rows = await ReviewRepository.get_reviews_for_product(db, product_id)
        return [
            ReviewDetailResponse.model_validate(review).model_copy(
                update={"product_name": product_name, "reviewer_name": reviewer_name}
            )
            for review, product_name, reviewer_name in rows
        ]
