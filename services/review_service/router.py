from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security.dependencies import get_optional_user
from .schemas import ProductReviewListResponse, ReviewCreate, ReviewEnvelope, ReviewListResponse
from .service import ReviewService

router = APIRouter(prefix="/reviews", tags=["Reviews"])


@router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "review", "status": "running"}


@router.post("/", response_model=ReviewEnvelope, status_code=status.HTTP_201_CREATED)
async def leave_review(
    payload: ReviewCreate,
    user_id: int | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    review = await ReviewService.leave_review(db, user_id, payload)
    return {"success": True, "review": review}


@router.get("/", response_model=ReviewListResponse)
async def list_reviews(db: AsyncSession = Depends(get_db)):
    return {"success": True, "reviews": await ReviewService.list_reviews(db)}


@router.get("/{product_id}", response_model=ProductReviewListResponse)
async def list_product_reviews(product_id: int, db: AsyncSession = Depends(get_db)):
    return {"success": True, "reviews": await ReviewService.list_product_reviews(db, product_id)}
