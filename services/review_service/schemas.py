from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReviewCreate(BaseModel):
    product: int
    content: str = Field(min_length=1)
    stars: Optional[int] = Field(default=None, ge=1, le=5)


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    user_id: Optional[int] = None
    content: str
    stars: Optional[int] = None
    created_at: Optional[datetime] = None


class ReviewDetailResponse(ReviewResponse):
    product_name: Optional[str] = None
    reviewer_name: Optional[str] = None


class ReviewEnvelope(BaseModel):
    success: bool = True
    review: ReviewResponse


class ReviewListResponse(BaseModel):
    success: bool = True
    reviews: List[ReviewResponse]


class ProductReviewListResponse(BaseModel):
    success: bool = True
    reviews: List[ReviewDetailResponse]
