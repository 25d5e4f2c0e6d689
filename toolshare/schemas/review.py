"""
Pydantic schemas for listing and user reviews.
"""

from pydantic import Field, field_validator
from typing import List, Optional
from datetime import datetime
from toolshare.config import settings
from toolshare.schemas.common import CamelModel, UserSummary
import uuid


class ReviewBase(CamelModel):
    rating: float = Field(..., ge=0, le=5, description="0 to 5 in half steps", examples=[4.5])
    comment: Optional[str] = Field(None, description="Optional review text")

    @field_validator("rating")
    @classmethod
    def validate_half_steps(cls, v):
        if (v * 2) != int(v * 2):
            raise ValueError("Rating must be in increments of 0.5")
        return v

    @field_validator("comment")
    @classmethod
    def validate_comment(cls, v):
        if v is None:
            return v
        v = v.strip()
        if len(v) > settings.review_comment_max_length:
            raise ValueError(
                f"Comment is too long (maximum {settings.review_comment_max_length} characters)"
            )
        return v or None


class ListingReviewCreate(ReviewBase):
    listing_id: uuid.UUID


class UserReviewCreate(ReviewBase):
    pass


class ReviewOut(CamelModel):
    id: uuid.UUID
    subject_id: uuid.UUID
    reviewer_id: uuid.UUID
    reviewer: Optional[UserSummary] = None
    rating: float
    comment: Optional[str] = None
    created_at: datetime


class ReviewCreatedResponse(CamelModel):
    message: str = "Review created successfully"
    review: ReviewOut
    average_rating: float


class ReviewListResponse(CamelModel):
    reviews: List[ReviewOut]
