"""
Pydantic schemas for listing requests and responses.
"""

from pydantic import Field, field_validator
from typing import Any, Dict, List, Optional
from datetime import datetime
from decimal import Decimal
from toolshare.schemas.common import CamelModel
import uuid


def _clean_text(value: Optional[str], field: str) -> Optional[str]:
    if value is None:
        return value
    if not value.strip():
        raise ValueError(f"{field} cannot be empty")
    return value.strip()


class ListingCreate(CamelModel):
    """Fields accepted when creating a listing."""

    title: str = Field(..., max_length=255, description="Listing title", examples=["Cordless drill"])
    category: str = Field(..., max_length=100, description="Tool category", examples=["Power Tools"])
    description: str = Field(..., max_length=5000, description="Detailed description")
    rate: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, description="Daily rental rate")
    tags: List[str] = Field(default_factory=list, description="Free-text tags, stored lower-cased")

    @field_validator("title", "category", "description")
    @classmethod
    def validate_text(cls, v, info):
        return _clean_text(v, info.field_name.capitalize())

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v):
        return [tag.strip() for tag in v if tag and tag.strip()]


class ListingEdit(CamelModel):
    """Incremental edit of an existing listing."""

    listing_id: uuid.UUID
    title: Optional[str] = Field(None, max_length=255)
    category: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=5000)
    rate: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    tags_to_remove: List[uuid.UUID] = Field(default_factory=list)
    new_tags: List[str] = Field(default_factory=list)
    images_to_remove: List[uuid.UUID] = Field(default_factory=list)

    @field_validator("title", "category", "description")
    @classmethod
    def validate_text(cls, v, info):
        return _clean_text(v, info.field_name.capitalize())

    @field_validator("new_tags")
    @classmethod
    def validate_tags(cls, v):
        return [tag.strip() for tag in v if tag and tag.strip()]

    def scalar_changes(self) -> Dict[str, Any]:
        """Scalar listing columns supplied by the caller."""
        changes = {
            "title": self.title,
            "category": self.category,
            "description": self.description,
            "rate": self.rate,
        }
        return {k: v for k, v in changes.items() if v is not None}


class ListingImageResponse(CamelModel):
    id: uuid.UUID
    url: str
    is_main_photo: bool


class TagResponse(CamelModel):
    id: uuid.UUID
    text: str


class ListingResponse(CamelModel):
    """Listing with images and tags."""

    id: uuid.UUID
    owner_id: uuid.UUID
    title: str
    category: str
    description: str
    rate: Decimal
    rating: float
    images: List[ListingImageResponse] = Field(default_factory=list)
    tags: List[TagResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ListingCreatedResponse(CamelModel):
    message: str = "Listing created successfully"
    listing_id: uuid.UUID


class ListingEditedResponse(CamelModel):
    listing_id: uuid.UUID


class ListingListResponse(CamelModel):
    listings: List[ListingResponse]
