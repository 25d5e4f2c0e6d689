"""
Pydantic schemas for user profiles.
"""

from pydantic import Field, field_validator
from typing import Any, Dict, Optional
from datetime import datetime
from toolshare.schemas.common import CamelModel, UserSummary
import uuid


class UserResponse(CamelModel):
    """Public user profile."""

    id: uuid.UUID
    email: str
    name: str
    bio: Optional[str] = None
    location: Optional[str] = None
    profile_photo_url: Optional[str] = None
    rating: float = 0.0
    created_at: datetime


class UserUpdate(CamelModel):
    """Profile fields a user may change; omitted fields are left alone."""

    name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    bio: Optional[str] = Field(None, max_length=2000)
    location: Optional[str] = Field(None, max_length=255)

    @field_validator("name", "email")
    @classmethod
    def validate_required_text(cls, v, info):
        if v is None:
            return v
        if not v.strip():
            raise ValueError(f"{info.field_name.capitalize()} cannot be empty")
        return v.strip()

    @field_validator("bio", "location")
    @classmethod
    def strip_optional_text(cls, v):
        return v.strip() if v is not None else v

    def changes(self) -> Dict[str, Any]:
        return {k: v for k, v in self.model_dump().items() if v is not None}


class UserUpdatedResponse(CamelModel):
    message: str = "User successfully updated"
    user: UserResponse


class UserFoundResponse(CamelModel):
    message: str = "User found"
    user: UserResponse


class UserLookupResponse(CamelModel):
    """Lookup by email only reveals the contact card."""

    message: str = "User found"
    user: UserSummary
