"""
Pydantic schemas for authentication requests and responses.
"""

from pydantic import EmailStr, Field, field_validator
from typing import Optional
from toolshare.schemas.common import CamelModel
from toolshare.schemas.user import UserResponse


class RegisterRequest(CamelModel):
    """Account registration."""

    name: str = Field(..., min_length=1, max_length=255, examples=["Sam Taylor"])
    email: EmailStr = Field(..., examples=["sam@example.com"])
    password: str = Field(..., min_length=8, max_length=72, description="Minimum 8 characters")
    bio: Optional[str] = Field(None, max_length=2000)
    location: Optional[str] = Field(None, max_length=255)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip()

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.lower().strip()


class LoginRequest(CamelModel):
    """Login request schema."""

    email: EmailStr = Field(..., examples=["sam@example.com"])
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.lower().strip()


class TokenResponse(CamelModel):
    """Issued access token with the authenticated user."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")
    user: UserResponse
