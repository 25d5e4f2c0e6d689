"""
Shared schema base classes.
All API payloads use camelCase keys on the wire and snake_case in Python.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional
import uuid


class CamelModel(BaseModel):
    """Base schema serialized with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(CamelModel):
    """Plain acknowledgement."""

    message: str = Field(..., description="Human-readable result", examples=["Listing deleted successfully"])


class UserSummary(CamelModel):
    """Shallow user projection used inside other resources."""

    id: uuid.UUID
    name: str
    email: Optional[str] = None
