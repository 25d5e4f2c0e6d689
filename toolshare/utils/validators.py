"""
Input validation helpers shared by services and routers.
"""

from typing import Any, List, Optional
from datetime import datetime, timezone
from pydantic import ValidationError as PydanticValidationError
from toolshare.utils.exceptions import BadRequestError
import json
import uuid


def parse_uuid(value: Any, field: str = "id") -> uuid.UUID:
    """
    Parse a UUID from a string or UUID.

    Raises:
        BadRequestError: If the value is not a well-formed UUID
    """
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        raise BadRequestError(f"Invalid {field} format")


def parse_json_list(raw: Optional[str], field: str) -> List[Any]:
    """
    Parse a JSON array sent as a multipart form field.

    Missing or empty values produce an empty list.

    Raises:
        BadRequestError: If the value is not a JSON array
    """
    if raw is None or not raw.strip():
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        raise BadRequestError(f"{field} must be a JSON array")
    if not isinstance(value, list):
        raise BadRequestError(f"{field} must be a JSON array")
    return value


def parse_id_list(raw: Optional[str], field: str) -> List[uuid.UUID]:
    """
    Parse a JSON array of IDs.
    Items may be bare IDs or objects carrying an ``id`` key.
    """
    ids = []
    for item in parse_json_list(raw, field):
        if isinstance(item, dict):
            item = item.get("id")
        ids.append(parse_uuid(item, field))
    return ids


def parse_string_list(raw: Optional[str], field: str) -> List[str]:
    """Parse a JSON array of strings."""
    values = parse_json_list(raw, field)
    if not all(isinstance(item, str) for item in values):
        raise BadRequestError(f"{field} must contain only strings")
    return values


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def build_form(schema, **data):
    """
    Validate form fields against a schema.

    Raises:
        BadRequestError: Reporting the first validation problem
    """
    try:
        return schema(**data)
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(loc) for loc in error.get("loc", ()))
        raise BadRequestError(f"{field}: {error.get('msg')}" if field else error.get("msg"))
