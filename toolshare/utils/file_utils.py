"""
Image upload validation.
Checks MIME type, size and that the payload actually decodes as an image.
"""

import io
from dataclasses import dataclass
from typing import List, Optional
from PIL import Image, UnidentifiedImageError
from fastapi import UploadFile

from toolshare.config import settings
from toolshare.utils.exceptions import (
    BadRequestError,
    FileSizeExceededError,
    UnsupportedFileTypeError,
)


@dataclass
class ImagePayload:
    """Validated image bytes ready for the object store."""

    data: bytes
    content_type: str
    filename: Optional[str] = None


class ImageValidator:
    """Utility class for listing image validation."""

    # Pillow format names accepted for each MIME type
    FORMATS = {
        "image/jpeg": "JPEG",
        "image/png": "PNG",
        "image/webp": "WEBP",
    }

    @classmethod
    def validate_mime_type(cls, mime_type: str) -> str:
        """
        Validate MIME type.

        Raises:
            UnsupportedFileTypeError: If MIME type is not supported
        """
        allowed = [t for t in settings.allowed_image_types if t in cls.FORMATS]
        if mime_type not in allowed:
            raise UnsupportedFileTypeError(mime_type or "unknown", allowed)
        return mime_type

    @classmethod
    def validate_file_size(cls, file_size: int) -> int:
        """
        Validate file size.

        Raises:
            BadRequestError: If the file is empty
            FileSizeExceededError: If the file exceeds the configured limit
        """
        if file_size <= 0:
            raise BadRequestError("Image file is empty")
        if file_size > settings.max_image_size:
            raise FileSizeExceededError(file_size, settings.max_image_size)
        return file_size

    @classmethod
    def validate_image_content(cls, data: bytes, mime_type: str) -> None:
        """
        Make sure the bytes decode as the declared format.

        Raises:
            BadRequestError: If the payload is not a valid image of that type
        """
        try:
            with Image.open(io.BytesIO(data)) as image:
                image.verify()
                detected = image.format
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise BadRequestError(f"Invalid image file: {e}")

        if detected != cls.FORMATS[mime_type]:
            raise BadRequestError(
                f"Image content ({detected}) doesn't match declared type '{mime_type}'"
            )

    @classmethod
    def validate_bytes(cls, data: bytes, content_type: str, filename: Optional[str] = None) -> ImagePayload:
        """Run every check on an in-memory image."""
        mime_type = cls.validate_mime_type((content_type or "").lower())
        cls.validate_file_size(len(data))
        cls.validate_image_content(data, mime_type)
        return ImagePayload(data=data, content_type=mime_type, filename=filename)

    @classmethod
    async def read_uploads(cls, files: Optional[List[UploadFile]]) -> List[ImagePayload]:
        """
        Read and validate uploaded files.

        Raises:
            BadRequestError: If too many images are supplied or any image is invalid
        """
        files = [f for f in (files or []) if f is not None and f.filename]
        if len(files) > settings.max_images_per_listing:
            raise BadRequestError(
                f"Maximum {settings.max_images_per_listing} images allowed per listing"
            )

        payloads = []
        for upload in files:
            data = await upload.read()
            payloads.append(cls.validate_bytes(data, upload.content_type, upload.filename))
        return payloads
