"""
User profile endpoints.
Profile updates are multipart forms so a new photo can travel with the fields.
"""

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from typing import Optional
from toolshare.models.user import User
from toolshare.schemas.common import UserSummary
from toolshare.schemas.user import (
    UserFoundResponse,
    UserLookupResponse,
    UserResponse,
    UserUpdate,
    UserUpdatedResponse,
)
from toolshare.services.user import UserService
from toolshare.utils.dependencies import get_current_user, get_user_service
from toolshare.utils.file_utils import ImageValidator
from toolshare.utils.validators import build_form


router = APIRouter(prefix="/user", tags=["Users"])


@router.put(
    "/update-user",
    response_model=UserUpdatedResponse,
    status_code=status.HTTP_200_OK,
    summary="Update profile",
    description="Change profile fields and optionally replace the profile photo."
)
async def update_user(
    name: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    bio: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    profile_image: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
) -> UserUpdatedResponse:
    """
    Update the caller's profile.

    Raises:
        BadRequestError: If fields or the photo are invalid, or nothing changes
        DuplicateResourceError: If the email belongs to another account
        ProfileWriteError: If the update could not be stored
    """
    update_data = build_form(UserUpdate, name=name or None, email=email or None, bio=bio, location=location)
    payloads = await ImageValidator.read_uploads([profile_image] if profile_image else [])

    user = await user_service.update_profile(current_user, update_data, payloads[0] if payloads else None)
    return UserUpdatedResponse(user=UserResponse.model_validate(user))


@router.get(
    "/get-user",
    response_model=UserFoundResponse,
    summary="Current user's profile"
)
async def get_user(
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
) -> UserFoundResponse:
    user = await user_service.get_user(current_user.id)
    return UserFoundResponse(user=UserResponse.model_validate(user))


@router.get(
    "/lookup",
    response_model=UserLookupResponse,
    summary="Find a user by email"
)
async def lookup_user(
    email: Optional[str] = Query(None, description="Email address to look up"),
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
) -> UserLookupResponse:
    """
    Raises:
        BadRequestError: If no email is given
        UserNotFoundError: If no account uses the email
    """
    user = await user_service.lookup_by_email(email)
    return UserLookupResponse(user=UserSummary.model_validate(user))
