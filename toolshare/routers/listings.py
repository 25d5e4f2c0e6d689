"""
Listing API endpoints.
Listings are written as multipart forms so photos travel with the fields;
list-valued fields (tags, removals) are JSON arrays inside form fields.
"""

from fastapi import APIRouter, Depends, File, Form, Path, UploadFile, status
from typing import List, Optional
from toolshare.models.user import User
from toolshare.schemas.common import MessageResponse
from toolshare.schemas.listing import (
    ListingCreate,
    ListingCreatedResponse,
    ListingEdit,
    ListingEditedResponse,
    ListingListResponse,
    ListingResponse,
)
from toolshare.services.listing import ListingService
from toolshare.utils.dependencies import get_current_user, get_listing_service
from toolshare.utils.file_utils import ImageValidator
from toolshare.utils.validators import build_form, parse_id_list, parse_string_list, parse_uuid


router = APIRouter(prefix="/listing", tags=["Listings"])


@router.post(
    "/create-listing",
    response_model=ListingCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create listing",
    description="Create a tool listing with photos and tags. The first photo becomes the main photo."
)
async def create_listing(
    title: str = Form(...),
    category: str = Form(...),
    description: str = Form(...),
    rate: str = Form(...),
    tags: Optional[str] = Form(None, description="JSON array of tag strings"),
    images: Optional[List[UploadFile]] = File(None, alias="image"),
    current_user: User = Depends(get_current_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> ListingCreatedResponse:
    """
    Create a new listing.

    Raises:
        BadRequestError: If fields or photos are invalid
        ListingWriteError: If the listing could not be stored
    """
    listing_data = build_form(
        ListingCreate,
        title=title,
        category=category,
        description=description,
        rate=rate,
        tags=parse_string_list(tags, "tags"),
    )
    payloads = await ImageValidator.read_uploads(images)

    listing_id = await listing_service.create_listing(current_user, listing_data, payloads)
    return ListingCreatedResponse(listing_id=listing_id)


@router.put(
    "/edit-listing",
    response_model=ListingEditedResponse,
    status_code=status.HTTP_200_OK,
    summary="Edit listing",
    description="Update listing fields, add or remove tags and add or remove photos in one request."
)
async def edit_listing(
    listing_id: str = Form(..., alias="listingId"),
    title: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    rate: Optional[str] = Form(None),
    tags_to_remove: Optional[str] = Form(None, alias="tagsToRemove"),
    new_tags: Optional[str] = Form(None, alias="newTags"),
    images_to_remove: Optional[str] = Form(None, alias="imagesToRemove"),
    images: Optional[List[UploadFile]] = File(None, alias="image"),
    current_user: User = Depends(get_current_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> ListingEditedResponse:
    """
    Apply an incremental edit.

    Raises:
        BadRequestError: If fields, IDs or photos are invalid
        ListingNotFoundError: If the listing doesn't exist
        ListingOwnershipError: If the caller doesn't own the listing
        ListingWriteError: If the edit could not be stored
    """
    edit_data = build_form(
        ListingEdit,
        listing_id=parse_uuid(listing_id, "listingId"),
        title=title or None,
        category=category or None,
        description=description or None,
        rate=rate or None,
        tags_to_remove=parse_id_list(tags_to_remove, "tagsToRemove"),
        new_tags=parse_string_list(new_tags, "newTags"),
        images_to_remove=parse_id_list(images_to_remove, "imagesToRemove"),
    )
    payloads = await ImageValidator.read_uploads(images)

    edited_id = await listing_service.edit_listing(current_user, edit_data, payloads)
    return ListingEditedResponse(listing_id=edited_id)


@router.delete(
    "/delete-listing/{listing_id}",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    summary="Delete listing"
)
async def delete_listing(
    listing_id: str = Path(..., description="Listing ID"),
    current_user: User = Depends(get_current_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> MessageResponse:
    await listing_service.delete_listing(current_user, parse_uuid(listing_id, "listingId"))
    return MessageResponse(message="Listing deleted successfully")


@router.get(
    "/my-listings",
    response_model=ListingListResponse,
    summary="Current user's listings"
)
async def my_listings(
    current_user: User = Depends(get_current_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> ListingListResponse:
    listings = await listing_service.get_user_listings(current_user.id)
    return ListingListResponse(listings=[ListingResponse.model_validate(l) for l in listings])


@router.get(
    "/get-listing/{listing_id}",
    response_model=ListingResponse,
    summary="Get listing"
)
async def get_listing(
    listing_id: str = Path(..., description="Listing ID"),
    current_user: User = Depends(get_current_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> ListingResponse:
    listing = await listing_service.get_listing(parse_uuid(listing_id, "listingId"))
    return ListingResponse.model_validate(listing)
