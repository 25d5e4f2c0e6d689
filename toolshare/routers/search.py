"""
Listing search endpoint.
"""

from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from toolshare.schemas.listing import ListingListResponse, ListingResponse
from toolshare.services.listing import ListingService
from toolshare.utils.dependencies import get_listing_service


router = APIRouter(prefix="/search", tags=["Search"])


@router.get(
    "/tools",
    response_model=ListingListResponse,
    summary="Search listings",
    description=(
        "Match listings by keyword (title or description), category and tags. "
        "Repeat `tags` to match any of several tags. Results are newest first."
    )
)
async def search_tools(
    keyword: Optional[str] = Query(None, max_length=255),
    category: Optional[str] = Query(None, max_length=100),
    tags: Optional[List[str]] = Query(None),
    listing_service: ListingService = Depends(get_listing_service)
) -> ListingListResponse:
    listings = await listing_service.search_listings(keyword=keyword, category=category, tags=tags)
    return ListingListResponse(listings=[ListingResponse.model_validate(l) for l in listings])
