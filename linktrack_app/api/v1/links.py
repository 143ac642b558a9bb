from math import ceil
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from linktrack_app.dependencies import get_link_service, get_owner_id
from linktrack_app.exceptions import (
    AliasUnavailableError,
    InvalidAliasError,
    InvalidExpiryError,
    ShortCodeGenerationError,
)
from linktrack_app.rate_limit import api_limit, creation_limit, get_owner_key, limiter
from linktrack_app.schemas.link import (
    LinkCreate,
    LinkListResponse,
    LinkPreview,
    LinkResponse,
    LinkUpdate,
    Pagination,
)
from linktrack_app.services.link_service import LinkService

router = APIRouter(prefix="/links", tags=["links"])


@router.post("/", response_model=LinkResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(creation_limit, key_func=get_owner_key)
async def create_link(
    request: Request,
    link_data: LinkCreate,
    owner_id: str = Depends(get_owner_id),
    link_service: LinkService = Depends(get_link_service)
):
    """Create a short link (async for cache I/O)"""
    try:
        return await link_service.create_link(link_data, owner_id)
    except (InvalidAliasError, AliasUnavailableError, InvalidExpiryError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ShortCodeGenerationError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not generate a short code"
        )


@router.get("/", response_model=LinkListResponse)
@limiter.limit(api_limit)
def list_links(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=100),
    owner_id: str = Depends(get_owner_id),
    link_service: LinkService = Depends(get_link_service)
):
    """List the owner's links, newest first"""
    links, total = link_service.list_links(owner_id, page=page, limit=limit, search=search)
    return LinkListResponse(
        links=[LinkResponse.model_validate(link) for link in links],
        pagination=Pagination(page=page, limit=limit, total=total, pages=ceil(total / limit)),
    )


@router.get("/{short_code}", response_model=LinkPreview)
async def preview_link(
    short_code: str,
    link_service: LinkService = Depends(get_link_service)
):
    """Where a short link points, without counting a click"""
    record = await link_service.get_link_preview(short_code)
    if not record:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Short URL not found"
        )
    return LinkPreview(short_code=record.short_code, destination_url=record.destination_url)


@router.get("/{short_code}/details", response_model=LinkResponse)
def get_link_details(
    short_code: str,
    owner_id: str = Depends(get_owner_id),
    link_service: LinkService = Depends(get_link_service)
):
    link = link_service.get_link(short_code, owner_id)
    if not link:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Short URL not found"
        )
    return link


@router.patch("/{short_code}", response_model=LinkResponse)
async def update_link(
    short_code: str,
    link_data: LinkUpdate,
    owner_id: str = Depends(get_owner_id),
    link_service: LinkService = Depends(get_link_service)
):
    """Owner edit; invalidates the cached snapshot"""
    try:
        link = await link_service.update_link(short_code, owner_id, link_data)
    except InvalidExpiryError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not link:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Short URL not found"
        )
    return link


@router.delete("/{short_code}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_link(
    short_code: str,
    owner_id: str = Depends(get_owner_id),
    link_service: LinkService = Depends(get_link_service)
):
    """Delete a link and its click events"""
    success = await link_service.delete_link(short_code, owner_id)
    if not success:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Short URL not found"
        )
