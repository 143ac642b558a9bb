from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.responses import RedirectResponse

from linktrack_app.dependencies import get_redirect_service
from linktrack_app.services.redirect_service import RedirectService

router = APIRouter(tags=["redirect"])


def get_client_ip(request: Request) -> Optional[str]:
    """First X-Forwarded-For entry when behind a proxy, else the socket peer."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else None


@router.get("/{short_code}")
async def redirect_to_destination(
    short_code: str,
    request: Request,
    redirect_service: RedirectService = Depends(get_redirect_service),
):
    """
    Redirect to the destination URL.

    Flow:
    1. Count the click with one atomic update (sync DB)
    2. Queue the raw hit for enrichment (never fails the redirect)
    3. Redirect

    Store failures surface as a generic 500 through the app's
    StoreUnavailableError handler.
    """
    destination = await redirect_service.resolve_and_record(
        short_code,
        client_ip=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        referer=request.headers.get("referer"),
    )

    if not destination:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Short URL not found"
        )

    return RedirectResponse(url=destination, status_code=status.HTTP_302_FOUND)
