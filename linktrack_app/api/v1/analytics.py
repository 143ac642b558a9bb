from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from linktrack_app.dependencies import get_analytics_service, get_owner_id
from linktrack_app.rate_limit import api_limit, limiter
from linktrack_app.schemas.analytics import DashboardAnalytics, LinkAnalytics
from linktrack_app.schemas.link import to_naive_utc
from linktrack_app.services.analytics_service import AnalyticsService

router = APIRouter(prefix="/analytics", tags=["analytics"])

PERIOD_PATTERN = r"^(7d|30d|90d|1y)$"


# Registered before /{short_code} so "dashboard" is not taken as a code
@router.get("/dashboard", response_model=DashboardAnalytics)
@limiter.limit(api_limit)
async def get_dashboard(
    request: Request,
    period: str = Query("30d", pattern=PERIOD_PATTERN),
    owner_id: str = Depends(get_owner_id),
    analytics_service: AnalyticsService = Depends(get_analytics_service)
):
    """Summary across all of the owner's links"""
    return await analytics_service.get_dashboard(owner_id, period=period)


@router.get("/{short_code}", response_model=LinkAnalytics)
@limiter.limit(api_limit)
async def get_link_analytics(
    request: Request,
    short_code: str,
    period: str = Query("30d", pattern=PERIOD_PATTERN),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    owner_id: str = Depends(get_owner_id),
    analytics_service: AnalyticsService = Depends(get_analytics_service)
):
    """Per-link report (cached for the analytics TTL)"""
    start_date, end_date = to_naive_utc(start_date), to_naive_utc(end_date)
    if start_date and end_date and start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start_date must be before end_date"
        )

    report = await analytics_service.get_link_analytics(
        short_code,
        owner_id,
        start_date=start_date,
        end_date=end_date,
        period=period,
    )
    if not report:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Short URL not found"
        )
    return report
