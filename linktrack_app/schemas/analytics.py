from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from linktrack_app.schemas.enrichment import GeoLocation, UserAgentInfo


class ClickEventCreate(BaseModel):
    """Fully assembled event handed to the analytics recorder."""
    link_id: int
    short_code: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    agent: UserAgentInfo = Field(default_factory=UserAgentInfo)
    location: GeoLocation = Field(default_factory=GeoLocation)
    referer: Optional[str] = None
    timestamp: datetime


class ClickEventResponse(BaseModel):
    id: int
    link_id: int
    short_code: str
    ip_address: Optional[str] = None
    browser_name: str
    os_name: str
    device: str
    country: str
    city: str
    referer: Optional[str] = None
    is_bot: bool
    is_unique: bool
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class DateRange(BaseModel):
    start: datetime
    end: datetime


class TotalStats(BaseModel):
    total_clicks: int = 0
    unique_clicks: int = 0
    unique_countries: int = 0
    unique_devices: int = 0


class DailyClicks(BaseModel):
    date: str
    clicks: int
    unique_clicks: int = 0


class DeviceStat(BaseModel):
    device: str
    count: int
    percentage: int


class BrowserStat(BaseModel):
    browser: str
    count: int


class LocationStat(BaseModel):
    country: str
    country_code: str = "XX"
    count: int


class ReferrerStat(BaseModel):
    referer: str
    count: int


class RecentActivity(BaseModel):
    short_code: str
    destination_url: str
    timestamp: datetime
    country: str
    device: str
    browser: str


class LinkSummary(BaseModel):
    short_code: str
    destination_url: str
    total_clicks: int


class LinkCharts(BaseModel):
    daily_clicks: List[DailyClicks] = Field(default_factory=list)
    devices: List[DeviceStat] = Field(default_factory=list)
    browsers: List[BrowserStat] = Field(default_factory=list)
    locations: List[LocationStat] = Field(default_factory=list)
    referrers: List[ReferrerStat] = Field(default_factory=list)


class LinkAnalytics(BaseModel):
    """Per-link report; cached as a whole with the analytics TTL."""
    link: LinkSummary
    period: DateRange
    stats: TotalStats
    charts: LinkCharts


class TopLink(BaseModel):
    short_code: str
    destination_url: str
    click_count: int
    short_url: str


class DashboardSummary(BaseModel):
    total_links: int = 0
    total_clicks: int = 0
    unique_clicks: int = 0
    avg_clicks_per_link: int = 0
    active_links: int = 0


class DashboardCharts(BaseModel):
    daily_clicks: List[DailyClicks] = Field(default_factory=list)
    devices: List[DeviceStat] = Field(default_factory=list)
    locations: List[LocationStat] = Field(default_factory=list)


class DashboardAnalytics(BaseModel):
    summary: DashboardSummary = Field(default_factory=DashboardSummary)
    top_links: List[TopLink] = Field(default_factory=list)
    recent_activity: List[RecentActivity] = Field(default_factory=list)
    charts: DashboardCharts = Field(default_factory=DashboardCharts)
