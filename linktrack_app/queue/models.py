"""
Data models for queue messages.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from linktrack_app.clock import utcnow


class RedirectHit(BaseModel):
    """
    Raw facts about one resolved redirect.

    Published right after the click was counted; the enrichment worker turns
    it into a click event (geo + parsed user agent).
    """

    link_id: int = Field(..., description="Id of the resolved link")
    short_code: str = Field(..., description="The short code that was accessed")
    timestamp: datetime = Field(default_factory=utcnow, description="When the redirect happened (UTC)")

    # Request metadata
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Raw User-Agent header")
    referer: Optional[str] = Field(None, description="HTTP Referer header")

    # Broker-assigned id, needed to acknowledge the message
    message_id: Optional[str] = Field(None, exclude=True)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "link_id": 42,
                "short_code": "aB3xYz",
                "timestamp": "2025-10-29T10:30:00",
                "ip_address": "203.0.113.7",
                "user_agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0",
                "referer": "https://twitter.com",
            }
        }
    )
