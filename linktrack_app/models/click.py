from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from linktrack_app.clock import utcnow
from linktrack_app.database.connection import Base


class ClickEvent(Base):
    """One enriched redirect. Written once, removed only with its link."""
    __tablename__ = "click_events"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    link_id = Column(Integer, ForeignKey("links.id", ondelete="CASCADE"), nullable=False, index=True)
    short_code = Column(String(32), nullable=False, index=True)
    ip_address = Column(String(45), nullable=True)  # IPv4 or IPv6
    user_agent = Column(String(512), nullable=True)

    browser_name = Column(String(64), nullable=False, default="Unknown")
    browser_version = Column(String(64), nullable=False, default="Unknown")
    os_name = Column(String(64), nullable=False, default="Unknown")
    os_version = Column(String(64), nullable=False, default="Unknown")
    device = Column(String(16), nullable=False, default="unknown")

    country = Column(String(100), nullable=False, default="Unknown")
    country_code = Column(String(8), nullable=False, default="XX")
    region = Column(String(100), nullable=False, default="Unknown")
    city = Column(String(100), nullable=False, default="Unknown")
    timezone = Column(String(64), nullable=False, default="Unknown")
    latitude = Column(Float, nullable=False, default=0.0)
    longitude = Column(Float, nullable=False, default=0.0)

    referer = Column(String(512), nullable=True)
    is_bot = Column(Boolean, nullable=False, default=False)
    is_unique = Column(Boolean, nullable=False, default=True)
    timestamp = Column(DateTime, nullable=False, default=utcnow, index=True)

    link = relationship("Link", back_populates="clicks")

    __table_args__ = (
        Index("ix_click_events_link_timestamp", "link_id", "timestamp"),
        Index("ix_click_events_country_timestamp", "country", "timestamp"),
        Index("ix_click_events_device_timestamp", "device", "timestamp"),
    )

    def __repr__(self):
        return f"<ClickEvent {self.id} for link {self.link_id}>"
