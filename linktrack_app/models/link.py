from sqlalchemy import Boolean, Column, DateTime, Index, Integer, JSON, String
from sqlalchemy.orm import relationship

from linktrack_app.clock import utcnow
from linktrack_app.database.connection import Base


class Link(Base):
    """
    Short link record.

    short_code is one namespace for generated codes and custom aliases.
    click_count is only ever raised by the atomic redirect update.
    """
    __tablename__ = "links"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    # Generated codes are assigned after the insert flush, inside the same transaction
    short_code = Column(String(32), unique=True, nullable=True, index=True)
    destination_url = Column(String(2048), nullable=False)
    owner_id = Column(String(64), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    expires_at = Column(DateTime, nullable=True)  # None means never expires
    click_count = Column(Integer, nullable=False, default=0)
    is_custom_alias = Column(Boolean, nullable=False, default=False)
    description = Column(String(200), nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True, onupdate=utcnow)

    clicks = relationship(
        "ClickEvent",
        back_populates="link",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_links_short_code_active", "short_code", "is_active"),
        Index("ix_links_owner_created", "owner_id", "created_at"),
    )

    def __repr__(self):
        return f"<Link {self.short_code} -> {self.destination_url}>"
