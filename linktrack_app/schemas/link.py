from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, computed_field, field_validator

from linktrack_app.config import settings


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _clean_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    if tags is None:
        return None
    cleaned = [tag.strip() for tag in tags if tag and tag.strip()]
    for tag in cleaned:
        if len(tag) > 30:
            raise ValueError("Tags cannot exceed 30 characters")
    return cleaned


class LinkCreate(BaseModel):
    """Payload of the link-creation flow."""
    destination_url: HttpUrl = Field(..., description="Absolute http/https URL to redirect to")
    custom_alias: Optional[str] = Field(None, description="Owner-chosen short code")
    description: Optional[str] = Field(None, max_length=200)
    tags: List[str] = Field(default_factory=list)
    expires_at: Optional[datetime] = Field(None, description="Expiry timestamp (UTC); null never expires")

    @field_validator("destination_url")
    @classmethod
    def check_length(cls, value: HttpUrl) -> HttpUrl:
        if len(str(value)) > 2048:
            raise ValueError("URL is too long (max 2048 characters)")
        return value

    @field_validator("description")
    @classmethod
    def strip_description(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() or None if value is not None else None

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value: List[str]) -> List[str]:
        return _clean_tags(value)

    @field_validator("expires_at")
    @classmethod
    def normalize_expiry(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)


class LinkUpdate(BaseModel):
    """
    Owner edit. Only fields present in the payload are applied, so an
    explicit null expires_at removes the expiry.
    """
    is_active: Optional[bool] = None
    description: Optional[str] = Field(None, max_length=200)
    tags: Optional[List[str]] = None
    expires_at: Optional[datetime] = None

    @field_validator("description")
    @classmethod
    def strip_description(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() or None if value is not None else None

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(value)

    @field_validator("expires_at")
    @classmethod
    def normalize_expiry(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)


class LinkResponse(BaseModel):
    """Serializes the SQLAlchemy Link model (from_attributes)."""
    id: int
    short_code: str
    destination_url: str
    owner_id: str
    is_active: bool
    expires_at: Optional[datetime] = None
    click_count: int
    is_custom_alias: bool
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def short_url(self) -> str:
        return f"{settings.base_url}/{self.short_code}"

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class LinkListResponse(BaseModel):
    links: List[LinkResponse]
    pagination: Pagination


class CachedLink(BaseModel):
    """
    Denormalized snapshot of the fields a lookup needs.

    Never authoritative: the redirect counter always goes to the store.
    """
    id: int
    short_code: str
    destination_url: str
    owner_id: str
    is_active: bool
    expires_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    def is_resolvable(self, now: datetime) -> bool:
        return self.is_active and (self.expires_at is None or self.expires_at > now)


class LinkPreview(BaseModel):
    short_code: str
    destination_url: str

    @computed_field
    @property
    def short_url(self) -> str:
        return f"{settings.base_url}/{self.short_code}"
