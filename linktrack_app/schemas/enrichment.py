"""Value objects produced by the user-agent classifier and the geo resolver."""

from typing import Optional

from pydantic import BaseModel, Field

UNKNOWN = "Unknown"

DEVICE_DESKTOP = "desktop"
DEVICE_MOBILE = "mobile"
DEVICE_TABLET = "tablet"
DEVICE_UNKNOWN = "unknown"


class NameVersion(BaseModel):
    name: str = UNKNOWN
    version: str = UNKNOWN


class UserAgentInfo(BaseModel):
    browser: NameVersion = Field(default_factory=NameVersion)
    os: NameVersion = Field(default_factory=NameVersion)
    device: str = DEVICE_UNKNOWN
    is_bot: bool = False


class Coordinates(BaseModel):
    lat: float = 0.0
    lon: float = 0.0


class GeoLocation(BaseModel):
    country: str = UNKNOWN
    country_code: str = "XX"
    region: str = UNKNOWN
    city: str = UNKNOWN
    timezone: str = UNKNOWN
    coordinates: Coordinates = Field(default_factory=Coordinates)

    @classmethod
    def unknown(cls) -> "GeoLocation":
        return cls()


class GeoBatchResult(BaseModel):
    ip: str
    location: Optional[GeoLocation] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None
