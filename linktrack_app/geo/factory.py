"""
Factory for creating geo resolver instances.
Simple factory with singleton caching.
"""

import logging
from enum import Enum

from .strategies import GeoStrategy, IpApiGeoResolver, NullGeoResolver
from linktrack_app.config import settings

logger = logging.getLogger(__name__)


class GeoBackend(Enum):
    """Available geo backends"""
    IPAPI = "ipapi"
    NULL = "null"


class GeoFactory:
    """Creates the geo resolver once, configured from settings."""

    _instance: GeoStrategy = None

    @classmethod
    def create(cls, backend: GeoBackend) -> GeoStrategy:
        if cls._instance is not None:
            return cls._instance

        if backend == GeoBackend.IPAPI:
            cls._instance = IpApiGeoResolver(
                base_url=settings.geo_api_url,
                timeout=settings.geo_timeout,
            )
            logger.info("ipapi.co geo resolver initialized (timeout %.1fs)", settings.geo_timeout)

        elif backend == GeoBackend.NULL:
            cls._instance = NullGeoResolver()
            logger.info("Null geo resolver initialized")

        else:
            raise ValueError(f"Unknown geo backend: {backend}")

        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
