"""
Geo lookup module.
Translates client IPs into coarse locations for click enrichment.
"""

from .strategies import GeoStrategy, IpApiGeoResolver, NullGeoResolver, is_private_ip
from .factory import GeoFactory, GeoBackend

__all__ = [
    "GeoStrategy",
    "IpApiGeoResolver",
    "NullGeoResolver",
    "is_private_ip",
    "GeoFactory",
    "GeoBackend",
]
