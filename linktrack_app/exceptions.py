"""
Domain exceptions.

Not-found is not an exception here: services return None and the routes turn
that into a 404, so "missing", "inactive" and "expired" look the same.
"""


class LinkTrackError(Exception):
    """Base class for application errors."""


class StoreUnavailableError(LinkTrackError):
    """The authoritative link store could not be reached or failed mid-operation."""


class InvalidAliasError(LinkTrackError):
    """A custom alias does not match the allowed format."""


class AliasUnavailableError(LinkTrackError):
    """A custom alias collides with an existing short code."""


class InvalidExpiryError(LinkTrackError):
    """An expiry timestamp is not in the future."""


class ShortCodeGenerationError(LinkTrackError):
    """No unique short code could be produced within the allowed retries."""


class EnrichmentError(LinkTrackError):
    """Click enrichment failed; always recovered locally, never seen by a redirect."""


class GeoLookupError(EnrichmentError):
    """The external geo lookup failed (timeout, bad status, malformed payload)."""
