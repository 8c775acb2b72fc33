class AppError(Exception):
    """Base application error for the geolocation resolver."""


class GeoIpResolverError(AppError):
    """Base error for geolocation lookup failures."""


class InvalidLookupKeyError(GeoIpResolverError):
    """Raised when the supplied lookup key is empty or not a string."""


class UpstreamServiceError(GeoIpResolverError):
    """Raised when the upstream geolocation service fails."""


class LookupScheduleError(GeoIpResolverError):
    """Raised when a lookup cannot be scheduled on the event loop."""
