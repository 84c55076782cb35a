"""Geocoding errors raised by backends and handled by the resolver."""


class GeocodeError(Exception):
    """A geocoding call failed."""


class GeocodeThrottledError(GeocodeError):
    """The backend signalled that requests are arriving too fast."""


class GeocodeNotFoundError(GeocodeError):
    """The backend answered but found no match."""
