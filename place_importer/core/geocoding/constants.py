"""Geographic constants for geocoding."""

from dataclasses import dataclass

# Geographic center of the contiguous United States
US_CENTER = (39.8283, -98.5795)


@dataclass(frozen=True)
class Region:
    """A center point with latitude/longitude spans, in degrees."""

    latitude: float
    longitude: float
    latitude_span: float
    longitude_span: float

    @property
    def viewbox(self) -> tuple[tuple[float, float], tuple[float, float]]:
        """Opposite corners as ``((south, west), (north, east))``."""
        half_lat = self.latitude_span / 2
        half_lon = self.longitude_span / 2
        return (
            (self.latitude - half_lat, self.longitude - half_lon),
            (self.latitude + half_lat, self.longitude + half_lon),
        )


# Region bias used for free-text queries
US_REGION = Region(
    latitude=US_CENTER[0],
    longitude=US_CENTER[1],
    latitude_span=30.0,
    longitude_span=60.0,
)
