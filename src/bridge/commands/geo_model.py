import math
from typing import Sequence

# WGS84 equatorial radius in metres
EARTH_RADIUS = 6378137.0


class SimpleGeoModel:
    """
    Flat-earth approximation around the mean latitude of two points.
    Accurate enough for the distances between a device's reported positions.
    """

    def __init__(self, radius: float = EARTH_RADIUS):
        self.radius = radius

    def distance(self, a: Sequence[float], b: Sequence[float]) -> float:
        """Distance in metres between two (latitude, longitude) pairs in degrees."""
        lat1, lon1 = math.radians(a[0]), math.radians(a[1])
        lat2, lon2 = math.radians(b[0]), math.radians(b[1])
        x = (lon2 - lon1) * math.cos((lat1 + lat2) / 2)
        y = lat2 - lat1
        return math.hypot(x, y) * self.radius
