"""
GeoMath - Distance Calculations

Provides great-circle and planar distance utilities for mission lines
and closed polygon rings.

All coordinate pairs handled here are (x, y) ordered: (longitude, latitude)
for geographic points, (easting, northing) for projected points.
"""

import math
from enum import Enum
from typing import List, Sequence, Tuple

# Mean earth radius in meters
EARTH_RADIUS_M = 6371008.8

Coordinate = Tuple[float, float]


class DistanceBasis(Enum):
    """How the distance between two coordinate pairs is measured."""
    GEOGRAPHIC = "geographic"   # Great-circle on (lon, lat) degrees
    PLANAR = "planar"           # Euclidean in the native projected CRS


def haversine_distance(lat1: float, lon1: float,
                       lat2: float, lon2: float,
                       radius: float = EARTH_RADIUS_M) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Uses the Haversine formula for accurate short-distance calculations.

    Args:
        lat1: Latitude of point 1 (degrees)
        lon1: Longitude of point 1 (degrees)
        lat2: Latitude of point 2 (degrees)
        lon2: Longitude of point 2 (degrees)
        radius: Sphere radius in meters

    Returns:
        Distance in meters
    """
    # Convert to radians
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    # Haversine formula
    a = (math.sin(delta_lat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) *
         math.sin(delta_lon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return radius * c


def planar_distance(p1: Coordinate, p2: Coordinate) -> float:
    """Euclidean distance between two projected points, in CRS units."""
    return math.hypot(p2[0] - p1[0], p2[1] - p1[1])


def point_distance(p1: Coordinate, p2: Coordinate,
                   basis: DistanceBasis = DistanceBasis.GEOGRAPHIC,
                   radius: float = EARTH_RADIUS_M) -> float:
    """
    Distance between two coordinate pairs in the given basis.

    Args:
        p1: First point (lon, lat) or (x, y)
        p2: Second point (lon, lat) or (x, y)
        basis: Geographic great-circle or planar Euclidean
        radius: Sphere radius for the geographic basis

    Returns:
        Distance in meters (CRS units for the planar basis)
    """
    if basis is DistanceBasis.PLANAR:
        return planar_distance(p1, p2)
    return haversine_distance(p1[1], p1[0], p2[1], p2[0], radius)


def round_meters(distance: float) -> int:
    """Round a non-negative distance to the nearest whole meter, halves up."""
    return int(math.floor(distance + 0.5))


def line_distances(points: Sequence[Coordinate],
                   basis: DistanceBasis = DistanceBasis.GEOGRAPHIC,
                   radius: float = EARTH_RADIUS_M) -> List[int]:
    """
    Per-point distances along an open line.

    Element 0 is always 0; element i is the distance from point i-1 to
    point i, rounded to the nearest meter.

    Args:
        points: Ordered coordinate pairs
        basis: Distance basis
        radius: Sphere radius for the geographic basis

    Returns:
        List with one distance per input point (empty for empty input)
    """
    distances = []
    for i, point in enumerate(points):
        if i == 0:
            distances.append(0)
            continue
        distances.append(round_meters(point_distance(points[i - 1], point, basis, radius)))
    return distances


def ring_distances(points: Sequence[Coordinate],
                   basis: DistanceBasis = DistanceBasis.GEOGRAPHIC,
                   radius: float = EARTH_RADIUS_M) -> List[int]:
    """
    Per-point distances around a closed ring.

    Same as line_distances plus a trailing element for the closing edge
    (last point back to the first), so the result has N+1 elements.

    Args:
        points: Ring vertices without a duplicated closing vertex
        basis: Distance basis
        radius: Sphere radius for the geographic basis

    Returns:
        List of N+1 distances, or an empty list for fewer than 2 points
    """
    if len(points) < 2:
        return []

    distances = line_distances(points, basis, radius)
    distances.append(round_meters(point_distance(points[-1], points[0], basis, radius)))
    return distances
