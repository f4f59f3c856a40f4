"""
Entries - Mission Sequence Entry Types

A mission is an ordered list mixing two entry kinds: single waypoints and
references to whole polygon rings. Each entry carries an explicit kind tag.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Sequence, Tuple, Union

import pyproj
from shapely.geometry import MultiPoint, Polygon
from shapely.ops import transform as shapely_transform

logger = logging.getLogger(__name__)

Coordinate = Tuple[float, float]


class EntryKind(Enum):
    """Tag distinguishing mission sequence entries."""
    WAYPOINT = "waypoint"
    POLYGON = "polygon"


class Placement(Enum):
    """Where a spliced polygon goes relative to its anchor waypoint."""
    BEFORE = "before"
    AFTER = "after"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value == value.lower():
                    return member
        return None


@dataclass(frozen=True)
class Waypoint:
    """Single geographic point of the mission."""
    lon: float
    lat: float
    kind: EntryKind = field(default=EntryKind.WAYPOINT, init=False)

    @property
    def coordinate(self) -> Coordinate:
        return (self.lon, self.lat)


def _utm_crs(lat: float, lon: float) -> str:
    """EPSG code of the UTM zone containing the given point."""
    zone_number = int((lon + 180) / 6) + 1
    zone_number = min(max(zone_number, 1), 60)
    if lat >= 0:
        return f"EPSG:{32600 + zone_number}"
    return f"EPSG:{32700 + zone_number}"


@dataclass(frozen=True)
class PolygonRing:
    """
    Closed shape as ordered (lon, lat) vertices.

    The closing edge (last vertex back to the first) is implied and never
    stored as a duplicate vertex.
    """
    coordinates: Tuple[Coordinate, ...] = ()

    @classmethod
    def from_points(cls, points: Sequence[Sequence[float]]) -> "PolygonRing":
        """
        Build a ring, stripping a duplicated closing vertex if present.

        Args:
            points: Ordered (lon, lat) pairs

        Returns:
            New PolygonRing owning a copy of the coordinates
        """
        coords = [(float(p[0]), float(p[1])) for p in points]
        if len(coords) > 1 and coords[0] == coords[-1]:
            coords.pop()
        return cls(tuple(coords))

    def __len__(self) -> int:
        return len(self.coordinates)

    def __iter__(self) -> Iterator[Coordinate]:
        return iter(self.coordinates)

    def is_empty(self) -> bool:
        return not self.coordinates

    def centroid(self) -> Coordinate:
        """
        Get the centroid of the ring.

        Returns:
            Tuple of (longitude, latitude)
        """
        if not self.coordinates:
            raise ValueError("Empty ring has no centroid")
        if len(self.coordinates) < 3:
            point = MultiPoint(self.coordinates).centroid
        else:
            point = Polygon(self.coordinates).centroid
        return (point.x, point.y)

    def area_m2(self) -> float:
        """
        Calculate approximate area of the ring in square meters.

        The ring is projected to the UTM zone of its centroid for metric
        calculations.

        Returns:
            Area in square meters (0.0 for fewer than 3 vertices)
        """
        if len(self.coordinates) < 3:
            return 0.0

        poly_lonlat = Polygon(self.coordinates)
        centroid = poly_lonlat.centroid
        utm_crs = _utm_crs(centroid.y, centroid.x)

        project_to_utm = pyproj.Transformer.from_crs(
            "EPSG:4326", utm_crs, always_xy=True).transform
        poly_utm = shapely_transform(project_to_utm, poly_lonlat)

        return poly_utm.area


@dataclass
class PolygonReference:
    """
    One mission slot standing for a whole polygon ring.

    ``index`` is kept equal to the reference's position in the sequence by
    the sequence store.
    """
    index: int
    ring: PolygonRing
    kind: EntryKind = field(default=EntryKind.POLYGON, init=False)

    @property
    def coordinates(self) -> Tuple[Coordinate, ...]:
        return self.ring.coordinates


MissionEntry = Union[Waypoint, PolygonReference]
