"""
Projection - Projected <-> Geographic Coordinate Transform

Converts points between the map's native drawing CRS (Web Mercator by
default) and geographic longitude/latitude using pyproj.
"""

import math
import logging
from functools import lru_cache
from typing import Iterable, List, Optional, Tuple

import pyproj

from ..errors import InvalidCoordinate

logger = logging.getLogger(__name__)

Coordinate = Tuple[float, float]

PROJECTED_CRS = "EPSG:3857"
GEOGRAPHIC_CRS = "EPSG:4326"

# Slack for points sitting exactly on the edge of the valid area
_BOUNDS_TOLERANCE = 1e-6

# Web Mercator square world: latitude where y reaches the x extent
MERCATOR_MAX_LAT = 85.0511287798
WEB_MERCATOR_EXTENT = 20037508.342789244


@lru_cache(maxsize=8)
def _get_transformer(from_crs: str, to_crs: str) -> pyproj.Transformer:
    return pyproj.Transformer.from_crs(from_crs, to_crs, always_xy=True)


def _as_pair(coord) -> Coordinate:
    """Coerce a raw coordinate into a finite (x, y) float pair."""
    try:
        if coord is None or len(coord) < 2:
            raise InvalidCoordinate(f"Malformed coordinate: {coord!r}")
        x, y = float(coord[0]), float(coord[1])
    except (TypeError, ValueError) as e:
        raise InvalidCoordinate(f"Malformed coordinate: {coord!r}") from e

    if not (math.isfinite(x) and math.isfinite(y)):
        raise InvalidCoordinate(f"Non-finite coordinate: {coord!r}")
    return (x, y)


def _within(point: Coordinate, bounds: Tuple[float, float, float, float],
            tolerance: float) -> bool:
    min_x, min_y, max_x, max_y = bounds
    return (min_x - tolerance <= point[0] <= max_x + tolerance and
            min_y - tolerance <= point[1] <= max_y + tolerance)


class CoordinateTransform:
    """
    Stateless transform between a projected CRS and geographic lon/lat.

    Valid ranges come from the projected CRS's area of use (the square
    Web Mercator world for EPSG:3857), so out-of-range input is reported as
    InvalidCoordinate instead of producing garbage.
    """

    def __init__(self, config: dict = None):
        """
        Initialize the transform.

        Args:
            config: Configuration dictionary (``projection`` section used)
        """
        self.config = config or {}
        projection_config = self.config.get('projection', {})

        self.projected_crs = projection_config.get('source_crs', PROJECTED_CRS)
        self.geographic_crs = projection_config.get('geographic_crs', GEOGRAPHIC_CRS)

        self._to_geographic = _get_transformer(self.projected_crs, self.geographic_crs)
        self._to_projected = _get_transformer(self.geographic_crs, self.projected_crs)

        crs = pyproj.CRS.from_user_input(self.projected_crs)
        if crs == pyproj.CRS.from_epsg(3857):
            # area_of_use reaches 85.06 deg, past the square world edge
            self.geographic_bounds = (-180.0, -MERCATOR_MAX_LAT, 180.0, MERCATOR_MAX_LAT)
            self.projected_bounds = (-WEB_MERCATOR_EXTENT, -WEB_MERCATOR_EXTENT,
                                     WEB_MERCATOR_EXTENT, WEB_MERCATOR_EXTENT)
        else:
            area = crs.area_of_use
            self.geographic_bounds = area.bounds if area is not None else (-180.0, -90.0, 180.0, 90.0)
            self.projected_bounds = self._to_projected.transform_bounds(*self.geographic_bounds)

        logger.debug(f"CoordinateTransform {self.projected_crs} <-> {self.geographic_crs}")

    def to_geographic(self, point) -> Coordinate:
        """
        Convert a projected point to (lon, lat).

        Args:
            point: Projected (x, y) pair; extra ordinates are ignored

        Returns:
            Tuple of (longitude, latitude) in degrees

        Raises:
            InvalidCoordinate: If the point is malformed or out of range
        """
        x, y = _as_pair(point)
        if not _within((x, y), self.projected_bounds, _BOUNDS_TOLERANCE):
            raise InvalidCoordinate(f"Projected coordinate out of range: ({x}, {y})")

        lon, lat = self._to_geographic.transform(x, y)
        if not (math.isfinite(lon) and math.isfinite(lat)):
            raise InvalidCoordinate(f"Projected coordinate not representable: ({x}, {y})")
        return (lon, lat)

    def to_projected(self, point) -> Coordinate:
        """
        Convert a (lon, lat) point to the projected CRS.

        Args:
            point: Geographic (lon, lat) pair in degrees

        Returns:
            Tuple of (x, y) in projected units

        Raises:
            InvalidCoordinate: If the point is malformed or out of range
        """
        lon, lat = _as_pair(point)
        if not _within((lon, lat), self.geographic_bounds, _BOUNDS_TOLERANCE):
            raise InvalidCoordinate(f"Geographic coordinate out of range: ({lon}, {lat})")

        x, y = self._to_projected.transform(lon, lat)
        if not (math.isfinite(x) and math.isfinite(y)):
            raise InvalidCoordinate(f"Geographic coordinate not representable: ({lon}, {lat})")
        return (x, y)

    def to_geographic_many(self, points: Iterable,
                           dropped: Optional[List] = None) -> List[Coordinate]:
        """
        Convert projected points, dropping any that cannot be converted.

        Args:
            points: Iterable of projected points
            dropped: Optional list that receives the rejected raw points

        Returns:
            List of (lon, lat) tuples for every valid input point
        """
        converted = []
        for point in points:
            try:
                converted.append(self.to_geographic(point))
            except InvalidCoordinate as e:
                logger.warning(f"Dropping point: {e}")
                if dropped is not None:
                    dropped.append(point)
        return converted


@lru_cache(maxsize=1)
def _default_transform() -> CoordinateTransform:
    return CoordinateTransform()


def to_geographic(point) -> Coordinate:
    """Convert a Web Mercator point to (lon, lat)."""
    return _default_transform().to_geographic(point)


def to_projected(point) -> Coordinate:
    """Convert a (lon, lat) point to Web Mercator."""
    return _default_transform().to_projected(point)
