"""
Review - Read-only Snapshots for the Review Surfaces

Builds the mission table and polygon table contents the modal
presentation layer renders, and describes that layer's interface.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence, Tuple, Union

from ..mission.entries import Coordinate, EntryKind, PolygonRing
from ..mission.sequence_store import SequenceStore
from ..utils.state_machine import ReviewOrigin, SpliceTarget

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WaypointView:
    """Mission table row for a waypoint."""
    position: int
    number: int
    lon: float
    lat: float
    distance: int
    kind: EntryKind = field(default=EntryKind.WAYPOINT, init=False)

    @property
    def label(self) -> str:
        return f"WP({self.number:02d})"

    def coordinates_text(self, precision: int = 6) -> str:
        return f"{self.lon:.{precision}f}°, {self.lat:.{precision}f}°"


@dataclass(frozen=True)
class PolygonRefView:
    """Mission table row for a polygon reference."""
    position: int
    index: int
    ring: Tuple[Coordinate, ...]
    kind: EntryKind = field(default=EntryKind.POLYGON, init=False)

    @property
    def label(self) -> str:
        return f"Polygon Ref ({self.index})"

    @property
    def vertex_count(self) -> int:
        return len(self.ring)


MissionRow = Union[WaypointView, PolygonRefView]


@dataclass(frozen=True)
class MissionReview:
    """Snapshot of the mission for the mission review surface."""
    entries: Tuple[MissionRow, ...]
    distances: Tuple[Optional[int], ...]

    @property
    def waypoint_count(self) -> int:
        return sum(1 for row in self.entries if row.kind is EntryKind.WAYPOINT)

    @property
    def total_distance(self) -> int:
        return sum(d for d in self.distances if d is not None)


@dataclass(frozen=True)
class PolygonPointRow:
    """Polygon table row: one vertex and the distance to the next one."""
    label: str
    lat: float
    lon: float
    distance_to_next: Optional[int]


@dataclass(frozen=True)
class PolygonReview:
    """Snapshot of one ring for the polygon review surface."""
    ring: Tuple[Coordinate, ...]
    ring_distances: Tuple[int, ...]
    can_import: bool
    origin: ReviewOrigin
    target: Optional[SpliceTarget] = None
    area_m2: float = 0.0
    centroid: Optional[Coordinate] = None

    @property
    def rows(self) -> Tuple[PolygonPointRow, ...]:
        rows = []
        for i, (lon, lat) in enumerate(self.ring):
            # ring_distances[i + 1] is the edge i -> i+1; the last one closes the ring
            distance = self.ring_distances[i + 1] if i + 1 < len(self.ring_distances) else None
            rows.append(PolygonPointRow(f"P{i + 1}", lat, lon, distance))
        return tuple(rows)


def build_mission_review(store: SequenceStore) -> MissionReview:
    """
    Snapshot the store for the mission table.

    Args:
        store: Mission sequence store

    Returns:
        MissionReview with one row and one distance per entry
    """
    distances = store.waypoint_distances()
    rows = []
    number = 0

    for position, entry in enumerate(store.entries()):
        if entry.kind is EntryKind.POLYGON:
            rows.append(PolygonRefView(position, entry.index, entry.coordinates))
        else:
            rows.append(WaypointView(position, number, entry.lon, entry.lat, distances[position]))
            number += 1

    return MissionReview(tuple(rows), tuple(distances))


def build_polygon_review(ring: PolygonRing, ring_distances: Sequence[int],
                         origin: ReviewOrigin,
                         target: Optional[SpliceTarget] = None) -> PolygonReview:
    """
    Snapshot a ring for the polygon table.

    Args:
        ring: Ring vertices (lon, lat)
        ring_distances: Closed-ring distances for the vertices
        origin: Why the polygon is being reviewed
        target: Splice target for pending imports

    Returns:
        PolygonReview; only BEFORE/AFTER reviews can be imported
    """
    can_import = origin in (ReviewOrigin.BEFORE, ReviewOrigin.AFTER)
    centroid = ring.centroid() if not ring.is_empty() else None

    return PolygonReview(
        ring=tuple(ring.coordinates),
        ring_distances=tuple(ring_distances),
        can_import=can_import,
        origin=origin,
        target=target,
        area_m2=ring.area_m2(),
        centroid=centroid,
    )


class ReviewSurface(Protocol):
    """Modal presentation layer showing review tables and prompts."""

    def show_mission(self, review: MissionReview) -> None: ...

    def hide_mission(self) -> None: ...

    def show_polygon(self, review: PolygonReview) -> None: ...

    def hide_polygon(self) -> None: ...

    def show_instructions(self) -> None: ...

    def hide_instructions(self) -> None: ...

    def show_prompt(self, message: str) -> None: ...


class LoggingReviewSurface:
    """Review surface that only logs; used when no presentation layer is attached."""

    def show_mission(self, review: MissionReview) -> None:
        logger.debug(f"Mission review: {len(review.entries)} entries, "
                     f"{review.total_distance} m")

    def hide_mission(self) -> None:
        logger.debug("Mission review hidden")

    def show_polygon(self, review: PolygonReview) -> None:
        logger.debug(f"Polygon review ({review.origin.value}): {len(review.ring)} vertices")

    def hide_polygon(self) -> None:
        logger.debug("Polygon review hidden")

    def show_instructions(self) -> None:
        logger.debug("Click on the map to add points; finish the shape to review it, press Enter to cancel")

    def hide_instructions(self) -> None:
        pass

    def show_prompt(self, message: str) -> None:
        logger.info(f"Prompt: {message}")
