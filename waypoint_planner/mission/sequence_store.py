"""
SequenceStore - Mission Sequence Ownership

Owns the ordered mission list of waypoints and polygon references.
Polygon rings are spliced in as single slots so the operator's waypoint
numbering never changes when a polygon is added in front of a waypoint.
"""

import logging
import dataclasses
from collections import abc
from typing import Iterator, List, Optional, Sequence, Tuple, Union

from ..errors import AnchorOutOfRange, EmptyGeometry, NoPendingRing
from ..utils.geo_math import EARTH_RADIUS_M, DistanceBasis, point_distance, round_meters
from .entries import (
    Coordinate,
    EntryKind,
    MissionEntry,
    Placement,
    PolygonReference,
    PolygonRing,
    Waypoint,
)

logger = logging.getLogger(__name__)


class EntriesView(abc.Sequence):
    """
    Read-only view over one snapshot of the mission sequence.

    Iterating the same view twice yields the same entries; later mutations
    of the store are only visible through a new ``entries()`` call.
    """

    def __init__(self, snapshot: Tuple[MissionEntry, ...]):
        self._snapshot = snapshot

    def __getitem__(self, index):
        return self._snapshot[index]

    def __len__(self) -> int:
        return len(self._snapshot)

    def __iter__(self) -> Iterator[MissionEntry]:
        return iter(self._snapshot)

    def __repr__(self) -> str:
        return f"EntriesView({list(self._snapshot)!r})"


class SequenceStore:
    """
    Canonical ordered mission list.

    Every mutation re-validates that each PolygonReference's stored index
    matches its position in the list.
    """

    def __init__(self, config: dict = None):
        """
        Initialize an empty mission.

        Args:
            config: Configuration dictionary (``distance`` section used)
        """
        self.config = config or {}
        self.earth_radius = self.config.get('distance', {}).get('earth_radius_m', EARTH_RADIUS_M)
        self._entries: List[MissionEntry] = []

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def append_waypoints(self, points: Sequence[Coordinate], replace: bool = True) -> int:
        """
        Establish the mission from a freshly drawn line.

        Args:
            points: Ordered (lon, lat) pairs
            replace: Discard the current mission first (default). When
                False the waypoints are appended after the existing entries.

        Returns:
            Number of waypoints added

        Raises:
            EmptyGeometry: If points is empty
        """
        if not points:
            raise EmptyGeometry("Cannot build a mission from an empty line")

        new_waypoints = [Waypoint(float(p[0]), float(p[1])) for p in points]

        if replace:
            if self._entries:
                logger.info(f"Replacing mission of {len(self._entries)} entries")
            self._entries = new_waypoints
        else:
            self._entries.extend(new_waypoints)

        self._revalidate()
        logger.info(f"Mission now has {self.waypoint_count()} waypoints "
                    f"({len(self._entries)} entries)")
        return len(new_waypoints)

    def splice_ring(self, ring: Union[PolygonRing, Sequence[Coordinate]],
                    anchor_index: int,
                    placement: Placement = Placement.BEFORE) -> PolygonReference:
        """
        Insert a polygon reference next to a waypoint.

        The insertion slot starts at the anchor's waypoint number (one
        further for AFTER) and is pushed forward once for every polygon
        reference found at or before the scan position, so it lands
        immediately in front of the target waypoint (or at the end).
        Existing polygon references at or after the slot are renumbered.

        Args:
            ring: Ring to splice in (copied)
            anchor_index: Waypoint number (0-based, polygons not counted)
            placement: BEFORE or AFTER the anchor waypoint

        Returns:
            The inserted PolygonReference

        Raises:
            NoPendingRing: If the ring is empty
            AnchorOutOfRange: If no waypoint has that number
        """
        if not isinstance(ring, PolygonRing):
            ring = PolygonRing.from_points(ring or [])
        if ring.is_empty():
            raise NoPendingRing("No polygon points to import")

        placement = Placement(placement)
        waypoint_count = self.waypoint_count()
        if not 0 <= anchor_index < waypoint_count:
            raise AnchorOutOfRange(
                f"Waypoint {anchor_index} does not exist ({waypoint_count} waypoints)",
                details={'anchor_index': anchor_index, 'waypoint_count': waypoint_count}
            )

        position = anchor_index + (1 if placement is Placement.AFTER else 0)
        scan = 0
        while scan <= position and scan < len(self._entries):
            if self._entries[scan].kind is EntryKind.POLYGON:
                position += 1
            scan += 1
        position = min(position, len(self._entries))

        for entry in self._entries[position:]:
            if entry.kind is EntryKind.POLYGON:
                entry.index += 1

        reference = PolygonReference(index=position, ring=PolygonRing(tuple(ring.coordinates)))
        self._entries.insert(position, reference)
        self._revalidate()

        logger.info(f"Spliced {len(ring)}-vertex polygon {placement.value} "
                    f"waypoint {anchor_index} at slot {position}")
        return reference

    def clear(self):
        """Discard the whole mission."""
        self._entries = []
        logger.info("Mission cleared")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def entry_at(self, index: int) -> MissionEntry:
        if not 0 <= index < len(self._entries):
            raise IndexError(f"No mission entry at {index}")
        return self._entries[index]

    def __len__(self) -> int:
        return len(self._entries)

    def length(self) -> int:
        return len(self._entries)

    def entries(self) -> EntriesView:
        """Snapshot view of the current mission entries."""
        snapshot = tuple(
            dataclasses.replace(entry) if entry.kind is EntryKind.POLYGON else entry
            for entry in self._entries
        )
        return EntriesView(snapshot)

    def waypoints(self) -> List[Waypoint]:
        return [e for e in self._entries if e.kind is EntryKind.WAYPOINT]

    def polygon_references(self) -> List[PolygonReference]:
        return [e for e in self._entries if e.kind is EntryKind.POLYGON]

    def waypoint_count(self) -> int:
        return sum(1 for e in self._entries if e.kind is EntryKind.WAYPOINT)

    def waypoint_distances(self) -> List[Optional[int]]:
        """
        Distances between consecutive waypoints, aligned with the entries.

        Polygon slots are skipped when pairing waypoints and get None; the
        first waypoint gets 0.

        Returns:
            One element per entry: meters from the previous waypoint, or None
        """
        distances: List[Optional[int]] = []
        previous: Optional[Waypoint] = None

        for entry in self._entries:
            if entry.kind is EntryKind.POLYGON:
                distances.append(None)
                continue
            if previous is None:
                distances.append(0)
            else:
                meters = point_distance(previous.coordinate, entry.coordinate,
                                        DistanceBasis.GEOGRAPHIC, self.earth_radius)
                distances.append(round_meters(meters))
            previous = entry

        return distances

    def check_index_consistency(self) -> bool:
        """True if every polygon reference's index equals its position."""
        return all(
            entry.index == position
            for position, entry in enumerate(self._entries)
            if entry.kind is EntryKind.POLYGON
        )

    def _revalidate(self):
        if not self.check_index_consistency():
            stale = [(p, e.index) for p, e in enumerate(self._entries)
                     if e.kind is EntryKind.POLYGON and e.index != p]
            logger.error(f"Polygon reference indices out of sync: {stale}")
            raise RuntimeError(f"Polygon reference indices out of sync: {stale}")
