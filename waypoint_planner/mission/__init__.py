# Mission - Sequence Model
"""
Mission sequence model mixing waypoints and polygon references.

Modules:
    - entries: Waypoint, PolygonRing and PolygonReference types
    - sequence_store: Ordered mission list with polygon splicing
"""

from .entries import EntryKind, Placement, Waypoint, PolygonRing, PolygonReference
from .sequence_store import SequenceStore, EntriesView

__all__ = [
    "EntryKind",
    "Placement",
    "Waypoint",
    "PolygonRing",
    "PolygonReference",
    "SequenceStore",
    "EntriesView"
]
