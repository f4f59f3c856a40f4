"""
DrawSession - Mission Editing Session Controller

Drives the drawing interaction: takes operator intents and map engine
events, moves the interaction state machine, and integrates finished
geometry into the mission sequence.

Mode flow:
    idle -> type_selected -> drawing -> reviewing_mission / reviewing_polygon
    reviewing_mission -> drawing (polygon splice) -> reviewing_polygon -> reviewing_mission
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple

from ..errors import (
    AnchorOutOfRange,
    EmptyGeometry,
    InvalidArgument,
    InvalidCoordinate,
    InvalidTransition,
    NoDrawTypeSelected,
    NoPendingRing,
    StaleInteractionEvent,
    WaypointPlannerError,
)
from ..mission.entries import Coordinate, EntryKind, Placement, PolygonReference, PolygonRing
from ..mission.sequence_store import SequenceStore
from ..utils.geo_math import EARTH_RADIUS_M, DistanceBasis, ring_distances
from ..utils.projection import CoordinateTransform
from ..utils.state_machine import (
    GeometryKind,
    InteractionMode,
    InteractionState,
    ReviewOrigin,
    SpliceTarget,
    StateMachine,
)
from .draw_tool import DrawToolLease, MapEngine
from .review import (
    LoggingReviewSurface,
    MissionReview,
    PolygonReview,
    ReviewSurface,
    build_mission_review,
    build_polygon_review,
)

logger = logging.getLogger(__name__)


class Intent(Enum):
    """Operator intents emitted by the review surfaces and toolbar."""
    SELECT_DRAW_TYPE = "selectDrawType"
    START_DRAWING = "startDrawing"
    STOP_DRAWING = "stopDrawing"
    INSERT_POLYGON_BEFORE = "insertPolygonBefore"
    INSERT_POLYGON_AFTER = "insertPolygonAfter"
    VIEW_POLYGON = "viewPolygon"
    IMPORT_POINTS = "importPoints"
    CLOSE_MODAL = "closeModal"
    DISMISS_INSTRUCTIONS = "dismissInstructions"


@dataclass
class PendingRing:
    """Ring shown on the polygon review surface."""
    ring: PolygonRing
    ring_distances: List[int]
    origin: ReviewOrigin
    target: Optional[SpliceTarget] = None


class DrawSession:
    """
    Single-operator mission editing session.

    Owns the mission sequence and the interaction mode. Every handler runs
    to completion; the map engine registration taken when drawing starts
    is released on every transition out of the drawing state.
    """

    def __init__(self, engine: MapEngine, surface: ReviewSurface = None,
                 config: dict = None, store: SequenceStore = None,
                 transform: CoordinateTransform = None):
        """
        Initialize the session.

        Args:
            engine: Map engine hosting the draw tool
            surface: Review surface (default: logging only)
            config: Configuration dictionary
            store: Mission sequence store (default: new empty store)
            transform: Coordinate transform (default: from config)
        """
        self.config = config or {}
        self.engine = engine
        self.surface = surface or LoggingReviewSurface()
        self.store = store or SequenceStore(self.config)
        self.transform = transform or CoordinateTransform(self.config)

        drawing_config = self.config.get('drawing', {})
        self.cancel_keys = set(drawing_config.get('cancel_keys', ['Enter', 'Escape']))
        self.min_ring_vertices = drawing_config.get('min_ring_vertices', 3)

        review_config = self.config.get('review', {})
        self.polygon_basis = DistanceBasis(review_config.get('polygon_distance_basis', 'planar'))
        self.earth_radius = self.config.get('distance', {}).get('earth_radius_m', EARTH_RADIUS_M)

        self._lease: Optional[DrawToolLease] = None
        self._pending: Optional[PendingRing] = None

        self.machine = StateMachine()
        self.machine.register_callback(InteractionState.DRAWING, self.surface.show_instructions)
        self.machine.register_exit_callback(InteractionState.DRAWING, self._release_draw_tool)
        self.machine.register_exit_callback(InteractionState.DRAWING, self.surface.hide_instructions)
        self.machine.register_callback(InteractionState.REVIEWING_MISSION, self._show_mission)
        self.machine.register_exit_callback(InteractionState.REVIEWING_MISSION, self.surface.hide_mission)
        self.machine.register_callback(InteractionState.REVIEWING_POLYGON, self._show_polygon)
        self.machine.register_exit_callback(InteractionState.REVIEWING_POLYGON, self.surface.hide_polygon)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def mode(self) -> InteractionMode:
        return self.machine.get_mode()

    @property
    def state(self) -> InteractionState:
        return self.machine.current_state

    @property
    def draw_handle(self) -> Any:
        """Engine handle of the active draw tool, or None."""
        if self._lease is None or not self._lease.active:
            return None
        return self._lease.handle

    def mission_review(self) -> MissionReview:
        return build_mission_review(self.store)

    def polygon_review(self) -> Optional[PolygonReview]:
        if self._pending is None:
            return None
        return build_polygon_review(self._pending.ring, self._pending.ring_distances,
                                    self._pending.origin, self._pending.target)

    def _transition(self, mode: InteractionMode, reason: str = ""):
        if not self.machine.transition_to(mode, reason):
            raise InvalidTransition(
                f"Cannot go from {self.mode.describe()} to {mode.describe()}",
                details={'from': self.mode.describe(), 'to': mode.describe()}
            )

    def _show_mission(self):
        self.surface.show_mission(self.mission_review())

    def _show_polygon(self):
        review = self.polygon_review()
        if review is not None:
            self.surface.show_polygon(review)

    # ------------------------------------------------------------------
    # Draw tool lifecycle
    # ------------------------------------------------------------------

    def _begin_drawing(self, mode: InteractionMode, reason: str):
        lease = DrawToolLease(self.engine, mode.kind, self.on_draw_complete, self.on_key)
        self._lease = lease.acquire()
        try:
            self._transition(mode, reason)
        except WaypointPlannerError:
            self._release_draw_tool()
            raise

    def _release_draw_tool(self):
        lease, self._lease = self._lease, None
        if lease is not None:
            lease.release()

    def _check_current(self, handle: Any, event: str):
        if not self.machine.is_in(InteractionState.DRAWING) or handle != self.draw_handle:
            raise StaleInteractionEvent(
                f"{event} for handle {handle!r} outside its drawing session",
                details={'handle': handle, 'mode': self.mode.describe()}
            )

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    def select_draw_type(self, kind) -> InteractionMode:
        """
        Choose what the next drawing captures.

        Args:
            kind: GeometryKind or its name ("LineString", "line", "Polygon")

        Returns:
            The new mode
        """
        kind = _parse(GeometryKind, kind, "draw type")
        self._transition(InteractionMode.type_selected(kind), f"{kind.value} selected")
        return self.mode

    def start_drawing(self) -> InteractionMode:
        """
        Register the draw tool for the selected geometry kind.

        Returns:
            The new mode

        Raises:
            NoDrawTypeSelected: If no draw type was chosen first
        """
        if self.machine.is_in(InteractionState.DRAWING):
            logger.info("Already drawing")
            return self.mode

        if not self.machine.is_in(InteractionState.TYPE_SELECTED) or self.mode.kind is None:
            raise NoDrawTypeSelected("Please select a draw type first (Line or Polygon)")

        self._begin_drawing(InteractionMode.drawing(self.mode.kind), "drawing started")
        return self.mode

    def stop_drawing(self) -> bool:
        """
        Cancel the drawing session and discard in-progress geometry.

        Returns:
            True if a drawing session (or pending type choice) was cancelled
        """
        if not self.machine.is_in(InteractionState.DRAWING, InteractionState.TYPE_SELECTED):
            logger.debug(f"Nothing to cancel in {self.mode.describe()}")
            return False

        self._transition(InteractionMode.idle(), "drawing cancelled")
        return True

    def insert_polygon(self, waypoint_number: int, placement) -> InteractionMode:
        """
        Start drawing a polygon to splice next to a waypoint.

        Args:
            waypoint_number: Waypoint number from the mission table
            placement: Placement.BEFORE / AFTER (or "before" / "after")

        Returns:
            The new mode

        Raises:
            AnchorOutOfRange: If the waypoint does not exist
            InvalidTransition: If the mission review is not open
        """
        placement = _parse(Placement, placement, "placement")
        if not self.machine.is_in(InteractionState.REVIEWING_MISSION):
            raise InvalidTransition("Polygons can only be inserted from the mission review")

        waypoint_count = self.store.waypoint_count()
        if not 0 <= waypoint_number < waypoint_count:
            raise AnchorOutOfRange(
                f"Waypoint {waypoint_number} does not exist ({waypoint_count} waypoints)",
                details={'anchor_index': waypoint_number, 'waypoint_count': waypoint_count}
            )

        target = SpliceTarget(waypoint_number, placement)
        self._begin_drawing(InteractionMode.drawing(GeometryKind.POLYGON, target),
                            f"polygon {placement.value} WP({waypoint_number:02d})")
        return self.mode

    def insert_polygon_before(self, index: int) -> InteractionMode:
        return self.insert_polygon(index, Placement.BEFORE)

    def insert_polygon_after(self, index: int) -> InteractionMode:
        return self.insert_polygon(index, Placement.AFTER)

    def view_polygon(self, index: int) -> PolygonReview:
        """
        Open an existing polygon reference read-only.

        Args:
            index: Sequence position of the polygon reference

        Returns:
            The polygon review shown
        """
        if not self.machine.is_in(InteractionState.REVIEWING_MISSION):
            raise InvalidTransition("Polygons can only be viewed from the mission review")

        if not 0 <= index < len(self.store) or self.store.entry_at(index).kind is not EntryKind.POLYGON:
            raise AnchorOutOfRange(f"No polygon reference at slot {index}",
                                   details={'index': index})

        reference: PolygonReference = self.store.entry_at(index)
        distances = ring_distances(reference.coordinates, DistanceBasis.GEOGRAPHIC, self.earth_radius)
        self._pending = PendingRing(reference.ring, distances, ReviewOrigin.VIEW)
        self._transition(InteractionMode.reviewing_polygon(ReviewOrigin.VIEW),
                         f"viewing polygon at slot {index}")
        return self.polygon_review()

    def import_points(self) -> PolygonReference:
        """
        Splice the pending polygon into the mission.

        Returns:
            The inserted PolygonReference

        Raises:
            NoPendingRing: If there is no ring awaiting import
            InvalidTransition: If the reviewed ring is not importable
        """
        pending = self._pending
        if not self.machine.is_in(InteractionState.REVIEWING_POLYGON) or pending is None:
            raise NoPendingRing("No polygon is waiting to be imported")
        if pending.target is None or pending.origin not in (ReviewOrigin.BEFORE, ReviewOrigin.AFTER):
            raise InvalidTransition(f"A {pending.origin.value} polygon cannot be imported")

        reference = self.store.splice_ring(pending.ring, pending.target.index,
                                           pending.target.placement)
        self._pending = None
        self._transition(InteractionMode.reviewing_mission(),
                         f"polygon imported at slot {reference.index}")
        return reference

    def close_modal(self) -> bool:
        """
        Close the review surface on top.

        Returns:
            True if a review surface was closed
        """
        if self.machine.is_in(InteractionState.REVIEWING_POLYGON):
            origin = self.mode.origin
            self._pending = None
            if origin is ReviewOrigin.NORMAL:
                self._transition(InteractionMode.idle(), "polygon review closed")
            else:
                self._transition(InteractionMode.reviewing_mission(), "polygon review closed")
            return True

        if self.machine.is_in(InteractionState.REVIEWING_MISSION):
            self._transition(InteractionMode.idle(), "mission review closed")
            return True

        return False

    def dismiss_instructions(self) -> bool:
        self.surface.hide_instructions()
        return True

    def dispatch(self, intent, **kwargs) -> Any:
        """
        Handle an intent from the review surfaces.

        Recoverable errors are reported back as a prompt and logged; the
        mission keeps its last consistent state.

        Args:
            intent: Intent or its name ("insertPolygonAfter", ...)
            **kwargs: Intent arguments (``kind`` or ``index``)

        Returns:
            The handler's result, or None if the intent was rejected
        """
        try:
            intent = _parse(Intent, intent, "intent")
        except InvalidArgument as e:
            logger.warning(e.message)
            self.surface.show_prompt(e.message)
            return None

        handlers = {
            Intent.SELECT_DRAW_TYPE: self.select_draw_type,
            Intent.START_DRAWING: self.start_drawing,
            Intent.STOP_DRAWING: self.stop_drawing,
            Intent.INSERT_POLYGON_BEFORE: self.insert_polygon_before,
            Intent.INSERT_POLYGON_AFTER: self.insert_polygon_after,
            Intent.VIEW_POLYGON: self.view_polygon,
            Intent.IMPORT_POINTS: self.import_points,
            Intent.CLOSE_MODAL: self.close_modal,
            Intent.DISMISS_INSTRUCTIONS: self.dismiss_instructions,
        }

        try:
            return handlers[intent](**kwargs)
        except WaypointPlannerError as e:
            logger.warning(f"{intent.value} rejected: {e.message}")
            self.surface.show_prompt(e.message)
            return None

    # ------------------------------------------------------------------
    # Map engine events
    # ------------------------------------------------------------------

    def on_draw_complete(self, handle: Any, coordinates: Sequence) -> bool:
        """
        Integrate geometry finished by the draw tool.

        Args:
            handle: Draw tool handle the geometry belongs to
            coordinates: Raw projected coordinates; polygons may arrive as
                a list of rings, outer ring first

        Returns:
            True if the geometry was accepted
        """
        try:
            self._check_current(handle, "Draw completion")
        except StaleInteractionEvent as e:
            logger.info(f"Ignoring stale event: {e.message}")
            return False

        mode = self.mode
        try:
            if mode.kind is GeometryKind.LINE:
                self._complete_line(coordinates)
            else:
                self._complete_polygon(coordinates, mode.target)
        except EmptyGeometry as e:
            logger.warning(f"Drawing aborted: {e.message}")
            self._pending = None
            self._transition(InteractionMode.idle(), "empty geometry")
            self.surface.show_prompt(e.message)
            return False
        except Exception:
            self._pending = None
            self.machine.force_mode(InteractionMode.idle(), "draw completion failed")
            raise
        return True

    def on_key(self, handle: Any, key: str) -> bool:
        """
        Handle a key press delivered while drawing.

        Args:
            handle: Draw tool handle the key listener was registered for
            key: Key name

        Returns:
            True if the key cancelled the drawing session
        """
        try:
            self._check_current(handle, f"Key {key!r}")
        except StaleInteractionEvent as e:
            logger.info(f"Ignoring stale event: {e.message}")
            return False

        if key not in self.cancel_keys:
            return False
        return self.stop_drawing()

    def _complete_line(self, coordinates: Sequence):
        points = self.transform.to_geographic_many(coordinates)
        if not points:
            raise EmptyGeometry("The drawn line has no valid points")

        self.store.append_waypoints(points)
        self._transition(InteractionMode.reviewing_mission(), f"line of {len(points)} waypoints")

    def _complete_polygon(self, coordinates: Sequence, target: Optional[SpliceTarget]):
        projected, geographic = self._convert_ring(_outer_ring(coordinates))
        if len(geographic) < self.min_ring_vertices:
            raise EmptyGeometry(
                f"The drawn polygon has {len(geographic)} valid vertices "
                f"(at least {self.min_ring_vertices} needed)"
            )

        # Preview distances of a fresh ring use the configured basis; planar
        # measures the shape in the drawing CRS without reprojection.
        if self.polygon_basis is DistanceBasis.PLANAR:
            distances = ring_distances(projected, DistanceBasis.PLANAR)
        else:
            distances = ring_distances(geographic, DistanceBasis.GEOGRAPHIC, self.earth_radius)

        if target is None:
            origin = ReviewOrigin.NORMAL
        else:
            origin = ReviewOrigin.for_placement(target.placement)

        self._pending = PendingRing(PolygonRing(tuple(geographic)), distances, origin, target)
        self._transition(InteractionMode.reviewing_polygon(origin, target),
                         f"polygon of {len(geographic)} vertices")

    def _convert_ring(self, coordinates: Sequence) -> Tuple[List[Coordinate], List[Coordinate]]:
        projected: List[Coordinate] = []
        geographic: List[Coordinate] = []
        for point in coordinates:
            try:
                lonlat = self.transform.to_geographic(point)
            except InvalidCoordinate as e:
                logger.warning(f"Dropping polygon vertex: {e.message}")
                continue
            xy = (float(point[0]), float(point[1]))
            # Repeated clicks on one spot add nothing to the ring
            if projected and projected[-1] == xy:
                continue
            projected.append(xy)
            geographic.append(lonlat)

        if len(projected) > 1 and projected[0] == projected[-1]:
            projected.pop()
            geographic.pop()
        return projected, geographic

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def reset(self):
        """Clear the mission and return to idle, releasing the draw tool."""
        self._pending = None
        self.machine.reset()
        self._release_draw_tool()
        self.store.clear()

    def close(self):
        self.reset()

    def __enter__(self) -> "DrawSession":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def _outer_ring(coordinates: Sequence) -> Sequence:
    """Accept a flat ring or a list of rings and return the outer ring."""
    if not coordinates:
        return []
    first = coordinates[0]
    if isinstance(first, (list, tuple)) and first and isinstance(first[0], (list, tuple)):
        return first
    return coordinates


def _parse(enum_type, value, what: str):
    """Coerce surface input into an enum member."""
    try:
        return enum_type(value)
    except ValueError as e:
        raise InvalidArgument(f"Unknown {what}: {value!r}", details={what: value}) from e
