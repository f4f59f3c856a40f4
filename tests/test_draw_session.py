"""
Test Draw Session - Validates the drawing interaction controller

Tests:
1. Line drawing into the mission review
2. Polygon drawing, splicing and viewing
3. Cancellation and stale events
4. Draw tool registration lifecycle
5. Intent dispatch and prompts
"""

import sys
import math
import pytest
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from simulation.mock_components import MockMapEngine, RecordingReviewSurface
from waypoint_planner.errors import (
    AnchorOutOfRange,
    InvalidArgument,
    InvalidTransition,
    NoDrawTypeSelected,
    NoPendingRing,
)
from waypoint_planner.interaction.draw_session import DrawSession, Intent
from waypoint_planner.mission.entries import EntryKind, Placement
from waypoint_planner.mission.sequence_store import SequenceStore
from waypoint_planner.utils.geo_math import line_distances
from waypoint_planner.utils.projection import CoordinateTransform
from waypoint_planner.utils.state_machine import GeometryKind, InteractionState, ReviewOrigin

TRANSFORM = CoordinateTransform()

# (lon, lat)
LINE_LONLAT = [(77.5946, 12.9716), (77.5946, 12.9730), (77.5960, 12.9730)]
LINE = [TRANSFORM.to_projected(p) for p in LINE_LONLAT]

# Projected square near the origin, closed the way draw tools deliver it
SQUARE = [(0.0, 0.0), (1000.0, 0.0), (1000.0, 1000.0), (0.0, 1000.0), (0.0, 0.0)]


@pytest.fixture
def engine():
    return MockMapEngine()


@pytest.fixture
def surface():
    return RecordingReviewSurface()


@pytest.fixture
def session(engine, surface):
    return DrawSession(engine, surface)


@pytest.fixture
def reviewing(session, engine):
    """Session in mission review with the three-waypoint line drawn."""
    session.select_draw_type(GeometryKind.LINE)
    session.start_drawing()
    engine.finish_drawing(LINE)
    assert session.state is InteractionState.REVIEWING_MISSION
    return session


class TestLineDrawing:
    """Tests for drawing the mission line."""

    def test_start_requires_type(self, session, engine):
        with pytest.raises(NoDrawTypeSelected):
            session.start_drawing()
        assert session.state is InteractionState.IDLE
        assert engine.registrations == 0

    def test_start_registers_tool(self, session, engine, surface):
        session.select_draw_type("LineString")
        session.start_drawing()

        assert session.state is InteractionState.DRAWING
        assert session.draw_handle in engine.draw_tools
        assert len(engine.key_listeners) == 1
        assert surface.instructions_visible

    def test_line_completion(self, reviewing, engine, surface):
        store = reviewing.store
        assert store.waypoint_count() == 3
        for waypoint, (lon, lat) in zip(store.waypoints(), LINE_LONLAT):
            assert waypoint.lon == pytest.approx(lon, abs=1e-9)
            assert waypoint.lat == pytest.approx(lat, abs=1e-9)

        expected = line_distances([w.coordinate for w in store.waypoints()])
        assert list(surface.mission.distances) == expected
        assert expected[1] > 0 and expected[2] > 0

    def test_line_distances_computed_once_for_review(self, session, engine, surface, monkeypatch):
        calls = []
        original = SequenceStore.waypoint_distances

        def counting(store):
            calls.append(1)
            return original(store)

        monkeypatch.setattr(SequenceStore, "waypoint_distances", counting)
        session.select_draw_type(GeometryKind.LINE)
        session.start_drawing()
        engine.finish_drawing(LINE)

        assert len(calls) == 1
        assert surface.mission.total_distance == sum(surface.mission.distances)
        assert session.machine.get_history()[-1].reason == "line of 3 waypoints"

    def test_completion_releases_tool(self, reviewing, engine, surface):
        assert engine.draw_tools == {}
        assert engine.key_listeners == {}
        assert reviewing.draw_handle is None
        assert not surface.instructions_visible

    def test_single_point_line(self, session, engine, surface):
        session.select_draw_type(GeometryKind.LINE)
        session.start_drawing()
        engine.finish_drawing(LINE[:1])

        assert session.state is InteractionState.REVIEWING_MISSION
        assert list(surface.mission.distances) == [0]
        assert surface.prompts == []

    def test_empty_line_aborts(self, session, engine, surface):
        session.select_draw_type(GeometryKind.LINE)
        session.start_drawing()

        assert engine.finish_drawing([]) is False

        assert session.state is InteractionState.IDLE
        assert len(session.store) == 0
        assert engine.draw_tools == {}
        assert len(surface.prompts) == 1

    def test_invalid_points_dropped(self, session, engine):
        session.select_draw_type(GeometryKind.LINE)
        session.start_drawing()
        engine.finish_drawing([LINE[0], (math.nan, 0.0), (9.9e7, 0.0), LINE[1]])

        assert session.store.waypoint_count() == 2

    def test_new_line_replaces_mission(self, reviewing, engine):
        reviewing.select_draw_type(GeometryKind.LINE)
        reviewing.start_drawing()
        engine.finish_drawing(LINE[:2])

        assert reviewing.store.waypoint_count() == 2

    def test_mission_review_rows(self, reviewing):
        review = reviewing.mission_review()
        labels = [row.label for row in review.entries]

        assert labels == ["WP(00)", "WP(01)", "WP(02)"]
        assert review.entries[0].coordinates_text() == "77.594600°, 12.971600°"


class TestPolygonDrawing:
    """Tests for drawing a freestanding polygon."""

    def test_normal_polygon_review(self, session, engine, surface):
        session.select_draw_type(GeometryKind.POLYGON)
        session.start_drawing()
        engine.finish_drawing(SQUARE)

        assert session.state is InteractionState.REVIEWING_POLYGON
        assert session.mode.origin is ReviewOrigin.NORMAL

        review = surface.polygon
        assert len(review.ring) == 4
        assert len(review.ring_distances) == 5
        assert review.can_import is False

    def test_planar_preview_distances(self, session, engine, surface):
        """Fresh polygon previews measure the ring in the drawing CRS."""
        session.select_draw_type(GeometryKind.POLYGON)
        session.start_drawing()
        engine.finish_drawing(SQUARE)

        review = surface.polygon
        assert list(review.ring_distances) == [0, 1000, 1000, 1000, 1000]
        assert [row.distance_to_next for row in review.rows] == [1000, 1000, 1000, 1000]
        assert [row.label for row in review.rows] == ["P1", "P2", "P3", "P4"]

    def test_geographic_preview_distances(self, engine, surface):
        config = {'review': {'polygon_distance_basis': 'geographic'}}
        session = DrawSession(engine, surface, config)
        session.select_draw_type(GeometryKind.POLYGON)
        session.start_drawing()
        engine.finish_drawing(SQUARE)

        # Web Mercator is true scale at the equator
        assert all(abs(d - 1000) <= 1 for d in surface.polygon.ring_distances[1:])

    def test_nested_ring_input(self, session, engine, surface):
        session.select_draw_type(GeometryKind.POLYGON)
        session.start_drawing()
        engine.finish_drawing([SQUARE])

        assert len(surface.polygon.ring) == 4

    def test_area_reported(self, session, engine, surface):
        session.select_draw_type(GeometryKind.POLYGON)
        session.start_drawing()
        engine.finish_drawing(SQUARE)

        assert 0.9e6 < surface.polygon.area_m2 < 1.1e6

    def test_degenerate_polygon_aborts(self, session, engine, surface):
        session.select_draw_type(GeometryKind.POLYGON)
        session.start_drawing()

        assert engine.finish_drawing([(0.0, 0.0), (10.0, 0.0), (0.0, 0.0)]) is False
        assert session.state is InteractionState.IDLE
        assert surface.prompts

    def test_repeated_vertex_polygon_aborts(self, session, engine, surface):
        """A double click on one spot leaves only two distinct vertices."""
        session.select_draw_type(GeometryKind.POLYGON)
        session.start_drawing()

        assert engine.finish_drawing([(0.0, 0.0), (0.0, 0.0), (10.0, 0.0), (0.0, 0.0)]) is False
        assert session.state is InteractionState.IDLE
        assert session.polygon_review() is None
        assert surface.prompts

    def test_repeated_vertices_collapsed(self, session, engine, surface):
        doubled = [SQUARE[0], SQUARE[1], SQUARE[1], SQUARE[2], SQUARE[3], SQUARE[3], SQUARE[4]]
        session.select_draw_type(GeometryKind.POLYGON)
        session.start_drawing()
        engine.finish_drawing(doubled)

        assert len(surface.polygon.ring) == 4
        assert list(surface.polygon.ring_distances) == [0, 1000, 1000, 1000, 1000]

    def test_normal_polygon_cannot_import(self, session, engine):
        session.select_draw_type(GeometryKind.POLYGON)
        session.start_drawing()
        engine.finish_drawing(SQUARE)

        with pytest.raises(InvalidTransition):
            session.import_points()

    def test_close_normal_polygon(self, session, engine):
        session.select_draw_type(GeometryKind.POLYGON)
        session.start_drawing()
        engine.finish_drawing(SQUARE)

        assert session.close_modal() is True
        assert session.state is InteractionState.IDLE
        assert session.polygon_review() is None


class TestPolygonSplicing:
    """Tests for splicing polygons into the mission."""

    def test_insert_after_flow(self, reviewing, engine, surface):
        """Line [A, B, C] + polygon after B -> [A, B, P(2), C]."""
        reviewing.insert_polygon_after(1)

        assert reviewing.state is InteractionState.DRAWING
        assert reviewing.mode.target.placement is Placement.AFTER
        assert surface.mission is None

        engine.finish_drawing(SQUARE)
        assert reviewing.mode.origin is ReviewOrigin.AFTER
        assert surface.polygon.can_import is True

        reference = reviewing.import_points()

        assert reviewing.state is InteractionState.REVIEWING_MISSION
        assert reference.index == 2
        kinds = [entry.kind for entry in reviewing.store.entries()]
        assert kinds == [EntryKind.WAYPOINT, EntryKind.WAYPOINT, EntryKind.POLYGON, EntryKind.WAYPOINT]
        assert surface.mission.entries[2].label == "Polygon Ref (2)"
        assert surface.mission.distances[2] is None

    def test_insert_before_flow(self, reviewing, engine):
        reviewing.insert_polygon_before(0)
        engine.finish_drawing(SQUARE)
        reference = reviewing.import_points()

        assert reference.index == 0
        assert reviewing.store.entry_at(0).kind is EntryKind.POLYGON

    def test_close_without_import(self, reviewing, engine):
        reviewing.insert_polygon_after(1)
        engine.finish_drawing(SQUARE)

        assert reviewing.close_modal() is True

        assert reviewing.state is InteractionState.REVIEWING_MISSION
        assert len(reviewing.store) == 3

    def test_insert_requires_mission_review(self, session):
        with pytest.raises(InvalidTransition):
            session.insert_polygon_after(0)

    def test_insert_unknown_waypoint(self, reviewing, engine):
        with pytest.raises(AnchorOutOfRange):
            reviewing.insert_polygon_before(3)
        assert reviewing.state is InteractionState.REVIEWING_MISSION
        assert engine.registrations == 1

    def test_import_without_pending(self, reviewing):
        with pytest.raises(NoPendingRing):
            reviewing.import_points()

    def test_view_polygon(self, reviewing, engine, surface):
        reviewing.insert_polygon_after(1)
        engine.finish_drawing(SQUARE)
        reviewing.import_points()

        review = reviewing.view_polygon(2)

        assert reviewing.mode.origin is ReviewOrigin.VIEW
        assert review.can_import is False
        assert len(review.ring_distances) == 5

        before = [e.kind for e in reviewing.store.entries()]
        assert reviewing.close_modal() is True
        assert reviewing.state is InteractionState.REVIEWING_MISSION
        assert [e.kind for e in reviewing.store.entries()] == before

    def test_view_waypoint_slot_rejected(self, reviewing):
        with pytest.raises(AnchorOutOfRange):
            reviewing.view_polygon(0)


class TestCancellation:
    """Tests for cancelling and stale events."""

    def test_cancel_from_type_selected(self, session):
        """TypeSelected(Polygon) + cancel -> Idle, mission unchanged."""
        session.select_draw_type(GeometryKind.POLYGON)

        assert session.stop_drawing() is True
        assert session.state is InteractionState.IDLE
        assert len(session.store) == 0

    def test_cancel_key_while_drawing(self, session, engine):
        session.select_draw_type(GeometryKind.POLYGON)
        session.start_drawing()

        engine.press_key("Enter")

        assert session.state is InteractionState.IDLE
        assert engine.draw_tools == {}
        assert engine.key_listeners == {}
        assert engine.deregistrations == 1

    def test_other_keys_ignored(self, session, engine):
        session.select_draw_type(GeometryKind.LINE)
        session.start_drawing()

        engine.press_key("a")

        assert session.state is InteractionState.DRAWING

    def test_completion_after_cancel_ignored(self, reviewing, engine):
        reviewing.insert_polygon_after(0)
        handle = reviewing.draw_handle
        engine.press_key("Escape")

        assert reviewing.on_draw_complete(handle, SQUARE) is False
        assert len(reviewing.store) == 3
        assert reviewing.state is InteractionState.IDLE

    def test_key_for_old_handle_ignored(self, session, engine):
        session.select_draw_type(GeometryKind.LINE)
        session.start_drawing()
        old_handle = session.draw_handle
        session.stop_drawing()
        session.select_draw_type(GeometryKind.LINE)
        session.start_drawing()

        assert session.on_key(old_handle, "Enter") is False
        assert session.state is InteractionState.DRAWING

    def test_stop_when_idle(self, session):
        assert session.stop_drawing() is False


class TestDrawToolLifecycle:
    """Tests for draw tool registration."""

    def test_one_registration_per_session(self, reviewing, engine):
        reviewing.insert_polygon_after(0)
        engine.finish_drawing(SQUARE)
        reviewing.import_points()

        assert engine.registrations == 2
        assert engine.deregistrations == 2
        assert engine.draw_tools == {}

    def test_partial_registration_rolled_back(self, session, engine):
        engine.fail_key_listener = True
        session.select_draw_type(GeometryKind.LINE)

        with pytest.raises(RuntimeError):
            session.start_drawing()

        assert engine.draw_tools == {}
        assert session.state is InteractionState.TYPE_SELECTED

    def test_failed_completion_releases_tool(self, session, engine, monkeypatch):
        session.select_draw_type(GeometryKind.LINE)
        session.start_drawing()

        def broken(points, replace=True):
            raise RuntimeError("store failure")

        monkeypatch.setattr(session.store, "append_waypoints", broken)

        with pytest.raises(RuntimeError):
            engine.finish_drawing(LINE)

        assert session.state is InteractionState.IDLE
        assert engine.draw_tools == {}

    def test_reset(self, reviewing, engine):
        reviewing.insert_polygon_after(0)

        reviewing.reset()

        assert reviewing.state is InteractionState.IDLE
        assert len(reviewing.store) == 0
        assert engine.draw_tools == {}

    def test_context_manager_releases(self, engine, surface):
        with DrawSession(engine, surface) as session:
            session.select_draw_type(GeometryKind.LINE)
            session.start_drawing()
        assert engine.draw_tools == {}


class TestDispatch:
    """Tests for intent dispatch."""

    def test_missing_type_becomes_prompt(self, session, surface):
        assert session.dispatch(Intent.START_DRAWING) is None
        assert surface.prompts == ["Please select a draw type first (Line or Polygon)"]
        assert session.state is InteractionState.IDLE

    def test_intent_names(self, session, engine):
        session.dispatch("selectDrawType", kind="line")
        session.dispatch("startDrawing")
        engine.finish_drawing(LINE)
        session.dispatch("insertPolygonAfter", index=1)
        engine.finish_drawing(SQUARE)
        reference = session.dispatch("importPoints")

        assert reference.index == 2
        assert session.dispatch("closeModal") is True
        assert session.state is InteractionState.IDLE

    def test_rejected_insert_keeps_review(self, reviewing, surface):
        assert reviewing.dispatch(Intent.INSERT_POLYGON_BEFORE, index=7) is None
        assert reviewing.state is InteractionState.REVIEWING_MISSION
        assert len(surface.prompts) == 1

    def test_view_polygon_intent(self, reviewing, engine, surface):
        reviewing.dispatch(Intent.INSERT_POLYGON_BEFORE, index=1)
        engine.finish_drawing(SQUARE)
        reviewing.dispatch(Intent.IMPORT_POINTS)

        review = reviewing.dispatch(Intent.VIEW_POLYGON, index=1)

        assert review.origin is ReviewOrigin.VIEW
        assert surface.polygon == review

    def test_dismiss_instructions(self, session, surface):
        session.dispatch(Intent.SELECT_DRAW_TYPE, kind=GeometryKind.LINE)
        session.dispatch(Intent.START_DRAWING)
        session.dispatch(Intent.DISMISS_INSTRUCTIONS)

        assert not surface.instructions_visible
        assert session.state is InteractionState.DRAWING

    def test_unknown_intent_becomes_prompt(self, session, surface):
        assert session.dispatch("launchRocket") is None
        assert surface.prompts == ["Unknown intent: 'launchRocket'"]
        assert session.state is InteractionState.IDLE

    def test_unknown_draw_type_becomes_prompt(self, session, surface):
        assert session.dispatch(Intent.SELECT_DRAW_TYPE, kind="circle") is None
        assert surface.prompts == ["Unknown draw type: 'circle'"]
        assert session.state is InteractionState.IDLE

    def test_unknown_placement_rejected(self, reviewing, engine):
        with pytest.raises(InvalidArgument):
            reviewing.insert_polygon(0, "sideways")
        assert reviewing.state is InteractionState.REVIEWING_MISSION
        assert engine.draw_tools == {}

    def test_invalid_argument_is_value_error(self, session):
        with pytest.raises(ValueError):
            session.select_draw_type("circle")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
