"""
Mock Components for Testing Without a Map Front End

Provides mock implementations of the map engine and review surfaces for
unit testing and scripted editing sessions.
"""

import logging
from itertools import count
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from waypoint_planner.interaction.review import MissionReview, PolygonReview
from waypoint_planner.mission.entries import EntryKind
from waypoint_planner.utils.state_machine import GeometryKind

logger = logging.getLogger(__name__)


class MockMapEngine:
    """
    Mock map engine holding draw tools and key listeners in memory.

    Tests play the operator by calling finish_drawing() and press_key().
    """

    def __init__(self):
        self._handles = count(1)
        self._tokens = count(1)
        self.draw_tools: Dict[int, Tuple[GeometryKind, Callable]] = {}
        self.key_listeners: Dict[int, Callable[[str], None]] = {}
        self.registrations = 0
        self.deregistrations = 0
        self.fail_key_listener = False

        logger.info("MockMapEngine initialized")

    def register_draw_tool(self, kind: GeometryKind, on_complete: Callable) -> int:
        handle = next(self._handles)
        self.draw_tools[handle] = (kind, on_complete)
        self.registrations += 1
        logger.info(f"Mock: Draw tool {kind.value} registered as {handle}")
        return handle

    def deregister_draw_tool(self, handle: int):
        self.draw_tools.pop(handle, None)
        self.deregistrations += 1
        logger.info(f"Mock: Draw tool {handle} deregistered")

    def add_key_listener(self, on_key: Callable[[str], None]) -> int:
        if self.fail_key_listener:
            raise RuntimeError("Mock: key listener registration failed")
        token = next(self._tokens)
        self.key_listeners[token] = on_key
        return token

    def remove_key_listener(self, token: int):
        self.key_listeners.pop(token, None)

    @property
    def active_handle(self) -> Optional[int]:
        """Most recently registered draw tool still active."""
        return max(self.draw_tools) if self.draw_tools else None

    def finish_drawing(self, coordinates: Sequence, handle: int = None) -> bool:
        """
        Complete the active drawing with the given projected coordinates.

        Args:
            coordinates: Raw projected coordinates
            handle: Draw tool to complete (default: the active one)

        Returns:
            The session's answer, or False if no draw tool is registered
        """
        handle = handle if handle is not None else self.active_handle
        if handle not in self.draw_tools:
            logger.warning(f"Mock: No draw tool {handle} to complete")
            return False
        _, on_complete = self.draw_tools[handle]
        return on_complete(handle, coordinates)

    def press_key(self, key: str):
        for on_key in list(self.key_listeners.values()):
            on_key(key)


class RecordingReviewSurface:
    """Review surface that records every call for assertions."""

    def __init__(self):
        self.calls: List[Tuple[str, Any]] = []
        self.mission: Optional[MissionReview] = None
        self.polygon: Optional[PolygonReview] = None
        self.prompts: List[str] = []
        self.instructions_visible = False

    def show_mission(self, review: MissionReview):
        self.calls.append(("show_mission", review))
        self.mission = review

    def hide_mission(self):
        self.calls.append(("hide_mission", None))
        self.mission = None

    def show_polygon(self, review: PolygonReview):
        self.calls.append(("show_polygon", review))
        self.polygon = review

    def hide_polygon(self):
        self.calls.append(("hide_polygon", None))
        self.polygon = None

    def show_instructions(self):
        self.calls.append(("show_instructions", None))
        self.instructions_visible = True

    def hide_instructions(self):
        self.calls.append(("hide_instructions", None))
        self.instructions_visible = False

    def show_prompt(self, message: str):
        self.calls.append(("show_prompt", message))
        self.prompts.append(message)

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]


class ConsoleReviewSurface:
    """Review surface printing the mission and polygon tables."""

    def __init__(self, precision: int = 6):
        self.precision = precision

    def show_mission(self, review: MissionReview):
        print("\n=== Mission Waypoints ===")
        print(f"{'Waypoint':<18}{'Coordinates':<32}{'Distance (m)':>12}")
        for row in review.entries:
            if row.kind is EntryKind.POLYGON:
                print(f"{row.label:<18}{f'[{row.vertex_count} vertices]':<32}{'':>12}")
            else:
                distance = row.distance if row.number > 0 else ""
                print(f"{row.label:<18}{row.coordinates_text(self.precision):<32}{distance:>12}")
        print(f"Total: {review.total_distance} m over {review.waypoint_count} waypoints")

    def hide_mission(self):
        pass

    def show_polygon(self, review: PolygonReview):
        print(f"\n=== Polygon Coordinates ({review.origin.value}) ===")
        if review.can_import:
            print("[Import Points]")
        print(f"{'Point':<8}{'Latitude':>14}{'Longitude':>14}{'Distance to Next (m)':>22}")
        for row in review.rows:
            distance = row.distance_to_next if row.distance_to_next is not None else ""
            print(f"{row.label:<8}{row.lat:>13.{self.precision}f}°{row.lon:>13.{self.precision}f}°"
                  f"{distance:>22}")
        print(f"Area: {review.area_m2:.0f} m²")

    def hide_polygon(self):
        pass

    def show_instructions(self):
        print("\nClick on the map to add points; finish the shape to review it, "
              "press Enter to cancel.")

    def hide_instructions(self):
        pass

    def show_prompt(self, message: str):
        print(f"\n[!] {message}")
