"""Domain-specific errors for the waypoint planner.

Every error raised by the editing core is recoverable: it is reported to the
operator (or only logged) and the mission sequence keeps its last
consistent state.
"""

from typing import Any, Dict, Optional


class WaypointPlannerError(Exception):
    code = "WAYPOINT_PLANNER_ERROR"

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": False,
            "error_code": self.code,
            "error": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class NoDrawTypeSelected(WaypointPlannerError):
    code = "NO_DRAW_TYPE_SELECTED"


class EmptyGeometry(WaypointPlannerError):
    code = "EMPTY_GEOMETRY"


class InvalidCoordinate(WaypointPlannerError, ValueError):
    code = "INVALID_COORDINATE"


class StaleInteractionEvent(WaypointPlannerError):
    code = "STALE_INTERACTION_EVENT"


class NoPendingRing(WaypointPlannerError):
    code = "NO_PENDING_RING"


class AnchorOutOfRange(WaypointPlannerError, IndexError):
    code = "ANCHOR_OUT_OF_RANGE"


class InvalidTransition(WaypointPlannerError):
    code = "INVALID_TRANSITION"


class InvalidArgument(WaypointPlannerError, ValueError):
    code = "INVALID_ARGUMENT"
