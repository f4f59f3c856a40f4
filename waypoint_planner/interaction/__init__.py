# Interaction - Drawing Session
"""
Drawing interaction between the operator, the map engine and the mission.

Modules:
    - draw_session: Session controller handling intents and draw events
    - draw_tool: Map engine interface and draw tool lease
    - review: Review surface interface and snapshots
"""

from .draw_session import DrawSession, Intent
from .draw_tool import DrawToolLease, MapEngine
from .review import MissionReview, PolygonReview, ReviewSurface, LoggingReviewSurface

__all__ = [
    "DrawSession",
    "Intent",
    "DrawToolLease",
    "MapEngine",
    "MissionReview",
    "PolygonReview",
    "ReviewSurface",
    "LoggingReviewSurface"
]
