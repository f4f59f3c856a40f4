"""
Simulation Module for the Waypoint Planner

Provides mock map engine and review surfaces for exercising editing
sessions without a map rendering front end.
"""

from simulation.mock_components import (
    MockMapEngine,
    RecordingReviewSurface,
    ConsoleReviewSurface
)

__all__ = [
    'MockMapEngine',
    'RecordingReviewSurface',
    'ConsoleReviewSurface'
]
