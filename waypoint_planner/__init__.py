# Waypoint Planner - Source Package
"""
Waypoint Planner: interactive mission editor core for drawing waypoint
lines and splicing polygon areas into them.

Modules:
    - mission: Mission sequence model (waypoints, polygon references)
    - interaction: Drawing session controller, draw tool lease, review snapshots
    - utils: Helper utilities (geo math, projection, state machine, config)
    - errors: Recoverable editor errors
"""

__version__ = "1.0.0"
__author__ = "Waypoint Planner Team"
