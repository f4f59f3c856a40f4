# Utilities - Helper Functions
"""
Utility modules for geospatial calculations and mode management.

Modules:
    - geo_math: Line and ring distance calculations
    - projection: Projected <-> geographic coordinate transform
    - state_machine: Interaction mode tracking
    - config: YAML parameter loading
"""

# Lazy imports so geo_math stays importable without pyproj
def __getattr__(name):
    """Lazy import to avoid loading all dependencies at once."""
    if name in ("haversine_distance", "line_distances", "ring_distances", "DistanceBasis"):
        from . import geo_math
        return getattr(geo_math, name)
    elif name in ("CoordinateTransform", "to_geographic", "to_projected"):
        from . import projection
        return getattr(projection, name)
    elif name in ("InteractionMode", "InteractionState", "StateMachine"):
        from . import state_machine
        return getattr(state_machine, name)
    elif name == "load_config":
        from .config import load_config
        return load_config
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
    "haversine_distance",
    "line_distances",
    "ring_distances",
    "DistanceBasis",
    "CoordinateTransform",
    "to_geographic",
    "to_projected",
    "InteractionMode",
    "InteractionState",
    "StateMachine",
    "load_config"
]
