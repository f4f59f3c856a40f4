#!/usr/bin/env python3
"""
Scripted Editing Session

Plays an operator through a complete editing session against the mock
map engine and prints the review tables.
No map front end required.

Usage:
    python simulation/demo_session.py
    python simulation/demo_session.py --anchor 2 --placement before
"""

import sys
import logging
import argparse
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from simulation.mock_components import MockMapEngine, ConsoleReviewSurface
from waypoint_planner.interaction.draw_session import DrawSession, Intent
from waypoint_planner.utils.config import load_config
from waypoint_planner.utils.projection import CoordinateTransform

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger('DemoSession')

# Survey line and inspection area, (lon, lat)
DEMO_LINE = [
    (77.5946, 12.9716),
    (77.5946, 12.9730),
    (77.5960, 12.9730),
    (77.5960, 12.9745),
]

DEMO_AREA = [
    (77.5950, 12.9733),
    (77.5956, 12.9733),
    (77.5956, 12.9739),
    (77.5950, 12.9739),
]


def run_demo_session(config: dict, anchor: int = 1, placement: str = "after") -> DrawSession:
    """
    Draw a line, splice a polygon next to one waypoint and view it.

    Args:
        config: Editor configuration
        anchor: Waypoint number the polygon is spliced next to
        placement: "before" or "after"

    Returns:
        The finished session
    """
    print("\n" + "=" * 60)
    print("WAYPOINT PLANNER EDITING SESSION")
    print("=" * 60)

    engine = MockMapEngine()
    session = DrawSession(engine, ConsoleReviewSurface(
        config.get('review', {}).get('coordinate_precision', 6)), config)
    transform = CoordinateTransform(config)

    # The map engine hands over coordinates in the drawing CRS
    line = [transform.to_projected(p) for p in DEMO_LINE]
    area = [transform.to_projected(p) for p in DEMO_AREA]
    area.append(area[0])

    logger.info("=== STEP 1: DRAW MISSION LINE ===")
    session.dispatch(Intent.START_DRAWING)  # Rejected: no type yet
    session.dispatch(Intent.SELECT_DRAW_TYPE, kind="LineString")
    session.dispatch(Intent.START_DRAWING)
    engine.finish_drawing(line)

    logger.info(f"=== STEP 2: SPLICE POLYGON {placement.upper()} WP({anchor:02d}) ===")
    intent = Intent.INSERT_POLYGON_AFTER if placement == "after" else Intent.INSERT_POLYGON_BEFORE
    session.dispatch(intent, index=anchor)
    engine.finish_drawing(area)
    reference = session.dispatch(Intent.IMPORT_POINTS)

    if reference is not None:
        logger.info("=== STEP 3: VIEW SPLICED POLYGON ===")
        session.dispatch(Intent.VIEW_POLYGON, index=reference.index)
        session.dispatch(Intent.CLOSE_MODAL)

    session.dispatch(Intent.CLOSE_MODAL)

    review = session.mission_review()
    logger.info("=== SESSION COMPLETE ===")
    logger.info(f"  Entries: {len(review.entries)}")
    logger.info(f"  Waypoints: {review.waypoint_count}")
    logger.info(f"  Line length: {review.total_distance} m")
    logger.info(f"  Draw tools left registered: {len(engine.draw_tools)}")

    return session


def main():
    parser = argparse.ArgumentParser(description='Scripted waypoint planner editing session')
    parser.add_argument('--config', '-c', default=None,
                        help='Path to editor_params.yaml (default: config/editor_params.yaml)')
    parser.add_argument('--anchor', '-a', type=int, default=1,
                        help='Waypoint number to splice the polygon next to')
    parser.add_argument('--placement', '-p', choices=['before', 'after'], default='after',
                        help='Splice the polygon before or after the waypoint')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable debug logging')

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = load_config(args.config)
    run_demo_session(config, args.anchor, args.placement)


if __name__ == "__main__":
    main()
