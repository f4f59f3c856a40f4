"""
Config - Editor Parameter Loading

Loads the YAML editor parameters and fills in defaults for anything the
file leaves out.
"""

import copy
import logging
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent.parent / "config" / "editor_params.yaml"

DEFAULT_CONFIG = {
    'projection': {
        'source_crs': 'EPSG:3857',
        'geographic_crs': 'EPSG:4326',
    },
    'distance': {
        'earth_radius_m': 6371008.8,
    },
    'drawing': {
        'cancel_keys': ['Enter', 'Escape'],
        'min_ring_vertices': 3,
    },
    'review': {
        'polygon_distance_basis': 'planar',
        'coordinate_precision': 6,
    },
}


def _merge(base: dict, override: dict) -> dict:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Optional[str] = None) -> dict:
    """
    Load editor parameters from YAML.
    
    Args:
        path: Path to the YAML file (default: config/editor_params.yaml)
        
    Returns:
        Configuration dictionary with defaults applied
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    try:
        with open(config_path, 'r') as f:
            loaded = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load config {config_path}: {e}, using defaults")
        loaded = {}
    
    if not isinstance(loaded, dict):
        logger.warning(f"Config {config_path} is not a mapping, using defaults")
        loaded = {}
    
    return _merge(DEFAULT_CONFIG, loaded)
