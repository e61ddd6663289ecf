"""
Configuration loading for Pharmacy Map Creator.

This module handles loading and validation of the map configuration JSON file
and merges analysis settings (clustering, buffering, isochrones) with defaults.

Constants:
    PROJECT_ROOT: Root directory of the project
    CONFIG_DIR: Configuration files directory
    DATA_DIR: Bundled sample data directory
    OUTPUT_DIR: Output files directory

Functions:
    load_config: Load and validate map configuration from JSON
    load_analysis_settings: Merge analysis settings with defaults
    get_layer_config: Look up the layer entry for a data role
"""

import json
from pathlib import Path
from typing import Dict, Optional, Union

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_DIR = PROJECT_ROOT / 'config'
DATA_DIR = PROJECT_ROOT / 'data'
OUTPUT_DIR = PROJECT_ROOT / 'outputs'

DEFAULT_CONFIG_FILE = CONFIG_DIR / 'map_config.json'

ANALYSIS_DEFAULTS = {
    'dbscan_eps_meters': 300,
    'dbscan_min_samples': 3,
    'buffer_distance_meters': 250,
    'nearest_count': 3,
    'isochrone_enabled': True,
    'isochrone_profile': 'foot-walking',
    'isochrone_range_type': 'time',
    'isochrone_ranges': [300, 600, 900],
    'isochrone_api_url': 'https://api.openrouteservice.org/v2/isochrones',
    'isochrone_api_key_env': 'ORS_API_KEY',
    'request_timeout': 30,
    'reference_location': None
}


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict:
    """
    Load map configuration from JSON file.

    Reads map_config.json (or the given file) and validates basic structure.

    Parameters:
    -----------
    config_path : Optional[Union[str, Path]]
        Alternative configuration file. Defaults to config/map_config.json

    Returns:
    --------
    Dict
        Configuration dictionary with 'layers' and 'settings' keys

    Raises:
    -------
    FileNotFoundError
        If configuration file doesn't exist
    json.JSONDecodeError
        If configuration file contains invalid JSON
    KeyError
        If required configuration keys are missing
    """
    config_path = Path(config_path) if config_path else DEFAULT_CONFIG_FILE

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        config = json.load(f)

    if 'layers' not in config:
        raise KeyError("Configuration missing required 'layers' key")
    if 'settings' not in config:
        raise KeyError("Configuration missing required 'settings' key")

    OUTPUT_DIR.mkdir(exist_ok=True)

    return config


def load_analysis_settings(config: Dict = None) -> Dict:
    """
    Load analysis settings from configuration.

    Args:
        config: Configuration dictionary (optional, will load if not provided)

    Returns:
        Dictionary with analysis settings, see ANALYSIS_DEFAULTS for keys

    Note:
        Returns defaults if 'analysis_settings' section is missing.
        The isochrone API key is read from the environment variable named by
        'isochrone_api_key_env' and should not be stored in the config file.
    """
    if config is None:
        config = load_config()

    analysis_settings = config.get('analysis_settings', {})

    return {**ANALYSIS_DEFAULTS, **analysis_settings}


def get_layer_config(config: Dict, role: str) -> Dict:
    """
    Return the layer configuration for a data role ('pharmacies' or 'streets').

    Raises:
        KeyError: If no layer is configured for the role
    """
    for layer_config in config['layers']:
        if layer_config.get('role') == role:
            return layer_config

    raise KeyError(f"No layer configured for role '{role}'")
