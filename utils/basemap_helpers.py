"""
Basemap utility functions for Pharmacy Map Creator.

This module provides the basemap definitions used to build the tile layers
of the map, plus a helper to attach them to a Folium map.
"""

from typing import Dict, List, Optional

import folium
from utils.logger import get_logger

logger = get_logger(__name__)


def get_basemap_config() -> List[Dict]:
    """
    Generate basemap configuration.

    Returns list of basemap dictionaries containing:
    - display_name: Human-friendly name for the layer control
    - tile_name: Folium/xyzservices tile provider identifier
    - tile_url: Leaflet tile URL template
    - attribution: Attribution HTML required by the tile provider

    The first entry is the basemap shown when the map opens.
    """
    return [
        {
            'display_name': 'Street Map',
            'tile_name': 'OpenStreetMap',
            'tile_url': 'https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png',
            'attribution': '&copy; <a href=\'https://www.openstreetmap.org/copyright\'>OpenStreetMap</a> contributors'
        },
        {
            'display_name': 'Light Gray Canvas',
            'tile_name': 'CartoDB positron',
            'tile_url': 'https://{s}.basemaps.cartocdn.com/light_all/{z}/{x}/{y}{r}.png',
            'attribution': '&copy; <a href=\'https://www.openstreetmap.org/copyright\'>OpenStreetMap</a> contributors &copy; <a href=\'https://carto.com/attributions\'>CARTO</a>'
        },
        {
            'display_name': 'Dark Gray Canvas',
            'tile_name': 'CartoDB dark_matter',
            'tile_url': 'https://{s}.basemaps.cartocdn.com/dark_all/{z}/{x}/{y}{r}.png',
            'attribution': '&copy; <a href=\'https://www.openstreetmap.org/copyright\'>OpenStreetMap</a> contributors &copy; <a href=\'https://carto.com/attributions\'>CARTO</a>'
        },
        {
            'display_name': 'Satellite Imagery',
            'tile_name': 'Esri WorldImagery',
            'tile_url': 'https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}',
            'attribution': 'Tiles &copy; Esri'
        }
    ]


def add_basemaps(m: folium.Map, basemaps: Optional[List[Dict]] = None) -> List[str]:
    """
    Add basemap tile layers to the map, showing only the first one.

    Tiles are added from their URL template so no provider lookup is needed.

    Returns:
        Display names of the added basemaps, in order
    """
    if basemaps is None:
        basemaps = get_basemap_config()

    names = []
    for index, basemap in enumerate(basemaps):
        folium.TileLayer(
            tiles=basemap['tile_url'],
            attr=basemap['attribution'],
            name=basemap['display_name'],
            overlay=False,
            control=True,
            show=(index == 0)
        ).add_to(m)
        names.append(basemap['display_name'])
        logger.debug(f"Added basemap {basemap['display_name']} ({basemap['tile_name']})")

    return names
