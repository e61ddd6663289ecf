"""
HTML generation utilities for Pharmacy Map Creator.

This module builds the legend side panel injected into the Folium map.
Legend entries are plain dictionaries rendered through the Jinja2 template
templates/legend_panel.html.

Functions:
    legend_entry: Create a single legend entry
    render_legend_panel: Render the legend side panel HTML
"""

from pathlib import Path
from typing import Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

TEMPLATES_DIR = Path(__file__).parent.parent / 'templates'

LEGEND_SYMBOLS = ('marker', 'line', 'polygon', 'heat', 'circle')


def legend_entry(
    label: str,
    symbol: str,
    color: str,
    count: Optional[int] = None,
    icon: Optional[str] = None,
    detail: Optional[str] = None
) -> Dict:
    """
    Create a legend entry.

    Parameters:
    -----------
    label : str
        Overlay name as shown in the layer control
    symbol : str
        One of LEGEND_SYMBOLS, selects the swatch drawn by the template
    color : str
        CSS color of the swatch
    count : Optional[int]
        Feature count shown next to the label
    icon : Optional[str]
        Font Awesome icon name for 'marker' entries
    detail : Optional[str]
        Secondary text (e.g. '5 min')
    """
    if symbol not in LEGEND_SYMBOLS:
        raise ValueError(f"Unknown legend symbol '{symbol}'")

    return {
        'label': label,
        'symbol': symbol,
        'color': color,
        'count': count,
        'icon': icon,
        'detail': detail
    }


def render_legend_panel(title: str, entries: List[Dict], footer: Optional[str] = None) -> str:
    """
    Render the collapsible legend side panel.

    Returns:
        HTML string to be added to the map root as a branca Element
    """
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(['html'])
    )
    template = env.get_template('legend_panel.html')
    return template.render(title=title, entries=entries, footer=footer)
