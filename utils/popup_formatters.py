"""
Popup formatting utilities for Pharmacy Map Creator.

This module provides functions to format attribute values for display in map
popups. Handles special cases like URLs (converted to clickable links),
missing values and HTML-unsafe text.

Functions:
    format_popup_value: Format a single value for display in popup HTML
    build_popup_html: Build the full popup for a feature
"""

import html
from typing import Any, Mapping, Optional

SKIPPED_FIELDS = {'geometry', 'popup_html'}


def format_popup_value(col: str, value: Any) -> str:
    """
    Format popup values, converting URLs to clickable hyperlinks.

    Parameters:
    -----------
    col : str
        Column name (used to detect URL fields)
    value : Any
        Value to format

    Returns:
    --------
    str
        Formatted HTML string safe for popup display

    Examples:
        >>> format_popup_value('name', 'Stadt-Apotheke')
        'Stadt-Apotheke'

        >>> format_popup_value('phone', None)
        'None'

        >>> format_popup_value('website', 'https://example.com')
        '<a href="https://example.com" target="_blank" ...>https://example.com</a>'
    """
    if value is None or (isinstance(value, float) and value != value):  # NaN check
        return 'None'

    value_str = str(value)

    # Check if this is a URL field (by column name or value content)
    is_url = 'url' in col.lower() or value_str.startswith(('http://', 'https://'))

    if is_url:
        display_text = value_str if len(value_str) <= 60 else f"{value_str[:57]}..."
        return (
            f'<a href="{html.escape(value_str, quote=True)}" target="_blank" '
            f'style="word-break: break-all; color: #0066cc;">{html.escape(display_text)}</a>'
        )

    return html.escape(value_str)


def build_popup_html(
    layer_name: str,
    properties: Mapping[str, Any],
    name_field: Optional[str] = None,
    address_field: Optional[str] = None
) -> str:
    """
    Build popup HTML for a feature: layer label, bold name, address line, then all attributes.

    When name_field is missing, the first attribute whose name contains 'name'
    is used as title.
    """
    name_value = None
    if name_field and name_field in properties:
        name_value = properties[name_field]
    else:
        for key in properties:
            if key not in SKIPPED_FIELDS and 'name' in key.lower():
                name_value = properties[key]
                break

    popup_html = f"<div style='font-size: 10px;'><i>{html.escape(layer_name)}</i></div>"
    if name_value is not None and format_popup_value('name', name_value) != 'None':
        popup_html += (
            f"<div style='font-size: 14px; font-weight: bold; margin: 5px 0;'>"
            f"{format_popup_value('name', name_value)}</div>"
        )
    if address_field and properties.get(address_field) is not None:
        popup_html += f"<div style='margin-bottom: 5px;'>{format_popup_value(address_field, properties[address_field])}</div>"
    popup_html += "<hr style='margin: 5px 0;'>"

    for key, value in properties.items():
        if key in SKIPPED_FIELDS:
            continue
        popup_html += f"<b>{html.escape(str(key))}:</b> {format_popup_value(key, value)}<br>"

    return popup_html
