"""
HTML templates for Pharmacy Map Creator.

This package contains Jinja2 templates for generating interactive map UI elements.

Templates:
    legend_panel.html: Collapsible legend with one entry per map overlay
"""

__version__ = '1.0.0'
