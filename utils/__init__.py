"""
Utility modules for Pharmacy Map Creator.

This package contains utility functions and helpers used throughout the application.

Modules:
    logger: Logging configuration and setup
    basemap_helpers: Basemap definitions and tile layer setup
    html_generators: Legend panel rendering
    popup_formatters: Popup value formatting utilities
"""

__version__ = '1.0.0'
