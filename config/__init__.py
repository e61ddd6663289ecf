"""
Configuration package for Pharmacy Map Creator.

This package contains configuration loading and validation.

Modules:
    config_loader: Load map configuration and analysis settings from JSON
"""

__version__ = '1.0.0'
