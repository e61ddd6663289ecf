"""
Core modules for Pharmacy Map Creator.

This package contains the main functional modules for loading the pharmacy and
street layers, running the spatial analyses and producing the interactive map.

Modules:
    data_loader: Read and validate input vector layers
    clustering: DBSCAN clustering of pharmacies and convex hulls
    geometry_ops: Buffers, nearby streets and geodesic distances
    isochrone: Query the openrouteservice isochrone API
    map_builder: Generate interactive Leaflet maps
    output_generator: Save output files and metadata
"""

__version__ = '1.0.0'
