"""
Output generation module for Pharmacy Map Creator.

This module handles saving the generated map and data files to the output directory.
Creates a timestamped directory structure with HTML map, GeoJSON data files, and metadata.

Functions:
    generate_output: Save map, data files, and metadata to output directory
    safe_layer_filename: Turn a layer name into a GeoJSON file name
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

import folium
import geopandas as gpd
from config.config_loader import OUTPUT_DIR
from core.geometry_ops import location_point
from utils.logger import get_logger, log_banner

logger = get_logger(__name__)


def safe_layer_filename(layer_name: str) -> str:
    """
    Sanitize a layer name for use as a GeoJSON file name.

    Example:
        >>> safe_layer_filename('Cluster Hulls')
        'cluster_hulls.geojson'
    """
    safe_name = layer_name.strip().replace(' ', '_').replace('/', '_').replace('\\', '_').lower()
    return f'{safe_name}.geojson'


def _nearest_table(nearest_gdf: Optional[gpd.GeoDataFrame]) -> list:
    """Nearest pharmacies as JSON-friendly records (attributes, lat/lon, distance)."""
    if nearest_gdf is None or nearest_gdf.empty:
        return []

    records = []
    for _, row in nearest_gdf.iterrows():
        record = {}
        for col in nearest_gdf.columns:
            if col in ('geometry', 'distance_m'):
                continue
            value = row[col]
            if hasattr(value, 'item'):  # numpy scalar
                value = value.item()
            record[col] = None if value != value else value  # NaN -> null
        point = location_point(row.geometry)
        record['lat'] = point.y
        record['lon'] = point.x
        record['distance_m'] = round(float(row['distance_m']), 1)
        records.append(record)
    return records


def generate_output(
    map_obj: folium.Map,
    layers: Dict[str, gpd.GeoDataFrame],
    metadata: Dict,
    output_name: Optional[str] = None,
    output_dir: Optional[Path] = None,
    nearest_gdf: Optional[gpd.GeoDataFrame] = None
) -> Path:
    """
    Generate output directory with HTML map, GeoJSON data files and metadata.

    Creates an output directory containing:
    - index.html: Interactive Leaflet map
    - metadata.json: Inputs, analysis summary and timing information
    - data/: One GeoJSON file per non-empty layer (inputs and derived layers)

    Parameters:
    -----------
    map_obj : folium.Map
        Folium map object to save
    layers : Dict[str, gpd.GeoDataFrame]
        Layer name -> GeoDataFrame; empty or None layers are skipped
    metadata : Dict
        Run metadata (inputs, clustering summary, isochrone status, timing)
    output_name : Optional[str]
        Custom output directory name (defaults to timestamped name)
    output_dir : Optional[Path]
        Parent directory (defaults to OUTPUT_DIR)
    nearest_gdf : Optional[gpd.GeoDataFrame]
        Nearest pharmacies with 'distance_m', stored as a table in metadata.json

    Returns:
    --------
    Path
        Path to output directory

    Example:
        >>> output_path = generate_output(map_obj, layers, metadata)
        >>> output_path
        Path('outputs/pharmacy_map_20250108_143022')
    """
    log_banner(logger, "Generating Output Files")

    if output_name is None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output_name = f"pharmacy_map_{timestamp}"

    output_path = Path(output_dir or OUTPUT_DIR) / output_name
    output_path.mkdir(parents=True, exist_ok=True)

    data_path = output_path / 'data'
    data_path.mkdir(exist_ok=True)

    logger.info(f"Output directory: {output_path}")

    data_files = {}
    for layer_name, gdf in layers.items():
        if gdf is None or gdf.empty:
            logger.debug(f"  - Skipping empty layer {layer_name}")
            continue
        logger.info(f"  - Saving {layer_name} features...")
        layer_file = data_path / safe_layer_filename(layer_name)
        gdf.to_file(layer_file, driver='GeoJSON')
        data_files[layer_name] = f"data/{layer_file.name}"

    logger.info("  - Saving interactive map...")
    map_file = output_path / 'index.html'
    map_obj.save(str(map_file))

    logger.info("  - Saving metadata...")
    summary = {
        'generated_at': datetime.now().isoformat(),
        **metadata,
        'data_files': data_files,
        'nearest_pharmacies': _nearest_table(nearest_gdf)
    }

    metadata_file = output_path / 'metadata.json'
    with open(metadata_file, 'w', encoding='utf-8') as f:
        json.dump(summary, f, indent=2, default=str)

    logger.info("")
    log_banner(logger, "✓ Output Generation Complete")
    logger.info(f"Files saved to: {output_path}")
    logger.info("  - index.html (interactive map)")
    logger.info("  - metadata.json (summary statistics)")
    logger.info(f"  - data/ ({len(data_files)} GeoJSON files)")
    logger.info("")
    logger.info(f"To view the map, open: {map_file}")
    logger.info("=" * 80)

    return output_path
