#!/usr/bin/env python
"""
Pharmacy Map Creator
====================
Builds an interactive Leaflet web map of pharmacy and street data: basemaps,
markers, a density heatmap, DBSCAN cluster hulls, buffers, walking-time
isochrones and geodesic distances to the nearest pharmacies.

License: MIT
"""

import argparse
import logging
import time
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import geopandas as gpd
from shapely.ops import unary_union

# Import logging first
from utils.logger import setup_logging, get_logger, log_banner

from config.config_loader import DATA_DIR, load_config, load_analysis_settings
from core.data_loader import load_pharmacies, load_streets, extract_layer_metadata
from core.clustering import cluster_points, build_cluster_hulls, summarize_clusters
from core.geometry_ops import buffer_points, streets_near, nearest_points, points_within
from core.isochrone import fetch_isochrones, resolve_api_key
from core.map_builder import create_web_map
from core.output_generator import generate_output

DEFAULT_PHARMACIES_FILE = DATA_DIR / 'pharmacies.geojson'
DEFAULT_STREETS_FILE = DATA_DIR / 'streets.geojson'


def resolve_reference_location(
    pharmacies_gdf: gpd.GeoDataFrame,
    settings: Dict,
    location: Optional[Tuple[float, float]] = None
) -> Dict:
    """
    Pick the reference location for isochrones and nearest-pharmacy distances.

    Order of precedence: explicit location argument, configured
    'reference_location', centroid of all pharmacies.

    Returns:
        Dictionary with 'lat', 'lon' and 'label'
    """
    if location is not None:
        lat, lon = location
        return {'lat': float(lat), 'lon': float(lon), 'label': 'Selected location'}

    configured = settings.get('reference_location')
    if configured:
        return {
            'lat': float(configured['lat']),
            'lon': float(configured['lon']),
            'label': configured.get('label') or 'Reference location'
        }

    centroid = unary_union(pharmacies_gdf.geometry.values).centroid
    return {'lat': centroid.y, 'lon': centroid.x, 'label': 'Pharmacy centroid'}


def main(
    pharmacies_file: Union[str, Path],
    streets_file: Union[str, Path],
    output_name: Optional[str] = None,
    location: Optional[Tuple[float, float]] = None,
    config_path: Optional[Union[str, Path]] = None,
    output_dir: Optional[Path] = None
) -> Optional[Path]:
    """
    Main execution workflow for Pharmacy Map Creator.

    Workflow Steps:
    1. Setup logging to console and file
    2. Load configuration
    3. Read pharmacy points and street lines
    4. Cluster pharmacies (DBSCAN) and build convex hulls
    5. Buffer pharmacies and select nearby streets
    6. Compute nearest pharmacies and fetch isochrones for the reference location
    7. Create interactive web map
    8. Generate output files

    Parameters:
    -----------
    pharmacies_file : Union[str, Path]
        Pharmacy point file (.shp, .zip, .gpkg, .geojson, .kml)
    streets_file : Union[str, Path]
        Street line file
    output_name : Optional[str]
        Custom name for output directory (defaults to timestamped name)
    location : Optional[Tuple[float, float]]
        (lat, lon) reference location overriding the configured one
    config_path : Optional[Union[str, Path]]
        Alternative configuration file
    output_dir : Optional[Path]
        Parent directory for outputs (defaults to PROJECT_ROOT/outputs)

    Returns:
    --------
    Optional[Path]
        Path to output directory if successful, None if failed

    Example:
        >>> output_path = main('pharmacies.shp', 'streets.shp')
        >>> print(f"Map saved to: {output_path / 'index.html'}")
    """
    workflow_start_time = time.time()

    log_file = setup_logging()
    logger = get_logger(__name__)

    log_banner(logger, "PHARMACY MAP CREATOR")
    logger.info(f"Log file: {log_file}")
    logger.info("")

    try:
        config = load_config(config_path)
        settings = load_analysis_settings(config)
        logger.info(f"Configuration loaded: {len(config['layers'])} layers defined")
        logger.info("")

        # Step 1: Read input layers
        pharmacies = load_pharmacies(pharmacies_file)
        streets = load_streets(streets_file)
        logger.info("")

        metadata = {
            'inputs': {
                'pharmacies': extract_layer_metadata(pharmacies, pharmacies_file),
                'streets': extract_layer_metadata(streets, streets_file)
            },
            'settings': {k: v for k, v in settings.items() if k != 'isochrone_api_key'}
        }

        # Step 2: Density-based clustering and hulls
        clustered = cluster_points(
            pharmacies,
            eps_meters=settings['dbscan_eps_meters'],
            min_samples=settings['dbscan_min_samples']
        )
        hulls = build_cluster_hulls(clustered)
        metadata['clusters'] = summarize_clusters(clustered)

        # Step 3: Buffers and nearby streets
        buffers = buffer_points(pharmacies, settings['buffer_distance_meters'])
        near_streets = streets_near(streets, buffers)
        metadata['streets_near_pharmacies'] = len(near_streets)
        logger.info("")

        # Step 4: Reference location analyses
        reference = resolve_reference_location(pharmacies, settings, location)
        origin = (reference['lat'], reference['lon'])
        logger.info(f"Reference location: {reference['label']} ({origin[0]:.5f}, {origin[1]:.5f})")

        nearest = nearest_points(origin, pharmacies, settings['nearest_count'])

        isochrones = None
        isochrone_error = None
        if settings['isochrone_enabled']:
            isochrones, isochrone_error = fetch_isochrones(
                origin,
                profile=settings['isochrone_profile'],
                ranges=settings['isochrone_ranges'],
                api_key=resolve_api_key(settings),
                range_type=settings['isochrone_range_type'],
                api_url=settings['isochrone_api_url'],
                timeout=settings['request_timeout']
            )
            if isochrone_error:
                logger.warning(f"⚠ Isochrones skipped: {isochrone_error}")
        else:
            isochrone_error = 'disabled in configuration'

        if isochrones is not None:
            covered = points_within(clustered, isochrones)
            clustered['within_isochrone'] = covered['within_area']
            metadata['pharmacies_within_isochrone'] = int(covered['within_area'].sum())

        metadata['reference_location'] = reference
        metadata['isochrones'] = {
            'available': isochrones is not None,
            'profile': settings['isochrone_profile'],
            'range_type': settings['isochrone_range_type'],
            'ranges': settings['isochrone_ranges'],
            'error': isochrone_error
        }
        logger.info("")

        # Step 5: Create web map
        analysis = {
            'hulls': hulls,
            'buffers': buffers,
            'near_streets': near_streets,
            'isochrones': isochrones,
            'isochrone_range_type': settings['isochrone_range_type'],
            'isochrone_profile': settings['isochrone_profile'],
            'isochrone_error': isochrone_error if settings['isochrone_enabled'] else None,
            'reference_location': reference,
            'nearest': nearest
        }
        map_obj = create_web_map(clustered, streets, config, analysis)

        total_execution_time = time.time() - workflow_start_time
        metadata['execution_time'] = {
            'total_seconds': total_execution_time,
            'formatted': f"{total_execution_time:.2f} seconds"
        }

        # Step 6: Generate output
        output_path = generate_output(
            map_obj,
            {
                'Pharmacies': clustered,
                'Streets': streets,
                'Cluster Hulls': hulls,
                'Pharmacy Buffers': buffers,
                'Streets Near Pharmacies': near_streets,
                'Isochrones': isochrones
            },
            metadata,
            output_name=output_name,
            output_dir=output_dir,
            nearest_gdf=nearest
        )

        logger.info("")
        logger.info("✓ WORKFLOW COMPLETE")
        logger.info(f"✓ Total execution time: {total_execution_time:.2f} seconds")
        logger.info(f"✓ Output directory: {output_path}")
        logger.info(f"✓ Log file: {log_file}")
        logger.info("")

        return output_path

    except Exception as e:
        elapsed_time = time.time() - workflow_start_time

        logger.error("")
        log_banner(logger, "✗ WORKFLOW FAILED", logging.ERROR)
        logger.error(f"Error: {str(e)}", exc_info=True)
        logger.error(f"Workflow failed after {elapsed_time:.2f} seconds")
        logger.error("")
        logger.error(f"See log file for details: {log_file}")
        logger.error("=" * 80)
        return None


def parse_location(value: str) -> Tuple[float, float]:
    """Parse 'LAT,LON' for the --location option."""
    try:
        lat_str, lon_str = value.split(',')
        lat, lon = float(lat_str), float(lon_str)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected LAT,LON but got '{value}'")

    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        raise argparse.ArgumentTypeError(f"Coordinates out of range: {value}")

    return lat, lon


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Create an interactive pharmacy and street map."
    )
    parser.add_argument('pharmacies', nargs='?', default=str(DEFAULT_PHARMACIES_FILE),
                        help="Pharmacy point layer (default: bundled sample data)")
    parser.add_argument('streets', nargs='?', default=str(DEFAULT_STREETS_FILE),
                        help="Street line layer (default: bundled sample data)")
    parser.add_argument('--output', dest='output_name', default=None,
                        help="Name of the output directory")
    parser.add_argument('--location', type=parse_location, default=None,
                        help="Reference location as LAT,LON")
    parser.add_argument('--config', dest='config_path', default=None,
                        help="Alternative configuration JSON file")
    return parser


def cli(argv=None) -> int:
    """Command-line entry point; returns the process exit code."""
    args = build_arg_parser().parse_args(argv)

    output_dir = main(
        args.pharmacies,
        args.streets,
        output_name=args.output_name,
        location=args.location,
        config_path=args.config_path
    )

    if output_dir:
        print(f"\n✓ Success! Open {output_dir / 'index.html'} in your browser.")
        return 0

    print("\n✗ Failed to generate map. Check log file for details.")
    return 1


if __name__ == "__main__":
    raise SystemExit(cli())
