"""
Vector data loading module for Pharmacy Map Creator.

Reads the pharmacy (point) and street (line) layers from any format GeoPandas
can open, validates their geometry type and reprojects them to WGS84
(EPSG:4326) for web mapping.

Functions:
    load_vector_file: Read a geospatial file and return a GeoDataFrame
    detect_geometry_type: Classify the geometries of a GeoDataFrame
    load_layer: Load, validate and reproject a layer of an expected type
    load_pharmacies: Load the pharmacy point layer
    load_streets: Load the street line layer
    extract_layer_metadata: Summarize a loaded layer for metadata.json
"""

import tempfile
import zipfile
from pathlib import Path
from typing import Union

import geopandas as gpd
from utils.logger import get_logger

logger = get_logger(__name__)

GEOMETRY_FAMILIES = {
    'Point': 'point',
    'MultiPoint': 'point',
    'LineString': 'line',
    'MultiLineString': 'line',
    'Polygon': 'polygon',
    'MultiPolygon': 'polygon'
}


def load_vector_file(file_path: Union[str, Path]) -> gpd.GeoDataFrame:
    """
    Load geospatial file and return GeoDataFrame with original CRS.

    Supports: Shapefile (plain or zipped), GeoPackage, GeoJSON, KML

    Args:
        file_path: Path to geospatial file

    Returns:
        GeoDataFrame with geometries in original CRS

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If file cannot be read, is empty or has no CRS
    """
    file_path_obj = Path(file_path)

    if not file_path_obj.exists():
        raise FileNotFoundError(f"Input file not found: {file_path}")

    logger.info(f"Loading layer from: {file_path}")

    try:
        if file_path_obj.suffix.lower() == '.zip':
            logger.info("  - Detected ZIP file, extracting to read shapefile...")
            with tempfile.TemporaryDirectory() as tmpdir:
                with zipfile.ZipFile(file_path_obj, 'r') as zip_ref:
                    zip_ref.extractall(tmpdir)
                shp_files = sorted(Path(tmpdir).rglob('*.shp'))
                if not shp_files:
                    raise ValueError("No shapefile (.shp) found in ZIP archive")
                if len(shp_files) > 1:
                    logger.warning(f"  - Multiple shapefiles found in ZIP, using first: {shp_files[0].name}")
                gdf = gpd.read_file(shp_files[0])
        else:
            gdf = gpd.read_file(file_path_obj)
    except zipfile.BadZipFile:
        raise ValueError("Invalid ZIP file - file appears to be corrupted")
    except ValueError:
        raise
    except Exception as e:
        raise ValueError(f"Failed to read geospatial file: {e}")

    if gdf.empty:
        raise ValueError(f"Input file contains no features: {file_path_obj.name}")

    if gdf.crs is None:
        raise ValueError(
            f"Input file {file_path_obj.name} has no Coordinate Reference System (CRS) defined. "
            "Please assign a CRS to your data before using it as input."
        )

    logger.info(f"  - Loaded {len(gdf)} feature(s)")
    logger.info(f"  - Original CRS: {gdf.crs}")
    logger.debug(f"  - Columns: {[c for c in gdf.columns if c != 'geometry']}")

    return gdf


def detect_geometry_type(gdf: gpd.GeoDataFrame) -> str:
    """
    Detect the primary geometry type in the GeoDataFrame.

    Returns:
        One of: 'point', 'line', 'polygon', 'mixed' or 'unknown'

    Note:
        MultiPoint/MultiLineString/MultiPolygon are classified as their base type.
    """
    normalized_types = set()
    for gtype in gdf.geometry.geom_type.dropna().unique():
        family = GEOMETRY_FAMILIES.get(gtype)
        if family is None:
            logger.warning(f"Unsupported geometry type detected: {gtype}")
            family = 'unknown'
        normalized_types.add(family)

    if not normalized_types:
        return 'unknown'

    if len(normalized_types) > 1:
        logger.warning(f"Mixed geometry types detected: {sorted(normalized_types)}")
        return 'mixed'

    return normalized_types.pop()


def load_layer(file_path: Union[str, Path], expected_type: str) -> gpd.GeoDataFrame:
    """
    Load a layer, check its geometry type and reproject it to EPSG:4326.

    Null and empty geometries are dropped before validation.

    Args:
        file_path: Path to geospatial file
        expected_type: 'point', 'line' or 'polygon'

    Returns:
        GeoDataFrame in EPSG:4326 with a fresh RangeIndex

    Raises:
        ValueError: If the geometry type does not match or nothing is left
    """
    gdf = load_vector_file(file_path)

    usable = gdf.geometry.notna() & ~gdf.geometry.is_empty
    dropped = int((~usable).sum())
    if dropped:
        logger.warning(f"  - Dropping {dropped} feature(s) with missing geometry")
        gdf = gdf[usable]

    if gdf.empty:
        raise ValueError(f"No usable geometries in {Path(file_path).name}")

    geom_type = detect_geometry_type(gdf)
    if geom_type != expected_type:
        raise ValueError(
            f"Expected {expected_type} geometries in {Path(file_path).name}, found {geom_type}"
        )
    logger.info(f"  - Detected geometry type: {geom_type}")

    if gdf.crs.to_epsg() != 4326:
        logger.info("  - Reprojecting to EPSG:4326...")
        gdf = gdf.to_crs('EPSG:4326')

    return gdf.reset_index(drop=True)


def load_pharmacies(file_path: Union[str, Path]) -> gpd.GeoDataFrame:
    """Load the pharmacy point layer."""
    return load_layer(file_path, 'point')


def load_streets(file_path: Union[str, Path]) -> gpd.GeoDataFrame:
    """Load the street line layer."""
    return load_layer(file_path, 'line')


def extract_layer_metadata(gdf: gpd.GeoDataFrame, file_path: Union[str, Path]) -> dict:
    """
    Extract metadata about a loaded layer for tracking.

    Args:
        gdf: Loaded GeoDataFrame
        file_path: Original file path

    Returns:
        Dictionary with metadata fields
    """
    return {
        'original_file': Path(file_path).name,
        'crs': str(gdf.crs),
        'feature_count': len(gdf),
        'geometry_type': detect_geometry_type(gdf),
        'bounds': gdf.total_bounds.tolist()  # [minx, miny, maxx, maxy]
    }
