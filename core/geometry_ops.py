"""
Geometry Operations Module

Buffers pharmacy locations in an appropriate projected CRS (returning results
in EPSG:4326), selects streets near pharmacies, and computes geodesic
distances from a reference location.

Functions:
    location_point: Point standing in for a (Multi)Point geometry
    select_projected_crs: Pick a UTM zone (or Web Mercator) for metric work
    buffer_geometry_meters: Buffer a single geometry by a distance in meters
    buffer_points: Buffer every point of a GeoDataFrame
    streets_near: Streets intersecting any buffer polygon
    geodesic_distances: Distance from an origin to every point
    nearest_points: The n closest points to an origin
    points_within: Flag points covered by a set of polygons
"""

from typing import Tuple

import geopandas as gpd
from geopy.distance import geodesic
from pyproj import CRS, Transformer
from shapely.geometry import Point
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform, unary_union
from utils.logger import get_logger

logger = get_logger(__name__)

WGS84 = CRS.from_epsg(4326)
WEB_MERCATOR = 'EPSG:3857'


def location_point(geom: BaseGeometry) -> Point:
    """Point geometries as-is, anything else (MultiPoint) by its centroid."""
    return geom if geom.geom_type == 'Point' else geom.centroid


def select_projected_crs(geom: BaseGeometry) -> CRS:
    """
    Select a projected CRS suitable for metric buffering.

    Uses the WGS84 UTM zone of the geometry centroid (north or south by
    hemisphere). Falls back to Web Mercator if the zone cannot be determined.

    Args:
        geom: Shapely geometry in EPSG:4326

    Returns:
        Projected CRS
    """
    try:
        centroid = geom.centroid
        lon, lat = centroid.x, centroid.y

        if not (-180 <= lon <= 180 and -80 <= lat <= 84):
            raise ValueError(f"Centroid ({lon:.4f}, {lat:.4f}) outside UTM coverage")

        # UTM zones are 6 degrees wide starting at -180, lon=180 folds into zone 60
        utm_zone = min(int((lon + 180) / 6) + 1, 60)
        epsg_code = (32600 if lat >= 0 else 32700) + utm_zone

        logger.debug(f"  - Selected UTM Zone {utm_zone}{'N' if lat >= 0 else 'S'} (EPSG:{epsg_code})")
        return CRS.from_epsg(epsg_code)

    except Exception as e:
        logger.warning(f"Failed to determine UTM zone: {e}")
        logger.info("  - Using fallback: Web Mercator (EPSG:3857)")
        return CRS.from_string(WEB_MERCATOR)


def buffer_geometry_meters(geom: BaseGeometry, meters: float) -> BaseGeometry:
    """
    Buffer a geometry by a distance in meters, return result in EPSG:4326.

    Args:
        geom: Shapely geometry in EPSG:4326
        meters: Buffer distance in meters

    Returns:
        Buffered polygon in EPSG:4326

    Raises:
        ValueError: If meters is not positive
    """
    if meters <= 0:
        raise ValueError(f"Buffer distance must be positive, got {meters} m")

    projected_crs = select_projected_crs(geom)
    to_projected = Transformer.from_crs(WGS84, projected_crs, always_xy=True)
    to_wgs84 = Transformer.from_crs(projected_crs, WGS84, always_xy=True)

    buffered = transform(to_projected.transform, geom).buffer(meters)
    return transform(to_wgs84.transform, buffered)


def buffer_points(points_gdf: gpd.GeoDataFrame, meters: float) -> gpd.GeoDataFrame:
    """
    Buffer every point by the given distance.

    All points share one projected CRS, chosen from the centroid of the whole
    layer, so the buffers are computed in a single reprojection.

    Args:
        points_gdf: Point GeoDataFrame in EPSG:4326
        meters: Buffer distance in meters

    Returns:
        GeoDataFrame of buffer polygons (EPSG:4326) with the point attributes
        and a 'buffer_m' column
    """
    if meters <= 0:
        raise ValueError(f"Buffer distance must be positive, got {meters} m")

    logger.info(f"Buffering {len(points_gdf)} pharmacies by {meters} m...")

    buffers = points_gdf.copy()
    if buffers.empty:
        buffers['buffer_m'] = []
        return buffers

    projected_crs = select_projected_crs(unary_union(points_gdf.geometry.values))
    buffers = buffers.to_crs(projected_crs)
    buffers['geometry'] = buffers.geometry.buffer(meters)
    buffers = buffers.to_crs(WGS84)
    buffers['buffer_m'] = float(meters)

    logger.info(f"  ✓ Created {len(buffers)} buffer polygon(s)")
    return buffers


def streets_near(streets_gdf: gpd.GeoDataFrame, buffers_gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """
    Select streets that intersect at least one buffer polygon.

    Returns:
        Subset of streets_gdf (original columns, no duplicates)
    """
    if streets_gdf.empty or buffers_gdf.empty:
        return streets_gdf.iloc[0:0].copy()

    joined = gpd.sjoin(
        streets_gdf,
        buffers_gdf[['geometry']],
        how='inner',
        predicate='intersects'
    )
    near = streets_gdf.loc[joined.index.unique()].copy()

    logger.info(f"  - {len(near)} of {len(streets_gdf)} streets lie within the pharmacy buffers")
    return near


def geodesic_distances(origin: Tuple[float, float], points_gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """
    Compute the geodesic (WGS84 ellipsoid) distance from origin to each point.

    Args:
        origin: (lat, lon) of the reference location
        points_gdf: Point or MultiPoint GeoDataFrame in EPSG:4326

    Returns:
        Copy of points_gdf with a 'distance_m' column, sorted nearest first
    """
    result = points_gdf.copy()
    result['distance_m'] = [
        geodesic(origin, (point.y, point.x)).meters
        for point in map(location_point, result.geometry)
    ]
    return result.sort_values('distance_m', kind='stable')


def nearest_points(origin: Tuple[float, float], points_gdf: gpd.GeoDataFrame, n: int) -> gpd.GeoDataFrame:
    """Return the n points closest to origin, with their 'distance_m'."""
    if n < 1:
        raise ValueError(f"Number of nearest points must be at least 1, got {n}")

    nearest = geodesic_distances(origin, points_gdf).head(n)
    if not nearest.empty:
        logger.info(f"  - Nearest pharmacy is {nearest['distance_m'].iloc[0]:.0f} m away")
    return nearest


def points_within(points_gdf: gpd.GeoDataFrame, polygons_gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """
    Flag points covered by the union of the given polygons.

    Returns:
        Copy of points_gdf with a boolean 'within_area' column
    """
    result = points_gdf.copy()
    if polygons_gdf is None or polygons_gdf.empty:
        result['within_area'] = False
        return result

    area = unary_union(polygons_gdf.geometry.values)
    result['within_area'] = result.geometry.apply(area.covers).astype(bool)
    return result
