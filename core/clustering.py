"""
Pharmacy clustering module for Pharmacy Map Creator.

Groups pharmacy locations with scikit-learn's DBSCAN (haversine metric on
lat/lon in radians) and derives one convex hull polygon per cluster for display.

Functions:
    cluster_points: Label each point with its DBSCAN cluster (-1 = noise)
    build_cluster_hulls: Convex hull polygon per cluster
    summarize_clusters: Cluster/noise counts for metadata.json
"""

from typing import Dict

import geopandas as gpd
import numpy as np
from shapely.ops import unary_union
from sklearn.cluster import DBSCAN
from core.geometry_ops import buffer_geometry_meters, location_point, select_projected_crs
from utils.logger import get_logger

logger = get_logger(__name__)

EARTH_RADIUS_METERS = 6371008.8
NOISE_LABEL = -1

# Collinear or coincident members give a Point/LineString hull
DEGENERATE_HULL_BUFFER_METERS = 10.0


def cluster_points(points_gdf: gpd.GeoDataFrame, eps_meters: float, min_samples: int) -> gpd.GeoDataFrame:
    """
    Cluster points with DBSCAN using great-circle distance.

    Parameters:
    -----------
    points_gdf : gpd.GeoDataFrame
        Point layer in EPSG:4326
    eps_meters : float
        Neighbourhood radius in meters
    min_samples : int
        Minimum number of points (including the point itself) to form a core point

    Returns:
    --------
    gpd.GeoDataFrame
        Copy of points_gdf with an integer 'cluster' column (-1 marks noise)

    Raises:
    -------
    ValueError
        If eps_meters is not positive or min_samples is below 1

    Example:
        >>> clustered = cluster_points(pharmacies, eps_meters=300, min_samples=3)
        >>> clustered['cluster'].value_counts()
    """
    if eps_meters <= 0:
        raise ValueError(f"DBSCAN eps must be positive, got {eps_meters} m")
    if min_samples < 1:
        raise ValueError(f"DBSCAN min_samples must be at least 1, got {min_samples}")

    clustered = points_gdf.copy()

    if clustered.empty:
        clustered['cluster'] = np.array([], dtype=int)
        return clustered

    logger.info(f"Clustering {len(clustered)} pharmacies (eps={eps_meters} m, min_samples={min_samples})...")

    points = gpd.GeoSeries([location_point(geom) for geom in clustered.geometry], index=clustered.index)
    coords = np.radians(np.column_stack([points.y, points.x]))
    model = DBSCAN(
        eps=eps_meters / EARTH_RADIUS_METERS,
        min_samples=min_samples,
        metric='haversine',
        algorithm='ball_tree'
    )
    clustered['cluster'] = model.fit_predict(coords).astype(int)

    summary = summarize_clusters(clustered)
    logger.info(f"  ✓ Found {summary['cluster_count']} cluster(s), {summary['noise_count']} unclustered pharmacies")

    return clustered


def build_cluster_hulls(clustered_gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """
    Build one convex hull polygon per cluster.

    Noise points are ignored. Hulls of collinear or coincident members are not
    polygons; those are buffered by a few meters so they remain drawable.

    Args:
        clustered_gdf: Output of cluster_points

    Returns:
        GeoDataFrame (EPSG:4326) with columns cluster, member_count, area_sq_m
    """
    columns = ['cluster', 'member_count', 'area_sq_m', 'geometry']
    members = clustered_gdf[clustered_gdf['cluster'] != NOISE_LABEL]

    if members.empty:
        return gpd.GeoDataFrame(columns=columns, geometry='geometry', crs='EPSG:4326')

    records = []
    for cluster_id, group in members.groupby('cluster', sort=True):
        hull = unary_union(group.geometry.values).convex_hull
        if hull.geom_type != 'Polygon':
            logger.debug(f"  - Cluster {cluster_id} hull is a {hull.geom_type}, buffering for display")
            hull = buffer_geometry_meters(hull, DEGENERATE_HULL_BUFFER_METERS)
        records.append({
            'cluster': int(cluster_id),
            'member_count': len(group),
            'geometry': hull
        })

    hulls = gpd.GeoDataFrame(records, geometry='geometry', crs='EPSG:4326')

    projected_crs = select_projected_crs(unary_union(hulls.geometry.values))
    hulls['area_sq_m'] = hulls.to_crs(projected_crs).geometry.area.round(1)

    logger.info(f"  - Built {len(hulls)} cluster hull(s)")
    return hulls[columns]


def summarize_clusters(clustered_gdf: gpd.GeoDataFrame) -> Dict:
    """Count clusters, noise points and cluster sizes."""
    labels = clustered_gdf['cluster']
    sizes = labels[labels != NOISE_LABEL].value_counts().sort_index()

    return {
        'cluster_count': int(len(sizes)),
        'noise_count': int((labels == NOISE_LABEL).sum()),
        'cluster_sizes': {str(int(k)): int(v) for k, v in sizes.items()}
    }
