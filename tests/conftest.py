"""Shared test fixtures: small pharmacy/street layers and a matching config."""

import copy
import json
from pathlib import Path

import geopandas as gpd
import pytest
from shapely.geometry import LineString, MultiPoint, Point, Polygon


# Two tight groups of pharmacies about 600 m apart plus two isolated ones
PHARMACY_RECORDS = [
    ('Apotheke am Markt', 'Markt 1', 7.6280, 51.9620),
    ('Dom-Apotheke', 'Domplatz 2', 7.6285, 51.9622),
    ('Lamberti-Apotheke', 'Roggenmarkt 3', 7.6279, 51.9625),
    ('Ludgeri-Apotheke', 'Ludgeristrasse 4', 7.6284, 51.9617),
    ('Bahnhof-Apotheke', 'Bahnhofstrasse 5', 7.6345, 51.9575),
    ('Windthorst-Apotheke', 'Windthorststrasse 6', 7.6350, 51.9577),
    ('Hansa-Apotheke', 'Hansaring 7', 7.6347, 51.9571),
    ('Hafen-Apotheke', 'Hafenweg 8', 7.6500, 51.9500),
    ('Kreuz-Apotheke', 'Kreuzstrasse 9', 7.6100, 51.9700),
]

BASE_CONFIG = {
    'settings': {
        'title': 'Test Pharmacy Map',
        'default_zoom': 14,
        'enable_clustering': True,
        'cluster_threshold': 50,
        'heatmap': {'enabled': True, 'radius': 20, 'blur': 15, 'show': False}
    },
    'layers': [
        {
            'name': 'Pharmacies',
            'role': 'pharmacies',
            'geometry_type': 'point',
            'name_field': 'name',
            'address_field': 'address',
            'icon': 'plus-square',
            'icon_color': 'green'
        },
        {
            'name': 'Streets',
            'role': 'streets',
            'geometry_type': 'line',
            'name_field': 'name',
            'color': '#555555',
            'weight': 3,
            'highlight_color': '#e31a1c'
        }
    ],
    'analysis_settings': {
        'dbscan_eps_meters': 150,
        'dbscan_min_samples': 3,
        'buffer_distance_meters': 100,
        'nearest_count': 2,
        'isochrone_enabled': False,
        'reference_location': {'lat': 51.9575, 'lon': 7.6345, 'label': 'Station'}
    }
}


@pytest.fixture()
def pharmacies_gdf() -> gpd.GeoDataFrame:
    return gpd.GeoDataFrame(
        {
            'name': [r[0] for r in PHARMACY_RECORDS],
            'address': [r[1] for r in PHARMACY_RECORDS],
        },
        geometry=[Point(r[2], r[3]) for r in PHARMACY_RECORDS],
        crs='EPSG:4326'
    )


@pytest.fixture()
def multipoint_pharmacies_gdf(pharmacies_gdf) -> gpd.GeoDataFrame:
    """The pharmacy fixture stored as single-part MultiPoints, as GeoPackage and shapefile layers often are."""
    multi = pharmacies_gdf.copy()
    multi.geometry = [MultiPoint([p]) for p in pharmacies_gdf.geometry]
    return multi


@pytest.fixture()
def streets_gdf() -> gpd.GeoDataFrame:
    return gpd.GeoDataFrame(
        {'name': ['Marktstrasse', 'Bahnhofstrasse', 'Aussenring']},
        geometry=[
            # passes right next to the first cluster
            LineString([(7.6270, 51.9620), (7.6295, 51.9620)]),
            # passes the second cluster
            LineString([(7.6340, 51.9580), (7.6355, 51.9570)]),
            # far away from every pharmacy
            LineString([(7.5800, 51.9300), (7.5850, 51.9320)]),
        ],
        crs='EPSG:4326'
    )


@pytest.fixture()
def isochrones_gdf() -> gpd.GeoDataFrame:
    inner = Polygon([(7.633, 51.956), (7.636, 51.956), (7.636, 51.959), (7.633, 51.959)])
    outer = Polygon([(7.625, 51.952), (7.640, 51.952), (7.640, 51.965), (7.625, 51.965)])
    return gpd.GeoDataFrame(
        {'value': [600.0, 300.0], 'group_index': [0, 0]},
        geometry=[outer, inner],
        crs='EPSG:4326'
    )


@pytest.fixture()
def config() -> dict:
    return copy.deepcopy(BASE_CONFIG)


@pytest.fixture()
def config_file(tmp_path: Path, config: dict) -> Path:
    path = tmp_path / 'map_config.json'
    path.write_text(json.dumps(config), encoding='utf-8')
    return path


@pytest.fixture()
def data_files(tmp_path: Path, pharmacies_gdf, streets_gdf):
    """Write the fixture layers to GeoJSON and return (pharmacies_path, streets_path)."""
    pharmacies_path = tmp_path / 'pharmacies.geojson'
    streets_path = tmp_path / 'streets.geojson'
    pharmacies_gdf.to_file(pharmacies_path, driver='GeoJSON')
    streets_gdf.to_file(streets_path, driver='GeoJSON')
    return pharmacies_path, streets_path
