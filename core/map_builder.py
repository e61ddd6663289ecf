"""
Map building module for Pharmacy Map Creator.

This module creates interactive Leaflet maps with Folium: basemaps, pharmacy
markers (optionally clustered), streets, a density heatmap, cluster hulls,
buffers, isochrones and nearest-pharmacy connections, plus a legend panel.

Functions:
    create_web_map: Generate complete interactive Leaflet map
"""

from typing import Dict, List, Optional, Tuple

import folium
import geopandas as gpd
from branca.colormap import LinearColormap
from branca.element import Element
from folium import plugins
from shapely.geometry import mapping
from shapely.geometry.base import BaseGeometry
from config.config_loader import get_layer_config
from core.geometry_ops import location_point
from utils.basemap_helpers import add_basemaps
from utils.html_generators import legend_entry, render_legend_panel
from utils.popup_formatters import build_popup_html
from utils.logger import get_logger, log_banner

logger = get_logger(__name__)

DEFAULT_HULL_COLORS = ['#7b3294', '#c2a5cf', '#008837', '#a6dba0', '#e66101', '#5e3c99']
DEFAULT_ISOCHRONE_COLORS = ['#1a9850', '#fee08b', '#d73027']
BUFFER_COLOR = '#3182bd'
REFERENCE_COLOR = 'red'

# Marker clusters of small layers break apart once the user zooms in this far
DISABLE_CLUSTERING_AT_ZOOM = 15


def _point_location(geom: BaseGeometry) -> List[float]:
    """[lat, lon] of a point geometry (MultiPoints use their centroid)."""
    point = location_point(geom)
    return [point.y, point.x]


def _map_bounds(*layers: Optional[gpd.GeoDataFrame]) -> Tuple[float, float, float, float]:
    """Combined (minx, miny, maxx, maxy) of all non-empty layers."""
    bounds = [layer.total_bounds for layer in layers if layer is not None and not layer.empty]
    if not bounds:
        raise ValueError("Cannot build a map without any features")

    return (
        min(b[0] for b in bounds),
        min(b[1] for b in bounds),
        max(b[2] for b in bounds),
        max(b[3] for b in bounds)
    )


def _with_popups(gdf: gpd.GeoDataFrame, layer_config: Dict) -> gpd.GeoDataFrame:
    """Copy of gdf with a 'popup_html' column built from each row's attributes."""
    result = gdf.copy()
    attribute_columns = [c for c in gdf.columns if c != 'geometry']
    result['popup_html'] = [
        build_popup_html(
            layer_config['name'],
            {col: row[col] for col in attribute_columns},
            name_field=layer_config.get('name_field'),
            address_field=layer_config.get('address_field')
        )
        for _, row in gdf.iterrows()
    ]
    return result


def _format_range(value: float, range_type: str) -> str:
    if range_type == 'time':
        return f"{value / 60:.0f} min"
    if value >= 1000:
        return f"{value / 1000:.1f} km"
    return f"{value:.0f} m"


def _add_streets(m: folium.Map, streets_gdf: gpd.GeoDataFrame, layer_config: Dict) -> None:
    logger.info(f"  - Adding {layer_config['name']} ({len(streets_gdf)} features)...")

    color = layer_config.get('color', '#555555')
    weight = layer_config.get('weight', 3)

    group = folium.FeatureGroup(name=layer_config['name'], show=True)
    folium.GeoJson(
        _with_popups(streets_gdf, layer_config),
        style_function=lambda feature, c=color, w=weight: {
            'color': c,
            'weight': w,
            'opacity': 0.8
        },
        highlight_function=lambda feature, c=color, w=weight: {
            'color': c,
            'weight': w + 2,
            'opacity': 1.0
        },
        popup=folium.GeoJsonPopup(fields=['popup_html'], labels=False, style="max-width: 400px;")
    ).add_to(group)
    group.add_to(m)


def _add_pharmacy_markers(
    m: folium.Map,
    pharmacies_gdf: gpd.GeoDataFrame,
    layer_config: Dict,
    settings: Dict
) -> None:
    layer_name = layer_config['name']
    logger.info(f"  - Adding {layer_name} ({len(pharmacies_gdf)} features)...")

    if settings.get('enable_clustering', True):
        cluster_options = {}
        if len(pharmacies_gdf) < settings.get('cluster_threshold', 50):
            cluster_options['disableClusteringAtZoom'] = DISABLE_CLUSTERING_AT_ZOOM
            cluster_options['spiderfyOnMaxZoom'] = False
            cluster_options['showCoverageOnHover'] = False
            logger.info(f"    (Using marker clustering - will show individuals at zoom {DISABLE_CLUSTERING_AT_ZOOM}+)")
        else:
            logger.info(f"    (Using marker clustering - {len(pharmacies_gdf)} features)")
        container = plugins.MarkerCluster(name=layer_name, **cluster_options)
    else:
        container = folium.FeatureGroup(name=layer_name)

    name_field = layer_config.get('name_field')
    attribute_columns = [c for c in pharmacies_gdf.columns if c != 'geometry']

    for _, row in pharmacies_gdf.iterrows():
        properties = {col: row[col] for col in attribute_columns}
        popup_html = build_popup_html(
            layer_name,
            properties,
            name_field=name_field,
            address_field=layer_config.get('address_field')
        )
        tooltip = properties.get(name_field) if name_field else None

        folium.Marker(
            location=_point_location(row.geometry),
            popup=folium.Popup(popup_html, max_width=400),
            tooltip=str(tooltip) if tooltip is not None else None,
            icon=folium.Icon(
                color=layer_config.get('icon_color', 'blue'),
                icon=layer_config.get('icon', 'circle'),
                prefix='fa'
            )
        ).add_to(container)

    container.add_to(m)
    logger.info(f"    ✓ Added {len(pharmacies_gdf)} markers to map")


def _add_heatmap(m: folium.Map, pharmacies_gdf: gpd.GeoDataFrame, heat_settings: Dict) -> None:
    logger.info("  - Adding pharmacy density heatmap...")
    plugins.HeatMap(
        [_point_location(geom) for geom in pharmacies_gdf.geometry],
        name='Pharmacy density',
        radius=heat_settings.get('radius', 25),
        blur=heat_settings.get('blur', 15),
        min_opacity=heat_settings.get('min_opacity', 0.3),
        show=heat_settings.get('show', False)
    ).add_to(m)


def _add_cluster_hulls(m: folium.Map, hulls_gdf: gpd.GeoDataFrame, colors: List[str]) -> Dict[int, str]:
    logger.info(f"  - Adding {len(hulls_gdf)} cluster hull(s)...")

    # One colour stop per cluster, spread over the configured palette
    colormap = LinearColormap(colors, vmin=0, vmax=max(len(hulls_gdf) - 1, 1))

    cluster_colors = {}
    group = folium.FeatureGroup(name='Pharmacy clusters', show=True)
    for index, row in enumerate(hulls_gdf.itertuples()):
        color = colormap(index)
        cluster_colors[int(row.cluster)] = color
        folium.GeoJson(
            mapping(row.geometry),
            style_function=lambda feature, c=color: {
                'color': c,
                'fillColor': c,
                'weight': 2,
                'fillOpacity': 0.25
            },
            tooltip=f"Cluster {row.cluster}: {row.member_count} pharmacies"
        ).add_to(group)
    group.add_to(m)

    return cluster_colors


def _add_buffers(m: folium.Map, buffers_gdf: gpd.GeoDataFrame) -> str:
    meters = buffers_gdf['buffer_m'].iloc[0]
    layer_name = f"Pharmacy buffers ({meters:.0f} m)"
    logger.info(f"  - Adding {layer_name}...")

    group = folium.FeatureGroup(name=layer_name, show=False)
    folium.GeoJson(
        buffers_gdf[['geometry']],
        style_function=lambda feature: {
            'color': BUFFER_COLOR,
            'fillColor': BUFFER_COLOR,
            'weight': 1,
            'fillOpacity': 0.1
        }
    ).add_to(group)
    group.add_to(m)

    return layer_name


def _add_near_streets(m: folium.Map, near_streets_gdf: gpd.GeoDataFrame, layer_config: Dict) -> None:
    logger.info(f"  - Highlighting {len(near_streets_gdf)} streets near pharmacies...")

    color = layer_config.get('highlight_color', '#e31a1c')
    weight = layer_config.get('weight', 3) + 1

    group = folium.FeatureGroup(name='Streets near pharmacies', show=True)
    folium.GeoJson(
        _with_popups(near_streets_gdf, layer_config),
        style_function=lambda feature, c=color, w=weight: {
            'color': c,
            'weight': w,
            'opacity': 0.9
        },
        popup=folium.GeoJsonPopup(fields=['popup_html'], labels=False, style="max-width: 400px;")
    ).add_to(group)
    group.add_to(m)


def _add_isochrones(
    m: folium.Map,
    isochrones_gdf: gpd.GeoDataFrame,
    colors: List[str],
    range_type: str,
    profile: Optional[str]
) -> LinearColormap:
    logger.info(f"  - Adding {len(isochrones_gdf)} isochrone polygon(s)...")

    values = [float(v) for v in isochrones_gdf['value']]
    vmin, vmax = min(values), max(values)
    if vmin == vmax:
        vmax = vmin + 1
    colormap = LinearColormap(colors, vmin=vmin, vmax=vmax)

    group = folium.FeatureGroup(name='Isochrones', show=True)
    # Largest polygons first so the smaller ranges stay clickable on top
    for value, geom in sorted(zip(values, isochrones_gdf.geometry), key=lambda item: -item[0]):
        color = colormap(value)
        label = _format_range(value, range_type)
        if profile:
            label = f"{label} ({profile})"
        folium.GeoJson(
            mapping(geom),
            style_function=lambda feature, c=color: {
                'color': c,
                'fillColor': c,
                'weight': 2,
                'fillOpacity': 0.2
            },
            tooltip=f"Reachable within {label}"
        ).add_to(group)
    group.add_to(m)

    return colormap


def _add_nearest(
    m: folium.Map,
    reference: Dict,
    nearest_gdf: Optional[gpd.GeoDataFrame],
    name_field: Optional[str]
) -> None:
    origin = [reference['lat'], reference['lon']]
    label = reference.get('label') or 'Reference location'
    logger.info(f"  - Adding reference location '{label}'...")

    group = folium.FeatureGroup(name='Nearest pharmacies', show=True)
    folium.Marker(
        location=origin,
        tooltip=label,
        icon=folium.Icon(color=REFERENCE_COLOR, icon='home', prefix='fa')
    ).add_to(group)

    if nearest_gdf is not None:
        for rank, row in enumerate(nearest_gdf.itertuples(), start=1):
            target = _point_location(row.geometry)
            name = getattr(row, name_field, None) if name_field else None
            text = f"#{rank} {name or 'Pharmacy'}: {row.distance_m:.0f} m"
            folium.PolyLine(
                locations=[origin, target],
                color=REFERENCE_COLOR,
                weight=2,
                dash_array='6 6',
                tooltip=text
            ).add_to(group)

    group.add_to(m)


def create_web_map(
    pharmacies_gdf: gpd.GeoDataFrame,
    streets_gdf: gpd.GeoDataFrame,
    config: Dict,
    analysis: Optional[Dict] = None
) -> folium.Map:
    """
    Create an interactive Leaflet map with all layers.

    Generates a web map including:
    - Multiple base map options
    - Street lines and pharmacy markers with attribute popups
    - Marker clustering and a density heatmap
    - DBSCAN cluster hulls, pharmacy buffers and nearby streets
    - Isochrones and nearest-pharmacy connections for a reference location
    - Layer control, measurement tools, fullscreen mode and a legend panel

    Parameters:
    -----------
    pharmacies_gdf : gpd.GeoDataFrame
        Pharmacy points in EPSG:4326
    streets_gdf : gpd.GeoDataFrame
        Street lines in EPSG:4326
    config : Dict
        Configuration dictionary
    analysis : Optional[Dict]
        Derived layers; recognized keys are 'hulls', 'buffers',
        'near_streets', 'isochrones', 'isochrone_range_type',
        'isochrone_profile', 'reference_location' and 'nearest'.
        Missing or empty entries are skipped.

    Returns:
    --------
    folium.Map
        Folium map object ready to be saved

    Example:
        >>> map_obj = create_web_map(pharmacies, streets, config, analysis)
        >>> map_obj.save('index.html')
    """
    log_banner(logger, "Creating Interactive Web Map")

    analysis = analysis or {}
    settings = config['settings']
    pharmacy_config = get_layer_config(config, 'pharmacies')
    street_config = get_layer_config(config, 'streets')

    def present(key: str) -> bool:
        value = analysis.get(key)
        return value is not None and not value.empty

    bounds = _map_bounds(pharmacies_gdf, streets_gdf, analysis.get('isochrones'))
    center_lat = (bounds[1] + bounds[3]) / 2
    center_lon = (bounds[0] + bounds[2]) / 2

    m = folium.Map(
        location=[center_lat, center_lon],
        zoom_start=settings.get('default_zoom', 14),
        tiles=None
    )

    logger.info("  - Adding basemaps...")
    add_basemaps(m)

    legend = []

    # Polygons first so lines and markers render above them
    if present('isochrones'):
        range_type = analysis.get('isochrone_range_type', 'time')
        colormap = _add_isochrones(
            m,
            analysis['isochrones'],
            settings.get('isochrone_colors', DEFAULT_ISOCHRONE_COLORS),
            range_type,
            analysis.get('isochrone_profile')
        )
        band_counts = analysis['isochrones']['value'].astype(float).value_counts().sort_index()
        for value, count in band_counts.items():
            legend.append(legend_entry(
                'Isochrone', 'polygon', colormap(value),
                count=int(count), detail=_format_range(value, range_type)
            ))

    if present('hulls'):
        cluster_colors = _add_cluster_hulls(
            m, analysis['hulls'], settings.get('hull_colors', DEFAULT_HULL_COLORS)
        )
        for cluster_id, color in cluster_colors.items():
            members = int(analysis['hulls'].loc[analysis['hulls']['cluster'] == cluster_id, 'member_count'].iloc[0])
            legend.append(legend_entry(f"Cluster {cluster_id}", 'polygon', color, count=members))

    if present('buffers'):
        buffer_name = _add_buffers(m, analysis['buffers'])
        legend.append(legend_entry(buffer_name, 'circle', BUFFER_COLOR, count=len(analysis['buffers'])))

    if not streets_gdf.empty:
        _add_streets(m, streets_gdf, street_config)
        legend.append(legend_entry(street_config['name'], 'line', street_config.get('color', '#555555'), count=len(streets_gdf)))

    if present('near_streets'):
        _add_near_streets(m, analysis['near_streets'], street_config)
        legend.append(legend_entry(
            'Streets near pharmacies', 'line',
            street_config.get('highlight_color', '#e31a1c'),
            count=len(analysis['near_streets'])
        ))

    heat_settings = settings.get('heatmap', {})
    if not pharmacies_gdf.empty and heat_settings.get('enabled', True):
        _add_heatmap(m, pharmacies_gdf, heat_settings)
        legend.append(legend_entry('Pharmacy density', 'heat', '#ff0000', count=len(pharmacies_gdf)))

    if not pharmacies_gdf.empty:
        _add_pharmacy_markers(m, pharmacies_gdf, pharmacy_config, settings)
        legend.append(legend_entry(
            pharmacy_config['name'], 'marker',
            pharmacy_config.get('icon_color', 'blue'),
            count=len(pharmacies_gdf),
            icon=pharmacy_config.get('icon')
        ))

    reference = analysis.get('reference_location')
    if reference:
        _add_nearest(m, reference, analysis.get('nearest'), pharmacy_config.get('name_field'))
        legend.append(legend_entry(reference.get('label') or 'Reference location', 'marker', REFERENCE_COLOR, icon='home'))

    folium.LayerControl(collapsed=False).add_to(m)
    plugins.MeasureControl(position='bottomleft', primary_length_unit='meters').add_to(m)
    plugins.Fullscreen(position='topleft').add_to(m)
    plugins.MousePosition().add_to(m)

    logger.info("  - Adding legend panel...")
    footer = None
    if analysis.get('isochrone_error'):
        footer = f"Isochrones unavailable: {analysis['isochrone_error']}"
    title = settings.get('title', 'Pharmacy Map')
    m.get_root().html.add_child(Element(render_legend_panel(title, legend, footer)))

    m.fit_bounds([[bounds[1], bounds[0]], [bounds[3], bounds[2]]])
    m.get_root().title = title

    logger.info("  ✓ Map created successfully\n")

    return m
