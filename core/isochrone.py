"""
Isochrone query module for Pharmacy Map Creator.

This module requests isochrones (areas reachable within a travel time or
distance) from the openrouteservice REST API and converts the GeoJSON
response to a GeoDataFrame.

Network and service failures are reported as (None, error_message) so the
caller can continue building the map without the isochrone overlay.

Functions:
    resolve_api_key: Read the API key from settings or the environment
    build_isochrone_request: Build the JSON request body
    fetch_isochrones: Query the service and return polygons
"""

import os
from typing import Dict, List, Optional, Sequence, Tuple

import geopandas as gpd
import requests
from utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_API_URL = 'https://api.openrouteservice.org/v2/isochrones'

SUPPORTED_PROFILES = (
    'driving-car',
    'driving-hgv',
    'cycling-regular',
    'cycling-road',
    'cycling-mountain',
    'cycling-electric',
    'foot-walking',
    'foot-hiking',
    'wheelchair'
)

RANGE_TYPES = ('time', 'distance')


def resolve_api_key(settings: Dict) -> Optional[str]:
    """
    Return the isochrone API key.

    An explicit 'isochrone_api_key' setting wins; otherwise the environment
    variable named by 'isochrone_api_key_env' (default ORS_API_KEY) is used.
    """
    explicit = settings.get('isochrone_api_key')
    if explicit:
        return explicit

    env_name = settings.get('isochrone_api_key_env', 'ORS_API_KEY')
    return os.environ.get(env_name) or None


def build_isochrone_request(
    location: Tuple[float, float],
    ranges: Sequence[float],
    range_type: str = 'time'
) -> Dict:
    """
    Build the openrouteservice isochrone request body.

    Parameters:
    -----------
    location : Tuple[float, float]
        (lat, lon) of the origin
    ranges : Sequence[float]
        Seconds for range_type 'time', meters for 'distance'
    range_type : str
        'time' or 'distance'

    Returns:
    --------
    Dict
        JSON body; note the service expects [lon, lat] order

    Raises:
    -------
    ValueError
        If ranges is empty, contains non-positive values or range_type is unknown
    """
    if range_type not in RANGE_TYPES:
        raise ValueError(f"Unsupported range type '{range_type}' (expected one of {RANGE_TYPES})")

    range_values: List[float] = sorted(ranges)
    if not range_values:
        raise ValueError("At least one isochrone range is required")
    if range_values[0] <= 0:
        raise ValueError(f"Isochrone ranges must be positive, got {range_values}")

    lat, lon = location
    return {
        'locations': [[lon, lat]],
        'range': range_values,
        'range_type': range_type
    }


def fetch_isochrones(
    location: Tuple[float, float],
    profile: str,
    ranges: Sequence[float],
    api_key: Optional[str],
    range_type: str = 'time',
    api_url: str = DEFAULT_API_URL,
    timeout: int = 30
) -> Tuple[Optional[gpd.GeoDataFrame], Optional[str]]:
    """
    Request isochrone polygons around a location.

    Parameters:
    -----------
    location : Tuple[float, float]
        (lat, lon) of the origin
    profile : str
        Travel profile, one of SUPPORTED_PROFILES
    ranges : Sequence[float]
        Range values (seconds or meters)
    api_key : Optional[str]
        openrouteservice API key
    range_type : str
        'time' or 'distance'
    api_url : str
        Base isochrone endpoint; the profile is appended
    timeout : int
        Request timeout in seconds

    Returns:
    --------
    Tuple[Optional[gpd.GeoDataFrame], Optional[str]]
        - GeoDataFrame (EPSG:4326) with 'value' and 'group_index' columns,
          largest range first, or None on failure
        - error message if failed, None if successful

    Raises:
    -------
    ValueError
        If the profile or the range arguments are invalid
    """
    if profile not in SUPPORTED_PROFILES:
        raise ValueError(f"Unsupported travel profile '{profile}'")

    body = build_isochrone_request(location, ranges, range_type)

    if not api_key:
        return None, "No isochrone API key configured"

    url = f"{api_url.rstrip('/')}/{profile}"
    headers = {
        'Authorization': api_key,
        'Accept': 'application/geo+json, application/json',
        'Content-Type': 'application/json; charset=utf-8'
    }

    logger.info(f"Requesting {profile} isochrones ({range_type}: {body['range']})...")

    try:
        response = requests.post(url, json=body, headers=headers, timeout=timeout)
        response.raise_for_status()
        data = response.json()
    except requests.exceptions.Timeout:
        return None, "Isochrone request timed out"
    except requests.exceptions.HTTPError as e:
        return None, f"Isochrone request failed: {_describe_http_error(e)}"
    except requests.exceptions.RequestException as e:
        return None, f"Isochrone request failed: {str(e)}"
    except ValueError as e:
        return None, f"Isochrone response is not valid JSON: {str(e)}"

    if not isinstance(data, dict):
        return None, f"Isochrone response is not a GeoJSON object: {type(data).__name__}"

    if 'error' in data:
        error = data['error']
        message = error.get('message', 'Unknown error') if isinstance(error, dict) else str(error)
        return None, f"Isochrone service error: {message}"

    features = data.get('features', [])
    if not features:
        return None, "Isochrone service returned no features"

    try:
        gdf = gpd.GeoDataFrame.from_features(features, crs='EPSG:4326')
    except Exception as e:
        return None, f"Isochrone response parsing error: {str(e)}"

    for column in ('value', 'group_index'):
        if column not in gdf.columns:
            gdf[column] = None

    missing_value = gdf['value'].isna()
    if missing_value.any():
        logger.warning(f"  - Dropping {int(missing_value.sum())} isochrone polygon(s) without a range value")
        gdf = gdf[~missing_value]
    if gdf.empty:
        return None, "Isochrone service returned no polygons with a range value"

    # Drop list-valued properties such as 'center', GeoJSON writers reject them
    gdf = gdf[['value', 'group_index', 'geometry']]
    gdf = gdf.sort_values('value', ascending=False, kind='stable').reset_index(drop=True)
    logger.info(f"  ✓ Received {len(gdf)} isochrone polygon(s)")

    return gdf, None


def _describe_http_error(error: requests.exceptions.HTTPError) -> str:
    """Prefer the service's own error message over the bare status line."""
    response = error.response
    if response is None:
        return str(error)

    try:
        payload = response.json()
        service_error = payload.get('error')
        if isinstance(service_error, dict) and service_error.get('message'):
            return f"HTTP {response.status_code}: {service_error['message']}"
        if isinstance(service_error, str):
            return f"HTTP {response.status_code}: {service_error}"
    except ValueError:
        pass

    return f"HTTP {response.status_code}"
