"""Tests for the openrouteservice isochrone client (HTTP layer mocked)."""

import pytest
import requests

from core import isochrone
from core.isochrone import (
    build_isochrone_request,
    fetch_isochrones,
    resolve_api_key,
)

LOCATION = (51.9566, 7.6354)


def _isochrone_feature(value, size):
    lon, lat = LOCATION[1], LOCATION[0]
    return {
        'type': 'Feature',
        'properties': {'group_index': 0, 'value': value, 'center': [lon, lat]},
        'geometry': {
            'type': 'Polygon',
            'coordinates': [[
                [lon - size, lat - size],
                [lon + size, lat - size],
                [lon + size, lat + size],
                [lon - size, lat + size],
                [lon - size, lat - size],
            ]]
        }
    }


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)


@pytest.fixture()
def captured(monkeypatch):
    """Patch requests.post with a configurable fake; records the calls made."""
    calls = []
    state = {'response': None, 'exception': None}

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append({'url': url, 'json': json, 'headers': headers, 'timeout': timeout})
        if state['exception'] is not None:
            raise state['exception']
        return state['response']

    monkeypatch.setattr(isochrone.requests, 'post', fake_post)
    return calls, state


def test_build_isochrone_request_uses_lon_lat_order():
    body = build_isochrone_request(LOCATION, [600, 300], 'time')

    assert body == {
        'locations': [[7.6354, 51.9566]],
        'range': [300, 600],
        'range_type': 'time'
    }


@pytest.mark.parametrize('ranges, range_type', [
    ([], 'time'),
    ([0, 300], 'time'),
    ([300], 'speed'),
])
def test_build_isochrone_request_validation(ranges, range_type):
    with pytest.raises(ValueError):
        build_isochrone_request(LOCATION, ranges, range_type)


def test_resolve_api_key_prefers_explicit_setting(monkeypatch):
    monkeypatch.setenv('ORS_API_KEY', 'from-env')
    assert resolve_api_key({'isochrone_api_key': 'explicit'}) == 'explicit'


def test_resolve_api_key_from_environment(monkeypatch):
    monkeypatch.setenv('MY_ORS_KEY', 'from-env')
    assert resolve_api_key({'isochrone_api_key_env': 'MY_ORS_KEY'}) == 'from-env'


def test_resolve_api_key_missing(monkeypatch):
    monkeypatch.delenv('ORS_API_KEY', raising=False)
    assert resolve_api_key({}) is None


def test_fetch_isochrones_success(captured):
    calls, state = captured
    state['response'] = FakeResponse({
        'type': 'FeatureCollection',
        'features': [_isochrone_feature(300, 0.002), _isochrone_feature(600, 0.005)]
    })

    gdf, error = fetch_isochrones(LOCATION, 'foot-walking', [300, 600], 'secret', timeout=5)

    assert error is None
    assert list(gdf['value']) == [600, 300]
    assert list(gdf.columns) == ['value', 'group_index', 'geometry']
    assert gdf.crs.to_epsg() == 4326

    assert len(calls) == 1
    assert calls[0]['url'] == 'https://api.openrouteservice.org/v2/isochrones/foot-walking'
    assert calls[0]['headers']['Authorization'] == 'secret'
    assert calls[0]['json']['range_type'] == 'time'
    assert calls[0]['timeout'] == 5


def test_fetch_isochrones_without_key_skips_request(captured):
    calls, _ = captured
    gdf, error = fetch_isochrones(LOCATION, 'foot-walking', [300], None)

    assert gdf is None
    assert 'API key' in error
    assert calls == []


def test_fetch_isochrones_rejects_unknown_profile(captured):
    with pytest.raises(ValueError, match='teleport'):
        fetch_isochrones(LOCATION, 'teleport', [300], 'secret')


def test_fetch_isochrones_timeout(captured):
    _, state = captured
    state['exception'] = requests.exceptions.Timeout()

    gdf, error = fetch_isochrones(LOCATION, 'driving-car', [300], 'secret')

    assert gdf is None
    assert 'timed out' in error


def test_fetch_isochrones_connection_error(captured):
    _, state = captured
    state['exception'] = requests.exceptions.ConnectionError('no route to host')

    gdf, error = fetch_isochrones(LOCATION, 'driving-car', [300], 'secret')

    assert gdf is None
    assert 'no route to host' in error


def test_fetch_isochrones_http_error_uses_service_message(captured):
    _, state = captured
    state['response'] = FakeResponse({'error': {'code': 3002, 'message': 'Invalid API key'}}, status_code=403)

    gdf, error = fetch_isochrones(LOCATION, 'foot-walking', [300], 'bad-key')

    assert gdf is None
    assert 'HTTP 403' in error
    assert 'Invalid API key' in error


def test_fetch_isochrones_error_body(captured):
    _, state = captured
    state['response'] = FakeResponse({'error': {'message': 'Range too large'}})

    gdf, error = fetch_isochrones(LOCATION, 'foot-walking', [300], 'secret')

    assert gdf is None
    assert 'Range too large' in error


def test_fetch_isochrones_invalid_json(captured):
    _, state = captured
    state['response'] = FakeResponse(ValueError('Expecting value'))

    gdf, error = fetch_isochrones(LOCATION, 'foot-walking', [300], 'secret')

    assert gdf is None
    assert 'not valid JSON' in error


def test_fetch_isochrones_no_features(captured):
    _, state = captured
    state['response'] = FakeResponse({'type': 'FeatureCollection', 'features': []})

    gdf, error = fetch_isochrones(LOCATION, 'foot-walking', [300], 'secret')

    assert gdf is None
    assert 'no features' in error


def test_fetch_isochrones_non_object_body(captured):
    _, state = captured
    state['response'] = FakeResponse([_isochrone_feature(300, 0.002)])

    gdf, error = fetch_isochrones(LOCATION, 'foot-walking', [300], 'secret')

    assert gdf is None
    assert 'not a GeoJSON object' in error


def test_fetch_isochrones_drops_polygons_without_value(captured):
    _, state = captured
    unlabelled = _isochrone_feature(None, 0.004)
    state['response'] = FakeResponse({
        'type': 'FeatureCollection',
        'features': [unlabelled, _isochrone_feature(300, 0.002)]
    })

    gdf, error = fetch_isochrones(LOCATION, 'foot-walking', [300], 'secret')

    assert error is None
    assert list(gdf['value']) == [300]


def test_fetch_isochrones_only_unlabelled_polygons(captured):
    _, state = captured
    state['response'] = FakeResponse({
        'type': 'FeatureCollection',
        'features': [_isochrone_feature(None, 0.002)]
    })

    gdf, error = fetch_isochrones(LOCATION, 'foot-walking', [300], 'secret')

    assert gdf is None
    assert 'no polygons with a range value' in error
