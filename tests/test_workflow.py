"""End-to-end tests of the pharmacy_map_creator workflow and CLI helpers."""

import argparse
import json

import pytest

import pharmacy_map_creator
from pharmacy_map_creator import main, parse_location, resolve_reference_location


@pytest.fixture(autouse=True)
def log_dir(tmp_path, monkeypatch):
    """Keep workflow log files inside the test's temporary directory."""
    original = pharmacy_map_creator.setup_logging
    monkeypatch.setattr(pharmacy_map_creator, 'setup_logging', lambda: original(tmp_path / 'logs'))


def test_main_without_isochrones(tmp_path, data_files, config_file):
    pharmacies_path, streets_path = data_files

    output_path = main(
        pharmacies_path, streets_path,
        output_name='no_iso',
        config_path=config_file,
        output_dir=tmp_path / 'out'
    )

    assert output_path == tmp_path / 'out' / 'no_iso'
    assert (output_path / 'index.html').exists()

    metadata = json.loads((output_path / 'metadata.json').read_text(encoding='utf-8'))
    assert metadata['clusters']['cluster_count'] == 2
    assert metadata['streets_near_pharmacies'] == 2
    assert metadata['reference_location']['label'] == 'Station'
    assert metadata['isochrones']['available'] is False
    assert len(metadata['nearest_pharmacies']) == 2
    assert 'Cluster Hulls' in metadata['data_files']


def test_main_with_isochrones(tmp_path, monkeypatch, data_files, config, isochrones_gdf):
    config['analysis_settings']['isochrone_enabled'] = True
    config_path = tmp_path / 'iso_config.json'
    config_path.write_text(json.dumps(config), encoding='utf-8')

    requests_made = []

    def fake_fetch(location, **kwargs):
        requests_made.append((location, kwargs))
        return isochrones_gdf, None

    monkeypatch.setattr(pharmacy_map_creator, 'fetch_isochrones', fake_fetch)
    monkeypatch.setenv('ORS_API_KEY', 'test-key')

    pharmacies_path, streets_path = data_files
    output_path = main(
        pharmacies_path, streets_path,
        output_name='with_iso',
        location=(51.9570, 7.6350),
        config_path=config_path,
        output_dir=tmp_path / 'out'
    )

    assert output_path is not None
    location, kwargs = requests_made[0]
    assert location == (51.9570, 7.6350)
    assert kwargs['api_key'] == 'test-key'
    assert kwargs['profile'] == 'foot-walking'

    metadata = json.loads((output_path / 'metadata.json').read_text(encoding='utf-8'))
    assert metadata['isochrones']['available'] is True
    assert metadata['pharmacies_within_isochrone'] == 7
    assert (output_path / 'data' / 'isochrones.geojson').exists()


def test_main_continues_when_isochrones_fail(tmp_path, monkeypatch, data_files, config):
    config['analysis_settings']['isochrone_enabled'] = True
    config_path = tmp_path / 'iso_config.json'
    config_path.write_text(json.dumps(config), encoding='utf-8')

    monkeypatch.setattr(
        pharmacy_map_creator, 'fetch_isochrones',
        lambda location, **kwargs: (None, 'Isochrone request timed out')
    )

    pharmacies_path, streets_path = data_files
    output_path = main(pharmacies_path, streets_path, output_name='iso_fail',
                       config_path=config_path, output_dir=tmp_path / 'out')

    metadata = json.loads((output_path / 'metadata.json').read_text(encoding='utf-8'))
    assert metadata['isochrones']['error'] == 'Isochrone request timed out'
    assert 'Isochrones unavailable' in (output_path / 'index.html').read_text(encoding='utf-8')


def test_main_returns_none_on_failure(tmp_path, config_file):
    result = main(tmp_path / 'missing.shp', tmp_path / 'missing_streets.shp',
                  config_path=config_file, output_dir=tmp_path / 'out')
    assert result is None


def test_resolve_reference_location_precedence(pharmacies_gdf):
    configured = {'reference_location': {'lat': 51.0, 'lon': 7.0, 'label': 'Configured'}}

    explicit = resolve_reference_location(pharmacies_gdf, configured, (52.0, 8.0))
    assert (explicit['lat'], explicit['lon']) == (52.0, 8.0)

    from_config = resolve_reference_location(pharmacies_gdf, configured)
    assert from_config['label'] == 'Configured'

    centroid = resolve_reference_location(pharmacies_gdf, {'reference_location': None})
    assert centroid['label'] == 'Pharmacy centroid'
    assert 51.95 < centroid['lat'] < 51.97


def test_parse_location():
    assert parse_location('51.96,7.63') == (51.96, 7.63)

    with pytest.raises(argparse.ArgumentTypeError):
        parse_location('51.96')
    with pytest.raises(argparse.ArgumentTypeError):
        parse_location('95,7.63')


def test_main_accepts_multipoint_pharmacies(tmp_path, multipoint_pharmacies_gdf, streets_gdf, config_file):
    pharmacies_path = tmp_path / 'pharmacies.gpkg'
    streets_path = tmp_path / 'streets.geojson'
    multipoint_pharmacies_gdf.to_file(pharmacies_path, driver='GPKG')
    streets_gdf.to_file(streets_path, driver='GeoJSON')

    output_path = main(pharmacies_path, streets_path, output_name='multipoint',
                       config_path=config_file, output_dir=tmp_path / 'out')

    assert output_path is not None
    metadata = json.loads((output_path / 'metadata.json').read_text(encoding='utf-8'))
    assert metadata['clusters']['cluster_count'] == 2
    assert metadata['nearest_pharmacies'][0]['name'] == 'Bahnhof-Apotheke'
