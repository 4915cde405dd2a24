"""Tests for configuration loading and validation."""

from datetime import date
from pathlib import Path

import pytest

from multitemporal_composites.core.composite_config import CompositeConfig, DEFAULT_COMPOSITE_NAMES
from multitemporal_composites.core.exceptions import ConfigurationError
from shared_utils import get_config_value, load_config


def minimal_config(**overrides):
    config = {
        'study_area': {'name': 'test', 'bounds': [600000, 5899600, 600400, 5900000]},
        'dates': {'start': '2019-01-01', 'stop': '2020-01-01'},
        'export': {'scale': 20, 'crs': 'EPSG:25831'},
    }
    config.update(overrides)
    return config


def test_defaults():
    config = CompositeConfig.from_dict(minimal_config())

    assert config.start_date == date(2019, 1, 1)
    assert config.stop_date == date(2020, 1, 1)
    assert config.masking.cloud_bit == 10
    assert config.masking.cirrus_bit == 11
    assert config.masking.dark_pixel_threshold == 0.25
    assert config.edge.min_component_size == 100
    assert config.radar_filter.relative_orbit == 37
    assert config.radar_filter.orbit_pass == 'DESCENDING'
    assert config.export.max_pixels == 6_000_000_000
    assert dict(config.export.names) == DEFAULT_COMPOSITE_NAMES
    assert config.study_area.crs == 'EPSG:25831'


def test_cloud_heights_from_range():
    config = CompositeConfig.from_dict(minimal_config(
        masking={'cloud_heights': {'start': 200, 'stop': 10000, 'step': 500}}
    ))
    heights = config.masking.cloud_heights
    assert heights[0] == 200.0
    assert heights[-1] == 9700.0
    assert len(heights) == 20


def test_component_config_file_is_valid():
    raw = load_config(component_name='multitemporal_composites')
    config = CompositeConfig.from_dict(raw)

    assert config.export.crs == 'EPSG:25831'
    assert config.export.scale == 20.0
    assert config.edge.min_value == -25.0
    assert config.edge.max_value == 10.0
    assert config.export.names['radar'] == 'S1_VV_VH_95_50_5_SDs_wadden'
    assert (config.start_date, config.stop_date) == (date(2016, 6, 1), date(2018, 6, 1))
    assert get_config_value(raw, 'radar.relative_orbit') == 37
    assert Path(raw['_meta']['config_file']).name == 'config.yml'


def test_boundary_file_locations():
    def boundary(value):
        study_area = {'name': 'test', 'bounds': [600000, 5899600, 600400, 5900000], 'boundary_file': value}
        return CompositeConfig.from_dict(minimal_config(study_area=study_area)).study_area.boundary_file

    assert boundary('wadden.gpkg') == Path('data/raw/study_area/wadden.gpkg')
    assert boundary('outlines/wadden.gpkg') == Path('outlines/wadden.gpkg')
    assert boundary(None) is None


def test_nested_optional_sections():
    config = CompositeConfig.from_dict(minimal_config(
        compute={'tile_size': 256}, logging={'level': 'DEBUG'}, data={'radar_dir': 'archive/s1'}
    ))
    assert config.compute.tile_size == 256
    assert config.compute.scene_scheduler is None
    assert config.log_level == 'DEBUG'
    assert config.radar_dir == Path('archive/s1')
    assert config.optical_dir == Path('data/raw/sentinel2')


def test_missing_section():
    raw = minimal_config()
    del raw['dates']
    with pytest.raises(ConfigurationError):
        CompositeConfig.from_dict(raw)


@pytest.mark.parametrize('overrides', [
    {'dates': {'start': '2020-01-01', 'stop': '2019-01-01'}},
    {'dates': {'start': 'not a date', 'stop': '2019-01-01'}},
    {'study_area': {'bounds': [0, 0, 10]}},
    {'study_area': {'bounds': [10, 0, 0, 10]}},
    {'export': {'scale': -20}},
    {'edge': {'min_value': 10, 'max_value': -25}},
    {'edge': {'kernel_radius': 3}},
    {'compute': {'tile_size': 0}},
])
def test_invalid_values(overrides):
    with pytest.raises(ConfigurationError):
        CompositeConfig.from_dict(minimal_config(**overrides))


def test_region_pixels():
    config = CompositeConfig.from_dict(minimal_config())
    assert config.region_pixels() == 400
