"""Tests for normalized difference spectral indices."""

import numpy as np
import pytest

from multitemporal_composites.core.data_model import Scene
from multitemporal_composites.core.exceptions import MissingBandError
from multitemporal_composites.core.spectral_indices import (
    SPECTRAL_INDICES,
    add_ndvi,
    add_spectral_indices,
    normalized_difference,
    normalized_difference_array
)


@pytest.fixture
def reflectance_scene(grid, timestamp):
    bands = {
        'green': np.full(grid.shape, 0.2),
        'red': np.full(grid.shape, 0.1),
        'red4': np.full(grid.shape, 0.4),
        'swir1': np.full(grid.shape, 0.2),
    }
    return Scene.from_arrays(bands, grid, timestamp)


def test_normalized_difference_values():
    result = normalized_difference_array(np.array([3.0, 1.0, -1.0]), np.array([1.0, 3.0, -3.0]))
    np.testing.assert_allclose(result, [0.5, -0.5, -0.5])


def test_zero_denominator_is_nan_not_error():
    result = normalized_difference_array(np.array([0.0, 2.0, 1.0]), np.array([0.0, -2.0, 1.0]))
    assert np.isnan(result[0])
    assert np.isnan(result[1])
    assert result[2] == 0.0


def test_nan_inputs_propagate():
    result = normalized_difference_array(np.array([np.nan]), np.array([0.5]))
    assert np.isnan(result[0])


def test_index_band_definitions():
    assert SPECTRAL_INDICES['NDVI'] == ('red4', 'red')
    assert SPECTRAL_INDICES['NDWI'] == ('green', 'red4')
    assert SPECTRAL_INDICES['NDBI'] == ('swir1', 'red4')


def test_add_spectral_indices_appends_in_order(reflectance_scene):
    result = add_spectral_indices(reflectance_scene)

    assert result.band_names[-3:] == ['NDBI', 'NDVI', 'NDWI']
    np.testing.assert_allclose(result.band('NDVI'), 0.6)
    np.testing.assert_allclose(result.band('NDWI'), -1.0 / 3.0)
    np.testing.assert_allclose(result.band('NDBI'), -1.0 / 3.0)


def test_input_scene_is_not_mutated(reflectance_scene):
    add_ndvi(reflectance_scene)
    assert 'NDVI' not in reflectance_scene.band_names


def test_custom_normalized_difference(reflectance_scene):
    result = normalized_difference(reflectance_scene, 'red4', 'green', 'GNDVI')
    np.testing.assert_allclose(result.band('GNDVI'), 1.0 / 3.0)


def test_missing_band_raises(grid, timestamp):
    scene = Scene.from_arrays({'red': np.ones(grid.shape)}, grid, timestamp)
    with pytest.raises(MissingBandError):
        add_ndvi(scene)
