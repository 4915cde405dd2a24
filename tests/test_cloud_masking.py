"""Tests for QA60 cloud decoding, shadow projection and scene masking."""

from datetime import datetime

import numpy as np
import pytest

from conftest import DEFAULT_DN, make_optical_scene
from multitemporal_composites.core.cloud_masking import (
    MaskingParameters,
    cloud_and_shadow_mask,
    decode_cloud_mask,
    mask_sentinel2_scene,
    potential_shadow_mask,
    project_shadows,
    sentinel2_to_reflectance,
    shadow_offsets,
    translate_mask
)
from multitemporal_composites.core.data_model import Scene
from multitemporal_composites.core.exceptions import InputError, MetadataError, MissingBandError


class TestDecodeCloudMask:

    def test_bit_semantics(self):
        qa = np.array([0, 1 << 10, 1 << 11, (1 << 10) | (1 << 11), 1, 1 << 9], dtype=np.uint16)
        np.testing.assert_array_equal(
            decode_cloud_mask(qa),
            [False, True, True, True, False, False]
        )

    def test_integer_valued_floats_are_accepted(self):
        qa = np.array([0.0, 1024.0, 2048.0])
        np.testing.assert_array_equal(decode_cloud_mask(qa), [False, True, True])

    def test_nan_is_an_input_error(self):
        with pytest.raises(InputError):
            decode_cloud_mask(np.array([0.0, np.nan]))

    def test_custom_bits(self):
        qa = np.array([1 << 3, 1 << 10], dtype=np.uint16)
        np.testing.assert_array_equal(decode_cloud_mask(qa, cloud_bit=3, cirrus_bit=4), [True, False])


class TestShadowProjection:

    def test_default_heights(self):
        heights = MaskingParameters().cloud_heights
        assert heights[0] == 200
        assert heights[-1] == 9700
        assert len(heights) == 20

    def test_zero_zenith_gives_zero_offsets(self):
        offsets = shadow_offsets(azimuth=137.0, zenith=0.0, pixel_size=20.0)
        assert set(offsets) == {(0, 0)}

    def test_zero_zenith_potential_shadow_equals_cloud(self):
        cloud = np.zeros((10, 10), dtype=bool)
        cloud[2:4, 5:8] = True
        potential = potential_shadow_mask(cloud, azimuth=200.0, zenith=0.0, pixel_size=20.0)
        np.testing.assert_array_equal(potential, cloud)

    def test_offset_direction_and_rounding(self):
        # azimuth 0 rotates to 90 degrees: the whole shadow vector goes to rows
        offsets = shadow_offsets(azimuth=0.0, zenith=45.0, pixel_size=100.0, heights=[200, 300])
        assert offsets == [(0, 2), (0, 3)]

    def test_translate_mask(self):
        mask = np.zeros((5, 5), dtype=bool)
        mask[1, 1] = True
        shifted = translate_mask(mask, 2, 1)
        assert shifted[2, 3]
        assert shifted.sum() == 1

        back = translate_mask(mask, -1, -1)
        assert back[0, 0]

    def test_translate_outside_grid_is_empty(self):
        mask = np.ones((5, 5), dtype=bool)
        assert not translate_mask(mask, 5, 0).any()
        assert not translate_mask(mask, 0, -7).any()

    def test_shift_in_from_outside_is_false(self):
        mask = np.ones((4, 4), dtype=bool)
        shifted = translate_mask(mask, 1, 0)
        assert not shifted[:, 0].any()
        assert shifted[:, 1:].all()

    def test_project_shadows_keeps_dark_non_cloud_pixels(self, grid, timestamp):
        green = np.full(grid.shape, 0.3)
        swir2 = np.full(grid.shape, 0.1)
        # bright ground two rows south of the second cloud
        green[7, 10] = 0.1
        swir2[7, 10] = 0.3
        scene = Scene.from_arrays(
            {'green': green, 'swir2': swir2}, grid, timestamp,
            {'solar_azimuth': 0.0, 'solar_zenith': 45.0}
        )
        cloud = np.zeros(grid.shape, dtype=bool)
        cloud[1, 3] = True
        cloud[5, 10] = True

        params = MaskingParameters(cloud_heights=(200.0,), pixel_size=100.0)
        shadow = project_shadows(scene, cloud, params)

        assert shadow[3, 3]
        assert not shadow[7, 10]
        assert shadow.sum() == 1

    def test_shadow_never_overlaps_cloud(self, grid, timestamp):
        scene = Scene.from_arrays(
            {'green': np.full(grid.shape, 0.3), 'swir2': np.full(grid.shape, 0.1)}, grid, timestamp,
            {'solar_azimuth': 0.0, 'solar_zenith': 45.0}
        )
        cloud = np.zeros(grid.shape, dtype=bool)
        cloud[2:8, 4] = True

        params = MaskingParameters(cloud_heights=(200.0, 300.0), pixel_size=100.0)
        shadow = project_shadows(scene, cloud, params)

        assert not (shadow & cloud).any()
        assert shadow[8, 4] and shadow[9, 4] and shadow[10, 4]


class TestSceneMasking:

    def test_reflectance_scaling_and_renaming(self, grid, timestamp):
        scene = sentinel2_to_reflectance(make_optical_scene(grid, timestamp))

        for name in ('blue', 'green', 'red', 'red2', 'red4', 'swir1', 'swir2', 'QA60'):
            assert name in scene.band_names
        np.testing.assert_allclose(scene.band('red4'), DEFAULT_DN['B8A'] / 10000.0)
        assert scene.metadata['solar_zenith'] == 0.0

    def test_valid_pixels_untouched_and_cloud_pixels_nan(self, grid, timestamp):
        qa = np.zeros(grid.shape, dtype=np.uint16)
        qa[4, 4] = 1 << 10
        qa[10, 12] = 1 << 11
        masked = mask_sentinel2_scene(make_optical_scene(grid, timestamp, qa=qa))

        for name in ('blue', 'green', 'red', 'B5', 'red2', 'B7', 'B8', 'red4', 'swir1', 'swir2'):
            values = masked.band(name)
            assert np.isnan(values[4, 4])
            assert np.isnan(values[10, 12])
            assert np.isfinite(values).sum() == grid.n_pixels - 2

        np.testing.assert_allclose(masked.band('blue')[0, 0], DEFAULT_DN['B2'] / 10000.0)

    def test_dark_pixel_under_projected_cloud_is_masked(self, grid, timestamp):
        # Sun at azimuth 180, zenith 45: the 200 m height casts 10 rows north
        qa = np.zeros(grid.shape, dtype=np.uint16)
        qa[15, 5] = 1 << 10
        b12 = np.full(grid.shape, float(DEFAULT_DN['B12']))
        b12[5, 5] = 200.0
        b12[5, 6] = 200.0
        raw = make_optical_scene(grid, timestamp, qa=qa, overrides={'B12': b12}, azimuth=180.0, zenith=45.0)

        masked = mask_sentinel2_scene(raw)

        for name in ('blue', 'red', 'red4', 'swir2'):
            values = masked.band(name)
            assert np.isnan(values[15, 5])
            assert np.isnan(values[5, 5])
            # dark but off the shadow path
            assert np.isfinite(values[5, 6])
            assert np.isfinite(values).sum() == grid.n_pixels - 2

    def test_clear_scene_is_unchanged(self, grid, timestamp):
        masked = mask_sentinel2_scene(make_optical_scene(grid, timestamp, zenith=30.0))
        assert np.isfinite(masked.band('green')).all()

    def test_missing_solar_angles(self, grid, timestamp):
        scene = sentinel2_to_reflectance(make_optical_scene(grid, timestamp))
        bare = Scene(scene.data, scene.grid, scene.timestamp, {})
        with pytest.raises(MetadataError):
            cloud_and_shadow_mask(bare)

    def test_missing_qa_band(self, grid, timestamp):
        raw = make_optical_scene(grid, timestamp)
        without_qa = raw.select_bands([name for name in raw.band_names if name != 'QA60'])
        with pytest.raises(MissingBandError):
            mask_sentinel2_scene(without_qa)

    def test_missing_spectral_band(self, grid, timestamp):
        raw = make_optical_scene(grid, timestamp)
        without_b8a = raw.select_bands([name for name in raw.band_names if name != 'B8A'])
        with pytest.raises(MissingBandError):
            mask_sentinel2_scene(without_b8a)
