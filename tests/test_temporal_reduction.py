"""Tests for per-pixel temporal reduction."""

import numpy as np
import pytest

from conftest import make_series
from multitemporal_composites.core.data_model import BandCollection
from multitemporal_composites.core.exceptions import (
    BandCollisionError,
    ConfigurationError,
    InputError,
    MissingBandError
)
from multitemporal_composites.core.temporal_reduction import (
    Percentile,
    StdDev,
    merge_results,
    reduce_bands,
    reduce_collection,
    statistic_from_spec
)


class TestStatistics:

    def test_percentile_output_names(self):
        assert Percentile((90, 50)).output_names('NDVI') == ['NDVI_p90', 'NDVI_p50']
        assert Percentile((95, 50, 5)).output_names('VV') == ['VV_p95', 'VV_p50', 'VV_p5']

    def test_stddev_output_name(self):
        assert StdDev().output_names('VH') == ['VH_stdDev']

    def test_percentile_out_of_range(self):
        with pytest.raises(ConfigurationError):
            Percentile((150,))
        with pytest.raises(ConfigurationError):
            Percentile((-1,))

    def test_statistic_from_spec(self):
        assert statistic_from_spec({'percentile': [90, 50]}) == Percentile((90.0, 50.0))
        assert statistic_from_spec('stdDev') == StdDev()
        with pytest.raises(ConfigurationError):
            statistic_from_spec('median')


class TestReduceCollection:

    def test_percentiles_of_three_values(self, small_grid):
        collection = make_series(small_grid, 'NDVI', [3.0, 1.0, 2.0])
        result = reduce_collection(collection, 'NDVI', Percentile((50, 5)))

        assert result.band_names == ['NDVI_p50', 'NDVI_p5']
        np.testing.assert_allclose(result.band('NDVI_p50'), 2.0)
        np.testing.assert_allclose(result.band('NDVI_p5'), 1.1)

    def test_population_standard_deviation(self, small_grid):
        collection = make_series(small_grid, 'VV', [2, 4, 4, 4, 5, 5, 7, 9])
        result = reduce_collection(collection, 'VV', StdDev())
        np.testing.assert_allclose(result.band('VV_stdDev'), 2.0, rtol=0, atol=1e-12)

    def test_invalid_observations_are_ignored(self, small_grid):
        collection = make_series(small_grid, 'NDVI', [1.0, np.nan, 2.0, 3.0, np.nan])
        result = reduce_collection(collection, 'NDVI', Percentile((50,)))
        np.testing.assert_allclose(result.band('NDVI_p50'), 2.0)

    def test_pixel_without_valid_observation_is_nan(self, small_grid):
        first = np.array([[1.0, np.nan], [1.0, 1.0]])
        second = np.array([[2.0, np.nan], [2.0, 2.0]])
        collection = make_series(small_grid, 'NDVI', [first, second])

        p50 = reduce_collection(collection, 'NDVI', Percentile((50,))).band('NDVI_p50')
        std = reduce_collection(collection, 'NDVI', StdDev()).band('NDVI_stdDev')

        assert np.isnan(p50[0, 1])
        assert np.isnan(std[0, 1])
        np.testing.assert_allclose(p50[0, 0], 1.5)
        np.testing.assert_allclose(std[0, 0], 0.5)

    @pytest.mark.filterwarnings('error::RuntimeWarning')
    @pytest.mark.parametrize('tile_size', [None, 1])
    def test_all_nan_pixels_do_not_warn(self, small_grid, tile_size):
        first = np.array([[1.0, np.nan], [np.nan, np.nan]])
        second = np.array([[3.0, np.nan], [np.nan, np.nan]])
        collection = make_series(small_grid, 'NDVI', [first, second])

        for statistic in (Percentile((90, 50)), StdDev()):
            result = reduce_collection(collection, 'NDVI', statistic, tile_size=tile_size)
            for name in result.band_names:
                assert np.isnan(result.band(name)[1, 1])

    def test_single_observation(self, small_grid):
        collection = make_series(small_grid, 'NDVI', [0.4])
        result = reduce_collection(collection, 'NDVI', Percentile((90, 5)))
        np.testing.assert_allclose(result.band('NDVI_p90'), 0.4)
        np.testing.assert_allclose(result.band('NDVI_p5'), 0.4)

    def test_scene_order_does_not_matter(self, grid):
        rng = np.random.default_rng(7)
        values = [rng.normal(size=grid.shape) for _ in range(6)]
        forward = make_series(grid, 'VV', values)
        backward = BandCollection(tuple(reversed(forward.scenes)))

        a = reduce_collection(forward, 'VV', Percentile((95, 50, 5))).data
        b = reduce_collection(backward, 'VV', Percentile((95, 50, 5))).data
        for name in a.data_vars:
            np.testing.assert_allclose(a[name].values, b[name].values)

    def test_tiled_matches_eager(self, grid):
        rng = np.random.default_rng(42)
        values = []
        for _ in range(7):
            layer = rng.normal(size=grid.shape)
            layer[rng.random(grid.shape) < 0.3] = np.nan
            values.append(layer)
        collection = make_series(grid, 'VV', values)

        for statistic in (Percentile((95, 50, 5)), StdDev()):
            eager = reduce_collection(collection, 'VV', statistic)
            tiled = reduce_collection(collection, 'VV', statistic, tile_size=7)
            for name in eager.band_names:
                np.testing.assert_allclose(tiled.band(name), eager.band(name), equal_nan=True)

    def test_empty_collection(self):
        with pytest.raises(InputError):
            reduce_collection(BandCollection(()), 'VV', StdDev())

    def test_missing_band(self, small_grid):
        collection = make_series(small_grid, 'VV', [1.0, 2.0])
        with pytest.raises(MissingBandError):
            reduce_collection(collection, 'VH', StdDev())


class TestMergeResults:

    def test_reduce_bands_keeps_order(self, small_grid):
        first = make_series(small_grid, 'VV', [1.0, 2.0])
        scenes = tuple(s.with_band('VH', s.band('VV') * 2) for s in first)
        result = reduce_bands(BandCollection(scenes), ['VV', 'VH'], Percentile((50,)))

        assert result.band_names == ['VV_p50', 'VH_p50']
        np.testing.assert_allclose(result.band('VH_p50'), 3.0)

    def test_duplicate_names_collide(self, small_grid):
        collection = make_series(small_grid, 'VV', [1.0, 2.0])
        result = reduce_collection(collection, 'VV', StdDev())
        with pytest.raises(BandCollisionError):
            merge_results([result, result])

    def test_empty_merge(self):
        with pytest.raises(InputError):
            merge_results([])
