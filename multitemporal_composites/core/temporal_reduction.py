"""
Temporal reduction of masked scene collections.

Each statistic is computed independently per pixel over the observations that
are valid (finite) at that pixel. Pixels without any valid observation are
NaN in the output. Large grids can be reduced tile by tile through dask; the
time axis is never split, so tiled and eager results are identical.

Statistics:
    Percentile: linear interpolation between order statistics, rank
        (n - 1) * p / 100 over the n valid values
    StdDev: population standard deviation (divisor n)

Author: Diego Bengochea
"""

import warnings
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import xarray as xr

from shared_utils import get_logger

from .data_model import BandCollection, ReductionResult
from .exceptions import BandCollisionError, ConfigurationError, GridMismatchError, InputError


@dataclass(frozen=True)
class Percentile:
    """One or more percentiles in [0, 100]."""
    values: Tuple[float, ...]

    def __post_init__(self):
        values = tuple(float(v) for v in np.atleast_1d(self.values))
        if not values:
            raise ConfigurationError("Percentile reducer needs at least one percentile value")
        for value in values:
            if not 0 <= value <= 100:
                raise ConfigurationError(f"Percentile {value} is outside [0, 100]")
        object.__setattr__(self, 'values', values)

    def output_names(self, band: str) -> List[str]:
        return [f"{band}_p{value:g}" for value in self.values]


@dataclass(frozen=True)
class StdDev:
    """Population standard deviation."""

    def output_names(self, band: str) -> List[str]:
        return [f"{band}_stdDev"]


Statistic = Union[Percentile, StdDev]


def statistic_from_spec(spec: Union[str, Dict[str, Any], Statistic]) -> Statistic:
    """
    Build a statistic from its configuration form.

    Examples:
        >>> statistic_from_spec({'percentile': [90, 50]})
        Percentile(values=(90.0, 50.0))
        >>> statistic_from_spec('stdDev')
        StdDev()
    """
    if isinstance(spec, (Percentile, StdDev)):
        return spec
    if isinstance(spec, str) and spec.lower() in ('stddev', 'std', 'std_dev'):
        return StdDev()
    if isinstance(spec, dict) and len(spec) == 1:
        key, value = next(iter(spec.items()))
        if key.lower() in ('percentile', 'percentiles'):
            return Percentile(tuple(np.atleast_1d(value)))
        if key.lower() in ('stddev', 'std', 'std_dev'):
            return StdDev()
    raise ConfigurationError(f"Unknown statistic specification: {spec!r}")


def _reduce_stack(stack: xr.DataArray, statistic: Statistic) -> Dict[str, xr.DataArray]:
    band = stack.name
    names = statistic.output_names(band)

    if isinstance(statistic, Percentile):
        quantiles = np.array(statistic.values) / 100.0
        reduced = stack.quantile(quantiles, dim='time', skipna=True, method='linear')
        layers = [reduced.isel(quantile=i, drop=True) for i in range(len(quantiles))]
    elif isinstance(statistic, StdDev):
        layers = [stack.std(dim='time', skipna=True, ddof=0)]
    else:
        raise ConfigurationError(f"Unsupported statistic: {statistic!r}")

    n_valid = stack.notnull().sum(dim='time')
    return {name: layer.where(n_valid > 0).rename(name) for name, layer in zip(names, layers)}


def reduce_collection(
    collection: BandCollection,
    band: str,
    statistic: Statistic,
    tile_size: Optional[int] = None,
    scheduler: str = 'threads'
) -> ReductionResult:
    """
    Reduce one band of a masked collection over time.

    Args:
        collection: Masked scenes on a shared grid
        band: Source band name
        statistic: Percentile or StdDev
        tile_size: If set, reduce in tile_size x tile_size dask blocks
        scheduler: dask scheduler used when tiling

    Returns:
        ReductionResult with one band per output of the statistic

    Raises:
        InputError: If the collection is empty
        MissingBandError: If a scene lacks ``band``

    Examples:
        >>> result = reduce_collection(masked, 'NDVI', Percentile((90,)))
        >>> result.band_names
        ['NDVI_p90']
    """
    logger = get_logger('temporal_reduction')
    stack = collection.select(band)

    if tile_size:
        stack = stack.chunk({'time': -1, 'y': tile_size, 'x': tile_size})

    # All-NaN pixels are expected and set to no-data; with tiling the
    # warnings surface at compute time
    with warnings.catch_warnings():
        warnings.simplefilter('ignore', RuntimeWarning)
        layers = _reduce_stack(stack, statistic)
        data = xr.Dataset(layers)
        if tile_size:
            data = data.compute(scheduler=scheduler)

    logger.debug(f"Reduced band {band} over {len(collection)} scenes -> {list(layers)}")
    return ReductionResult(data.drop_vars('time', errors='ignore'), collection.grid)


def reduce_bands(
    collection: BandCollection,
    bands: Sequence[str],
    statistic: Statistic,
    tile_size: Optional[int] = None
) -> ReductionResult:
    """Reduce several bands with the same statistic, preserving band order."""
    results = [reduce_collection(collection, band, statistic, tile_size) for band in bands]
    return merge_results(results)


def merge_results(results: Sequence[ReductionResult]) -> ReductionResult:
    """
    Concatenate reduction results in order.

    Raises:
        BandCollisionError: If two results share a band name
    """
    if not results:
        raise InputError("No reduction results to merge")

    seen = set()
    layers = {}
    for result in results:
        if result.grid != results[0].grid:
            raise GridMismatchError("Reduction results are not on the same grid")
        for name in result.band_names:
            if name in seen:
                raise BandCollisionError(f"Band '{name}' is produced more than once")
            seen.add(name)
            layers[name] = result.data[name]
    return ReductionResult(xr.Dataset(layers), results[0].grid)
