"""
Assembly of reduction results into named, clipped composites.

Author: Diego Bengochea
"""

from typing import Any, Optional, Sequence, Tuple, Union

import geopandas as gpd
import numpy as np
import xarray as xr
from rasterio.crs import CRS
from rasterio.features import geometry_mask
from shapely.geometry import box
from shapely.geometry.base import BaseGeometry

from .data_model import Composite, Grid, ReductionResult
from .exceptions import MissingBandError
from .temporal_reduction import merge_results

Bounds = Tuple[float, float, float, float]


def as_geometry(geometry: Union[BaseGeometry, Bounds, None]) -> Optional[BaseGeometry]:
    """Accept a shapely geometry or a (left, bottom, right, top) tuple."""
    if geometry is None or isinstance(geometry, BaseGeometry):
        return geometry
    return box(*geometry)


def geometry_to_crs(geometry: BaseGeometry, geometry_crs: Optional[str], target_crs: Optional[str]) -> BaseGeometry:
    """Reproject a shapely geometry; unchanged when either CRS is unset or both match."""
    if not geometry_crs or not target_crs:
        return geometry
    if CRS.from_user_input(geometry_crs) == CRS.from_user_input(target_crs):
        return geometry
    return gpd.GeoSeries([geometry], crs=geometry_crs).to_crs(target_crs).iloc[0]


def grid_clip_mask(geometry: BaseGeometry, grid: Grid) -> np.ndarray:
    """Boolean mask on ``grid``, True for pixels whose centre lies inside ``geometry``."""
    return geometry_mask(
        [geometry],
        out_shape=grid.shape,
        transform=grid.transform,
        invert=True
    )


def clip_to_geometry(data: xr.Dataset, grid: Grid, geometry: BaseGeometry) -> xr.Dataset:
    inside = xr.DataArray(grid_clip_mask(geometry, grid), dims=('y', 'x'), coords=data.coords)
    return data.where(inside)


def assemble_composite(
    name: str,
    results: Sequence[ReductionResult],
    geometry: Any = None,
    band_order: Optional[Sequence[str]] = None,
    geometry_crs: Optional[str] = None
) -> Composite:
    """
    Concatenate reduction results into one composite and clip it.

    Args:
        name: Composite name
        results: Reduction results, concatenated in input order
        geometry: Optional clip geometry (shapely geometry or bounds tuple in
            ``geometry_crs``); pixels outside become NaN
        band_order: Optional explicit output band order (subset allowed)
        geometry_crs: CRS of ``geometry``; reprojected to the grid CRS when
            different. None means the grid CRS

    Returns:
        Composite with the requested bands

    Raises:
        BandCollisionError: If two results carry the same band name
        MissingBandError: If band_order names a band no result provides

    Examples:
        >>> composite = assemble_composite('indices', [p90, p50], geometry=study_area)
    """
    merged = merge_results(results)
    data = merged.data

    if band_order is not None:
        missing = [band for band in band_order if band not in data.data_vars]
        if missing:
            raise MissingBandError(f"Composite {name}: bands {missing} are not produced by any reduction")
        data = data[list(band_order)]

    geometry = as_geometry(geometry)
    if geometry is not None:
        geometry = geometry_to_crs(geometry, geometry_crs, merged.grid.crs)
        data = clip_to_geometry(data, merged.grid, geometry)

    return Composite(name=name, data=data, grid=merged.grid, geometry=geometry)
