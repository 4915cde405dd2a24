"""
Raster data model for multitemporal compositing.

Scenes, band collections, reduction results and composites are thin immutable
wrappers around xarray objects sharing a single pixel grid. No-data is always
NaN: masking a scene never mutates it, it returns a new scene whose invalid
pixels are NaN in every band.

Author: Diego Bengochea
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

import dask
import numpy as np
import xarray as xr
from rasterio.transform import Affine

from .exceptions import GridMismatchError, InputError, MissingBandError


@dataclass(frozen=True)
class Grid:
    """Pixel grid shared by every band of a scene: shape, geotransform and CRS."""
    shape: Tuple[int, int]
    transform: Affine
    crs: str

    @property
    def height(self) -> int:
        return self.shape[0]

    @property
    def width(self) -> int:
        return self.shape[1]

    @property
    def pixel_size(self) -> float:
        """Ground sampling distance along x, in CRS units."""
        return abs(self.transform.a)

    @property
    def n_pixels(self) -> int:
        return self.shape[0] * self.shape[1]

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """(left, bottom, right, top) in CRS units."""
        left, top = self.transform * (0, 0)
        right, bottom = self.transform * (self.width, self.height)
        return (min(left, right), min(bottom, top), max(left, right), max(bottom, top))

    def coords(self) -> Dict[str, np.ndarray]:
        """Pixel-centre coordinates for the y and x dimensions."""
        x = self.transform.c + (np.arange(self.width) + 0.5) * self.transform.a
        y = self.transform.f + (np.arange(self.height) + 0.5) * self.transform.e
        return {'y': y, 'x': x}

    def check_array(self, array: np.ndarray, name: str = 'array') -> None:
        if tuple(np.shape(array)) != tuple(self.shape):
            raise GridMismatchError(
                f"{name} has shape {np.shape(array)}, expected grid shape {self.shape}"
            )


def _as_dataset(bands: Mapping[str, np.ndarray], grid: Grid) -> xr.Dataset:
    data_vars = {}
    for name, array in bands.items():
        array = np.asarray(array)
        grid.check_array(array, f"Band '{name}'")
        data_vars[name] = (('y', 'x'), array)
    return xr.Dataset(data_vars, coords=grid.coords())


@dataclass(frozen=True)
class Scene:
    """
    One timestamped multi-band capture on a fixed grid.

    Attributes:
        data: xarray.Dataset with one (y, x) variable per band
        grid: Pixel grid shared by all bands
        timestamp: Acquisition time
        metadata: Read-only scalar metadata (solar angles, orbit pass, ...)
    """
    data: xr.Dataset
    grid: Grid
    timestamp: datetime
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'metadata', MappingProxyType(dict(self.metadata)))

    def __reduce__(self):
        # mappingproxy does not pickle; needed by the 'processes' scheduler
        return (type(self), (self.data, self.grid, self.timestamp, dict(self.metadata)))

    @classmethod
    def from_arrays(
        cls,
        bands: Mapping[str, np.ndarray],
        grid: Grid,
        timestamp: datetime,
        metadata: Optional[Mapping[str, Any]] = None
    ) -> 'Scene':
        """
        Build a scene from plain numpy arrays.

        Examples:
            >>> scene = Scene.from_arrays({'VV': vv, 'VH': vh}, grid, datetime(2017, 5, 1))
        """
        return cls(_as_dataset(bands, grid), grid, timestamp, metadata or {})

    @property
    def band_names(self) -> List[str]:
        return list(self.data.data_vars)

    @property
    def scene_id(self) -> str:
        return str(self.metadata.get('scene_id', self.timestamp.isoformat()))

    def has_band(self, name: str) -> bool:
        return name in self.data.data_vars

    def band(self, name: str) -> np.ndarray:
        """Return the values of one band, raising MissingBandError if absent."""
        if name not in self.data.data_vars:
            raise MissingBandError(
                f"Scene {self.scene_id} has no band '{name}' (available: {self.band_names})"
            )
        return self.data[name].values

    def require_bands(self, names: Iterable[str]) -> None:
        missing = [name for name in names if name not in self.data.data_vars]
        if missing:
            raise MissingBandError(
                f"Scene {self.scene_id} is missing bands {missing} (available: {self.band_names})"
            )

    def with_band(self, name: str, array: np.ndarray) -> 'Scene':
        """Return a new scene with ``name`` added (or replaced)."""
        self.grid.check_array(array, f"Band '{name}'")
        data = self.data.assign({name: (('y', 'x'), np.asarray(array))})
        return replace(self, data=data)

    def select_bands(self, names: Sequence[str]) -> 'Scene':
        self.require_bands(names)
        return replace(self, data=self.data[list(names)])

    def rename_bands(self, mapping: Mapping[str, str]) -> 'Scene':
        self.require_bands(mapping.keys())
        return replace(self, data=self.data.rename(dict(mapping)))

    def with_metadata(self, **values) -> 'Scene':
        metadata = dict(self.metadata)
        metadata.update(values)
        return replace(self, metadata=metadata)

    def apply_mask(self, valid: np.ndarray) -> 'Scene':
        """
        Mask every band: pixels where ``valid`` is False become NaN.

        Args:
            valid: Boolean array on the scene grid, True marks valid pixels

        Returns:
            New Scene; values at valid pixels are untouched
        """
        valid = np.asarray(valid, dtype=bool)
        self.grid.check_array(valid, 'Mask')
        mask = xr.DataArray(valid, dims=('y', 'x'), coords=self.data.coords)
        return replace(self, data=self.data.where(mask))

    def valid_fraction(self, band: Optional[str] = None) -> float:
        """Fraction of pixels with a finite value in ``band`` (first band by default)."""
        name = band or self.band_names[0]
        return float(np.isfinite(self.band(name)).mean())


@dataclass(frozen=True)
class BandCollection:
    """
    Unordered set of scenes from one sensor on a shared grid.

    Order carries no meaning: every reduction over a collection is invariant
    to scene order.
    """
    scenes: Tuple[Scene, ...] = ()

    def __post_init__(self):
        scenes = tuple(self.scenes)
        object.__setattr__(self, 'scenes', scenes)
        if scenes:
            grid = scenes[0].grid
            for scene in scenes[1:]:
                if scene.grid != grid:
                    raise GridMismatchError(
                        f"Scene {scene.scene_id} is not on the collection grid"
                    )

    def __len__(self) -> int:
        return len(self.scenes)

    def __iter__(self) -> Iterator[Scene]:
        return iter(self.scenes)

    @property
    def grid(self) -> Optional[Grid]:
        return self.scenes[0].grid if self.scenes else None

    @property
    def band_names(self) -> List[str]:
        """Bands present in every scene of the collection."""
        if not self.scenes:
            return []
        common = set(self.scenes[0].band_names)
        for scene in self.scenes[1:]:
            common &= set(scene.band_names)
        return [name for name in self.scenes[0].band_names if name in common]

    def map(self, transform: Callable[[Scene], Scene], scheduler: Optional[str] = None) -> 'BandCollection':
        """
        Apply a pure per-scene transform and return a new collection.

        Args:
            transform: Function Scene -> Scene without side effects
            scheduler: Optional dask scheduler name ('threads', 'processes',
                'synchronous'); None applies the transform eagerly in-process

        Returns:
            BandCollection with one output scene per input scene
        """
        if scheduler is None or len(self.scenes) < 2:
            return BandCollection(tuple(transform(scene) for scene in self.scenes))

        # Scenes are passed as opaque literals so dask does not rebuild the dataclasses
        tasks = [
            dask.delayed(transform)(dask.delayed(scene, traverse=False))
            for scene in self.scenes
        ]
        return BandCollection(tuple(dask.compute(*tasks, scheduler=scheduler)))

    def filter(self, predicate: Callable[[Scene], bool]) -> 'BandCollection':
        return BandCollection(tuple(scene for scene in self.scenes if predicate(scene)))

    def select(self, band: str) -> xr.DataArray:
        """
        Stack one band across scenes into a (time, y, x) DataArray.

        Raises:
            InputError: If the collection is empty
            MissingBandError: If any scene lacks the band
        """
        if not self.scenes:
            raise InputError(f"Cannot select band '{band}' from an empty collection")

        layers = []
        for scene in self.scenes:
            scene.require_bands([band])
            layers.append(scene.data[band].astype('float64'))

        times = [np.datetime64(scene.timestamp.replace(tzinfo=None), 'ns') for scene in self.scenes]
        stacked = xr.concat(layers, dim='time')
        return stacked.assign_coords(time=('time', times)).rename(band)


@dataclass(frozen=True)
class ReductionResult:
    """Per-pixel statistics, one variable per (source band, statistic) pair."""
    data: xr.Dataset
    grid: Grid

    @property
    def band_names(self) -> List[str]:
        return list(self.data.data_vars)

    def band(self, name: str) -> np.ndarray:
        if name not in self.data.data_vars:
            raise MissingBandError(f"Reduction result has no band '{name}' (available: {self.band_names})")
        return self.data[name].values

    def __len__(self) -> int:
        return len(self.data.data_vars)


@dataclass(frozen=True)
class Composite:
    """
    Named multi-band reduction output, clipped to a study area and ready for export.

    Attributes:
        name: Export name, e.g. 'NDBVWI_90_50_wadden'
        data: xarray.Dataset with the ordered bands
        grid: Pixel grid of the bands
        geometry: Clip geometry (shapely, grid CRS) or None
    """
    name: str
    data: xr.Dataset
    grid: Grid
    geometry: Any = None

    @property
    def band_names(self) -> List[str]:
        return list(self.data.data_vars)

    def band(self, name: str) -> np.ndarray:
        if name not in self.data.data_vars:
            raise MissingBandError(f"Composite {self.name} has no band '{name}'")
        return self.data[name].values

    def to_array(self) -> np.ndarray:
        """Stack bands into a (band, y, x) float32 array in band order."""
        return np.stack([self.data[name].values for name in self.band_names]).astype('float32')

    def __len__(self) -> int:
        return len(self.data.data_vars)
