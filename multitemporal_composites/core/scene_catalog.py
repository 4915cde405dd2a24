"""
Scene catalog and raster export.

The compositing core only needs four things from its raster platform:
enumerate scenes matching spatio-temporal and metadata filters, map a
per-scene transform over a collection, reduce a collection, and export a
raster. SceneCatalog defines that contract; InMemorySceneCatalog and
GeoTiffSceneCatalog implement it locally, the latter reading one GeoTIFF per
scene with rasterio (band descriptions as band names, tags as metadata).

Export writes float32 GeoTIFFs with NaN no-data, resampled onto the requested
region, scale and CRS. Requests larger than the pixel ceiling are rejected;
nothing is retried.

Author: Diego Bengochea
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import rasterio
import yaml
from rasterio.crs import CRS
from rasterio.enums import Resampling
from rasterio.errors import RasterioIOError
from rasterio.transform import from_origin
from rasterio.warp import reproject, transform_bounds

from shared_utils import ensure_directory, find_files, get_logger, resolve_path

from .data_model import BandCollection, Composite, Grid, Scene
from .exceptions import CatalogError, ExportError
from .temporal_reduction import Statistic, reduce_collection

Bounds = Tuple[float, float, float, float]

# Canonical metadata key -> accepted aliases (Sentinel-1 GRD property names)
METADATA_ALIASES = {
    'polarisations': ('polarisations', 'transmitterReceiverPolarisation'),
    'instrument_mode': ('instrument_mode', 'instrumentMode'),
    'orbit_pass': ('orbit_pass', 'orbitProperties_pass'),
    'relative_orbit': ('relative_orbit', 'relativeOrbitNumber_start'),
}

TIMESTAMP_TAGS = ('acquisition_time', 'DATETIME', 'system:time_start')


def get_metadata(metadata: Mapping[str, Any], key: str) -> Any:
    for alias in METADATA_ALIASES.get(key, (key,)):
        if alias in metadata and metadata[alias] is not None:
            return metadata[alias]
    return None


def _as_list(value) -> List[str]:
    """
    Normalize a list-valued metadata field.

    GeoTIFF tags hold strings only, so a list written as a tag comes back as
    its repr, e.g. "['VV', 'VH']"; comma or semicolon separated text is also accepted.
    """
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        if text.startswith('['):
            try:
                parsed = yaml.safe_load(text)
            except yaml.YAMLError:
                parsed = None
            if isinstance(parsed, list):
                return [str(item).strip() for item in parsed if str(item).strip()]
        items = (item.strip(" \t'\"") for item in text.strip('[]').replace(';', ',').split(','))
        return [item for item in items if item]
    return [str(item) for item in value]


def _bounds_intersect(a: Bounds, b: Bounds) -> bool:
    return a[0] < b[2] and b[0] < a[2] and a[1] < b[3] and b[1] < a[3]


def bounds_in_crs(bounds: Bounds, bounds_crs: Optional[str], target_crs: Optional[str]) -> Bounds:
    """Reproject (left, bottom, right, top) to ``target_crs``; unchanged when either CRS is unset or both match."""
    if not bounds_crs or not target_crs:
        return tuple(bounds)
    src, dst = CRS.from_user_input(bounds_crs), CRS.from_user_input(target_crs)
    if src == dst:
        return tuple(bounds)
    return transform_bounds(src, dst, *bounds)


@dataclass(frozen=True)
class SceneFilter:
    """
    Spatio-temporal and metadata predicates for scene selection.

    Dates follow a half-open interval [start_date, stop_date). A predicate on
    metadata the scene does not carry excludes the scene. Bounds are given in
    ``bounds_crs`` and reprojected to each scene CRS before the overlap test.
    """
    bounds: Optional[Bounds] = None
    bounds_crs: Optional[str] = None
    start_date: Optional[date] = None
    stop_date: Optional[date] = None
    polarisations: Tuple[str, ...] = ()
    instrument_mode: Optional[str] = None
    orbit_pass: Optional[str] = None
    relative_orbit: Optional[int] = None

    def matches_header(self, timestamp: datetime, metadata: Mapping[str, Any], grid: Grid) -> bool:
        day = timestamp.date()
        if self.start_date is not None and day < self.start_date:
            return False
        if self.stop_date is not None and day >= self.stop_date:
            return False
        if self.bounds is not None:
            bounds = bounds_in_crs(self.bounds, self.bounds_crs, grid.crs)
            if not _bounds_intersect(bounds, grid.bounds):
                return False

        if self.polarisations:
            available = {p.upper() for p in _as_list(get_metadata(metadata, 'polarisations'))}
            if not all(p.upper() in available for p in self.polarisations):
                return False

        for key in ('instrument_mode', 'orbit_pass'):
            wanted = getattr(self, key)
            if wanted is not None:
                value = get_metadata(metadata, key)
                if value is None or str(value).upper() != wanted.upper():
                    return False

        if self.relative_orbit is not None:
            value = get_metadata(metadata, 'relative_orbit')
            try:
                if value is None or int(value) != int(self.relative_orbit):
                    return False
            except (TypeError, ValueError):
                return False

        return True

    def matches(self, scene: Scene) -> bool:
        return self.matches_header(scene.timestamp, scene.metadata, scene.grid)


class SceneCatalog(ABC):
    """Raster platform contract consumed by the compositing pipeline."""

    @abstractmethod
    def fetch_collection(self, scene_filter: SceneFilter) -> BandCollection:
        """Return the scenes matching ``scene_filter``."""

    def map(self, collection: BandCollection, transform: Callable[[Scene], Scene],
            scheduler: Optional[str] = None) -> BandCollection:
        return collection.map(transform, scheduler=scheduler)

    def reduce(self, collection: BandCollection, band: str, statistic: Statistic,
               tile_size: Optional[int] = None):
        return reduce_collection(collection, band, statistic, tile_size=tile_size)

    def export(self, composite: Composite, path: Union[str, Path], region: Optional[Bounds] = None,
               scale: Optional[float] = None, crs: Optional[str] = None,
               max_pixels: int = 6_000_000_000, compress: str = 'lzw') -> Path:
        return export_composite(composite, path, region=region, scale=scale, crs=crs,
                                max_pixels=max_pixels, compress=compress)


class InMemorySceneCatalog(SceneCatalog):
    """Catalog over scenes already held in memory."""

    def __init__(self, scenes: Iterable[Scene] = ()):
        self.scenes = tuple(scenes)

    def fetch_collection(self, scene_filter: SceneFilter) -> BandCollection:
        return BandCollection(tuple(s for s in self.scenes if scene_filter.matches(s)))


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string or epoch milliseconds into a naive UTC datetime."""
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.lstrip('-').isdigit():
        return datetime.fromtimestamp(int(text) / 1000.0, tz=timezone.utc).replace(tzinfo=None)
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        parsed = datetime.strptime(text, '%Y:%m:%d %H:%M:%S')
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class GeoTiffSceneCatalog(SceneCatalog):
    """
    Catalog over a directory of single-scene GeoTIFFs.

    Each file holds one scene: band descriptions name the bands, dataset tags
    carry metadata and the acquisition time. Bands listed in ``raw_bands``
    (bitmasks) are read without no-data conversion; other bands turn their
    no-data value into NaN.
    """

    def __init__(self, directory: Union[str, Path], pattern: str = '*.tif', raw_bands: Sequence[str] = ('QA60',)):
        self.directory = resolve_path(directory)
        self.pattern = pattern
        self.raw_bands = set(raw_bands)
        self.logger = get_logger('scene_catalog')

    def _scene_files(self) -> List[Path]:
        if not self.directory.exists():
            raise CatalogError(f"Scene directory not found: {self.directory}")
        return find_files(self.directory, self.pattern, recursive=False)

    def _read_header(self, src) -> Tuple[datetime, Dict[str, Any], Grid]:
        tags = src.tags()
        for key in TIMESTAMP_TAGS:
            if key in tags:
                timestamp = parse_timestamp(tags[key])
                break
        else:
            raise CatalogError(f"{src.name}: no acquisition time tag (expected one of {TIMESTAMP_TAGS})")

        metadata: Dict[str, Any] = dict(tags)
        metadata.setdefault('scene_id', Path(src.name).stem)
        grid = Grid(
            shape=(src.height, src.width),
            transform=src.transform,
            crs=src.crs.to_string() if src.crs else ''
        )
        return timestamp, metadata, grid

    def read_scene(self, path: Union[str, Path]) -> Scene:
        """Read one GeoTIFF into a Scene."""
        with rasterio.open(path) as src:
            timestamp, metadata, grid = self._read_header(src)
            names = list(src.descriptions)
            if any(name is None for name in names):
                raise CatalogError(f"{path}: every band needs a description naming it")

            bands = {}
            for index, name in enumerate(names, start=1):
                values = src.read(index)
                if name in self.raw_bands:
                    bands[name] = values
                    continue
                values = values.astype('float64')
                if src.nodata is not None and not np.isnan(src.nodata):
                    values[values == src.nodata] = np.nan
                bands[name] = values

        return Scene.from_arrays(bands, grid, timestamp, metadata)

    def fetch_collection(self, scene_filter: SceneFilter) -> BandCollection:
        scenes = []
        for path in self._scene_files():
            try:
                with rasterio.open(path) as src:
                    timestamp, metadata, grid = self._read_header(src)
            except RasterioIOError as e:
                raise CatalogError(f"Unreadable scene file {path}: {e}") from e

            if scene_filter.matches_header(timestamp, metadata, grid):
                scenes.append(self.read_scene(path))
            else:
                self.logger.debug(f"Filtered out {path.name}")

        self.logger.info(f"Fetched {len(scenes)} scenes from {self.directory}")
        return BandCollection(tuple(scenes))


def export_pixel_count(region: Bounds, scale: float) -> int:
    left, bottom, right, top = region
    return math.ceil((right - left) / scale) * math.ceil((top - bottom) / scale)


def export_composite(
    composite: Composite,
    path: Union[str, Path],
    region: Optional[Bounds] = None,
    scale: Optional[float] = None,
    crs: Optional[str] = None,
    max_pixels: int = 6_000_000_000,
    compress: str = 'lzw'
) -> Path:
    """
    Write a composite to a float32 GeoTIFF.

    Args:
        composite: Composite to export
        path: Output file path
        region: (left, bottom, right, top) in ``crs``; defaults to the
            composite extent
        scale: Output pixel size in ``crs`` units; defaults to the grid pixel size
        crs: Output CRS; defaults to the composite CRS
        max_pixels: Ceiling on output pixels per band
        compress: GeoTIFF compression

    Returns:
        Path of the written file

    Raises:
        ExportError: If the request exceeds max_pixels or is degenerate
    """
    logger = get_logger('export')
    grid = composite.grid
    src_crs = CRS.from_user_input(grid.crs)
    dst_crs = CRS.from_user_input(crs) if crs else src_crs
    scale = float(scale) if scale else grid.pixel_size

    if region is None:
        region = transform_bounds(src_crs, dst_crs, *grid.bounds) if dst_crs != src_crs else grid.bounds

    left, bottom, right, top = region
    if scale <= 0 or right <= left or top <= bottom:
        raise ExportError(f"Degenerate export request: region={region}, scale={scale}")

    n_pixels = export_pixel_count(region, scale)
    if n_pixels > max_pixels:
        raise ExportError(
            f"Export of {composite.name} needs {n_pixels} pixels, above the ceiling of {max_pixels}"
        )

    width = math.ceil((right - left) / scale)
    height = math.ceil((top - bottom) / scale)
    dst_transform = from_origin(left, top, scale, scale)

    same_grid = dst_crs == src_crs and dst_transform.almost_equals(grid.transform) and (height, width) == grid.shape
    stack = composite.to_array()
    if same_grid:
        output = stack
    else:
        output = np.full((len(stack), height, width), np.nan, dtype='float32')
        for i in range(len(stack)):
            reproject(
                source=stack[i],
                destination=output[i],
                src_transform=grid.transform,
                src_crs=src_crs,
                src_nodata=np.nan,
                dst_transform=dst_transform,
                dst_crs=dst_crs,
                dst_nodata=np.nan,
                resampling=Resampling.average
            )

    path = Path(path)
    ensure_directory(path.parent)
    profile = {
        'driver': 'GTiff',
        'height': height,
        'width': width,
        'count': len(stack),
        'dtype': 'float32',
        'crs': dst_crs,
        'transform': dst_transform,
        'nodata': np.nan,
        'compress': compress,
    }
    if width >= 256 and height >= 256:
        profile.update(tiled=True, blockxsize=256, blockysize=256)
    with rasterio.open(path, 'w', **profile) as dst:
        dst.write(output)
        for index, name in enumerate(composite.band_names, start=1):
            dst.set_band_description(index, name)
        dst.update_tags(composite=composite.name, bands=','.join(composite.band_names))

    logger.info(f"Exported {composite.name} ({len(stack)} bands, {width}x{height}) to {path}")
    return path
