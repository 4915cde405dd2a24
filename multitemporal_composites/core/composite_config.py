"""
Immutable pipeline configuration.

The YAML configuration is parsed once into a tree of frozen dataclasses that
is passed explicitly to every pipeline entry point.

Author: Diego Bengochea
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np
from shapely.geometry import box
from shapely.geometry.base import BaseGeometry

from shared_utils import get_config_value, validate_config
from shared_utils.central_data_paths_constants import (
    COMPOSITES_DIR, SENTINEL1_SCENES_DIR, SENTINEL2_SCENES_DIR, STUDY_AREA_DIR
)

from .cloud_masking import MaskingParameters
from .edge_denoising import EdgeParameters
from .exceptions import ConfigurationError

REQUIRED_SECTIONS = ['study_area', 'dates', 'export']

DEFAULT_COMPOSITE_NAMES = {
    'indices': 'NDBVWI_90_50_wadden',
    'reflectance': 'S2_perc50_wadden',
    'radar': 'S1_VV_VH_95_50_5_SDs_wadden',
}


@dataclass(frozen=True)
class StudyArea:
    """Study area outline in the export CRS."""
    name: str
    bounds: Tuple[float, float, float, float]
    crs: str
    boundary_file: Optional[Path] = None

    def geometry(self) -> BaseGeometry:
        """
        Clip geometry of the study area.

        Reads and dissolves ``boundary_file`` (reprojected to ``crs``) when set,
        otherwise the bounding box.
        """
        if self.boundary_file is None:
            return box(*self.bounds)

        import geopandas as gpd

        boundary = gpd.read_file(self.boundary_file).to_crs(self.crs)
        return boundary.geometry.union_all() if hasattr(boundary.geometry, 'union_all') else boundary.unary_union


@dataclass(frozen=True)
class RadarFilter:
    """Metadata predicates for the Sentinel-1 collection."""
    polarisations: Tuple[str, ...] = ('VV', 'VH')
    instrument_mode: Optional[str] = 'IW'
    orbit_pass: Optional[str] = 'DESCENDING'
    relative_orbit: Optional[int] = 37


@dataclass(frozen=True)
class ExportSettings:
    scale: float = 20.0
    crs: str = 'EPSG:25831'
    max_pixels: int = 6_000_000_000
    output_dir: Path = COMPOSITES_DIR
    compress: str = 'lzw'
    names: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_COMPOSITE_NAMES))


@dataclass(frozen=True)
class ComputeSettings:
    tile_size: Optional[int] = None
    scene_scheduler: Optional[str] = None


@dataclass(frozen=True)
class CompositeConfig:
    """Complete configuration of a compositing run."""
    study_area: StudyArea
    start_date: date
    stop_date: date
    optical_dir: Path = SENTINEL2_SCENES_DIR
    radar_dir: Path = SENTINEL1_SCENES_DIR
    masking: MaskingParameters = MaskingParameters()
    edge: EdgeParameters = EdgeParameters()
    radar_filter: RadarFilter = RadarFilter()
    export: ExportSettings = ExportSettings()
    compute: ComputeSettings = ComputeSettings()
    log_level: str = 'INFO'
    log_file: Optional[Path] = None

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'CompositeConfig':
        """
        Build the configuration from a loaded YAML dictionary.

        Raises:
            ConfigurationError: If sections are missing or values are invalid

        Examples:
            >>> config = CompositeConfig.from_dict(load_config(component_name='multitemporal_composites'))
        """
        try:
            validate_config(config, REQUIRED_SECTIONS)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        try:
            study = config['study_area']
            export_section = config['export']
            crs = export_section.get('crs', ExportSettings.crs)

            study_area = StudyArea(
                name=study.get('name', 'study_area'),
                bounds=_parse_bounds(study['bounds']),
                crs=study.get('crs', crs),
                boundary_file=_boundary_path(study.get('boundary_file'))
            )

            start_date = _parse_date(config['dates']['start'])
            stop_date = _parse_date(config['dates']['stop'])

            built = cls(
                study_area=study_area,
                start_date=start_date,
                stop_date=stop_date,
                optical_dir=Path(get_config_value(config, 'data.optical_dir', SENTINEL2_SCENES_DIR)),
                radar_dir=Path(get_config_value(config, 'data.radar_dir', SENTINEL1_SCENES_DIR)),
                masking=_parse_masking(config.get('masking', {})),
                edge=_parse_edge(config.get('edge', {})),
                radar_filter=_parse_radar_filter(config.get('radar', {})),
                export=ExportSettings(
                    scale=float(export_section.get('scale', ExportSettings.scale)),
                    crs=crs,
                    max_pixels=int(float(export_section.get('max_pixels', ExportSettings.max_pixels))),
                    output_dir=Path(export_section.get('output_dir', COMPOSITES_DIR)),
                    compress=export_section.get('compress', ExportSettings.compress),
                    names={**DEFAULT_COMPOSITE_NAMES, **export_section.get('names', {})}
                ),
                compute=ComputeSettings(
                    tile_size=get_config_value(config, 'compute.tile_size'),
                    scene_scheduler=get_config_value(config, 'compute.scene_scheduler')
                ),
                log_level=get_config_value(config, 'logging.level', 'INFO'),
                log_file=_optional_path(get_config_value(config, 'logging.log_file'))
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

        built.validate()
        return built

    def validate(self) -> None:
        """Check value ranges; raises ConfigurationError."""
        left, bottom, right, top = self.study_area.bounds
        if not (left < right and bottom < top):
            raise ConfigurationError(f"Study area bounds are empty: {self.study_area.bounds}")
        if self.start_date >= self.stop_date:
            raise ConfigurationError(f"Start date {self.start_date} is not before stop date {self.stop_date}")
        if self.export.scale <= 0:
            raise ConfigurationError(f"Export scale must be positive, got {self.export.scale}")
        if self.export.max_pixels <= 0:
            raise ConfigurationError(f"max_pixels must be positive, got {self.export.max_pixels}")
        if self.edge.max_value <= self.edge.min_value:
            raise ConfigurationError("Edge rescaling range is empty")
        if self.edge.min_component_size < 1:
            raise ConfigurationError("Edge min_component_size must be at least 1")
        if self.edge.kernel_radius not in (0, 1):
            raise ConfigurationError("Edge kernel_radius must be 0 (4-connected) or 1 (8-connected)")
        if not self.masking.cloud_heights:
            raise ConfigurationError("At least one candidate cloud height is required")
        if self.compute.tile_size is not None and self.compute.tile_size < 1:
            raise ConfigurationError("tile_size must be a positive integer")

    def region_pixels(self) -> int:
        """Pixel count of the study area bounds at the export scale."""
        left, bottom, right, top = self.study_area.bounds
        scale = self.export.scale
        return int(np.ceil((right - left) / scale) * np.ceil((top - bottom) / scale))


def _parse_bounds(bounds) -> Tuple[float, float, float, float]:
    values = tuple(float(v) for v in bounds)
    if len(values) != 4:
        raise ValueError(f"bounds must be [left, bottom, right, top], got {bounds!r}")
    return values


def _parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value), '%Y-%m-%d').date()


def _optional_path(value) -> Optional[Path]:
    return Path(value) if value else None


def _boundary_path(value) -> Optional[Path]:
    """Boundary file path; bare file names are looked up in the study area data directory."""
    if not value:
        return None
    path = Path(value)
    return STUDY_AREA_DIR / path if path.parent == Path('.') else path


def _parse_heights(value) -> Tuple[float, ...]:
    if isinstance(value, dict):
        return tuple(float(h) for h in np.arange(value['start'], value['stop'], value['step']))
    return tuple(float(h) for h in value)


def _parse_masking(section: Dict[str, Any]) -> MaskingParameters:
    defaults = MaskingParameters()
    return MaskingParameters(
        cloud_bit=int(section.get('cloud_bit', defaults.cloud_bit)),
        cirrus_bit=int(section.get('cirrus_bit', defaults.cirrus_bit)),
        cloud_heights=_parse_heights(section['cloud_heights']) if 'cloud_heights' in section else defaults.cloud_heights,
        dark_pixel_threshold=float(section.get('dark_pixel_threshold', defaults.dark_pixel_threshold)),
        dark_pixel_bands=tuple(section.get('dark_pixel_bands', defaults.dark_pixel_bands)),
        reflectance_scale=float(section.get('reflectance_scale', defaults.reflectance_scale)),
        pixel_size=section.get('pixel_size', defaults.pixel_size)
    )


def _parse_edge(section: Dict[str, Any]) -> EdgeParameters:
    defaults = EdgeParameters()
    return EdgeParameters(
        band=section.get('band', defaults.band),
        min_value=float(section.get('min_value', defaults.min_value)),
        max_value=float(section.get('max_value', defaults.max_value)),
        threshold=int(section.get('threshold', defaults.threshold)),
        min_component_size=int(section.get('min_component_size', defaults.min_component_size)),
        kernel_radius=int(section.get('kernel_radius', defaults.kernel_radius)),
        edge_buffer=float(section.get('edge_buffer', defaults.edge_buffer))
    )


def _parse_radar_filter(section: Dict[str, Any]) -> RadarFilter:
    defaults = RadarFilter()
    relative_orbit = section.get('relative_orbit', defaults.relative_orbit)
    return RadarFilter(
        polarisations=tuple(section.get('polarisations', defaults.polarisations)),
        instrument_mode=section.get('instrument_mode', defaults.instrument_mode),
        orbit_pass=section.get('orbit_pass', defaults.orbit_pass),
        relative_orbit=int(relative_orbit) if relative_orbit is not None else None
    )
