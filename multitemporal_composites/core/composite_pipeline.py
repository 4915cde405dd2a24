"""
Multitemporal Composite Pipeline

Class-based pipeline that turns Sentinel-2 and Sentinel-1 time series over a
study area into the three composites consumed by wetland classification:

- Index composite (6 bands): NDBI/NDVI/NDWI at the 90th and 50th percentile
- Reflectance composite (10 bands): spectral bands at the 50th percentile
- Radar composite (8 bands): VV/VH at the 95th, 50th, 5th percentile and
  standard deviation

Optical scenes are scaled to reflectance, cloud and shadow masked and
extended with spectral indices; radar scenes are filtered to one orbit pass
and cleaned of swath-edge noise. Each collection is then reduced per pixel
over its valid observations. Band names and band order of the composites are
fixed.

Author: Diego Bengochea
"""

import time
from functools import partial
from pathlib import Path
from typing import Any, Dict, Optional, Union

from shared_utils import (
    get_logger, load_config, log_pipeline_end, log_pipeline_start, log_section, save_config, setup_logging
)

from .cloud_masking import MaskingParameters, mask_sentinel2_scene
from .composite_assembly import assemble_composite
from .composite_config import CompositeConfig
from .data_model import BandCollection, Composite, Scene
from .edge_denoising import denoise_radar_scene
from .exceptions import CatalogError, ConfigurationError
from .scene_catalog import GeoTiffSceneCatalog, SceneCatalog, SceneFilter, bounds_in_crs
from .spectral_indices import add_spectral_indices
from .temporal_reduction import reduce_collection, statistic_from_spec

INDEX_COMPOSITE_BANDS = ('NDBI_p90', 'NDVI_p90', 'NDWI_p90', 'NDBI_p50', 'NDVI_p50', 'NDWI_p50')

REFLECTANCE_BANDS = ('blue', 'green', 'red', 'B5', 'red2', 'B7', 'B8', 'red4', 'swir1', 'swir2')
REFLECTANCE_COMPOSITE_BANDS = tuple(f"{band}_p50" for band in REFLECTANCE_BANDS)

RADAR_COMPOSITE_BANDS = ('VV_p95', 'VV_p50', 'VV_p5', 'VH_p95', 'VH_p50', 'VH_p5', 'VV_stdDev', 'VH_stdDev')

RUN_CONFIG_NAME = 'composites_run_config.yml'

# composite key -> source collection, (bands, statistic spec) reductions, output band order
COMPOSITE_DEFINITIONS: Dict[str, Dict[str, Any]] = {
    'indices': {
        'source': 'optical',
        'reductions': [(('NDBI', 'NDVI', 'NDWI'), {'percentile': [90, 50]})],
        'bands': INDEX_COMPOSITE_BANDS,
    },
    'reflectance': {
        'source': 'optical',
        'reductions': [(REFLECTANCE_BANDS, {'percentile': [50]})],
        'bands': REFLECTANCE_COMPOSITE_BANDS,
    },
    'radar': {
        'source': 'radar',
        'reductions': [(('VV', 'VH'), {'percentile': [95, 50, 5]}), (('VV', 'VH'), 'stdDev')],
        'bands': RADAR_COMPOSITE_BANDS,
    },
}


def prepare_optical_scene(scene: Scene, params: MaskingParameters = MaskingParameters()) -> Scene:
    """Raw Sentinel-2 scene -> masked reflectance scene with NDBI, NDVI and NDWI."""
    return add_spectral_indices(mask_sentinel2_scene(scene, params))


class CompositePipeline:
    """
    Pipeline for multitemporal composite creation.

    Handles the complete workflow from catalog queries to exported composites.
    All parameters come from one immutable CompositeConfig; every scene
    transform and reduction is a pure function of its inputs.
    """

    def __init__(
        self,
        config: CompositeConfig,
        optical_catalog: Optional[SceneCatalog] = None,
        radar_catalog: Optional[SceneCatalog] = None
    ):
        """
        Initialize the composite pipeline.

        Args:
            config: Pipeline configuration
            optical_catalog: Sentinel-2 scene source (GeoTIFF directory by default)
            radar_catalog: Sentinel-1 scene source (GeoTIFF directory by default)
        """
        self.config = config
        self.raw_config = None
        self.logger = get_logger('composites')

        self.optical_catalog = optical_catalog or GeoTiffSceneCatalog(config.optical_dir)
        self.radar_catalog = radar_catalog or GeoTiffSceneCatalog(config.radar_dir, raw_bands=())

        # Pipeline state
        self.start_time = None
        self.scene_counts: Dict[str, int] = {}
        self.exported: Dict[str, Path] = {}

        self.logger.info("CompositePipeline initialized")

    @classmethod
    def from_config_file(cls, config_path: Optional[Union[str, Path]] = None, **catalogs) -> 'CompositePipeline':
        """
        Load YAML configuration, set up logging and build the pipeline.

        Examples:
            >>> pipeline = CompositePipeline.from_config_file('config.yml')
        """
        raw_config = load_config(config_path, component_name='multitemporal_composites')
        config = CompositeConfig.from_dict(raw_config)
        setup_logging(level=config.log_level, component_name='composites', log_file=config.log_file)
        pipeline = cls(config, **catalogs)
        pipeline.raw_config = raw_config
        return pipeline

    # Catalog filters

    def optical_filter(self) -> SceneFilter:
        return SceneFilter(
            bounds=self.config.study_area.bounds,
            bounds_crs=self.config.study_area.crs,
            start_date=self.config.start_date,
            stop_date=self.config.stop_date
        )

    def radar_filter(self) -> SceneFilter:
        radar = self.config.radar_filter
        return SceneFilter(
            bounds=self.config.study_area.bounds,
            bounds_crs=self.config.study_area.crs,
            start_date=self.config.start_date,
            stop_date=self.config.stop_date,
            polarisations=radar.polarisations,
            instrument_mode=radar.instrument_mode,
            orbit_pass=radar.orbit_pass,
            relative_orbit=radar.relative_orbit
        )

    # Per-scene stages

    def build_optical_collection(self, raw: BandCollection) -> BandCollection:
        """Mask clouds and shadows and add spectral indices to every optical scene."""
        self.logger.info(f"Masking {len(raw)} optical scenes")
        transform = partial(prepare_optical_scene, params=self.config.masking)
        return raw.map(transform, scheduler=self.config.compute.scene_scheduler)

    def build_radar_collection(self, raw: BandCollection) -> BandCollection:
        """Keep the configured orbit pass and remove swath-edge noise from every radar scene."""
        orbit_pass = self.config.radar_filter.orbit_pass
        if orbit_pass is not None:
            raw = raw.filter(SceneFilter(orbit_pass=orbit_pass).matches)
        self.logger.info(f"Denoising {len(raw)} radar scenes ({orbit_pass or 'all'} passes)")
        transform = partial(denoise_radar_scene, params=self.config.edge)
        return raw.map(transform, scheduler=self.config.compute.scene_scheduler)

    # Composites

    def build_composite(self, key: str, collection: BandCollection) -> Composite:
        """
        Reduce a prepared collection into one of the named composites.

        Args:
            key: 'indices', 'reflectance' or 'radar'
            collection: Masked (optical) or denoised (radar) collection

        Returns:
            Composite clipped to the study area
        """
        if key not in COMPOSITE_DEFINITIONS:
            raise ConfigurationError(f"Unknown composite '{key}', expected one of {list(COMPOSITE_DEFINITIONS)}")
        if len(collection) == 0:
            raise CatalogError(f"No scenes available for the {key} composite")

        definition = COMPOSITE_DEFINITIONS[key]
        results = []
        for bands, spec in definition['reductions']:
            statistic = statistic_from_spec(spec)
            for band in bands:
                results.append(
                    reduce_collection(collection, band, statistic, tile_size=self.config.compute.tile_size)
                )

        name = self.config.export.names[key]
        composite = assemble_composite(
            name,
            results,
            geometry=self.config.study_area.geometry(),
            band_order=definition['bands'],
            geometry_crs=self.config.study_area.crs
        )
        self.logger.info(f"Composite {name}: {len(composite)} bands from {len(collection)} scenes")
        return composite

    def index_composite(self, masked: BandCollection) -> Composite:
        return self.build_composite('indices', masked)

    def reflectance_composite(self, masked: BandCollection) -> Composite:
        return self.build_composite('reflectance', masked)

    def radar_composite(self, radar: BandCollection) -> Composite:
        return self.build_composite('radar', radar)

    def run(self, optical_raw: BandCollection, radar_raw: BandCollection) -> Dict[str, Composite]:
        """
        Build all three composites from raw optical and radar collections.

        Returns:
            dict: {'indices': Composite, 'reflectance': Composite, 'radar': Composite}
        """
        log_section(self.logger, 'optical composites')
        masked = self.build_optical_collection(optical_raw)
        composites = {
            'indices': self.index_composite(masked),
            'reflectance': self.reflectance_composite(masked),
        }

        log_section(self.logger, 'radar composite')
        radar = self.build_radar_collection(radar_raw)
        composites['radar'] = self.radar_composite(radar)
        return composites

    def export_composites(self, composites: Dict[str, Composite]) -> Dict[str, Path]:
        """Export composites to GeoTIFFs named after each composite."""
        export = self.config.export
        study_area = self.config.study_area
        region = bounds_in_crs(study_area.bounds, study_area.crs, export.crs)
        paths = {}
        for key, composite in composites.items():
            catalog = self.radar_catalog if COMPOSITE_DEFINITIONS[key]['source'] == 'radar' else self.optical_catalog
            paths[key] = catalog.export(
                composite,
                Path(export.output_dir) / f"{composite.name}.tif",
                region=region,
                scale=export.scale,
                crs=export.crs,
                max_pixels=export.max_pixels,
                compress=export.compress
            )
        return paths

    def run_full_pipeline(self) -> bool:
        """
        Execute the complete pipeline: fetch, mask, reduce, assemble and export.

        Returns:
            bool: True when all composites were exported
        """
        self.start_time = time.time()
        log_pipeline_start(self.logger, 'multitemporal composites', {
            'study_area': self.config.study_area.name,
            'dates': f"{self.config.start_date} / {self.config.stop_date}",
            'export_crs': self.config.export.crs,
            'export_scale': self.config.export.scale,
        })

        try:
            optical_raw = self.optical_catalog.fetch_collection(self.optical_filter())
            radar_raw = self.radar_catalog.fetch_collection(self.radar_filter())
            self.scene_counts = {'optical': len(optical_raw), 'radar': len(radar_raw)}
            self.logger.info(f"Scenes: {len(optical_raw)} optical, {len(radar_raw)} radar")

            composites = self.run(optical_raw, radar_raw)
            self.exported = self.export_composites(composites)
            if self.raw_config is not None:
                save_config(self.raw_config, Path(self.config.export.output_dir) / RUN_CONFIG_NAME)

            log_pipeline_end(self.logger, 'multitemporal composites', True, time.time() - self.start_time)
            self.logger.info(self.get_processing_summary())
            return True

        except Exception as e:
            self.logger.error(f"Main process error: {str(e)}")
            log_pipeline_end(self.logger, 'multitemporal composites', False, time.time() - self.start_time)
            raise

    def get_processing_summary(self) -> Dict[str, Any]:
        """
        Processing summary with timing, scene counts and exported files.
        """
        duration = time.time() - (self.start_time or time.time())
        return {
            'scene_counts': dict(self.scene_counts),
            'exported': {key: str(path) for key, path in self.exported.items()},
            'duration_seconds': duration,
            'config_summary': {
                'study_area': self.config.study_area.name,
                'start_date': str(self.config.start_date),
                'stop_date': str(self.config.stop_date),
                'tile_size': self.config.compute.tile_size,
            }
        }
