"""
Core compositing modules: data model, per-scene masking stages, temporal
reduction, composite assembly, catalog access and pipeline orchestration.

Author: Diego Bengochea
"""

from .exceptions import (
    CompositeError,
    InputError,
    MissingBandError,
    MetadataError,
    GridMismatchError,
    ConfigurationError,
    BandCollisionError,
    CatalogError,
    ExportError
)
from .data_model import Grid, Scene, BandCollection, ReductionResult, Composite
from .spectral_indices import SPECTRAL_INDICES, normalized_difference, add_spectral_indices
from .cloud_masking import (
    MaskingParameters,
    sentinel2_to_reflectance,
    decode_cloud_mask,
    shadow_offsets,
    project_shadows,
    cloud_and_shadow_mask,
    mask_sentinel2_scene
)
from .edge_denoising import EdgeParameters, mask_edge_noise, buffer_edges, denoise_radar_scene
from .temporal_reduction import Percentile, StdDev, statistic_from_spec, reduce_collection, reduce_bands
from .composite_assembly import assemble_composite
from .composite_config import CompositeConfig
from .scene_catalog import (
    SceneFilter,
    SceneCatalog,
    InMemorySceneCatalog,
    GeoTiffSceneCatalog,
    export_composite
)
from .composite_pipeline import CompositePipeline

__all__ = [
    "CompositeError",
    "InputError",
    "MissingBandError",
    "MetadataError",
    "GridMismatchError",
    "ConfigurationError",
    "BandCollisionError",
    "CatalogError",
    "ExportError",
    "Grid",
    "Scene",
    "BandCollection",
    "ReductionResult",
    "Composite",
    "SPECTRAL_INDICES",
    "normalized_difference",
    "add_spectral_indices",
    "MaskingParameters",
    "sentinel2_to_reflectance",
    "decode_cloud_mask",
    "shadow_offsets",
    "project_shadows",
    "cloud_and_shadow_mask",
    "mask_sentinel2_scene",
    "EdgeParameters",
    "mask_edge_noise",
    "buffer_edges",
    "denoise_radar_scene",
    "Percentile",
    "StdDev",
    "statistic_from_spec",
    "reduce_collection",
    "reduce_bands",
    "assemble_composite",
    "CompositeConfig",
    "SceneFilter",
    "SceneCatalog",
    "InMemorySceneCatalog",
    "GeoTiffSceneCatalog",
    "export_composite",
    "CompositePipeline"
]
