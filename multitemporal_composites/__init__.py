"""
Multitemporal Wetland Composites Component

Pipeline for creating multitemporal Sentinel-2 and Sentinel-1 composites over
coastal wetlands, used as input features for wetland classification.

This component provides:
- Sentinel-2 cloud masking from QA60 bits with geometric shadow projection
- Spectral indices (NDVI, NDWI, NDBI) on masked reflectance
- Sentinel-1 swath-edge noise removal by connected-component filtering
- Per-pixel temporal percentiles and standard deviation over valid observations
- Composite assembly with fixed band order, study-area clipping and GeoTIFF export

Composites:
- NDBVWI_90_50_wadden: spectral indices at the 90th and 50th percentile
- S2_perc50_wadden: Sentinel-2 reflectance at the 50th percentile
- S1_VV_VH_95_50_5_SDs_wadden: radar backscatter percentiles and standard deviation

Author: Diego Bengochea
"""

# Import core processing pipeline
from .core.composite_pipeline import CompositePipeline
from .core.composite_config import CompositeConfig

# Import per-scene stages and reducers
from .core.cloud_masking import mask_sentinel2_scene, decode_cloud_mask, project_shadows
from .core.edge_denoising import denoise_radar_scene
from .core.spectral_indices import add_spectral_indices
from .core.temporal_reduction import Percentile, StdDev, reduce_collection
from .core.composite_assembly import assemble_composite

# Import script entry points
from .scripts.run_composites import main as run_composites

__version__ = "1.0.0"
__component__ = "multitemporal_composites"

__all__ = [
    # Main processing pipeline
    "CompositePipeline",
    "CompositeConfig",

    # Scene stages and reducers
    "mask_sentinel2_scene",
    "decode_cloud_mask",
    "project_shadows",
    "denoise_radar_scene",
    "add_spectral_indices",
    "Percentile",
    "StdDev",
    "reduce_collection",
    "assemble_composite",

    # Script entry points
    "run_composites"
]
