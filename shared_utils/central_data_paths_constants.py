"""
Central Data Paths - Constants

Centralized path management for the multitemporal wetland composites repository.
All components should import default paths from this module instead of defining their own.

Usage:
    from shared_utils.central_data_paths_constants import SENTINEL2_SCENES_DIR

    scene_files = list(SENTINEL2_SCENES_DIR.glob("*.tif"))

Author: Diego Bengochea
"""

from pathlib import Path

# Root directories
DATA_ROOT = Path("data")

RAW_DIR = DATA_ROOT / "raw"
RESULTS_DIR = DATA_ROOT / "results"

# Input scene archives (one GeoTIFF per scene)
SENTINEL2_SCENES_DIR = RAW_DIR / "sentinel2"
SENTINEL1_SCENES_DIR = RAW_DIR / "sentinel1"

# Study area outline
STUDY_AREA_DIR = RAW_DIR / "study_area"

# Composites for downstream classification
COMPOSITES_DIR = RESULTS_DIR / "composites"
