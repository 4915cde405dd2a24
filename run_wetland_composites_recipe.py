#!/usr/bin/env python3
"""
Recipe: Wetland Composites

Reproduces the multitemporal compositing workflow:
1. Check that Sentinel-2 and Sentinel-1 scene archives are in place
2. Create the output directory structure
3. Build and export the index, reflectance and radar composites

Usage:
    python run_wetland_composites_recipe.py

Examples:
    # Run with the component configuration
    python run_wetland_composites_recipe.py

    # Run with a custom configuration
    python run_wetland_composites_recipe.py --config my_area.yml --log-level DEBUG

Author: Diego Bengochea
"""

import argparse
import sys
import time
from pathlib import Path
from typing import Optional

# Add repo root to path for absolute imports
sys.path.insert(0, str(Path(__file__).parent))

# Import utilities
from shared_utils import ensure_directory, find_files, load_config, setup_logging, validate_directory_exists

# Import component pipeline
from multitemporal_composites.core.composite_config import CompositeConfig
from multitemporal_composites.core.composite_pipeline import CompositePipeline
from multitemporal_composites.core.exceptions import CompositeError


class WetlandCompositesRecipe:
    """
    Recipe for wetland composite reproduction.

    Validates scene archives, prepares output directories and runs the
    compositing pipeline.
    """

    def __init__(self, config_path: Optional[str] = None, log_level: str = "INFO"):
        self.logger = setup_logging(level=log_level, component_name='composites_recipe')
        self.config = CompositeConfig.from_dict(
            load_config(config_path, component_name='multitemporal_composites')
        )
        self.stage_results = {}

        self.logger.info("Initialized Wetland Composites Recipe")

    def validate_prerequisites(self) -> bool:
        """
        Validate that scene archives exist and hold GeoTIFFs.

        Returns:
            bool: True if prerequisites are met
        """
        self.logger.info("Validating prerequisites for compositing...")

        archives = {
            'Sentinel-2 scenes': self.config.optical_dir,
            'Sentinel-1 scenes': self.config.radar_dir,
        }
        for description, directory in archives.items():
            try:
                validate_directory_exists(directory, description)
            except (FileNotFoundError, ValueError) as e:
                self.logger.error(str(e))
                return False

            scene_files = find_files(directory, "*.tif", recursive=False)
            if not scene_files:
                self.logger.error(f"No GeoTIFF scenes found in: {directory}")
                return False
            self.logger.info(f"Found {len(scene_files)} files for {description}")

        boundary = self.config.study_area.boundary_file
        if boundary is not None and not Path(boundary).exists():
            self.logger.error(f"Study area boundary file not found: {boundary}")
            return False

        return True

    def create_output_structure(self) -> None:
        ensure_directory(self.config.export.output_dir)
        self.logger.info(f"Output directory: {self.config.export.output_dir}")

    def run(self) -> bool:
        start = time.time()

        if not self.validate_prerequisites():
            return False
        self.create_output_structure()

        try:
            pipeline = CompositePipeline(self.config)
            success = pipeline.run_full_pipeline()
        except CompositeError as e:
            self.logger.error(f"Compositing failed: {e}")
            success = False

        self.stage_results['composites'] = {
            'success': success,
            'duration_minutes': (time.time() - start) / 60,
        }
        self.logger.info(f"Recipe finished: {self.stage_results}")
        return success


def main() -> bool:
    parser = argparse.ArgumentParser(description="Wetland composites recipe")
    parser.add_argument('--config', type=str, help='Path to configuration file')
    parser.add_argument('--log-level', default='INFO', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'])
    args = parser.parse_args()

    recipe = WetlandCompositesRecipe(args.config, args.log_level)
    return recipe.run()


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
