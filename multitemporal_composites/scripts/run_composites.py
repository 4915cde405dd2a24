#!/usr/bin/env python3
"""
Multitemporal Composites Script

Command-line interface for the wetland compositing pipeline. Builds the index,
reflectance and radar composites over the configured study area and exports
them as GeoTIFFs.

Usage Examples:
    # Run with default configuration
    python -m multitemporal_composites.scripts.run_composites

    # Run with custom configuration
    python -m multitemporal_composites.scripts.run_composites --config custom_config.yml

    # Override the output directory and tile size
    python -m multitemporal_composites.scripts.run_composites --output-dir /data/composites --tile-size 512

Author: Diego Bengochea
"""

import argparse
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

# Shared utilities
from shared_utils import get_logger

# Component imports
from multitemporal_composites.core.composite_pipeline import CompositePipeline
from multitemporal_composites.core.exceptions import CompositeError


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        argparse.Namespace: Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Multitemporal Wetland Composites Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    # Configuration options
    parser.add_argument(
        '--config', '-c',
        type=str,
        help='Path to configuration file (default: config.yml)'
    )
    parser.add_argument(
        '--output-dir',
        type=str,
        help='Override the export output directory'
    )
    parser.add_argument(
        '--tile-size',
        type=int,
        help='Override the reduction tile size in pixels'
    )

    return parser.parse_args(argv)


def validate_arguments(args: argparse.Namespace) -> bool:
    """
    Validate command-line arguments.

    Returns:
        bool: True if arguments are valid
    """
    if args.config and not Path(args.config).exists():
        print(f"Error: Configuration file does not exist: {args.config}")
        return False

    if args.tile_size is not None and args.tile_size < 1:
        print(f"Error: Tile size must be positive: {args.tile_size}")
        return False

    return True


def main(argv: Optional[List[str]] = None) -> bool:
    """
    Main entry point for the compositing script.

    Returns:
        bool: True on success
    """
    args = parse_arguments(argv)

    if not validate_arguments(args):
        return False

    try:
        pipeline = CompositePipeline.from_config_file(args.config)
    except (CompositeError, FileNotFoundError, ValueError) as e:
        print(f"Error: Could not load configuration: {e}")
        return False

    config = pipeline.config
    if args.output_dir:
        config = replace(config, export=replace(config.export, output_dir=Path(args.output_dir)))
    if args.tile_size:
        config = replace(config, compute=replace(config.compute, tile_size=args.tile_size))
    pipeline.config = config

    try:
        return pipeline.run_full_pipeline()
    except CompositeError as e:
        get_logger('composites').error(f"Compositing failed: {e}")
        return False


def cli() -> None:
    """Console entry point; exit code 0 on success, 1 on failure."""
    success = main()
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    cli()
