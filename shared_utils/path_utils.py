"""
Path utilities for the multitemporal wetland composites pipeline.

Scene archives are flat directories of GeoTIFFs and outputs go to a single
composites directory; these helpers cover discovering the former and
creating the latter.

Author: Diego Bengochea
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

PathLike = Union[str, Path]


def ensure_directory(path: PathLike, parents: bool = True) -> Path:
    """
    Create ``path`` if needed and return it.

    Examples:
        >>> output_dir = ensure_directory("data/results/composites")
    """
    path = Path(path)
    path.mkdir(parents=parents, exist_ok=True)
    return path


def resolve_path(path: PathLike, base_path: Optional[PathLike] = None) -> Path:
    """Absolute version of ``path``; relative paths are taken from ``base_path`` or cwd."""
    path = Path(path)
    if path.is_absolute():
        return path
    return (Path(base_path) / path).resolve() if base_path else path.resolve()


def find_files(
    directory: PathLike,
    pattern: str = "*",
    recursive: bool = True,
    file_types: Optional[Iterable[str]] = None
) -> List[Path]:
    """
    Sorted regular files under ``directory`` matching ``pattern``.

    Args:
        directory: Directory to search
        pattern: Glob pattern
        recursive: Descend into subdirectories
        file_types: Optional extensions to keep (case-insensitive), e.g. ['.tif']

    Returns:
        List[Path]: Matches; empty (with a warning) if the directory is missing

    Examples:
        >>> scene_files = find_files("data/raw/sentinel2", "*.tif", recursive=False)
    """
    directory = Path(directory)
    if not directory.exists():
        logging.getLogger(__name__).warning(f"Directory does not exist: {directory}")
        return []

    matches = directory.rglob(pattern) if recursive else directory.glob(pattern)
    suffixes = {ext.lower() for ext in file_types} if file_types else None

    return sorted(
        path for path in matches
        if path.is_file() and (suffixes is None or path.suffix.lower() in suffixes)
    )


def validate_directory_exists(path: PathLike, description: str = "") -> Path:
    """
    Return ``path`` as a Path if it is an existing directory.

    Raises:
        FileNotFoundError: If it does not exist
        ValueError: If it is not a directory
    """
    path = Path(path)
    label = f" ({description})" if description else ""

    if not path.exists():
        raise FileNotFoundError(f"Directory not found{label}: {path}")
    if not path.is_dir():
        raise ValueError(f"Path is not a directory{label}: {path}")
    return path
