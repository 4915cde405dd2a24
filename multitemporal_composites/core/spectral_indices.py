"""
Normalized difference spectral indices.

Indices are evaluated pixel-wise over whole scenes, so a zero denominator
yields NaN at that pixel instead of an error.

Author: Diego Bengochea
"""

from typing import Dict, Tuple

import numpy as np

from .data_model import Scene

# name -> (band A, band B) for (A - B) / (A + B)
SPECTRAL_INDICES: Dict[str, Tuple[str, str]] = {
    'NDVI': ('red4', 'red'),
    'NDWI': ('green', 'red4'),
    'NDBI': ('swir1', 'red4'),
}

# Order in which indices are appended to masked scenes
INDEX_ORDER = ('NDBI', 'NDVI', 'NDWI')


def normalized_difference_array(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Compute (a - b) / (a + b), with NaN wherever a + b == 0.

    Examples:
        >>> normalized_difference_array(np.array([3.0, 0.0]), np.array([1.0, 0.0]))
        array([0.5, nan])
    """
    a = np.asarray(a, dtype='float64')
    b = np.asarray(b, dtype='float64')
    total = a + b
    with np.errstate(divide='ignore', invalid='ignore'):
        result = (a - b) / total
    return np.where(total == 0, np.nan, result)


def normalized_difference(scene: Scene, band_a: str, band_b: str, name: str) -> Scene:
    """
    Append the normalized difference of two bands to a scene.

    Args:
        scene: Input scene
        band_a: Band subtracted from / added to band_b
        band_b: Second band
        name: Name of the appended band

    Returns:
        New Scene with ``name`` added

    Raises:
        MissingBandError: If either band is absent
    """
    scene.require_bands([band_a, band_b])
    index = normalized_difference_array(scene.band(band_a), scene.band(band_b))
    return scene.with_band(name, index)


def add_index(scene: Scene, name: str) -> Scene:
    band_a, band_b = SPECTRAL_INDICES[name]
    return normalized_difference(scene, band_a, band_b, name)


def add_ndvi(scene: Scene) -> Scene:
    """Vegetation index: narrow near-infrared vs red."""
    return add_index(scene, 'NDVI')


def add_ndwi(scene: Scene) -> Scene:
    """Water index: green vs narrow near-infrared."""
    return add_index(scene, 'NDWI')


def add_ndbi(scene: Scene) -> Scene:
    """Built-up index: short-wave infrared vs narrow near-infrared."""
    return add_index(scene, 'NDBI')


def add_spectral_indices(scene: Scene) -> Scene:
    """Append NDBI, NDVI and NDWI to a reflectance scene."""
    for name in INDEX_ORDER:
        scene = add_index(scene, name)
    return scene
