"""
Cloud and cloud-shadow masking for Sentinel-2 scenes.

This module turns raw Sentinel-2 scenes into masked reflectance scenes:
- Reflectance scaling and band renaming (B1..B12 -> descriptive names)
- Cloud decoding from the QA60 bitmask (opaque cloud and cirrus bits)
- Shadow projection from solar geometry over a range of cloud heights,
  restricted to dark pixels
- Valid-pixel masking of every band

Shadow location depends on the unknown cloud height, so the projector unions
the translated cloud mask over many candidate heights and then discards
candidates over bright ground with a dark-pixel test.

Author: Diego Bengochea
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from shared_utils import get_logger

from .data_model import Scene
from .exceptions import InputError, MetadataError
from .spectral_indices import normalized_difference_array

# Raw Sentinel-2 band -> descriptive band name
SENTINEL2_BAND_NAMES = {
    'B1': 'aerosol',
    'B2': 'blue',
    'B3': 'green',
    'B4': 'red',
    'B5': 'B5',
    'B6': 'red2',
    'B7': 'B7',
    'B8': 'B8',
    'B8A': 'red4',
    'B9': 'h2o',
    'B10': 'cirrus',
    'B11': 'swir1',
    'B12': 'swir2',
}

# Bands the composites depend on; the others are renamed when present
REQUIRED_SENTINEL2_BANDS = ('B2', 'B3', 'B4', 'B5', 'B6', 'B7', 'B8', 'B8A', 'B11', 'B12')

QA_BAND = 'QA60'

SOLAR_AZIMUTH_KEYS = ('solar_azimuth', 'MEAN_SOLAR_AZIMUTH_ANGLE')
SOLAR_ZENITH_KEYS = ('solar_zenith', 'MEAN_SOLAR_ZENITH_ANGLE')


@dataclass(frozen=True)
class MaskingParameters:
    """Constants of the cloud and shadow masking stage."""
    cloud_bit: int = 10
    cirrus_bit: int = 11
    cloud_heights: Tuple[float, ...] = tuple(range(200, 10000, 500))
    dark_pixel_threshold: float = 0.25
    dark_pixel_bands: Tuple[str, str] = ('green', 'swir2')
    reflectance_scale: float = 10000.0
    pixel_size: Optional[float] = None


def sentinel2_to_reflectance(scene: Scene, scale: float = 10000.0) -> Scene:
    """
    Rename raw Sentinel-2 bands and scale digital numbers to reflectance.

    The QA60 band is kept unscaled and the mean solar angles are copied to the
    'solar_azimuth' / 'solar_zenith' metadata keys.

    Args:
        scene: Raw scene with B1..B12 bands (subset allowed) and QA60
        scale: Divisor applied to every spectral band

    Returns:
        Scene with descriptive band names, reflectance values and QA60

    Raises:
        MissingBandError: If a required spectral band or QA60 is absent
    """
    scene.require_bands(REQUIRED_SENTINEL2_BANDS + (QA_BAND,))

    bands = [band for band in SENTINEL2_BAND_NAMES if scene.has_band(band)]
    toa = scene.select_bands(bands + [QA_BAND])
    scaled = toa.data[bands].astype('float64') / scale
    data = scaled.rename({band: SENTINEL2_BAND_NAMES[band] for band in bands})
    data[QA_BAND] = toa.data[QA_BAND]

    azimuth, zenith = get_solar_geometry(scene)
    return Scene(data, scene.grid, scene.timestamp, scene.metadata).with_metadata(
        solar_azimuth=azimuth, solar_zenith=zenith
    )


def _first_metadata_value(scene: Scene, keys: Sequence[str]) -> float:
    for key in keys:
        value = scene.metadata.get(key)
        if value is None:
            continue
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise MetadataError(f"Scene {scene.scene_id}: metadata '{key}' is not numeric: {value!r}")
        if not math.isfinite(value):
            raise MetadataError(f"Scene {scene.scene_id}: metadata '{key}' is not finite")
        return value
    raise MetadataError(f"Scene {scene.scene_id} has none of the metadata keys {list(keys)}")


def get_solar_geometry(scene: Scene) -> Tuple[float, float]:
    """
    Return (azimuth, zenith) in degrees from scene metadata.

    Raises:
        MetadataError: If either angle is missing or not a finite number
    """
    return (
        _first_metadata_value(scene, SOLAR_AZIMUTH_KEYS),
        _first_metadata_value(scene, SOLAR_ZENITH_KEYS),
    )


def decode_cloud_mask(qa: np.ndarray, cloud_bit: int = 10, cirrus_bit: int = 11) -> np.ndarray:
    """
    Flag cloudy pixels from a QA bitmask.

    A pixel is cloud when either the opaque cloud bit or the cirrus bit is
    set; clear requires both bits to be zero.

    Args:
        qa: Integer bitmask array
        cloud_bit: Bit position of the opaque cloud flag
        cirrus_bit: Bit position of the cirrus flag

    Returns:
        Boolean array, True = cloudy

    Raises:
        InputError: If the bitmask holds non-finite values

    Examples:
        >>> decode_cloud_mask(np.array([0, 1 << 10, 1 << 11, 3 << 10]))
        array([False,  True,  True,  True])
    """
    qa = np.asarray(qa)
    if qa.dtype.kind == 'f':
        if not np.isfinite(qa).all():
            raise InputError("QA bitmask band contains non-finite values")
        qa = qa.astype(np.int64)
    elif qa.dtype.kind not in 'iu':
        raise InputError(f"QA bitmask band must be integer-valued, got dtype {qa.dtype}")

    cloud_bit_mask = 1 << cloud_bit
    cirrus_bit_mask = 1 << cirrus_bit
    clear = ((qa & cloud_bit_mask) == 0) & ((qa & cirrus_bit_mask) == 0)
    return ~clear


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def shadow_offsets(
    azimuth: float,
    zenith: float,
    pixel_size: float,
    heights: Iterable[float] = MaskingParameters.cloud_heights
) -> List[Tuple[int, int]]:
    """
    Pixel offsets (x columns, y rows) of cloud shadows for each candidate height.

    The azimuth is rotated by 90 degrees so that cos/sin give grid-aligned
    components; rows grow southward.

    Args:
        azimuth: Solar azimuth in degrees
        zenith: Solar zenith in degrees
        pixel_size: Ground sampling distance, same units as the heights
        heights: Candidate cloud-base heights

    Returns:
        List of (x, y) integer offsets, one per height
    """
    azimuth_rad = math.radians(azimuth) + 0.5 * math.pi
    zenith_rad = math.radians(zenith)

    offsets = []
    for height in heights:
        shadow_vector = math.tan(zenith_rad) * height
        x = _round_half_away(math.cos(azimuth_rad) * shadow_vector / pixel_size)
        y = _round_half_away(math.sin(azimuth_rad) * shadow_vector / pixel_size)
        offsets.append((x, y))
    return offsets


def translate_mask(mask: np.ndarray, x: int, y: int) -> np.ndarray:
    """
    Shift a boolean mask by x columns and y rows; vacated pixels become False.
    """
    height, width = mask.shape
    shifted = np.zeros_like(mask, dtype=bool)
    if abs(x) >= width or abs(y) >= height:
        return shifted

    src_rows = slice(max(0, -y), height - max(0, y))
    dst_rows = slice(max(0, y), height - max(0, -y))
    src_cols = slice(max(0, -x), width - max(0, x))
    dst_cols = slice(max(0, x), width - max(0, -x))
    shifted[dst_rows, dst_cols] = mask[src_rows, src_cols]
    return shifted


def potential_shadow_mask(
    cloud: np.ndarray,
    azimuth: float,
    zenith: float,
    pixel_size: float,
    heights: Iterable[float] = MaskingParameters.cloud_heights
) -> np.ndarray:
    """
    Union of the cloud mask translated to every candidate shadow position.

    Cloud pixels are not excluded here; see project_shadows.
    """
    cloud = np.asarray(cloud, dtype=bool)
    potential = np.zeros_like(cloud, dtype=bool)
    for x, y in sorted(set(shadow_offsets(azimuth, zenith, pixel_size, heights))):
        potential |= translate_mask(cloud, x, y)
    return potential


def dark_pixel_mask(scene: Scene, bands: Tuple[str, str] = ('green', 'swir2'), threshold: float = 0.25) -> np.ndarray:
    """Pixels whose normalized difference of ``bands`` exceeds ``threshold``."""
    band_a, band_b = bands
    scene.require_bands(bands)
    index = normalized_difference_array(scene.band(band_a), scene.band(band_b))
    with np.errstate(invalid='ignore'):
        return np.nan_to_num(index, nan=-np.inf) > threshold


def project_shadows(scene: Scene, cloud: np.ndarray, params: MaskingParameters = MaskingParameters()) -> np.ndarray:
    """
    Estimate cloud shadows for a reflectance scene.

    Args:
        scene: Reflectance scene with solar angles in its metadata
        cloud: Cloud mask from decode_cloud_mask
        params: Masking constants

    Returns:
        Boolean shadow mask: potential shadow, not cloud, and dark
    """
    azimuth, zenith = get_solar_geometry(scene)
    pixel_size = params.pixel_size or scene.grid.pixel_size

    potential = potential_shadow_mask(cloud, azimuth, zenith, pixel_size, params.cloud_heights)
    potential &= ~cloud
    dark = dark_pixel_mask(scene, params.dark_pixel_bands, params.dark_pixel_threshold)
    return potential & dark


def compute_valid_mask(scene: Scene, params: MaskingParameters = MaskingParameters()) -> np.ndarray:
    """
    Valid-pixel mask of a reflectance scene: neither cloud nor shadow.
    """
    cloud = decode_cloud_mask(scene.band(QA_BAND), params.cloud_bit, params.cirrus_bit)
    shadow = project_shadows(scene, cloud, params)
    return ~(cloud | shadow)


def cloud_and_shadow_mask(scene: Scene, params: MaskingParameters = MaskingParameters()) -> Scene:
    """
    Mask clouds and cloud shadows in every band of a reflectance scene.

    Args:
        scene: Reflectance scene (see sentinel2_to_reflectance)
        params: Masking constants

    Returns:
        New Scene with invalid pixels set to NaN in every band
    """
    logger = get_logger('cloud_masking')
    valid = compute_valid_mask(scene, params)
    logger.debug(f"Scene {scene.scene_id}: {valid.mean() * 100:.1f}% valid after cloud/shadow masking")
    return scene.apply_mask(valid)


def mask_sentinel2_scene(scene: Scene, params: MaskingParameters = MaskingParameters()) -> Scene:
    """Scale a raw Sentinel-2 scene to reflectance and mask clouds and shadows."""
    toa = sentinel2_to_reflectance(scene, params.reflectance_scale)
    return cloud_and_shadow_mask(toa, params)
