"""Pytest configuration and shared fixtures."""

import sys
from datetime import datetime, timedelta
from pathlib import Path

import numpy as np
import pytest
from rasterio.transform import Affine

# Repository root on the path for the flat package layout
sys.path.insert(0, str(Path(__file__).parent.parent))

from multitemporal_composites.core.data_model import BandCollection, Grid, Scene

GRID_SHAPE = (20, 20)
PIXEL_SIZE = 20.0
ORIGIN = (600000.0, 5900000.0)
CRS = 'EPSG:25831'

# Typical Sentinel-2 digital numbers for a vegetated wetland pixel
DEFAULT_DN = {
    'B1': 300, 'B2': 400, 'B3': 600, 'B4': 500, 'B5': 900, 'B6': 1800,
    'B7': 2200, 'B8': 2600, 'B8A': 2800, 'B9': 700, 'B10': 20,
    'B11': 1500, 'B12': 800,
}

RADAR_METADATA = {
    'transmitterReceiverPolarisation': ['VV', 'VH'],
    'instrumentMode': 'IW',
    'orbitProperties_pass': 'DESCENDING',
    'relativeOrbitNumber_start': 37,
}


def make_grid(shape=GRID_SHAPE, pixel_size=PIXEL_SIZE) -> Grid:
    transform = Affine(pixel_size, 0.0, ORIGIN[0], 0.0, -pixel_size, ORIGIN[1])
    return Grid(shape=shape, transform=transform, crs=CRS)


def make_optical_scene(grid, timestamp, qa=None, overrides=None, azimuth=150.0, zenith=0.0, **metadata):
    """Raw Sentinel-2 scene in digital numbers with a QA60 band."""
    bands = {name: np.full(grid.shape, value, dtype='float64') for name, value in DEFAULT_DN.items()}
    for name, array in (overrides or {}).items():
        bands[name] = np.asarray(array, dtype='float64')
    bands['QA60'] = np.zeros(grid.shape, dtype=np.uint16) if qa is None else np.asarray(qa, dtype=np.uint16)
    metadata.setdefault('MEAN_SOLAR_AZIMUTH_ANGLE', azimuth)
    metadata.setdefault('MEAN_SOLAR_ZENITH_ANGLE', zenith)
    return Scene.from_arrays(bands, grid, timestamp, metadata)


def make_radar_scene(grid, timestamp, vv, vh=None, **metadata):
    """Sentinel-1 scene in dB."""
    vv = np.broadcast_to(np.asarray(vv, dtype='float64'), grid.shape).copy()
    vh = vv - 7.0 if vh is None else np.broadcast_to(np.asarray(vh, dtype='float64'), grid.shape).copy()
    return Scene.from_arrays({'VV': vv, 'VH': vh}, grid, timestamp, {**RADAR_METADATA, **metadata})


def make_series(grid, band, values, start=datetime(2019, 5, 1)):
    """Collection with one scene per entry of ``values`` (scalars or arrays)."""
    scenes = []
    for i, value in enumerate(values):
        array = np.broadcast_to(np.asarray(value, dtype='float64'), grid.shape).copy()
        scenes.append(Scene.from_arrays({band: array}, grid, start + timedelta(days=10 * i)))
    return BandCollection(tuple(scenes))


@pytest.fixture
def grid():
    return make_grid()


@pytest.fixture
def small_grid():
    return make_grid(shape=(2, 2))


@pytest.fixture
def timestamp():
    return datetime(2019, 6, 15, 10, 56, 21)


def write_scene(path, grid, bands, tags, nodata=-9999.0, describe=True):
    """Write a single-scene float32 GeoTIFF with band descriptions and tags."""
    import rasterio

    profile = {
        'driver': 'GTiff',
        'height': grid.height,
        'width': grid.width,
        'count': len(bands),
        'dtype': 'float32',
        'crs': grid.crs,
        'transform': grid.transform,
        'nodata': nodata,
    }
    with rasterio.open(path, 'w', **profile) as dst:
        for index, (name, values) in enumerate(bands.items(), start=1):
            dst.write(np.asarray(values).astype('float32'), index)
            if describe:
                dst.set_band_description(index, name)
        dst.update_tags(**tags)
    return path
