"""
Custom exceptions for the multitemporal composites component.

Pixel-level no-data (empty time series, zero denominators) is never an
exception; these types cover stage-level failures only.
"""


class CompositeError(Exception):
    """Base exception for the multitemporal composites component."""
    pass


class InputError(CompositeError):
    """Raised when a scene or collection does not carry the expected inputs."""
    pass


class MissingBandError(InputError, KeyError):
    """Raised when a required band is absent from a scene or result."""

    def __str__(self):
        return Exception.__str__(self)


class MetadataError(InputError):
    """Raised when scene metadata (e.g. solar angles) is missing or malformed."""
    pass


class GridMismatchError(InputError):
    """Raised when rasters that must share a pixel grid do not."""
    pass


class ConfigurationError(CompositeError):
    """Raised when configuration is invalid or missing."""
    pass


class BandCollisionError(ConfigurationError):
    """Raised when two composite inputs provide the same band name."""
    pass


class CatalogError(CompositeError):
    """Raised when the scene catalog cannot provide scenes."""
    pass


class ExportError(CompositeError):
    """Raised when a raster export request is rejected."""
    pass
