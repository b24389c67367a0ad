# src/georaster/exceptions.py

"""
Exception hierarchy shared by the georaster modules.
"""

__all__ = [
    "GeoRasterError",
    "GeoReferenceError",
    "MissingAffineTagsError",
    "MalformedGeoKeysError",
    "ShapeMismatchError",
    "RasterValidationError",
    "RasterIOError"
]

class GeoRasterError(Exception):
    """Base class for every error raised by georaster."""

class GeoReferenceError(GeoRasterError):
    """The raster cannot be placed on the ground."""

class MissingAffineTagsError(GeoReferenceError):
    """Neither a transformation matrix nor a scale/tie-point pair is available."""

class MalformedGeoKeysError(GeoReferenceError):
    """A geo tag is present but its content cannot be decoded."""

class ShapeMismatchError(GeoRasterError, ValueError):
    """A requested output shape is not usable (zero or negative dimension)."""

class RasterValidationError(GeoRasterError):
    """Band buffers or palette do not satisfy the raster invariants."""

class RasterIOError(GeoRasterError, IOError):
    """The decoding collaborator failed to produce a raster."""
