# src/georaster/__init__.py
#
# Copyright (c) The georaster project contributors
# This software is distributed under the Apache-2.0 license.
# See the NOTICE file for more information

"""
georaster turns decoded GeoTIFF images into georeferenced, windowable rasters.

It resolves the CRS and affine transform from embedded geo-keys, and exposes
windowed, optionally resampled, pixel access and summary statistics.
"""

# Core data structure
from .layer import (
    ValueKind,
    GeoRaster
)

# I/O operations
from .io import (
    DecodedTiff,
    decode,
    load,
    load_async
)

# Configuration
from .config import (
    ParseConfig
)

# Windows
from .window import (
    PixelWindow,
    GeoWindow,
    map_window
)

# Extraction
from .extract import (
    extract,
    iter_band_values
)

# Statistics
from .stats import (
    Stats,
    compute_stats
)

# Georeferencing
from .georef import (
    CRSStatus,
    GeoKeyResolution,
    GeoReference,
    resolve_crs,
    resolve_affine
)

# Errors
from .exceptions import (
    GeoRasterError,
    GeoReferenceError,
    MissingAffineTagsError,
    MalformedGeoKeysError,
    ShapeMismatchError,
    RasterValidationError,
    RasterIOError
)

__all__ = [
    # Layer
    "ValueKind",
    "GeoRaster",

    # I/O
    "DecodedTiff",
    "decode",
    "load",
    "load_async",

    # Config
    "ParseConfig",

    # Windows
    "PixelWindow",
    "GeoWindow",
    "map_window",

    # Extraction
    "extract",
    "iter_band_values",

    # Statistics
    "Stats",
    "compute_stats",

    # Georeferencing
    "CRSStatus",
    "GeoKeyResolution",
    "GeoReference",
    "resolve_crs",
    "resolve_affine",

    # Errors
    "GeoRasterError",
    "GeoReferenceError",
    "MissingAffineTagsError",
    "MalformedGeoKeysError",
    "ShapeMismatchError",
    "RasterValidationError",
    "RasterIOError"
]
