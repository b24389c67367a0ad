# src/georaster/georef/__init__.py
#
# Copyright (c) The georaster project contributors
# This software is distributed under the Apache-2.0 license.
# See the NOTICE file for more information

"""
The georef subpackage resolves embedded GeoTIFF metadata into a coordinate
reference system and a pixel-to-ground affine transform.
"""

# CRS resolution
from .geokeys import (
    GEOKEY_NAMES,
    CRSStatus,
    GeoKeyResolution,
    parse_geokey_directory,
    normalize_geokeys,
    resolve_crs
)

# Affine resolution
from .affine import (
    GeoReference,
    resolve_affine,
    affine_from_origin
)

__all__ = [
    # CRS resolution
    "GEOKEY_NAMES",
    "CRSStatus",
    "GeoKeyResolution",
    "parse_geokey_directory",
    "normalize_geokeys",
    "resolve_crs",

    # Affine resolution
    "GeoReference",
    "resolve_affine",
    "affine_from_origin"
]
