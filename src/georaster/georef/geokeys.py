# src/georaster/georef/geokeys.py

"""
This module resolves a GeoTIFF geo-key directory into a coordinate reference system.

It decodes the raw GeoKeyDirectoryTag (with its double and ascii parameter
tags) into a sparse key mapping, then resolves that mapping eagerly into a
typed GeoKeyResolution. Resolution never raises: an unknown CRS surfaces as
a None code with a status explaining why.
"""

import logging
import numbers
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from rasterio.crs import CRS

from ..config import USER_DEFINED_CODE
from ..exceptions import MalformedGeoKeysError

log = logging.getLogger(__name__)

__all__ = [
    "GEOKEY_NAMES",
    "CRSStatus",
    "GeoKeyResolution",
    "parse_geokey_directory",
    "normalize_geokeys",
    "resolve_crs"
]

GEO_DOUBLE_PARAMS_TAG = 34736
GEO_ASCII_PARAMS_TAG = 34737

GT_MODEL_TYPE = 1024
GT_RASTER_TYPE = 1025
GT_CITATION = 1026
GEOGRAPHIC_TYPE = 2048
GEOG_CITATION = 2049
GEOG_GEODETIC_DATUM = 2050
GEOG_PRIME_MERIDIAN = 2051
GEOG_ANGULAR_UNITS = 2054
GEOG_ELLIPSOID = 2056
GEOG_SEMI_MAJOR_AXIS = 2057
GEOG_SEMI_MINOR_AXIS = 2058
GEOG_INV_FLATTENING = 2059
GEOG_PRIME_MERIDIAN_LONG = 2061
GEOG_TOWGS84 = 2062
PROJECTED_CS_TYPE = 3072
PCS_CITATION = 3073
PROJECTION = 3074
PROJ_COORD_TRANS = 3075
PROJ_LINEAR_UNITS = 3076

GEOKEY_NAMES: Dict[int, str] = {
    GT_MODEL_TYPE: "GTModelTypeGeoKey",
    GT_RASTER_TYPE: "GTRasterTypeGeoKey",
    GT_CITATION: "GTCitationGeoKey",
    GEOGRAPHIC_TYPE: "GeographicTypeGeoKey",
    GEOG_CITATION: "GeogCitationGeoKey",
    GEOG_GEODETIC_DATUM: "GeogGeodeticDatumGeoKey",
    GEOG_PRIME_MERIDIAN: "GeogPrimeMeridianGeoKey",
    2052: "GeogLinearUnitsGeoKey",
    2053: "GeogLinearUnitSizeGeoKey",
    GEOG_ANGULAR_UNITS: "GeogAngularUnitsGeoKey",
    2055: "GeogAngularUnitSizeGeoKey",
    GEOG_ELLIPSOID: "GeogEllipsoidGeoKey",
    GEOG_SEMI_MAJOR_AXIS: "GeogSemiMajorAxisGeoKey",
    GEOG_SEMI_MINOR_AXIS: "GeogSemiMinorAxisGeoKey",
    GEOG_INV_FLATTENING: "GeogInvFlatteningGeoKey",
    2060: "GeogAzimuthUnitsGeoKey",
    GEOG_PRIME_MERIDIAN_LONG: "GeogPrimeMeridianLongGeoKey",
    GEOG_TOWGS84: "GeogTOWGS84GeoKey",
    PROJECTED_CS_TYPE: "ProjectedCSTypeGeoKey",
    PCS_CITATION: "PCSCitationGeoKey",
    PROJECTION: "ProjectionGeoKey",
    PROJ_COORD_TRANS: "ProjCoordTransGeoKey",
    PROJ_LINEAR_UNITS: "ProjLinearUnitsGeoKey",
    3077: "ProjLinearUnitSizeGeoKey",
    3078: "ProjStdParallel1GeoKey",
    3079: "ProjStdParallel2GeoKey",
    3080: "ProjNatOriginLongGeoKey",
    3081: "ProjNatOriginLatGeoKey",
    3082: "ProjFalseEastingGeoKey",
    3083: "ProjFalseNorthingGeoKey",
    3088: "ProjCenterLongGeoKey",
    3092: "ProjScaleAtNatOriginGeoKey",
    4096: "VerticalCSTypeGeoKey",
    4097: "VerticalCitationGeoKey",
    4098: "VerticalDatumGeoKey",
    4099: "VerticalUnitsGeoKey",
}

# GeoTIFF 1.1 renamed a handful of keys; both spellings are accepted
_GEOKEY_IDS: Dict[str, int] = {name: key for key, name in GEOKEY_NAMES.items()}
_GEOKEY_IDS.update({
    "GeographicCRSGeoKey": GEOGRAPHIC_TYPE,
    "ProjectedCRSGeoKey": PROJECTED_CS_TYPE,
    "ProjectedCitationGeoKey": PCS_CITATION,
    "VerticalGeoKey": 4096,
})

MODEL_GEOGRAPHIC = 2

WGS84_CODE = 4326
WGS84_DATUM = 6326
WGS84_ELLIPSOID = 7030
WGS84_SEMI_MAJOR = 6378137.0
WGS84_INV_FLATTENING = 298.257223563
GREENWICH = 8901
ANGULAR_DEGREE = 9102

# Keys describing a CRS assembled from explicit parameters
_USER_DEFINED_KEYS = (
    GEOG_GEODETIC_DATUM, GEOG_PRIME_MERIDIAN, GEOG_ANGULAR_UNITS, GEOG_ELLIPSOID,
    GEOG_SEMI_MAJOR_AXIS, GEOG_SEMI_MINOR_AXIS, GEOG_INV_FLATTENING,
    GEOG_PRIME_MERIDIAN_LONG, GEOG_TOWGS84, PROJECTION, PROJ_COORD_TRANS,
    PROJ_LINEAR_UNITS,
)

GeoKeyValue = Union[int, float, str, tuple]

class CRSStatus(Enum):
    """
    How a CRS code was (or was not) obtained.

    Options:
        ABSENT: The source carries no geo-key directory at all.
        UNRESOLVED: Keys exist but do not identify a CRS.
        USER_DEFINED: The CRS is assembled from explicit parameters (code 32767).
        REGISTERED: The code is a registry (EPSG) code.
    """
    ABSENT = "absent"
    UNRESOLVED = "unresolved"
    USER_DEFINED = "user_defined"
    REGISTERED = "registered"

@dataclass(frozen=True)
class GeoKeyResolution:
    """
    Typed outcome of resolving a geo-key mapping.

    Args:
        code: CRS code, or None when unknown.
        is_geographic: True for a geographic (lon/lat) CRS.
        status: CRSStatus describing how the code was reached.
        description: Embedded CRS parameters keyed by geo-key name, for user-defined CRSs.
    """
    code: Optional[int]
    is_geographic: bool
    status: CRSStatus
    description: Dict[str, Any] = field(default_factory=dict)

    def to_crs(self) -> Optional[CRS]:
        """Build a rasterio CRS, or None when the resolution cannot express one."""
        if self.status == CRSStatus.REGISTERED and self.code is not None:
            return CRS.from_epsg(self.code)

        if self.status == CRSStatus.USER_DEFINED and self.is_geographic:
            params: Dict[str, Any] = {"proj": "longlat", "no_defs": True}
            semi_major = self.description.get("GeogSemiMajorAxisGeoKey")
            if semi_major is not None:
                params["a"] = semi_major
                if "GeogInvFlatteningGeoKey" in self.description:
                    params["rf"] = self.description["GeogInvFlatteningGeoKey"]
                elif "GeogSemiMinorAxisGeoKey" in self.description:
                    params["b"] = self.description["GeogSemiMinorAxisGeoKey"]
            else:
                params["ellps"] = "WGS84"
            towgs84 = self.description.get("GeogTOWGS84GeoKey")
            if towgs84 is not None:
                params["towgs84"] = ",".join(str(v) for v in _as_tuple(towgs84))
            return CRS.from_dict(params)

        return None

def _as_tuple(value: Any) -> tuple:
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return (value,)

def parse_geokey_directory(
    directory: Sequence[int],
    double_params: Optional[Sequence[float]] = None,
    ascii_params: Optional[str] = None
) -> Dict[int, GeoKeyValue]:
    """
    Decode a raw GeoKeyDirectoryTag into a key-id mapping.

    The directory starts with a 4-short header (version, revision, minor revision,
    key count) followed by one (key id, tag location, count, value) entry per key.
    A location of 0 stores the value inline; otherwise the value is a slice of the
    double or ascii parameter tag.

    Args:
        directory: Shorts of tag 34735.
        double_params: Values of tag 34736, if present.
        ascii_params: Value of tag 34737, if present.

    Returns:
        Dict[int, GeoKeyValue]: Decoded values keyed by geo-key id.

    Raises:
        MalformedGeoKeysError: If the directory is truncated or points outside its parameter tags.
    """
    raw = [int(v) for v in directory]
    if len(raw) < 4:
        raise MalformedGeoKeysError(f"GeoKeyDirectory header is truncated ({len(raw)} values)")

    key_count = raw[3]
    if len(raw) < 4 + 4 * key_count:
        raise MalformedGeoKeysError(
            f"GeoKeyDirectory declares {key_count} keys but holds {(len(raw) - 4) // 4}"
        )

    doubles = list(double_params) if double_params is not None else []
    text = ascii_params or ""
    keys: Dict[int, GeoKeyValue] = {}

    for i in range(key_count):
        key_id, location, count, offset = raw[4 + 4 * i: 8 + 4 * i]

        if location == 0:
            keys[key_id] = offset
        elif location == GEO_DOUBLE_PARAMS_TAG:
            if offset + count > len(doubles):
                raise MalformedGeoKeysError(
                    f"Key {key_id} reads doubles [{offset}:{offset + count}] of {len(doubles)}"
                )
            values = tuple(float(v) for v in doubles[offset:offset + count])
            keys[key_id] = values[0] if count == 1 else values
        elif location == GEO_ASCII_PARAMS_TAG:
            if offset + count > len(text):
                raise MalformedGeoKeysError(
                    f"Key {key_id} reads ascii [{offset}:{offset + count}] of {len(text)}"
                )
            # strings are terminated by '|' inside the shared ascii tag
            keys[key_id] = text[offset:offset + count].rstrip("|\x00")
        else:
            log.debug(f"Skipping geo-key {key_id} stored in unsupported tag {location}")

    return keys

def normalize_geokeys(geokeys: Optional[Mapping[Union[int, str], GeoKeyValue]]) -> Dict[int, GeoKeyValue]:
    """
    Map geo-key names or ids to an id-keyed dict. Unknown names are dropped.
    """
    normalized: Dict[int, GeoKeyValue] = {}
    for key, value in (geokeys or {}).items():
        if isinstance(key, str):
            key_id = _GEOKEY_IDS.get(key)
            if key_id is None:
                log.debug(f"Ignoring unknown geo-key name: {key}")
                continue
        else:
            key_id = int(key)
        normalized[key_id] = value
    return normalized

def _registered(value: Any) -> Optional[int]:
    """Return value as a registry code if it is one (1..32766)."""
    # decoders may hand over numpy integers
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        return None
    code = int(value)
    if 0 < code < USER_DEFINED_CODE:
        return code
    return None

def _is_plain_wgs84(keys: Mapping[int, GeoKeyValue], is_geographic: bool) -> bool:
    """True when the explicit parameters describe WGS 84 geographic without ambiguity."""
    if not is_geographic or PROJECTION in keys or PROJ_COORD_TRANS in keys:
        return False
    if GEOG_TOWGS84 in keys:
        return False

    datum = keys.get(GEOG_GEODETIC_DATUM)
    ellipsoid = keys.get(GEOG_ELLIPSOID)
    if datum != WGS84_DATUM and not (datum is None and ellipsoid == WGS84_ELLIPSOID):
        return False
    if ellipsoid not in (None, WGS84_ELLIPSOID):
        return False

    semi_major = keys.get(GEOG_SEMI_MAJOR_AXIS)
    if semi_major is not None and abs(float(semi_major) - WGS84_SEMI_MAJOR) > 1e-6:
        return False
    inv_flattening = keys.get(GEOG_INV_FLATTENING)
    if inv_flattening is not None and abs(float(inv_flattening) - WGS84_INV_FLATTENING) > 1e-9:
        return False

    return (
        keys.get(GEOG_PRIME_MERIDIAN, GREENWICH) == GREENWICH
        and keys.get(GEOG_ANGULAR_UNITS, ANGULAR_DEGREE) == ANGULAR_DEGREE
    )

def resolve_crs(geokeys: Optional[Mapping[Union[int, str], GeoKeyValue]]) -> GeoKeyResolution:
    """
    Resolve a geo-key mapping into a CRS code.

    Registry references (ProjectedCSTypeGeoKey, then GeographicTypeGeoKey) are
    returned directly. Otherwise explicit datum/ellipsoid/projection parameters
    are inspected: plain WGS 84 resolves to 4326, anything else to the
    user-defined code 32767. Keys that identify nothing yield a None code.

    Args:
        geokeys: Mapping keyed by geo-key id or registry name.

    Returns:
        GeoKeyResolution: Never raises for unknown or incomplete keys.
    """
    keys = normalize_geokeys(geokeys)
    if not keys:
        return GeoKeyResolution(code=None, is_geographic=False, status=CRSStatus.ABSENT)

    model_type = keys.get(GT_MODEL_TYPE)
    projected = keys.get(PROJECTED_CS_TYPE)
    geographic = keys.get(GEOGRAPHIC_TYPE)

    code = _registered(projected)
    if code is not None:
        return GeoKeyResolution(code=code, is_geographic=False, status=CRSStatus.REGISTERED)

    if projected is None and PROJECTION not in keys and PROJ_COORD_TRANS not in keys:
        code = _registered(geographic)
        if code is not None:
            return GeoKeyResolution(code=code, is_geographic=True, status=CRSStatus.REGISTERED)

    if model_type is not None:
        is_geographic = model_type == MODEL_GEOGRAPHIC
    else:
        is_geographic = projected is None and geographic is not None

    explicit = {key: keys[key] for key in _USER_DEFINED_KEYS if key in keys}
    user_defined = USER_DEFINED_CODE in (projected, geographic)

    if explicit or user_defined:
        if _is_plain_wgs84(keys, is_geographic):
            log.debug("Explicit geographic parameters match WGS 84")
            return GeoKeyResolution(code=WGS84_CODE, is_geographic=True, status=CRSStatus.REGISTERED)

        description = {GEOKEY_NAMES[key]: value for key, value in explicit.items()}
        for citation in (GT_CITATION, GEOG_CITATION, PCS_CITATION):
            if citation in keys:
                description[GEOKEY_NAMES[citation]] = keys[citation]

        return GeoKeyResolution(
            code=USER_DEFINED_CODE,
            is_geographic=is_geographic,
            status=CRSStatus.USER_DEFINED,
            description=description
        )

    log.debug(f"Geo-keys {sorted(keys)} do not identify a CRS")
    return GeoKeyResolution(code=None, is_geographic=is_geographic, status=CRSStatus.UNRESOLVED)
