# src/georaster/georef/affine.py

"""
This module derives the pixel-to-ground affine transform of a raster.

A full ModelTransformation matrix is used verbatim when present. Otherwise the
transform is synthesized from ModelPixelScale and ModelTiepoint, flipping the
sign of the row scale because image rows grow downward while map y grows upward.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from rasterio.transform import Affine, from_origin

from ..exceptions import MalformedGeoKeysError, MissingAffineTagsError

log = logging.getLogger(__name__)

__all__ = [
    "GeoReference",
    "resolve_affine",
    "affine_from_origin"
]

@dataclass(frozen=True)
class GeoReference:
    """
    Resolved georeferencing of a raster grid.

    Args:
        transform: Affine mapping (col, row) to (x, y).
        pixel_width: Ground units per pixel along x (always positive).
        pixel_height: Ground units per pixel along y (always positive).
        xmin: Western edge.
        ymin: Southern edge.
        xmax: Eastern edge.
        ymax: Northern edge.
    """
    transform: Affine
    pixel_width: float
    pixel_height: float
    xmin: float
    ymin: float
    xmax: float
    ymax: float

    @classmethod
    def from_transform(cls, transform: Affine, width: int, height: int) -> 'GeoReference':
        """Derive pixel size and bounds from a transform and grid size."""
        if transform.a == 0 or transform.e == 0:
            raise MalformedGeoKeysError(f"Degenerate transform, zero pixel size: {tuple(transform)[:6]}")

        x0, y0 = transform * (0, 0)
        x1, y1 = transform * (width, height)

        return cls(
            transform=transform,
            pixel_width=abs(transform.a),
            pixel_height=abs(transform.e),
            xmin=min(x0, x1),
            ymin=min(y0, y1),
            xmax=max(x0, x1),
            ymax=max(y0, y1)
        )

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """Returns (xmin, ymin, xmax, ymax) in CRS units."""
        return (self.xmin, self.ymin, self.xmax, self.ymax)

def _from_matrix(matrix: Sequence[float]) -> Affine:
    values = [float(v) for v in matrix]
    if len(values) == 16:
        # row-major 4x4; the z row and column do not take part in 2-D placement
        return Affine(values[0], values[1], values[3], values[4], values[5], values[7])
    if len(values) == 6:
        return Affine(*values)
    raise MalformedGeoKeysError(
        f"ModelTransformation needs 16 (4x4) or 6 values, got {len(values)}"
    )

def _from_scale_and_tie_point(
    pixel_scale: Sequence[float],
    tie_point: Sequence[float]
) -> Affine:
    if len(pixel_scale) < 2:
        raise MalformedGeoKeysError(f"ModelPixelScale needs at least 2 values, got {len(pixel_scale)}")
    if len(tie_point) < 6:
        raise MalformedGeoKeysError(f"ModelTiepoint needs at least 6 values, got {len(tie_point)}")
    if len(tie_point) > 6:
        log.debug(f"Using the first of {len(tie_point) // 6} tie points")

    scale_x, scale_y = float(pixel_scale[0]), float(pixel_scale[1])
    if scale_x == 0 or scale_y == 0:
        raise MalformedGeoKeysError(f"ModelPixelScale has a zero component: {tuple(pixel_scale)}")

    col, row = float(tie_point[0]), float(tie_point[1])
    x, y = float(tie_point[3]), float(tie_point[4])

    a = scale_x
    e = -scale_y
    c = x - col * a
    f = y - row * e
    return Affine(a, 0.0, c, 0.0, e, f)

def resolve_affine(
    width: int,
    height: int,
    pixel_scale: Optional[Sequence[float]] = None,
    tie_point: Optional[Sequence[float]] = None,
    transformation_matrix: Optional[Sequence[float]] = None
) -> GeoReference:
    """
    Build the GeoReference of a width x height grid from its geo tags.

    Args:
        width: Raster width in pixels.
        height: Raster height in pixels.
        pixel_scale: ModelPixelScale (dx, dy, dz).
        tie_point: ModelTiepoint (col, row, k, x, y, z), possibly repeated.
        transformation_matrix: ModelTransformation, 16 row-major values.

    Returns:
        GeoReference: Transform, pixel size and bounds.

    Raises:
        MissingAffineTagsError: If neither the matrix nor scale + tie point are present.
        MalformedGeoKeysError: If a tag has the wrong length or a zero scale.
    """
    if transformation_matrix is not None and len(transformation_matrix) > 0:
        transform = _from_matrix(transformation_matrix)
        log.debug("Affine taken from ModelTransformation")
    elif pixel_scale is not None and tie_point is not None:
        transform = _from_scale_and_tie_point(pixel_scale, tie_point)
        log.debug("Affine synthesized from ModelPixelScale and ModelTiepoint")
    else:
        missing = [
            name for name, tag in (("ModelPixelScale", pixel_scale), ("ModelTiepoint", tie_point))
            if tag is None
        ]
        raise MissingAffineTagsError(f"Cannot georeference raster, missing {', '.join(missing)}")

    return GeoReference.from_transform(transform, width, height)

def affine_from_origin(
    xmin: float,
    ymax: float,
    pixel_width: float,
    pixel_height: float
) -> Affine:
    """
    North-up transform whose top-left corner sits at (xmin, ymax).
    """
    if pixel_width <= 0 or pixel_height <= 0:
        raise ValueError(f"Pixel size must be positive, got ({pixel_width}, {pixel_height})")
    return from_origin(xmin, ymax, pixel_width, pixel_height)
