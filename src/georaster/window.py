# src/georaster/window.py

"""
This module maps caller windows onto the pixel grid of a raster.

Windows come in pixel space (PixelWindow, right/bottom exclusive) or ground
space (GeoWindow). Both are reduced to integer pixel bounds clipped to the
raster extent; a request that misses the raster becomes an empty window
rather than an error.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from rasterio.transform import Affine
from rasterio.windows import Window

from .exceptions import MissingAffineTagsError

log = logging.getLogger(__name__)

__all__ = [
    "PixelWindow",
    "GeoWindow",
    "from_insets",
    "map_window"
]

@dataclass(frozen=True)
class PixelWindow:
    """
    Pixel bounds [left, right) x [top, bottom).
    """
    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self) -> int:
        return max(0, self.right - self.left)

    @property
    def height(self) -> int:
        return max(0, self.bottom - self.top)

    @property
    def shape(self) -> Tuple[int, int]:
        """Returns (height, width)."""
        return (self.height, self.width)

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def to_slices(self) -> Tuple[slice, slice]:
        """Row and column slices for numpy indexing."""
        return slice(self.top, self.bottom), slice(self.left, self.right)

    def to_rasterio(self) -> Window:
        # rasterio windows use (col_off, row_off, width, height)
        return Window(col_off=self.left, row_off=self.top, width=self.width, height=self.height)

@dataclass(frozen=True)
class GeoWindow:
    """
    Ground-space bounds in the raster's CRS units.
    """
    xmin: float
    ymin: float
    xmax: float
    ymax: float

    def __post_init__(self):
        if self.xmin > self.xmax or self.ymin > self.ymax:
            raise ValueError(
                f"GeoWindow bounds are inverted: ({self.xmin}, {self.ymin}, {self.xmax}, {self.ymax})"
            )

WindowSpec = Union[PixelWindow, GeoWindow, None]

# fraction of a pixel treated as round-off when snapping ground bounds to the grid
PIXEL_PRECISION = 1e-6

def from_insets(
    width: int,
    height: int,
    left: Optional[int] = None,
    top: Optional[int] = None,
    right: Optional[int] = None,
    bottom: Optional[int] = None
) -> PixelWindow:
    """
    Build a PixelWindow from edge insets.

    left and top are offsets from the top-left corner, right and bottom count
    pixels in from the right and bottom edges. Missing insets default to 0.
    """
    return PixelWindow(
        left=left or 0,
        top=top or 0,
        right=width - (right or 0),
        bottom=height - (bottom or 0)
    )

def _clip(value: int, upper: int) -> int:
    return min(max(value, 0), upper)

def _geo_to_pixel(window: GeoWindow, transform: Affine) -> PixelWindow:
    inverse = ~transform
    corners = [
        inverse * (x, y)
        for x in (window.xmin, window.xmax)
        for y in (window.ymin, window.ymax)
    ]
    cols = [c for c, _ in corners]
    rows = [r for _, r in corners]

    # enclosing grid: floor the near edges, ceil the far ones
    return PixelWindow(
        left=math.floor(min(cols) + PIXEL_PRECISION),
        top=math.floor(min(rows) + PIXEL_PRECISION),
        right=math.ceil(max(cols) - PIXEL_PRECISION),
        bottom=math.ceil(max(rows) - PIXEL_PRECISION)
    )

def map_window(
    window: WindowSpec,
    width: int,
    height: int,
    transform: Optional[Affine] = None
) -> PixelWindow:
    """
    Convert a window request into pixel bounds clipped to the raster.

    Args:
        window: PixelWindow, GeoWindow or None (full extent).
        width: Raster width in pixels.
        height: Raster height in pixels.
        transform: Raster affine, required for GeoWindow requests.

    Returns:
        PixelWindow: Satisfies 0 <= left <= right <= width and 0 <= top <= bottom <= height.
            left == right or top == bottom when the request misses the raster.

    Raises:
        MissingAffineTagsError: If a GeoWindow is given for an ungeoreferenced raster.
    """
    if window is None:
        return PixelWindow(0, 0, width, height)

    if isinstance(window, GeoWindow):
        if transform is None:
            raise MissingAffineTagsError("Geographic window requested on a raster without a transform")
        window = _geo_to_pixel(window, transform)
    elif not isinstance(window, PixelWindow):
        raise TypeError(f"Expected PixelWindow, GeoWindow or None, got {type(window).__name__}")

    left = _clip(int(window.left), width)
    right = _clip(int(window.right), width)
    top = _clip(int(window.top), height)
    bottom = _clip(int(window.bottom), height)

    # inverted or fully outside requests collapse onto a single edge
    right = max(right, left)
    bottom = max(bottom, top)

    clipped = PixelWindow(left, top, right, bottom)
    if clipped.is_empty:
        log.debug(f"Window {window} does not intersect the {width}x{height} raster")
    return clipped
