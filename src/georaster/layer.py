# src/georaster/layer.py

"""
This module defines GeoRaster, the in-memory georeferenced raster.

A GeoRaster couples read-only band buffers with the metadata resolved from
the source file: CRS code, affine transform, bounds, nodata and palette.
It is immutable once built, so any number of windowed reads can run against
it at the same time.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union, TYPE_CHECKING

import numpy as np
from rasterio.crs import CRS
from rasterio.errors import CRSError
from rasterio.transform import Affine
from rasterio.windows import transform as compute_window_transform

from .config import ParseConfig, USER_DEFINED_CODE
from .exceptions import GeoRasterError, GeoReferenceError, RasterValidationError, ShapeMismatchError
from .extract import extract, iter_band_values
from .georef.affine import GeoReference, resolve_affine, affine_from_origin
from .georef.geokeys import CRSStatus, GeoKeyResolution, resolve_crs
from .stats import Stats, compute_stats, band_extrema
from .window import GeoWindow, PixelWindow, from_insets, map_window

if TYPE_CHECKING:
    from .io import DecodedTiff

log = logging.getLogger(__name__)

__all__ = [
    "ValueKind",
    "GeoRaster",
    "palette_from_color_map",
    "parse_nodata"
]

RGBA = Tuple[int, int, int, int]

class ValueKind(Enum):
    """
    What get_values yields per pixel, fixed when the raster is built.

    Options:
        SCALAR: The raw sample.
        PALETTE_COLOR: The RGBA palette entry the sample indexes.
    """
    SCALAR = "scalar"
    PALETTE_COLOR = "palette_color"

def palette_from_color_map(color_map: Sequence[int]) -> List[RGBA]:
    """
    Convert a TIFF ColorMap into RGBA entries.

    The ColorMap stores all reds, then all greens, then all blues as 16-bit
    values; each channel is reduced to 8 bits and alpha is opaque.
    """
    cmap = np.asarray(color_map, dtype=np.uint32)
    if cmap.size == 0 or cmap.size % 3 != 0:
        raise RasterValidationError(f"ColorMap length must be a positive multiple of 3, got {cmap.size}")
    red, green, blue = (cmap.reshape(3, -1) >> 8).tolist()
    return [(r, g, b, 255) for r, g, b in zip(red, green, blue)]

def parse_nodata(value: Union[str, bytes, float, int, None]) -> Optional[float]:
    """
    Parse a GDAL_NODATA value (an ascii tag) into a number, None when absent or unreadable.
    """
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    if isinstance(value, str):
        value = value.strip().rstrip("\x00")
        if not value:
            return None
    try:
        return float(value)
    except (TypeError, ValueError):
        log.warning(f"Ignoring unreadable nodata value: {value!r}")
        return None

class GeoRaster:
    """
    Georeferenced raster held in memory.

    Attributes:
        bands (np.ndarray): Read-only pixel array in (Bands, Height, Width) format.
        transform (Affine | None): Pixel-to-ground transform, None when ungeoreferenced.
        projection (int | None): CRS code, None when unknown.
        no_data_value (float | None): Sentinel for missing observations.
        palette (List[RGBA] | None): Color table of indexed-color rasters.
    """

    def __init__(
        self,
        bands: Union[np.ndarray, Sequence[np.ndarray]],
        georef: Optional[GeoReference] = None,
        crs: Optional[GeoKeyResolution] = None,
        no_data_value: Optional[float] = None,
        palette: Optional[Sequence[Sequence[int]]] = None,
        bits_per_sample: Optional[int] = None,
        sample_format: Optional[int] = None,
        config: Optional[ParseConfig] = None,
        copy: bool = True
    ):
        """
        Initialize a GeoRaster.

        Args:
            bands: 2D (Height, Width) or 3D (Bands, Height, Width) array, or a
                sequence of equally shaped 2D arrays.
            georef: Resolved georeferencing, None for ungeoreferenced rasters.
            crs: Resolved CRS, None when the source carries no geo-keys.
            no_data_value: Nodata sentinel.
            palette: RGBA entries for indexed-color rasters.
            bits_per_sample: Sample size in bits, taken from the dtype when None.
            sample_format: TIFF SampleFormat (1 unsigned, 2 signed, 3 float).
            config: ParseConfig; calc_stats fills mins, maxs and ranges.
            copy: Copy the band buffers. Pass False only for buffers nobody else holds.

        Raises:
            RasterValidationError: If the buffers are not 2D/3D or differ in shape.
        """
        config = config or ParseConfig()
        data = self._validate_bands(bands, copy)
        data.setflags(write=False)
        self._data = data

        if georef is not None and (georef.pixel_width <= 0 or georef.pixel_height <= 0):
            raise RasterValidationError(f"Pixel size must be positive, got {georef}")

        self._georef = georef
        self._crs = crs or GeoKeyResolution(code=None, is_geographic=False, status=CRSStatus.ABSENT)
        self._no_data_value = no_data_value
        self._palette = [tuple(int(c) for c in entry) for entry in palette] if palette is not None else None
        self._bits_per_sample = bits_per_sample or data.dtype.itemsize * 8
        self._sample_format = sample_format
        self._value_kind = ValueKind.PALETTE_COLOR if self._palette is not None else ValueKind.SCALAR

        self._mins = self._maxs = self._ranges = None
        if config.calc_stats:
            self._mins, self._maxs = band_extrema(data, no_data_value)
            self._ranges = [
                None if lo is None else hi - lo
                for lo, hi in zip(self._mins, self._maxs)
            ]

        config.trace(1, f"Built {self!r}", log)

    @staticmethod
    def _validate_bands(bands: Union[np.ndarray, Sequence[np.ndarray]], copy: bool) -> np.ndarray:
        if isinstance(bands, np.ndarray):
            data = bands.copy() if copy else bands
        else:
            if len(bands) == 0:
                raise RasterValidationError("A raster needs at least one band")
            shapes = {np.shape(band) for band in bands}
            if len(shapes) != 1:
                raise RasterValidationError(f"Band buffers differ in shape: {sorted(shapes)}")
            data = np.stack([np.asarray(band) for band in bands])

        # Enforce 3D structure (Bands, Height, Width)
        if data.ndim == 2:
            data = data[np.newaxis, :, :]
        if data.ndim != 3:
            raise RasterValidationError(f"Bands must be 2D or 3D, got shape {data.shape}")
        if 0 in data.shape:
            raise RasterValidationError(f"Bands must not be empty, got shape {data.shape}")
        return data

    @classmethod
    def from_decoded(cls, decoded: 'DecodedTiff', config: Optional[ParseConfig] = None) -> 'GeoRaster':
        """
        Build a GeoRaster from the output of the TIFF decoder.

        Georeferencing failures degrade to an ungeoreferenced raster: the
        pixel data stays available and the affine fields are None. The band
        buffer is copied unless the decoder marks it as owned.

        Args:
            decoded: DecodedTiff produced by georaster.io.decode or an equivalent decoder.
            config: ParseConfig threaded through construction.

        Returns:
            GeoRaster: A new, read-only raster.
        """
        config = config or ParseConfig()
        config.trace(2, f"Geo-keys: {decoded.geokeys}", log)

        resolution = resolve_crs(decoded.geokeys)
        if resolution.code is None:
            log.debug(f"CRS unknown ({resolution.status.value})")

        try:
            georef = resolve_affine(
                decoded.width,
                decoded.height,
                pixel_scale=decoded.pixel_scale,
                tie_point=decoded.tie_point,
                transformation_matrix=decoded.transformation_matrix
            )
        except GeoReferenceError as e:
            log.warning(f"Raster is not georeferenced: {e}")
            georef = None

        palette = palette_from_color_map(decoded.color_map) if decoded.color_map is not None else None

        raster = cls(
            bands=decoded.rasters,
            georef=georef,
            crs=resolution,
            no_data_value=parse_nodata(decoded.no_data),
            palette=palette,
            bits_per_sample=decoded.bits_per_sample,
            sample_format=decoded.sample_format,
            config=config,
            copy=not decoded.owned
        )

        if raster.width != decoded.width or raster.height != decoded.height:
            raise RasterValidationError(
                f"Decoded bands are {raster.width}x{raster.height}, "
                f"metadata says {decoded.width}x{decoded.height}"
            )
        return raster

    @classmethod
    def from_arrays(
        cls,
        values: Union[np.ndarray, Sequence[np.ndarray]],
        no_data_value: Optional[float] = None,
        projection: Optional[int] = None,
        xmin: Optional[float] = None,
        ymax: Optional[float] = None,
        pixel_width: Optional[float] = None,
        pixel_height: Optional[float] = None,
        palette: Optional[Sequence[Sequence[int]]] = None,
        config: Optional[ParseConfig] = None
    ) -> 'GeoRaster':
        """
        Build a north-up GeoRaster from in-memory arrays and explicit metadata.

        The raster is georeferenced only when xmin, ymax, pixel_width and
        pixel_height are all given.
        """
        georef = None
        placement = (xmin, ymax, pixel_width, pixel_height)
        if all(v is not None for v in placement):
            data = np.asarray(values) if isinstance(values, np.ndarray) else np.stack(values)
            height, width = data.shape[-2:]
            georef = GeoReference.from_transform(
                affine_from_origin(xmin, ymax, pixel_width, pixel_height), width, height
            )
        elif any(v is not None for v in placement):
            log.warning("Partial placement metadata ignored, xmin, ymax, pixel_width and pixel_height are all needed")

        if projection is None:
            resolution = None
        elif projection == USER_DEFINED_CODE:
            resolution = GeoKeyResolution(code=projection, is_geographic=False, status=CRSStatus.USER_DEFINED)
        else:
            resolution = GeoKeyResolution(code=int(projection), is_geographic=False, status=CRSStatus.REGISTERED)

        return cls(
            bands=values,
            georef=georef,
            crs=resolution,
            no_data_value=no_data_value,
            palette=palette,
            config=config
        )

    # Dynamic metadata properties

    @property
    def bands(self) -> np.ndarray:
        """Read-only band buffers in (Bands, Height, Width) format."""
        return self._data

    @property
    def number_of_rasters(self) -> int:
        return self._data.shape[0]

    @property
    def height(self) -> int:
        return self._data.shape[1]

    @property
    def width(self) -> int:
        return self._data.shape[2]

    @property
    def shape(self) -> Tuple[int, int, int]:
        """Returns (Bands, Height, Width)."""
        return self._data.shape

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    @property
    def bits_per_sample(self) -> int:
        return self._bits_per_sample

    @property
    def sample_format(self) -> Optional[int]:
        return self._sample_format

    @property
    def pixel_depth(self) -> int:
        """Bytes per sample."""
        return max(1, self._bits_per_sample // 8)

    @property
    def georef(self) -> Optional[GeoReference]:
        return self._georef

    @property
    def transform(self) -> Optional[Affine]:
        return self._georef.transform if self._georef else None

    @property
    def pixel_width(self) -> Optional[float]:
        return self._georef.pixel_width if self._georef else None

    @property
    def pixel_height(self) -> Optional[float]:
        return self._georef.pixel_height if self._georef else None

    @property
    def xmin(self) -> Optional[float]:
        return self._georef.xmin if self._georef else None

    @property
    def ymin(self) -> Optional[float]:
        return self._georef.ymin if self._georef else None

    @property
    def xmax(self) -> Optional[float]:
        return self._georef.xmax if self._georef else None

    @property
    def ymax(self) -> Optional[float]:
        return self._georef.ymax if self._georef else None

    @property
    def bounds(self) -> Optional[Tuple[float, float, float, float]]:
        """Returns (xmin, ymin, xmax, ymax) in CRS units."""
        return self._georef.bounds if self._georef else None

    @property
    def projection(self) -> Optional[int]:
        return self._crs.code

    @property
    def crs_status(self) -> CRSStatus:
        return self._crs.status

    @property
    def crs_resolution(self) -> GeoKeyResolution:
        return self._crs

    @property
    def crs(self) -> Optional[CRS]:
        """rasterio CRS for the resolved code, None when it cannot be built."""
        try:
            return self._crs.to_crs()
        except CRSError as e:
            log.warning(f"CRS {self.projection} cannot be expressed as a rasterio CRS: {e}")
            return None

    @property
    def no_data_value(self) -> Optional[float]:
        return self._no_data_value

    @property
    def palette(self) -> Optional[List[RGBA]]:
        return list(self._palette) if self._palette is not None else None

    @property
    def value_kind(self) -> ValueKind:
        return self._value_kind

    @property
    def mins(self) -> Optional[List[Optional[float]]]:
        return self._mins

    @property
    def maxs(self) -> Optional[List[Optional[float]]]:
        return self._maxs

    @property
    def ranges(self) -> Optional[List[Optional[float]]]:
        return self._ranges

    # Windowed access

    def resolve_window(
        self,
        window: Union[PixelWindow, GeoWindow, None] = None,
        left: Optional[int] = None,
        top: Optional[int] = None,
        right: Optional[int] = None,
        bottom: Optional[int] = None
    ) -> PixelWindow:
        """
        Clip a window request to this raster.

        Either pass a PixelWindow / GeoWindow, or edge insets where right and
        bottom count pixels in from the right and bottom edges.
        """
        insets = (left, top, right, bottom)
        if any(v is not None for v in insets):
            if window is not None:
                raise ValueError("Pass either a window or left/top/right/bottom insets, not both")
            window = from_insets(self.width, self.height, *insets)
        return map_window(window, self.width, self.height, self.transform)

    def get_values(
        self,
        window: Union[PixelWindow, GeoWindow, None] = None,
        left: Optional[int] = None,
        top: Optional[int] = None,
        right: Optional[int] = None,
        bottom: Optional[int] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
        resample: bool = True
    ) -> np.ndarray:
        """
        Read a window of every band.

        Args:
            window: PixelWindow or GeoWindow; None reads the full extent.
            left, top, right, bottom: Edge insets, alternative to window.
            width, height: Output grid size. Both or neither.
            resample: If False, width and height are ignored and the native window is returned.

        Returns:
            np.ndarray: New array of (Bands, rows, cols), with a trailing RGBA
                axis for palette rasters.

        Raises:
            ShapeMismatchError: If only one of width/height is given, or one is <= 0 while resampling.
        """
        if (width is None) != (height is None):
            raise ShapeMismatchError(f"Pass both width and height, got width={width} height={height}")
        target = (height, width) if width is not None else None

        pixel_window = self.resolve_window(window, left, top, right, bottom)
        palette = self._palette if self._value_kind is ValueKind.PALETTE_COLOR else None

        return extract(self._data, pixel_window, target_shape=target, resample=resample, palette=palette)

    def stats(
        self,
        band: int = 0,
        window: Union[PixelWindow, GeoWindow, None] = None,
        calc_histogram: bool = False,
        **options: Any
    ) -> Stats:
        """
        Summary statistics of one band over a window, nodata excluded.

        Args:
            band: 0-based band index.
            window: Window to summarize, None for the full extent.
            calc_histogram: Also compute the value histogram.
            **options: get_values options (insets, width, height, resample).

        Raises:
            GeoRasterError: For palette rasters, whose values are colors rather than scalars.
        """
        if self._value_kind is ValueKind.PALETTE_COLOR:
            raise GeoRasterError("Statistics apply to scalar bands only, this raster is palette-indexed")

        values = self.get_values(window, **options)
        return compute_stats(
            iter_band_values(values, band),
            calc_histogram=calc_histogram,
            no_data=self._no_data_value
        )

    def window_transform(self, window: PixelWindow) -> Affine:
        """Transform whose origin is the top-left corner of window."""
        if self.transform is None:
            raise GeoReferenceError("Raster has no transform")
        return compute_window_transform(window.to_rasterio(), self.transform)

    def crop(self, window: Union[PixelWindow, GeoWindow]) -> 'GeoRaster':
        """
        New GeoRaster holding only the clipped window, with its origin shifted accordingly.
        """
        pixel_window = self.resolve_window(window)
        if pixel_window.is_empty:
            raise GeoRasterError(f"Crop window {window} does not intersect the raster")

        data = extract(self._data, pixel_window, resample=False)
        georef = None
        if self._georef is not None:
            georef = GeoReference.from_transform(
                self.window_transform(pixel_window), pixel_window.width, pixel_window.height
            )

        return GeoRaster(
            bands=data,
            georef=georef,
            crs=self._crs,
            no_data_value=self._no_data_value,
            palette=self._palette,
            bits_per_sample=self._bits_per_sample,
            sample_format=self._sample_format,
            copy=False
        )

    def to_dict(self) -> Dict[str, Any]:
        """Metadata summary (no pixel data)."""
        return {
            "number_of_rasters": self.number_of_rasters,
            "width": self.width,
            "height": self.height,
            "pixel_depth": self.pixel_depth,
            "dtype": str(self.dtype),
            "pixel_width": self.pixel_width,
            "pixel_height": self.pixel_height,
            "xmin": self.xmin,
            "ymin": self.ymin,
            "xmax": self.xmax,
            "ymax": self.ymax,
            "projection": self.projection,
            "crs_status": self.crs_status.value,
            "no_data_value": self.no_data_value,
            "palette_size": len(self._palette) if self._palette is not None else None,
            "mins": self.mins,
            "maxs": self.maxs,
            "ranges": self.ranges,
        }

    def __repr__(self) -> str:
        return (f"<GeoRaster shape={self.shape} dtype={self.dtype} "
                f"projection={self.projection} bounds={self.bounds}>")
