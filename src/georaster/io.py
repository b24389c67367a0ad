# src/georaster/io.py

"""
This module handles reading GeoTIFF sources into GeoRaster objects.

tifffile plays the decoder: it parses the IFD, decompresses the pixels and
hands over the raw geo tags, which are then resolved by georaster.georef.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np
import tifffile

from .config import ParseConfig
from .exceptions import MalformedGeoKeysError, RasterIOError
from .georef.geokeys import parse_geokey_directory
from .layer import GeoRaster

log = logging.getLogger(__name__)

__all__ = [
    "DecodedTiff",
    "decode",
    "load",
    "load_async"
]

MODEL_PIXEL_SCALE_TAG = 33550
MODEL_TIEPOINT_TAG = 33922
MODEL_TRANSFORMATION_TAG = 34264
GEO_KEY_DIRECTORY_TAG = 34735
GEO_DOUBLE_PARAMS_TAG = 34736
GEO_ASCII_PARAMS_TAG = 34737
GDAL_NODATA_TAG = 42113
COLOR_MAP_TAG = 320

Source = Union[str, Path, bytes]

@dataclass
class DecodedTiff:
    """
    What the TIFF decoder hands over for one image.

    Args:
        rasters: Band buffers in (Bands, Height, Width) format.
        width: Image width in pixels.
        height: Image height in pixels.
        sample_format: TIFF SampleFormat (1 unsigned, 2 signed, 3 float).
        bits_per_sample: Bits per sample.
        geokeys: Geo-key mapping keyed by id (or registry name).
        pixel_scale: ModelPixelScale (dx, dy, dz).
        tie_point: ModelTiepoint values.
        transformation_matrix: ModelTransformation, 16 values.
        no_data: GDAL_NODATA as stored (ascii) or already numeric.
        color_map: TIFF ColorMap for palette images.
        owned: True when nothing outside this DecodedTiff references the
            rasters buffer, so a GeoRaster may adopt it without copying.
    """
    rasters: np.ndarray
    width: int
    height: int
    sample_format: Optional[int] = None
    bits_per_sample: Optional[int] = None
    geokeys: Dict[Any, Any] = field(default_factory=dict)
    pixel_scale: Optional[Sequence[float]] = None
    tie_point: Optional[Sequence[float]] = None
    transformation_matrix: Optional[Sequence[float]] = None
    no_data: Optional[Union[str, float]] = None
    color_map: Optional[Sequence[int]] = None
    owned: bool = False

def _to_band_first(data: np.ndarray, axes: str) -> np.ndarray:
    """Normalize a decoded page to (Bands, Height, Width)."""
    if data.ndim == 2:
        return data[np.newaxis, :, :]
    if data.ndim == 3 and axes.endswith("S"):
        # pixel-interleaved samples
        return np.moveaxis(data, -1, 0)
    if data.ndim == 3 and axes.startswith("S"):
        return data
    raise RasterIOError(f"Unsupported page layout {axes} with shape {data.shape}")

def _tag_value(page: tifffile.TiffPage, code: int) -> Any:
    tag = page.tags.get(code)
    return tag.value if tag is not None else None

def _sequence(value: Any) -> Optional[Sequence]:
    if value is None:
        return None
    return tuple(np.asarray(value).ravel().tolist())

def _read_page(tif: tifffile.TiffFile) -> DecodedTiff:
    page = tif.pages[0]
    data = page.asarray()
    rasters = _to_band_first(data, page.axes)

    geokeys: Dict[int, Any] = {}
    directory = _tag_value(page, GEO_KEY_DIRECTORY_TAG)
    if directory is not None:
        try:
            geokeys = parse_geokey_directory(
                _sequence(directory),
                double_params=_sequence(_tag_value(page, GEO_DOUBLE_PARAMS_TAG)),
                ascii_params=_tag_value(page, GEO_ASCII_PARAMS_TAG)
            )
        except MalformedGeoKeysError as e:
            log.warning(f"Ignoring malformed geo-key directory: {e}")

    sample_format = page.sampleformat
    return DecodedTiff(
        rasters=rasters,
        width=int(page.imagewidth),
        height=int(page.imagelength),
        sample_format=int(sample_format) if sample_format is not None else None,
        bits_per_sample=int(page.bitspersample),
        geokeys=geokeys,
        pixel_scale=_sequence(_tag_value(page, MODEL_PIXEL_SCALE_TAG)),
        tie_point=_sequence(_tag_value(page, MODEL_TIEPOINT_TAG)),
        transformation_matrix=_sequence(_tag_value(page, MODEL_TRANSFORMATION_TAG)),
        no_data=_tag_value(page, GDAL_NODATA_TAG),
        color_map=_sequence(_tag_value(page, COLOR_MAP_TAG)),
        owned=True
    )

def decode(source: Source) -> DecodedTiff:
    """
    Decode the first image of a GeoTIFF.

    Args:
        source: Path to a file, or the file content as bytes.

    Returns:
        DecodedTiff: Pixels and raw geo tags.

    Raises:
        FileNotFoundError: If a path does not exist.
        RasterIOError: If the content is not a readable TIFF.
    """
    if isinstance(source, (bytes, bytearray)):
        handle = BytesIO(source)
        name = f"<{len(source)} bytes>"
    else:
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Raster file not found: {path}")
        handle = path
        name = path.name

    log.debug(f"Decoding GeoTIFF: {name}")

    try:
        with tifffile.TiffFile(handle) as tif:
            if not tif.pages:
                raise RasterIOError(f"{name} holds no image")
            return _read_page(tif)
    except tifffile.TiffFileError as e:
        raise RasterIOError(f"Failed to decode {name}: {e}") from e

def load(source: Source, config: Optional[ParseConfig] = None) -> GeoRaster:
    """
    Read a GeoTIFF into a GeoRaster.

    Args:
        source: Path to a file, or the file content as bytes.
        config: ParseConfig for construction (calc_stats, debug_level).

    Returns:
        GeoRaster: In-memory, read-only raster.
    """
    config = config or ParseConfig()
    decoded = decode(source)
    raster = GeoRaster.from_decoded(decoded, config=config)
    log.info(f"Loaded raster {raster.shape} (projection={raster.projection})")
    return raster

async def load_async(source: Source, config: Optional[ParseConfig] = None) -> GeoRaster:
    """
    load() run in a worker thread, for callers living on an event loop.
    """
    return await asyncio.to_thread(load, source, config)
