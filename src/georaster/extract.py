# src/georaster/extract.py

"""
This module reads windows out of band buffers.

It copies the clipped window from every band, optionally resampling it to a
requested output shape with nearest-neighbor box sampling, and applies the
palette lookup for indexed-color rasters. Nodata samples pass through
unchanged. The output is always a freshly allocated array that never aliases
the source buffers.
"""

import logging
from typing import Iterator, Optional, Sequence, Tuple

import numpy as np

from .exceptions import RasterValidationError, ShapeMismatchError
from .resources import check_output_memory
from .window import PixelWindow

log = logging.getLogger(__name__)

__all__ = [
    "nearest_indices",
    "resolve_output_shape",
    "extract",
    "iter_band_values"
]

def nearest_indices(native: int, target: int) -> np.ndarray:
    """
    Source offsets sampled by nearest-neighbor box resampling.

    Output cell i maps to floor(i * native / target), for up- and downsampling alike.
    """
    if target <= 0:
        raise ShapeMismatchError(f"Target dimension must be positive, got {target}")
    return (np.arange(target, dtype=np.int64) * native) // target

def resolve_output_shape(
    window: PixelWindow,
    target_shape: Optional[Tuple[int, int]] = None,
    resample: bool = True
) -> Tuple[int, int]:
    """
    Decide the (height, width) an extraction produces.

    The native window shape wins when no target is given, when resampling is
    switched off, or when the window is empty.

    Raises:
        ShapeMismatchError: If resampling is on and the target has a dimension <= 0.
    """
    native = window.shape
    if target_shape is None or not resample:
        return native

    target_height, target_width = (int(v) for v in target_shape)
    if target_height <= 0 or target_width <= 0:
        raise ShapeMismatchError(
            f"Target shape must be positive, got height={target_height} width={target_width}"
        )

    if window.is_empty:
        return native
    return (target_height, target_width)

def _palette_lut(palette: Sequence[Sequence[int]]) -> np.ndarray:
    lut = np.asarray(palette, dtype=np.uint8)
    if lut.ndim != 2 or lut.shape[1] != 4:
        raise RasterValidationError(f"Palette must be a sequence of RGBA tuples, got shape {lut.shape}")
    return lut

def extract(
    bands: np.ndarray,
    window: PixelWindow,
    target_shape: Optional[Tuple[int, int]] = None,
    resample: bool = True,
    palette: Optional[Sequence[Sequence[int]]] = None
) -> np.ndarray:
    """
    Extract a clipped window from every band.

    Args:
        bands: Band buffers in (Bands, Height, Width) format.
        window: Window already clipped to the band extent.
        target_shape: Optional (height, width) of the output grid.
        resample: If False, target_shape is ignored and the native window shape is returned.
        palette: RGBA entries for indexed-color rasters. When given each sample
            is replaced by its color and the output gains a trailing axis of 4.

    Returns:
        np.ndarray: (Bands, rows, cols) or (Bands, rows, cols, 4) for palette rasters.

    Raises:
        ShapeMismatchError: If resampling to a target with a dimension <= 0.
        RasterValidationError: If a sample indexes past the end of the palette.
    """
    out_height, out_width = resolve_output_shape(window, target_shape, resample)
    row_slice, col_slice = window.to_slices()

    lut = _palette_lut(palette) if palette is not None else None
    if lut is not None:
        out_shape = (bands.shape[0], out_height, out_width, 4)
        out_dtype = lut.dtype
    else:
        out_shape = (bands.shape[0], out_height, out_width)
        out_dtype = bands.dtype

    check_output_memory(out_shape, out_dtype)
    out = np.empty(out_shape, dtype=out_dtype)
    if out.size == 0:
        return out

    resampled = (out_height, out_width) != window.shape
    if resampled:
        row_idx = nearest_indices(window.height, out_height)
        col_idx = nearest_indices(window.width, out_width)
        log.debug(f"Resampling window {window.shape} -> {(out_height, out_width)} (nearest)")

    for i in range(bands.shape[0]):
        samples = bands[i, row_slice, col_slice]
        if resampled:
            samples = samples[np.ix_(row_idx, col_idx)]

        if lut is not None:
            indices = samples.astype(np.intp, copy=False)
            if indices.size and (indices.min() < 0 or indices.max() >= len(lut)):
                raise RasterValidationError(
                    f"Band {i + 1} holds palette indices outside [0, {len(lut)})"
                )
            out[i] = lut[indices]
        else:
            out[i] = samples

    return out

def iter_band_values(values: np.ndarray, band: int = 0) -> Iterator:
    """
    Iterate one band of an extraction in row-major order without copying it.

    Args:
        values: Output of extract() for a scalar raster.
        band: 0-based band index.

    Returns:
        Iterator over the band's samples.
    """
    if values.ndim != 3:
        raise RasterValidationError(
            f"Expected scalar values in (Bands, rows, cols) format, got {values.ndim}D"
        )
    if not 0 <= band < values.shape[0]:
        raise IndexError(f"Band index {band} out of range (0-{values.shape[0] - 1})")
    return values[band].flat
