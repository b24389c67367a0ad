# tests/helpers.py

import numpy as np

def nearest_reference(band: np.ndarray, out_height: int, out_width: int) -> np.ndarray:
    """Nearest-neighbor sampling written out pixel by pixel: src = floor(dst * native / target)."""
    native_height, native_width = band.shape
    out = np.empty((out_height, out_width), dtype=band.dtype)
    for r in range(out_height):
        for c in range(out_width):
            out[r, c] = band[(r * native_height) // out_height, (c * native_width) // out_width]
    return out

def assert_bounds_match(raster, expected, tolerance: float = 1e-9):
    """Check (xmin, ymin, xmax, ymax) against expected values."""
    for name, got, want in zip(("xmin", "ymin", "xmax", "ymax"), raster.bounds, expected):
        assert abs(got - want) <= tolerance, f"{name}: {got} != {want}"

def assert_fresh_copy(values: np.ndarray, raster):
    """The extraction must not share memory with the raster's buffers."""
    assert not np.shares_memory(values, raster.bands), "Extraction aliases the band buffers"
    assert values.flags.writeable
