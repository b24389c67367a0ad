# src/georaster/resources.py

"""
This module checks that an extraction output fits in memory before it is allocated.

Large resampling targets (or a full-extent read of a big raster) are sized
against the memory psutil reports as available.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import psutil

log = logging.getLogger(__name__)

__all__ = [
    "MemoryEstimate",
    "estimate_output_memory",
    "check_output_memory"
]

MIN_FREE_GB = 0.5

@dataclass(frozen=True)
class MemoryEstimate:
    """Estimation of memory requirements for an output array.

    Args:
        required_bytes: Bytes the output array needs.
        available_system_bytes: Currently available system memory in bytes.
        is_safe: True when the output fits while leaving MIN_FREE_GB free.
        reason: Human-readable summary (e.g. "Req: 0.40GB, Avail: 7.92GB").
    """
    required_bytes: int
    available_system_bytes: int
    is_safe: bool
    reason: str

def estimate_output_memory(
    shape: Sequence[int],
    dtype: np.dtype,
    min_free_gb: float = MIN_FREE_GB
) -> MemoryEstimate:
    """
    Size an output array of the given shape and dtype against available RAM.

    Args:
        shape: Output array shape.
        dtype: Output element dtype.
        min_free_gb: Memory to keep free after allocation.

    Returns:
        MemoryEstimate: Required bytes, available bytes and the verdict.
    """
    required = int(np.prod(shape, dtype=np.int64)) * np.dtype(dtype).itemsize

    mem = psutil.virtual_memory()
    min_free_bytes = int(min_free_gb * (1024**3))
    is_safe = (required + min_free_bytes) <= mem.available

    reason = f"Req: {required/1e9:.2f}GB, Avail: {mem.available/1e9:.2f}GB"
    return MemoryEstimate(required, mem.available, is_safe, reason)

def check_output_memory(shape: Sequence[int], dtype: np.dtype) -> MemoryEstimate:
    """
    Raise MemoryError when an output of this shape would not fit.
    """
    estimate = estimate_output_memory(shape, dtype)
    if not estimate.is_safe:
        log.error(f"Output {tuple(shape)} {np.dtype(dtype)} does not fit in memory. {estimate.reason}")
        raise MemoryError(
            f"Extraction output {tuple(shape)} is too large. {estimate.reason}\n"
            "Tip: request a smaller window or a smaller target shape."
        )
    log.debug(f"Output memory check passed. {estimate.reason}")
    return estimate
