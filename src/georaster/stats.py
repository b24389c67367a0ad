# src/georaster/stats.py

"""
This module computes summary statistics over extracted raster values.

compute_stats accepts any iterable. Arrays and ndarray.flat iterators are
summarized in place with numpy; other iterables are read in chunks into an
array first. Modes, median and histogram all come from one np.unique pass.
"""

import logging
import math
from dataclasses import dataclass, field
from itertools import islice
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np

log = logging.getLogger(__name__)

__all__ = [
    "Stats",
    "compute_stats",
    "band_extrema"
]

# samples pulled per chunk from a plain iterable
CHUNK_SIZE = 1 << 20

@dataclass(frozen=True)
class Stats:
    """
    Summary statistics of a sample stream.

    Args:
        min: Smallest value.
        max: Largest value.
        mean: Arithmetic mean.
        median: Middle value; the mean of the two middle values for even counts.
        mode: Mean of the most frequent values.
        modes: Most frequent values in ascending order.
        sum: Sum of values.
        count: Number of values that took part.
        histogram: value -> occurrences, only when requested.
    """
    min: Optional[float]
    max: Optional[float]
    mean: Optional[float]
    median: Optional[float]
    mode: Optional[float]
    modes: List[float] = field(default_factory=list)
    sum: Optional[float] = None
    count: int = 0
    histogram: Optional[Dict[float, int]] = None

    def as_dict(self) -> Dict[str, Any]:
        """Report the statistics as a plain dict, histogram included only when computed."""
        out = {
            "median": self.median,
            "min": self.min,
            "max": self.max,
            "sum": self.sum,
            "mean": self.mean,
            "modes": list(self.modes),
            "mode": self.mode,
        }
        if self.histogram is not None:
            out["histogram"] = dict(self.histogram)
        return out

def _as_array(values: Iterable) -> np.ndarray:
    """Flatten values into a 1D array, without copying arrays and fresh flat iterators."""
    if isinstance(values, np.ndarray):
        return values.ravel()
    if isinstance(values, np.flatiter) and values.index == 0:
        return values.base.ravel()

    iterator = iter(values)
    chunks = []
    while True:
        chunk = np.asarray(list(islice(iterator, CHUNK_SIZE)))
        if chunk.size == 0:
            break
        chunks.append(chunk.ravel())
    if not chunks:
        return np.empty(0)
    return chunks[0] if len(chunks) == 1 else np.concatenate(chunks)

def _valid_mask(
    data: np.ndarray,
    no_data: Optional[float],
    filter: Optional[Callable[[Any], bool]]
) -> np.ndarray:
    valid = np.ones(data.shape, dtype=bool)
    if np.issubdtype(data.dtype, np.floating):
        valid &= ~np.isnan(data)
    if no_data is not None and not math.isnan(float(no_data)):
        valid &= data != no_data
    if filter is not None:
        # predicates see plain Python numbers
        valid &= np.fromiter((bool(filter(v)) for v in data.tolist()), dtype=bool, count=data.size)
    return valid

def _median(uniques: np.ndarray, counts: np.ndarray, n: int) -> Any:
    cumulative = np.cumsum(counts)
    low = uniques[np.searchsorted(cumulative, (n - 1) // 2, side="right")].item()
    high = uniques[np.searchsorted(cumulative, n // 2, side="right")].item()
    if low == high:
        return low
    return (low + high) / 2

def _modes(uniques: np.ndarray, counts: np.ndarray) -> Tuple[List[Any], Any]:
    modes = uniques[counts == counts.max()].tolist()
    mode = modes[0] if len(modes) == 1 else sum(modes) / len(modes)
    return modes, mode

def compute_stats(
    values: Iterable,
    calc_histogram: bool = False,
    no_data: Optional[float] = None,
    filter: Optional[Callable[[Any], bool]] = None
) -> Stats:
    """
    Compute min, max, mean, median, mode(s) and sum of a sample stream.

    Args:
        values: An array, an ndarray.flat iterator or any iterable of scalars.
        calc_histogram: Also return a value -> count table.
        no_data: Samples equal to this value are skipped.
        filter: Optional predicate; samples for which it returns False are skipped.

    Returns:
        Stats: All fields None (count 0) when no sample remains.
    """
    data = _as_array(values)
    data = data[_valid_mask(data, no_data, filter)]
    n = int(data.size)

    if n == 0:
        log.debug("No samples left after filtering, statistics are empty")
        return Stats(min=None, max=None, mean=None, median=None, mode=None,
                     histogram={} if calc_histogram else None)

    # sorted distinct values with their occurrences
    uniques, counts = np.unique(data, return_counts=True)
    modes, mode = _modes(uniques, counts)
    total = data.sum().item()
    histogram = dict(zip(uniques.tolist(), counts.tolist())) if calc_histogram else None

    return Stats(
        min=uniques[0].item(),
        max=uniques[-1].item(),
        mean=total / n,
        median=_median(uniques, counts, n),
        mode=mode,
        modes=modes,
        sum=total,
        count=n,
        histogram=histogram
    )

def band_extrema(
    bands: np.ndarray,
    no_data: Optional[float] = None
) -> Tuple[List[Optional[float]], List[Optional[float]]]:
    """
    Per-band minimum and maximum, ignoring nodata and NaN samples.

    Args:
        bands: Band buffers in (Bands, Height, Width) format.
        no_data: Sentinel value to ignore.

    Returns:
        Tuple[List, List]: (mins, maxs); a band with no valid sample reports None.
    """
    mins: List[Optional[float]] = []
    maxs: List[Optional[float]] = []

    for band in bands:
        valid = np.ones(band.shape, dtype=bool)
        if np.issubdtype(band.dtype, np.floating):
            valid &= ~np.isnan(band)
        if no_data is not None and not math.isnan(no_data):
            valid &= band != no_data

        if not valid.any():
            mins.append(None)
            maxs.append(None)
            continue

        samples = band[valid]
        mins.append(samples.min().item())
        maxs.append(samples.max().item())

    return mins, maxs
