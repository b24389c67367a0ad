# src/georaster/config.py

"""
This module holds the configuration values threaded through raster construction.

There is no process-wide state: every loader call receives its own ParseConfig
(or the defaults when none is given).
"""

import logging

log = logging.getLogger(__name__)

__all__ = [
    "ParseConfig",
    "USER_DEFINED_CODE"
]

# GeoTIFF registry value for "user-defined" (KvUserDefined)
USER_DEFINED_CODE = 32767

class ParseConfig:
    """Configuration object for raster construction.

    Args:
        calc_stats: Compute per-band mins, maxs and ranges at construction. Default=False.
        debug_level: 0 keeps construction quiet, 1 logs resolved metadata,
            2 also logs the raw geo-key mapping. Default=0.
    """
    def __init__(
        self,
        calc_stats: bool = False,
        debug_level: int = 0
    ):
        if debug_level < 0:
            raise ValueError(f"debug_level must be >= 0, got {debug_level}")
        self.calc_stats = calc_stats
        self.debug_level = debug_level

    def trace(self, level: int, message: str, logger: logging.Logger = log):
        """Emit a debug message when this config asks for that much detail."""
        if self.debug_level >= level:
            logger.debug(message)

    def __repr__(self) -> str:
        return f"ParseConfig(calc_stats={self.calc_stats}, debug_level={self.debug_level})"
