"""Chart engine exports for the usage headroom monitor."""

# Re-export commonly used modules for convenience.
from . import buckets, charts, coords, gaps, hover, merge, models, periods, segments, slope, smoothing

__all__ = [
    "buckets",
    "charts",
    "coords",
    "gaps",
    "hover",
    "merge",
    "models",
    "periods",
    "segments",
    "slope",
    "smoothing",
]
