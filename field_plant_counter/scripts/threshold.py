"""
Threshold estimation from intensity histograms.

Three strategies are available:

- "mean": the intensity whose bucket count is closest to the mean count
  of buckets 1..255 (bucket 0 is treated as "no signal").
- "otsu": Otsu-style split with class means taken as ``i / 2``. Both class
  means are then equal, so the between-class variance is zero for every
  candidate and the result is always 127. Kept for parity with existing
  counts; do not "fix" it in place.
- "otsu_textbook": the standard Otsu method (scikit-image), offered as a
  separate, explicitly named strategy.
"""

import logging
import math
from typing import Callable, Dict

import numpy as np
from skimage.filters import threshold_otsu

from .errors import ConfigurationError
from .utils import as_histogram

logger = logging.getLogger(__name__)


def threshold_closest_to_mean(histogram) -> int:
    """
    Pick the intensity whose count is nearest the mean bucket count.

    Bucket 0 is discarded; the mean is taken over the remaining 255 counts.
    Ties go to the lowest intensity.

    Args:
        histogram: 256 bucket counts

    Returns:
        Threshold in [1, 255]

    Example:
        >>> hist = np.zeros(256, dtype=np.int64)
        >>> hist[10] = 255
        >>> threshold_closest_to_mean(hist)  # mean is 1, so the first 0 wins
        1
    """
    counts = as_histogram(histogram)[1:].astype(np.float64)
    mean = counts.mean()
    # argmin returns the first index among equal distances
    nearest = int(np.argmin(np.abs(counts - mean)))
    return nearest + 1


def _class_mean(mass: float, candidate: int) -> float:
    if mass <= 0:
        return 0.0
    return candidate / 2.0


def threshold_otsu_literal(histogram) -> int:
    """
    Otsu-style threshold using ``candidate / 2`` as each class mean.

    For each split ``i`` in [1, 255) the foreground mass is the normalized
    histogram mass below ``i`` and the background mass is the mass at or
    above ``i``. A strictly larger between-class variance sets both ``t1``
    and ``t2`` to ``i``; an equal variance moves only ``t2``. The result is
    ``round((t1 + t2) / 2)``, rounding halves up.

    Args:
        histogram: 256 bucket counts

    Returns:
        Threshold in [0, 255]
    """
    hist = as_histogram(histogram).astype(np.float64)
    total = hist.sum()
    probs = hist / total if total > 0 else np.zeros_like(hist)
    below = np.concatenate(([0.0], np.cumsum(probs)))

    max_variance = 0.0
    t1 = t2 = 0
    for i in range(1, len(hist) - 1):
        fg_mass = below[i]
        bg_mass = below[-1] - below[i]
        fg_mean = _class_mean(fg_mass, i)
        bg_mean = _class_mean(bg_mass, i)
        variance = fg_mass * bg_mass * (fg_mean - bg_mean) ** 2
        if variance > max_variance:
            t1 = t2 = i
            max_variance = variance
        elif variance == max_variance:
            t2 = i

    return int(math.floor((t1 + t2) / 2.0 + 0.5))


def threshold_otsu_textbook(histogram) -> int:
    """
    Standard Otsu threshold computed by scikit-image from the histogram.

    The histogram is trimmed to its occupied range first so that empty
    leading/trailing buckets do not produce undefined class means.

    Returns:
        Threshold in [0, 255]; 0 for an empty histogram
    """
    hist = as_histogram(histogram)
    occupied = np.flatnonzero(hist)
    if occupied.size == 0:
        return 0
    lo, hi = int(occupied[0]), int(occupied[-1])
    if lo == hi:
        return lo
    counts = hist[lo : hi + 1]
    centers = np.arange(lo, hi + 1)
    return int(threshold_otsu(hist=(counts, centers)))


STRATEGIES: Dict[str, Callable[[np.ndarray], int]] = {
    "mean": threshold_closest_to_mean,
    "otsu": threshold_otsu_literal,
    "otsu_textbook": threshold_otsu_textbook,
}


def validate_strategy(strategy: str) -> str:
    if strategy not in STRATEGIES:
        raise ConfigurationError(
            f"Unknown threshold strategy {strategy!r}; expected one of {sorted(STRATEGIES)}"
        )
    return strategy


def estimate_threshold(histogram, strategy: str = "mean") -> int:
    """
    Estimate a foreground/background split value from a histogram.

    Args:
        histogram: 256 bucket counts (see build_histogram)
        strategy: "mean", "otsu" or "otsu_textbook"

    Returns:
        Threshold in [0, 255]

    Raises:
        ConfigurationError: If the strategy is unknown or the histogram malformed

    Example:
        >>> hist = build_histogram(image)
        >>> estimate_threshold(hist, "otsu_textbook")
    """
    threshold = STRATEGIES[validate_strategy(strategy)](histogram)
    logger.debug("Threshold (%s): %d", strategy, threshold)
    return threshold
