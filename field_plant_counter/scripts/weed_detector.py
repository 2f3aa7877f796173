"""
Weed Detector
=============

Highlights weed pixels in a field image using Bayes' theorem on a single
intensity channel.

Two reference samples (crop and weed) give two intensity histograms. For
each intensity ``g``::

    P(g|weed) = weed[g] / sum(weed)
    P(weed)   = sum(weed) / (sum(weed) + sum(crop))
    P(g)      = (crop[g] + weed[g]) / (sum(weed) + sum(crop))
    P(weed|g) = P(g|weed) * P(weed) / P(g)      (0 when P(g) == 0)

Target pixels with ``g > 0`` and ``P(weed|g) > 0.5`` are painted black in a
copy of the target. Nothing is clustered or counted.
"""

import logging
from dataclasses import dataclass
from typing import Union

import numpy as np

from .utils import (
    DEFAULT_CHANNEL,
    DETECTED_COLOR,
    as_histogram,
    as_image,
    build_histogram,
    intensity_plane,
)

logger = logging.getLogger(__name__)

# Posterior above which a pixel is flagged as weed
DECISION_THRESHOLD = 0.5


def posterior_table(crop_hist, weed_hist) -> np.ndarray:
    """
    Compute P(weed | intensity) for all 256 intensities.

    Empty histograms and intensities absent from both samples give 0.

    Args:
        crop_hist: 256 counts from the crop sample
        weed_hist: 256 counts from the weed sample

    Returns:
        float64 array of length 256 with values in [0, 1]
    """
    crop = as_histogram(crop_hist).astype(np.float64)
    weed = as_histogram(weed_hist).astype(np.float64)
    weed_total = weed.sum()
    total = weed_total + crop.sum()

    if weed_total == 0 or total == 0:
        return np.zeros_like(weed)

    p_g_given_weed = weed / weed_total
    p_weed = weed_total / total
    p_g = (crop + weed) / total

    posterior = np.zeros_like(weed)
    seen = p_g > 0
    with np.errstate(divide="ignore", invalid="ignore"):
        posterior[seen] = p_g_given_weed[seen] * p_weed / p_g[seen]
    return np.clip(posterior, 0.0, 1.0)


def apply_posterior(image: np.ndarray, table: np.ndarray, channel: Union[str, int] = DEFAULT_CHANNEL) -> np.ndarray:
    """Boolean (H, W) mask of pixels whose posterior exceeds DECISION_THRESHOLD."""
    decide = table > DECISION_THRESHOLD
    # intensity 0 is never a weed
    decide[0] = False
    return decide[intensity_plane(image, channel)]


def detect_weed(target, crop_sample, weed_sample, channel: Union[str, int] = DEFAULT_CHANNEL) -> np.ndarray:
    """
    Return a copy of ``target`` with weed pixels painted black.

    Args:
        target: Field image to inspect (must be non-empty)
        crop_sample: Reference image of crop (may be empty)
        weed_sample: Reference image of weed (may be empty)
        channel: Channel selector

    Returns:
        New image, same shape as target

    Example:
        >>> highlighted = detect_weed(field, crop_patch, blackgrass_patch)
    """
    return WeedDetector(target, crop_sample, weed_sample, channel).detect().image


@dataclass
class WeedResult:
    """
    Output of a weed detection run.

    Attributes:
        image: Copy of the target with weed pixels painted black
        mask: Boolean (H, W) mask of the painted pixels
        detected_pixels: Number of painted pixels
    """

    image: np.ndarray
    mask: np.ndarray
    detected_pixels: int

    @property
    def coverage(self) -> float:
        """Fraction of target pixels flagged as weed."""
        return self.detected_pixels / self.mask.size if self.mask.size else 0.0


class WeedDetector:
    """
    Detects weed (e.g. blackgrass) in a crop image from two reference samples.

    Example:
        >>> detector = WeedDetector(field, crop_patch, weed_patch)
        >>> result = detector.detect()
        >>> print(f"{result.coverage:.1%} of the field flagged")
    """

    def __init__(self, target, crop_sample, weed_sample, channel: Union[str, int] = DEFAULT_CHANNEL):
        self.target = as_image(target)
        self.crop_sample = as_image(crop_sample, allow_empty=True)
        self.weed_sample = as_image(weed_sample, allow_empty=True)
        self.channel = channel

    def posterior(self) -> np.ndarray:
        return posterior_table(
            build_histogram(self.crop_sample, self.channel),
            build_histogram(self.weed_sample, self.channel),
        )

    def detect(self) -> WeedResult:
        mask = apply_posterior(self.target, self.posterior(), self.channel)
        out = self.target.copy()
        if out.ndim == 3:
            out[mask] = DETECTED_COLOR
        else:
            out[mask] = DETECTED_COLOR[0]
        detected = int(mask.sum())
        logger.debug("Weed detector flagged %d of %d pixels", detected, mask.size)
        return WeedResult(image=out, mask=mask, detected_pixels=detected)
