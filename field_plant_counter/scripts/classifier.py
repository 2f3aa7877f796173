"""
Binary foreground/background pixel classification.
"""

from typing import Union

import numpy as np

from .utils import (
    BACKGROUND,
    DEFAULT_CHANNEL,
    FOREGROUND,
    as_image,
    intensity_plane,
    validate_threshold,
)


def classify(image, threshold: int, channel: Union[str, int] = DEFAULT_CHANNEL) -> np.ndarray:
    """
    Classify each pixel as foreground (vegetation) or background.

    A pixel is foreground when its channel intensity is strictly greater
    than the threshold. The result has the same shape as the input, with
    foreground pixels white (255 on every channel) and background black.
    The input image is not modified.

    Args:
        image: (H, W) or (H, W, 3) uint8 image
        threshold: Split value in [0, 255]
        channel: Channel selector

    Returns:
        New binary image

    Raises:
        InvalidImage: If the image is None, malformed or empty
        ConfigurationError: If the threshold is out of range

    Example:
        >>> binary = classify(rgb, threshold=162)
    """
    img = as_image(image)
    thr = validate_threshold(threshold)
    fg = intensity_plane(img, channel) > thr
    out = np.full_like(img, BACKGROUND)
    out[fg] = FOREGROUND
    return out


def foreground_mask(binary: np.ndarray, channel: Union[str, int] = DEFAULT_CHANNEL) -> np.ndarray:
    """Boolean (H, W) mask of the white pixels of a classified image."""
    return intensity_plane(as_image(binary, allow_empty=True), channel) == FOREGROUND


def foreground_points(mask: np.ndarray) -> np.ndarray:
    """
    List the foreground pixels of a mask as (x, y) points in scan order.

    Scan order is column-major: x ascending in the outer loop, y ascending
    in the inner loop.

    Returns:
        (N, 2) int64 array of (x, y)
    """
    xs, ys = np.nonzero(mask.T)
    return np.column_stack([xs, ys]).astype(np.int64)
