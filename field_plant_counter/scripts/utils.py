"""
Utility functions for the Field Plant Counter.

These functions handle image validation, channel selection, intensity
histograms and image file I/O (PNG/JPEG through OpenCV, GeoTIFF through
rasterio).
"""

import csv
import logging
from pathlib import Path
from typing import Tuple, Union

import numpy as np
import cv2
import rasterio
from rasterio.errors import RasterioIOError

from .errors import InvalidImage, ConfigurationError

logger = logging.getLogger(__name__)


# Pixel values of a classified (binary) image
FOREGROUND = 255
BACKGROUND = 0

# Colour painted over pixels the weed detector flags (RGB)
DETECTED_COLOR = (0, 0, 0)

# Number of histogram buckets for 8-bit intensities
N_BUCKETS = 256

# Default settings
DEFAULT_CHANNEL = "green"
DEFAULT_USE_BANDS_RGB = (1, 2, 3)
GEOTIFF_SUFFIXES = (".tif", ".tiff")

CHANNELS = {"red": 0, "green": 1, "blue": 2}

PathLike = Union[str, Path]


def channel_index(channel: Union[str, int] = DEFAULT_CHANNEL) -> int:
    """
    Resolve a channel selector to an RGB plane index.

    Args:
        channel: "red", "green", "blue" (case-insensitive) or 0, 1, 2

    Returns:
        Index of the plane in an (H, W, 3) RGB array

    Raises:
        ConfigurationError: If the selector is unknown

    Example:
        >>> channel_index("green")
        1
    """
    if isinstance(channel, str):
        try:
            return CHANNELS[channel.lower()]
        except KeyError:
            raise ConfigurationError(
                f"Unknown channel {channel!r}; expected one of {sorted(CHANNELS)}"
            ) from None
    if isinstance(channel, (int, np.integer)) and not isinstance(channel, bool):
        if 0 <= int(channel) <= 2:
            return int(channel)
    raise ConfigurationError(f"Unknown channel {channel!r}")


def as_image(image, allow_empty: bool = False) -> np.ndarray:
    """
    Validate an image and return it as a uint8 numpy array.

    Accepted shapes are (H, W) single-channel and (H, W, 3) RGB. Integer
    arrays whose values already fit in 0..255 are cast to uint8; anything
    else is rejected. The input is never modified.

    Args:
        image: Candidate image
        allow_empty: Accept images with zero pixels (histograms only)

    Returns:
        uint8 array (the input itself when it already is one)

    Raises:
        InvalidImage: If the image is None, not an array, has an unsupported
            shape or dtype, or is empty while allow_empty is False
    """
    if image is None:
        raise InvalidImage("Image is None.")
    if not isinstance(image, np.ndarray):
        raise InvalidImage(f"Expected a numpy array, got {type(image).__name__}.")
    if image.ndim == 3:
        if image.shape[2] != 3:
            raise InvalidImage(
                f"Expected 3 colour channels, got shape {image.shape}."
            )
    elif image.ndim != 2:
        raise InvalidImage(f"Expected a 2-D or 3-D image, got shape {image.shape}.")

    if image.size == 0 and not allow_empty:
        raise InvalidImage(f"Image has zero pixels (shape {image.shape}).")

    if image.dtype == np.uint8:
        return image
    if not np.issubdtype(image.dtype, np.integer):
        raise InvalidImage(f"Expected integer pixel data, got {image.dtype}.")
    if image.size and (image.min() < 0 or image.max() > 255):
        raise InvalidImage("Pixel values must lie in 0..255.")
    return image.astype(np.uint8)


def intensity_plane(image: np.ndarray, channel: Union[str, int] = DEFAULT_CHANNEL) -> np.ndarray:
    """Return the (H, W) intensity plane for the chosen channel (view, no copy)."""
    if image.ndim == 2:
        return image
    return image[..., channel_index(channel)]


def validate_threshold(threshold) -> int:
    """Check that a threshold is an integer byte value and return it as int."""
    if isinstance(threshold, bool) or not isinstance(threshold, (int, np.integer)):
        raise ConfigurationError(f"Threshold must be an integer, got {threshold!r}")
    if not 0 <= int(threshold) <= 255:
        raise ConfigurationError(f"Threshold must lie in [0, 255], got {threshold}")
    return int(threshold)


def validate_distance(distance) -> float:
    """Check that a neighbour distance is a non-negative number."""
    if isinstance(distance, bool) or not isinstance(
        distance, (int, float, np.integer, np.floating)
    ):
        raise ConfigurationError(f"Distance must be a number, got {distance!r}")
    if not np.isfinite(distance) or distance < 0:
        raise ConfigurationError(f"Distance must be >= 0, got {distance}")
    return float(distance)


def build_histogram(image, channel: Union[str, int] = DEFAULT_CHANNEL) -> np.ndarray:
    """
    Build a 256-bucket intensity histogram for one channel.

    Every pixel is counted exactly once, so the counts always sum to
    width x height. An empty image yields an all-zero histogram.

    Args:
        image: (H, W) or (H, W, 3) uint8 image
        channel: Channel selector (ignored for single-channel images)

    Returns:
        int64 array of length 256

    Example:
        >>> img = np.zeros((10, 10, 3), dtype=np.uint8)
        >>> int(build_histogram(img)[0])
        100
    """
    img = as_image(image, allow_empty=True)
    plane = intensity_plane(img, channel)
    return np.bincount(plane.ravel(), minlength=N_BUCKETS).astype(np.int64)


def as_histogram(histogram) -> np.ndarray:
    """Validate a histogram (256 non-negative counts) and return it as int64."""
    hist = np.asarray(histogram)
    if hist.shape != (N_BUCKETS,):
        raise ConfigurationError(
            f"Histogram must have {N_BUCKETS} buckets, got shape {hist.shape}"
        )
    if np.any(hist < 0):
        raise ConfigurationError("Histogram counts must be non-negative.")
    return hist.astype(np.int64)


def percentile_stretch_to_uint8(data: np.ndarray) -> np.ndarray:
    """
    Convert an image of any numeric type to uint8 with percentile stretching.

    Applies 2nd-98th percentile stretching to each channel independently.
    A flat channel maps to zero.

    Args:
        data: (H, W) or (H, W, C) numeric array

    Returns:
        uint8 array of the same shape
    """
    arr = data.astype(np.float32)
    planes = arr[..., np.newaxis] if arr.ndim == 2 else arr
    out = np.zeros_like(planes, dtype=np.float32)
    for c in range(planes.shape[-1]):
        chan = planes[..., c]
        p2, p98 = np.percentile(chan, (2, 98))
        if p98 > p2:
            chan = (chan - p2) / (p98 - p2)
        else:
            chan = chan * 0.0
        out[..., c] = np.clip(chan, 0, 1)
    out = (out * 255).astype(np.uint8)
    return out[..., 0] if arr.ndim == 2 else out


def read_geotiff(
    tif_path: PathLike, bands: Tuple[int, int, int] = DEFAULT_USE_BANDS_RGB
) -> np.ndarray:
    """
    Read a GeoTIFF into an RGB (or single-channel) uint8 array.

    Args:
        tif_path: Path to the GeoTIFF
        bands: Tuple of (R_band, G_band, B_band) indices

    Returns:
        (H, W, 3) RGB array, or (H, W) for single-band files
    """
    with rasterio.open(str(tif_path)) as ds:
        if ds.count < 3:
            data = ds.read(1)
        else:
            r_i, g_i, b_i = bands
            data = np.dstack([ds.read(r_i), ds.read(g_i), ds.read(b_i)])
    if data.dtype != np.uint8:
        data = percentile_stretch_to_uint8(data)
    return data


def load_image(path: PathLike) -> np.ndarray:
    """
    Load an image file as an RGB uint8 array.

    GeoTIFFs go through rasterio, everything else through OpenCV.

    Args:
        path: Image file path

    Returns:
        (H, W, 3) RGB or (H, W) single-channel uint8 array

    Raises:
        FileNotFoundError: If the file does not exist
        InvalidImage: If the file cannot be decoded
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {path}")

    if path.suffix.lower() in GEOTIFF_SUFFIXES:
        try:
            image = read_geotiff(path)
        except RasterioIOError as e:
            raise InvalidImage(f"Could not decode {path}: {e}") from e
    else:
        bgr = cv2.imread(str(path), cv2.IMREAD_COLOR)
        if bgr is None:
            raise InvalidImage(f"Could not decode {path}")
        image = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)

    logger.debug("Loaded %s with shape %s", path, image.shape)
    return image


def save_image(path: PathLike, image: np.ndarray) -> Path:
    """Write an RGB (or single-channel) image with OpenCV, creating parent dirs."""
    path = Path(path)
    img = as_image(image)
    path.parent.mkdir(parents=True, exist_ok=True)
    out = cv2.cvtColor(img, cv2.COLOR_RGB2BGR) if img.ndim == 3 else img
    if not cv2.imwrite(str(path), out):
        raise InvalidImage(f"Could not encode image to {path}")
    logger.info("Wrote %s", path)
    return path


COUNTS_CSV_HEADER = [
    "image_id",
    "source",
    "channel",
    "threshold",
    "distance",
    "raw_count",
    "culled_count",
    "image_classified",
    "image_clusters",
]


def ensure_outputs(out_dir: Path) -> Tuple[Path, Path]:
    """
    Ensure the output directory structure exists.

    Creates:
    - Output directory
    - images subdirectory
    - counts.csv (with header if new)

    Args:
        out_dir: Output directory path

    Returns:
        (images_dir, counts_csv)
    """
    images_dir = out_dir / "images"
    out_dir.mkdir(parents=True, exist_ok=True)
    images_dir.mkdir(parents=True, exist_ok=True)

    counts_csv = out_dir / "counts.csv"
    if not counts_csv.exists():
        with open(counts_csv, "w", newline="") as f:
            csv.writer(f).writerow(COUNTS_CSV_HEADER)

    return images_dir, counts_csv


def next_image_id_from_counts_csv(counts_csv: Path) -> int:
    """
    Get the next available image ID from counts.csv.

    Returns:
        Next image ID (1 if the file doesn't exist or only has its header)
    """
    try:
        with open(counts_csv, "r", newline="") as f:
            return max(1, sum(1 for _ in f))
    except FileNotFoundError:
        return 1


def write_count_row(counts_csv: Path, row: list) -> None:
    """Append one result row to counts.csv."""
    with open(counts_csv, "a", newline="") as f:
        csv.writer(f).writerow(row)

