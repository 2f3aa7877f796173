"""
test_histogram_threshold.py
---------------------------
Histogram builder and threshold strategies.
"""

import numpy as np
import pytest

from field_plant_counter import (
    ConfigurationError,
    InvalidImage,
    build_histogram,
    estimate_threshold,
    threshold_closest_to_mean,
    threshold_otsu_literal,
    threshold_otsu_textbook,
)


# ---------------------------------------------------------------------------
# 1. Histogram
# ---------------------------------------------------------------------------

def test_histogram_sums_to_pixel_count(random_image):
    hist = build_histogram(random_image)
    assert hist.shape == (256,)
    assert hist.sum() == random_image.shape[0] * random_image.shape[1]
    assert np.all(hist >= 0)


def test_histogram_reads_chosen_channel():
    img = np.zeros((4, 5, 3), dtype=np.uint8)
    img[..., 0] = 10
    img[..., 1] = 20
    img[..., 2] = 30
    assert build_histogram(img)[20] == 20
    assert build_histogram(img, "red")[10] == 20
    assert build_histogram(img, 2)[30] == 20


def test_histogram_single_channel_image():
    img = np.full((3, 3), 7, dtype=np.uint8)
    hist = build_histogram(img, "blue")
    assert hist[7] == 9
    assert hist.sum() == 9


def test_histogram_of_empty_image_is_all_zero():
    hist = build_histogram(np.zeros((0, 0, 3), dtype=np.uint8))
    assert hist.shape == (256,)
    assert not hist.any()


@pytest.mark.parametrize("bad", [None, [[1, 2], [3, 4]], np.zeros((2, 2, 4), np.uint8), np.zeros(5, np.uint8)])
def test_histogram_rejects_invalid_images(bad):
    with pytest.raises(InvalidImage):
        build_histogram(bad)


def test_histogram_rejects_unknown_channel(random_image):
    with pytest.raises(ConfigurationError):
        build_histogram(random_image, "alpha")


# ---------------------------------------------------------------------------
# 2. Closest-to-mean
# ---------------------------------------------------------------------------

def test_closest_to_mean_returns_true_intensity():
    hist = np.arange(256, dtype=np.int64)  # buckets 1..255 hold 1..255, mean 128
    assert threshold_closest_to_mean(hist) == 128


def test_closest_to_mean_ignores_bucket_zero():
    hist = np.arange(256, dtype=np.int64)
    hist[0] = 10**6
    assert threshold_closest_to_mean(hist) == 128


def test_closest_to_mean_ties_go_to_lowest_intensity():
    hist = np.ones(256, dtype=np.int64)
    hist[1] = 0
    hist[2] = 2  # mean of buckets 1..255 is exactly 1
    assert threshold_closest_to_mean(hist) == 3


def test_closest_to_mean_sparse_histogram():
    hist = np.zeros(256, dtype=np.int64)
    hist[10] = 255
    assert threshold_closest_to_mean(hist) == 1


# ---------------------------------------------------------------------------
# 3. Otsu variants
# ---------------------------------------------------------------------------

def test_literal_otsu_is_constant(random_image):
    assert threshold_otsu_literal(build_histogram(random_image)) == 127


def test_literal_otsu_on_empty_histogram_has_no_nan():
    assert threshold_otsu_literal(np.zeros(256, dtype=np.int64)) == 127


def test_textbook_otsu_splits_bimodal_histogram():
    hist = np.zeros(256, dtype=np.int64)
    hist[40:60] = 50
    hist[190:210] = 50
    t = threshold_otsu_textbook(hist)
    assert 59 <= t < 190


def test_textbook_otsu_degenerate_histograms():
    assert threshold_otsu_textbook(np.zeros(256, dtype=np.int64)) == 0
    hist = np.zeros(256, dtype=np.int64)
    hist[42] = 9
    assert threshold_otsu_textbook(hist) == 42


@pytest.mark.parametrize("strategy", ["mean", "otsu", "otsu_textbook"])
def test_thresholds_stay_in_byte_range(strategy):
    rng = np.random.default_rng(3)
    for _ in range(20):
        hist = rng.integers(0, 1000, 256)
        t = estimate_threshold(hist, strategy)
        assert isinstance(t, int)
        assert 0 <= t <= 255


def test_unknown_strategy_rejected():
    with pytest.raises(ConfigurationError):
        estimate_threshold(np.zeros(256), "median")


def test_malformed_histogram_rejected():
    with pytest.raises(ConfigurationError):
        estimate_threshold(np.zeros(10))
    bad = np.zeros(256)
    bad[3] = -1
    with pytest.raises(ConfigurationError):
        estimate_threshold(bad)
