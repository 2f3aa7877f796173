"""
test_classifier.py
------------------
Binary foreground/background classification.
"""

import numpy as np
import pytest

from field_plant_counter import ConfigurationError, InvalidImage, classify


def test_strictly_greater_is_foreground():
    img = np.zeros((1, 3, 3), dtype=np.uint8)
    img[0, :, 1] = [99, 100, 101]
    out = classify(img, 100)
    assert out[0, :, 1].tolist() == [0, 0, 255]
    # every channel is painted
    assert out[0, 2].tolist() == [255, 255, 255]
    assert out[0, 1].tolist() == [0, 0, 0]


def test_uses_selected_channel_only():
    img = np.zeros((1, 1, 3), dtype=np.uint8)
    img[0, 0] = (250, 10, 250)
    assert classify(img, 100)[0, 0].tolist() == [0, 0, 0]
    assert classify(img, 100, channel="red")[0, 0].tolist() == [255, 255, 255]


def test_black_image_is_all_background(black_image):
    out = classify(black_image, 0)
    assert not out.any()


def test_input_not_mutated(random_image):
    before = random_image.copy()
    out = classify(random_image, 128)
    assert np.array_equal(random_image, before)
    assert out is not random_image
    assert out.shape == random_image.shape
    assert out.dtype == np.uint8


@pytest.mark.parametrize("threshold", [0, 1, 64, 128, 200, 254])
def test_classification_is_idempotent_on_binary_images(random_image, threshold):
    binary = classify(random_image, 128)
    assert np.array_equal(classify(binary, threshold), binary)


def test_single_channel_image():
    img = np.array([[10, 200], [0, 255]], dtype=np.uint8)
    assert classify(img, 100).tolist() == [[0, 255], [0, 255]]


@pytest.mark.parametrize("threshold", [-1, 256, 1.5, None, True])
def test_bad_threshold_rejected(random_image, threshold):
    with pytest.raises(ConfigurationError):
        classify(random_image, threshold)


@pytest.mark.parametrize("bad", [None, np.zeros((0, 0, 3), np.uint8), np.zeros((4, 4), np.float32)])
def test_invalid_images_fail_fast(bad):
    with pytest.raises(InvalidImage):
        classify(bad, 10)


def test_wider_integer_dtype_is_accepted():
    img = np.array([[10, 200]], dtype=np.int32)
    assert classify(img, 100).tolist() == [[0, 255]]
