"""
-------
conftest.py
-------
Shared pytest fixtures for field plant counter tests.
"""

import logging

import numpy as np
import pytest

from field_plant_counter.demo.generate_demo_data import (
    generate_reference_samples,
    generate_synthetic_field,
    generate_weedy_field,
)


def binary_from_points(points, height=20, width=20, channels=3):
    """White-on-black classified image with the given (x, y) points lit."""
    shape = (height, width, channels) if channels else (height, width)
    img = np.zeros(shape, dtype=np.uint8)
    for x, y in points:
        img[y, x] = 255
    return img


def block(x0, y0, w, h):
    """(x, y) points of a w x h rectangle whose top-left corner is (x0, y0)."""
    return [(x, y) for x in range(x0, x0 + w) for y in range(y0, y0 + h)]


# -----------------------------------------------------------------------------
# Image fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
def black_image() -> np.ndarray:
    """10x10 RGB image with zero intensity everywhere."""
    return np.zeros((10, 10, 3), dtype=np.uint8)


@pytest.fixture
def random_image() -> np.ndarray:
    rng = np.random.default_rng(0)
    return rng.integers(0, 256, (37, 23, 3), dtype=np.uint8)


@pytest.fixture
def demo_field():
    """120x80 field with 3 rows x 5 square plants (6x6 px), well separated."""
    return generate_synthetic_field()


@pytest.fixture
def reference_samples():
    return generate_reference_samples()


@pytest.fixture
def weedy_field():
    return generate_weedy_field()


@pytest.fixture
def reset_package_logger():
    """Remove handlers added by configure_logging once the test is done."""
    yield
    logger = logging.getLogger("field_plant_counter")
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.setLevel(logging.NOTSET)
