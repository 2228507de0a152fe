"""
Shared fixtures for the variant pipeline tests
"""

import os
import sys

import cv2
import numpy as np
import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def _png(image: np.ndarray) -> bytes:
    ok, buffer = cv2.imencode('.png', image)
    assert ok
    return buffer.tobytes()


@pytest.fixture
def product_photo_bytes():
    """PNG photo: dark-green box product on a light-gray studio backdrop"""
    image = np.full((300, 500, 3), 200, dtype=np.uint8)
    image[60:240, 120:380] = (30, 120, 30)
    return _png(image)


@pytest.fixture
def product_on_white_bytes():
    """PNG: the same product already isolated on pure white"""
    image = np.full((300, 500, 3), 255, dtype=np.uint8)
    image[60:240, 120:380] = (30, 120, 30)
    return _png(image)


@pytest.fixture
def cutout():
    """BGRA cut-out: opaque product with transparent white surround"""
    image = np.full((120, 200, 4), 255, dtype=np.uint8)
    image[:, :, 3] = 0
    image[20:100, 40:160] = (30, 120, 30, 255)
    return image


class FakeRemover:
    """Background remover stand-in that counts calls and returns fixed bytes"""

    def __init__(self, result: bytes, error: Exception = None, on_call=None):
        self.result = result
        self.error = error
        self.on_call = on_call
        self.calls = 0

    def __call__(self, image_bytes: bytes):
        self.calls += 1
        if self.on_call is not None:
            self.on_call()
        if self.error is not None:
            raise self.error
        return self.result, {"processing_time_ms": 1.0}


@pytest.fixture
def fake_remover(product_on_white_bytes):
    return FakeRemover(product_on_white_bytes)
