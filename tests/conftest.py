import numpy as np
import pytest
from PIL import Image


@pytest.fixture
def make_image(tmp_path):
    """Write a uint8 pixel array to a PNG under tmp_path and return its path."""

    def _make(pixels, name='image.png'):
        path = tmp_path / name
        Image.fromarray(np.asarray(pixels, dtype=np.uint8)).save(path)
        return path

    return _make


@pytest.fixture
def gradient_pixels():
    """30x20 RGB image, dark purple on the left to pale pink on the right."""
    t = np.linspace(0.0, 1.0, 30)
    row = np.column_stack([
        20 + 220 * t,
        10 + 200 * t,
        60 + 150 * t,
    ])
    return np.repeat(row[np.newaxis, :, :], 20, axis=0).round().astype(np.uint8)
