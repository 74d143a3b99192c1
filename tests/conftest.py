import os
import sys

import numpy as np
import pytest
from PIL import Image

# Ensure the project root is on path for test imports
ROOT = os.path.dirname(os.path.dirname(__file__))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from tests.helpers import brute_force_nearest, random_rgb

__all__ = [
    "brute_force_nearest",
    "random_rgb",
]


@pytest.fixture
def image_files(tmp_path):
    """Two small non-square PNGs on disk: a horizontal and a vertical gradient."""
    h, w = 24, 32
    x = np.linspace(0, 255, w).astype(np.uint8)
    y = np.linspace(0, 255, h).astype(np.uint8)
    src = np.zeros((h, w, 3), dtype=np.uint8)
    src[..., 0] = x[None, :]
    src[..., 2] = 255 - x[None, :]
    tgt = np.zeros((h, w, 3), dtype=np.uint8)
    tgt[..., 1] = y[:, None]
    tgt[..., 0] = 128
    src_path = tmp_path / "source.png"
    tgt_path = tmp_path / "target.png"
    Image.fromarray(src).save(src_path)
    Image.fromarray(tgt).save(tgt_path)
    return str(src_path), str(tgt_path)
