import numpy as np
import pytest

from tests.helpers import random_rgb
from voronoi_mosaic.errors import InputValidationError
from voronoi_mosaic.importance import (
    importance_from_edges,
    luminance,
    sobel_magnitude,
)

SOBEL_X = np.array([[1, 0, -1], [2, 0, -2], [1, 0, -1]], dtype=np.float64)
SOBEL_Y = np.array([[1, 2, 1], [0, 0, 0], [-1, -2, -1]], dtype=np.float64)


def _naive_sobel(gray):
    H, W = gray.shape
    p = np.pad(gray, 1, mode="edge")
    mag = np.zeros_like(gray)
    for y in range(H):
        for x in range(W):
            win = p[y : y + 3, x : x + 3]
            gx = (win * SOBEL_X).sum()
            gy = (win * SOBEL_Y).sum()
            mag[y, x] = np.hypot(gx, gy)
    return mag


def test_uniform_target_gives_unit_weights():
    side = 8
    rgb = np.tile([0.3, 0.6, 0.9], (side * side, 1))
    w = importance_from_edges(rgb, side, alpha=5.0)
    assert w.shape == (side * side,)
    assert np.array_equal(w, np.ones(side * side))


def test_step_edge_weights():
    side = 8
    img = np.zeros((side, side, 3))
    img[:, side // 2 :] = 1.0
    w = importance_from_edges(img, side, alpha=2.0).reshape(side, side)
    assert w.min() == 1.0
    assert w.max() == pytest.approx(3.0, rel=1e-5)
    # only the two columns beside the step see a gradient
    assert np.all(w[:, :3] == 1.0)
    assert np.all(w[:, 5:] == 1.0)
    assert np.all(w[:, 3:5] > 1.0)


def test_weights_at_least_one():
    side = 10
    w = importance_from_edges(random_rgb(side, seed=4), side, alpha=3.0)
    assert w.min() >= 1.0
    assert w.max() <= 4.0 + 1e-9


def test_zero_alpha_is_flat():
    side = 6
    w = importance_from_edges(random_rgb(side, seed=2), side, alpha=0.0)
    assert np.array_equal(w, np.ones(side * side))


def test_negative_alpha_rejected():
    with pytest.raises(InputValidationError):
        importance_from_edges(random_rgb(4), 4, alpha=-1.0)


def test_sobel_matches_naive_convolution():
    side = 7
    gray = luminance(random_rgb(side, seed=9).reshape(side, side, 3))
    np.testing.assert_allclose(sobel_magnitude(gray), _naive_sobel(gray), atol=1e-12)
