import numpy as np


def random_rgb(side, seed=0):
    """(side*side, 3) floats in [0,1]."""
    return np.random.default_rng(seed).random((side * side, 3))


def brute_force_nearest(seed_pos, side):
    """Squared distance from every cell to its nearest seed, shape (side, side)."""
    Y, X = np.mgrid[0:side, 0:side].astype(np.float64)
    dy = Y[..., None] - seed_pos[:, 0]
    dx = X[..., None] - seed_pos[:, 1]
    return (dy * dy + dx * dx).min(axis=2)
