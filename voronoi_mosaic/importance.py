import numpy as np

from .errors import InputValidationError

# ITU-R BT.709
LUMA_WEIGHTS = np.array([0.2126, 0.7152, 0.0722])

MAGNITUDE_EPSILON = 1e-6


def luminance(rgb: np.ndarray) -> np.ndarray:
    return np.asarray(rgb, dtype=np.float64) @ LUMA_WEIGHTS


def sobel_magnitude(gray: np.ndarray) -> np.ndarray:
    """Gradient magnitude of a 2D image; borders sample the nearest edge pixel."""
    H, W = gray.shape
    p = np.pad(gray, 1, mode="edge")
    top, mid, bot = p[0:H], p[1 : H + 1], p[2 : H + 2]
    left, centre, right = slice(0, W), slice(1, W + 1), slice(2, W + 2)
    # Sobel kernels written as paired differences so flat regions give exactly 0.
    gx = (
        (top[:, left] - top[:, right])
        + 2.0 * (mid[:, left] - mid[:, right])
        + (bot[:, left] - bot[:, right])
    )
    gy = (
        (top[:, left] - bot[:, left])
        + 2.0 * (top[:, centre] - bot[:, centre])
        + (top[:, right] - bot[:, right])
    )
    return np.sqrt(gx * gx + gy * gy)


def importance_from_edges(rgb: np.ndarray, side: int, alpha: float) -> np.ndarray:
    """
    Per-cell weight w = 1 + alpha * |grad L| / max|grad L|.

    rgb: (side*side, 3) or (side, side, 3) target samples in [0,1]
    Returns a flat (side*side,) float64 array with every weight >= 1.
    """
    if alpha < 0:
        raise InputValidationError(f"edge alpha must be >= 0, got {alpha}")
    gray = luminance(np.asarray(rgb).reshape(side, side, 3))
    mag = sobel_magnitude(gray)
    norm = mag / (mag.max() + MAGNITUDE_EPSILON)
    return (1.0 + alpha * norm).reshape(-1)
