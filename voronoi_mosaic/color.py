import numpy as np

# sRGB -> XYZ, D65
SRGB_TO_XYZ = np.array(
    [
        [0.4124564, 0.3575761, 0.1804375],
        [0.2126729, 0.7151522, 0.0721750],
        [0.0193339, 0.1191920, 0.9503041],
    ]
)
XYZ_TO_SRGB = np.linalg.inv(SRGB_TO_XYZ)

D65_WHITE = np.array([0.95047, 1.00000, 1.08883])

LAB_EPSILON = 216.0 / 24389.0  # (6/29)^3
LAB_KAPPA = 24389.0 / 27.0


def srgb_to_linear(c: np.ndarray) -> np.ndarray:
    """Remove the sRGB gamma curve."""
    c = np.asarray(c, dtype=np.float64)
    return np.where(c <= 0.04045, c / 12.92, ((c + 0.055) / 1.055) ** 2.4)


def linear_to_srgb(c: np.ndarray) -> np.ndarray:
    """Apply the sRGB gamma curve."""
    c = np.clip(np.asarray(c, dtype=np.float64), 0.0, None)
    return np.where(c <= 0.0031308, c * 12.92, 1.055 * c ** (1 / 2.4) - 0.055)


def _lab_f(t: np.ndarray) -> np.ndarray:
    # Linear ramp near black keeps the cube root's derivative finite.
    return np.where(t > LAB_EPSILON, np.cbrt(t), (LAB_KAPPA * t + 16.0) / 116.0)


def _lab_f_inv(f: np.ndarray) -> np.ndarray:
    return np.where(f > 6.0 / 29.0, f**3, (116.0 * f - 16.0) / LAB_KAPPA)


def rgb_to_lab(rgb: np.ndarray) -> np.ndarray:
    """
    Convert sRGB samples in [0,1] to Lab.

    Out-of-range input is clamped first, so the result is defined for any
    finite input. L is in [0, 100] (up to rounding of the D65 matrix).
    """
    rgb = np.clip(np.asarray(rgb, dtype=np.float64), 0.0, 1.0)
    xyz = srgb_to_linear(rgb) @ SRGB_TO_XYZ.T
    f = _lab_f(xyz / D65_WHITE)
    fx, fy, fz = f[..., 0], f[..., 1], f[..., 2]
    return np.stack(
        [116.0 * fy - 16.0, 500.0 * (fx - fy), 200.0 * (fy - fz)],
        axis=-1,
    )


def lab_to_rgb(lab: np.ndarray) -> np.ndarray:
    """Convert Lab back to sRGB, clipped to [0,1]."""
    lab = np.asarray(lab, dtype=np.float64)
    fy = (lab[..., 0] + 16.0) / 116.0
    fx = fy + lab[..., 1] / 500.0
    fz = fy - lab[..., 2] / 200.0
    xyz = _lab_f_inv(np.stack([fx, fy, fz], axis=-1)) * D65_WHITE
    rgb = linear_to_srgb(xyz @ XYZ_TO_SRGB.T)
    return np.clip(rgb, 0.0, 1.0)
