import logging
from typing import Iterable

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)


def square_crop(im: Image.Image) -> Image.Image:
    """Centre square crop."""
    w, h = im.size
    s = min(w, h)
    sx = (w - s) // 2
    sy = (h - s) // 2
    return im.crop((sx, sy, sx + s, sy + s))


def image_to_rgb01(im: Image.Image, side: int) -> np.ndarray:
    """Crop, resize to side x side and return (side*side, 3) float64 in [0,1]."""
    im = square_crop(im.convert("RGB"))
    im = im.resize((side, side), Image.Resampling.LANCZOS)
    arr = np.asarray(im, dtype=np.float64) / 255.0
    return arr.reshape(-1, 3)


def load_square_rgb(path: str, side: int) -> np.ndarray:
    with Image.open(path) as im:
        return image_to_rgb01(im, side)


def rgb01_to_rgba(rgb: np.ndarray, side: int) -> np.ndarray:
    """(N, 3) floats -> (side, side, 4) opaque uint8, for previews."""
    arr = np.clip(np.rint(np.asarray(rgb).reshape(side, side, 3) * 255.0), 0, 255)
    out = np.full((side, side, 4), 255, dtype=np.uint8)
    out[..., :3] = arr.astype(np.uint8)
    return out


def frame_to_image(frame: np.ndarray, scale: int = 1) -> Image.Image:
    im = Image.fromarray(np.ascontiguousarray(frame, dtype=np.uint8))
    if scale > 1:
        im = im.resize((im.width * scale, im.height * scale), Image.Resampling.NEAREST)
    return im


def save_png(frame: np.ndarray, path: str, scale: int = 1):
    frame_to_image(frame, scale).save(path, format="PNG")
    logger.info("Saved frame to %s", path)


def save_animation(frames: Iterable[np.ndarray], path: str, fps: int = 30, scale: int = 1):
    """Write frames as an animated GIF or WebP, chosen by the file extension."""
    images = [frame_to_image(f, scale) for f in frames]
    if not images:
        raise ValueError("No frames to save")
    duration = max(1, int(round(1000 / fps)))
    first, rest = images[0], images[1:]
    if path.lower().endswith(".gif"):
        first = first.convert("RGB")
        rest = [im.convert("RGB") for im in rest]
    first.save(path, save_all=True, append_images=rest, duration=duration, loop=0)
    logger.info("Saved %d frames to %s", len(images), path)
