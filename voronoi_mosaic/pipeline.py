import logging
import threading
from typing import Iterator, Optional, Union

import numpy as np

from .errors import InputValidationError
from .events import FrameEvent, ProgressEvent
from .permutation_model import PermutationModel
from .settings import MosaicSettings
from .simulation import SeedState, sim_step
from .voronoi import render_frame
from .worker import AssignmentTask

logger = logging.getLogger(__name__)

ASSIGNMENT_DONE = 0.40
JOIN_SECONDS = 5.0

Event = Union[ProgressEvent, FrameEvent]


def as_flat_rgb(rgb: np.ndarray, side: int, name: str) -> np.ndarray:
    """Accept (side*side, 3) or (side, side, 3) and return (side*side, 3) float64."""
    arr = np.asarray(rgb, dtype=np.float64)
    if arr.ndim == 3:
        H, W, C = arr.shape
        if H != W:
            raise InputValidationError(f"{name} image must be square, got {H}x{W}")
        if C != 3:
            raise InputValidationError(f"{name} image must have 3 channels, got {C}")
        if H != side:
            raise InputValidationError(f"{name} image is {H}x{W}, expected {side}x{side}")
        return arr.reshape(-1, 3)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise InputValidationError(f"{name} buffer must have shape (N, 3), got {arr.shape}")
    n = arr.shape[0]
    root = int(round(np.sqrt(n)))
    if root * root != n:
        raise InputValidationError(f"{name} buffer of {n} pixels is not a square image")
    if n != side * side:
        raise InputValidationError(f"{name} buffer has {n} pixels, expected {side * side}")
    return arr


def validate_inputs(src_rgb, tgt_rgb, settings: MosaicSettings) -> tuple[np.ndarray, np.ndarray]:
    settings.validate()
    side = settings.side
    settings.check_resources()
    src = as_flat_rgb(src_rgb, side, "source")
    tgt = as_flat_rgb(tgt_rgb, side, "target")
    if src.shape != tgt.shape:
        raise InputValidationError(f"source {src.shape} and target {tgt.shape} differ in size")
    if not (np.isfinite(src).all() and np.isfinite(tgt).all()):
        raise InputValidationError("pixel buffers contain NaN or infinite values")
    return src, tgt


def run_pipeline(
    src_rgb: np.ndarray,
    tgt_rgb: np.ndarray,
    settings: MosaicSettings,
    cancel: Optional[threading.Event] = None,
    permutation: Optional[PermutationModel] = None,
) -> Iterator[Event]:
    """
    src_rgb, tgt_rgb: (N, 3) or (side, side, 3) floats in [0,1]
    permutation: a precomputed assignment; skips the optimizer when given

    Inputs are validated here, before the returned generator does any work.
    """
    src, tgt = validate_inputs(src_rgb, tgt_rgb, settings)
    side = settings.side
    if permutation is not None and permutation.size != side * side:
        raise InputValidationError(
            f"permutation covers {permutation.size} cells, expected {side * side}"
        )
    return _events(src, tgt, settings, cancel, permutation)


def _events(src, tgt, settings, cancel, permutation) -> Iterator[Event]:
    side = settings.side
    if permutation is not None:
        dst_of_src = permutation.dst_of_src()
        seed_rgb = src.copy()
        logger.info("using precomputed permutation, skipping assignment")
    else:
        task = AssignmentTask(src, tgt, settings)
        task.start()
        try:
            yield from task.events(cancel)
        finally:
            # no worker outlives the generator, even when the consumer closes it early
            task.cancel()
            task.join(JOIN_SECONDS)
        if task.result is None:
            return
        result = task.result
        yield ProgressEvent(
            "refine",
            ASSIGNMENT_DONE,
            iteration=settings.iterations,
            iterations=settings.iterations,
            accepted=result.accepted,
            permutation=result.permutation,
        )
        dst_of_src = result.dst_of_src
        seed_rgb = result.seed_rgb

    state = SeedState.on_grid(side)
    frames = settings.frames
    for t in range(frames):
        if cancel is not None and cancel.is_set():
            logger.info("animation cancelled after %d of %d frames", t, frames)
            return
        frame = render_frame(state.pos, seed_rgb, side)
        progress = ASSIGNMENT_DONE + (1.0 - ASSIGNMENT_DONE) * (t + 1) / frames
        yield FrameEvent(frame=frame, index=t, frames=frames, progress=progress)
        if t < frames - 1:
            sim_step(state, dst_of_src, side, settings.sim)


def render_final(
    src_rgb: np.ndarray,
    tgt_rgb: np.ndarray,
    settings: MosaicSettings,
    cancel: Optional[threading.Event] = None,
    permutation: Optional[PermutationModel] = None,
) -> Optional[np.ndarray]:
    """Run to completion and return only the last frame emitted.

    None if the run was cancelled before the first frame.
    """
    last = None
    for event in run_pipeline(src_rgb, tgt_rgb, settings, cancel, permutation):
        if isinstance(event, FrameEvent):
            last = event.frame
    return last
