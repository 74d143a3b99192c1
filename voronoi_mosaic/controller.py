import dataclasses
import logging
import threading
from enum import Enum, auto
from typing import Iterator, List, Optional

import numpy as np

from . import image_io
from .events import FrameEvent, ProgressEvent
from .permutation_model import PermutationModel
from .pipeline import Event, run_pipeline
from .settings import MosaicSettings

logger = logging.getLogger(__name__)


class RunState(Enum):
    IDLE = auto()
    ASSIGNING = auto()
    ANIMATING = auto()
    STOPPED = auto()
    DONE = auto()


class MosaicController:
    def __init__(self, settings: Optional[MosaicSettings] = None):
        self.settings = settings or MosaicSettings()
        self.source_path: Optional[str] = None
        self.target_path: Optional[str] = None
        self.source: Optional[np.ndarray] = None  # (N, 3) float64 at settings.side
        self.target: Optional[np.ndarray] = None
        self.permutation: Optional[PermutationModel] = None
        self.frame: Optional[np.ndarray] = None  # (side, side, 4) uint8
        self.recorded: List[np.ndarray] = []
        self.record = True
        self.last_event: Optional[Event] = None
        self.state = RunState.IDLE
        self._events: Optional[Iterator[Event]] = None
        self._cancel: Optional[threading.Event] = None

    def update_settings(self, **changes):
        """Replace settings fields; images are re-sampled if the side changes."""
        if self.is_running:
            raise ValueError("Cannot change settings while a run is in progress")
        old_side = self.settings.side
        self.settings = dataclasses.replace(self.settings, **changes)
        if self.settings.side != old_side:
            self.permutation = None
            self._reload_images()

    def _reload_images(self):
        side = self.settings.side
        if self.source_path is not None:
            self.source = image_io.load_square_rgb(self.source_path, side)
        if self.target_path is not None:
            self.target = image_io.load_square_rgb(self.target_path, side)

    def load_source(self, path: str):
        self.source = image_io.load_square_rgb(path, self.settings.side)
        self.source_path = path
        self.frame = image_io.rgb01_to_rgba(self.source, self.settings.side)

    def load_target(self, path: str):
        self.target = image_io.load_square_rgb(path, self.settings.side)
        self.target_path = path
        self.permutation = None

    def load_permutation(self, path: str):
        perm_model = PermutationModel.from_npy(path)
        if perm_model.H != self.settings.side:
            self.update_settings(side=perm_model.H)
        self.permutation = perm_model

    def save_permutation(self, path: str):
        if self.permutation is None:
            raise ValueError("No permutation has been computed yet")
        self.permutation.save_npy(path)

    def source_preview(self) -> Optional[np.ndarray]:
        if self.source is None:
            return None
        return image_io.rgb01_to_rgba(self.source, self.settings.side)

    def target_preview(self) -> Optional[np.ndarray]:
        if self.target is None:
            return None
        return image_io.rgb01_to_rgba(self.target, self.settings.side)

    @property
    def is_running(self) -> bool:
        return self.state in (RunState.ASSIGNING, RunState.ANIMATING)

    def start(self, reuse_permutation: bool = False):
        if self.source is None:
            raise ValueError("Source image must be loaded before running")
        if self.target is None:
            raise ValueError("Target image must be loaded before running")
        if self.is_running:
            self.stop()
        self._cancel = threading.Event()
        permutation = self.permutation if reuse_permutation else None
        self._events = run_pipeline(
            self.source, self.target, self.settings, self._cancel, permutation
        )
        self.recorded.clear()
        self.last_event = None
        self.state = RunState.ANIMATING if permutation is not None else RunState.ASSIGNING

    def stop(self):
        if self._cancel is not None:
            self._cancel.set()
        if self._events is not None:
            self._events.close()
            self._events = None
        if self.is_running:
            self.state = RunState.STOPPED

    def advance(self) -> Optional[Event]:
        """Pull the next event from the run; None once the run has ended."""
        if self._events is None:
            return None
        try:
            event = next(self._events)
        except StopIteration:
            self._events = None
            cancelled = self._cancel is not None and self._cancel.is_set()
            self.state = RunState.STOPPED if cancelled else RunState.DONE
            return None
        except Exception:
            self._events = None
            self.state = RunState.STOPPED
            raise

        self.last_event = event
        if isinstance(event, ProgressEvent) and event.permutation is not None:
            self.permutation = event.permutation
            self.state = RunState.ANIMATING
        elif isinstance(event, FrameEvent):
            self.frame = event.frame
            if self.record:
                self.recorded.append(event.frame)
        return event

    def run_to_end(self) -> Optional[np.ndarray]:
        while self.advance() is not None:
            pass
        return self.frame

    def status_text(self) -> str:
        ev = self.last_event
        if self.state == RunState.DONE:
            return "Done."
        if self.state == RunState.STOPPED:
            return "Stopped."
        if ev is None:
            return "Idle." if self.state == RunState.IDLE else "Starting..."
        return ev.describe()

    def progress(self) -> float:
        if self.state == RunState.DONE:
            return 1.0
        if self.last_event is None:
            return 0.0
        return float(self.last_event.progress)

    def save_frame(self, path: str, scale: int = 1):
        if self.frame is None:
            raise ValueError("No frame to save")
        image_io.save_png(self.frame, path, scale)

    def export_animation(self, path: str, scale: int = 1):
        if not self.recorded:
            raise ValueError("No recorded frames to export")
        image_io.save_animation(self.recorded, path, self.settings.fps, scale)
