from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from .permutation_model import PermutationModel


@dataclass(frozen=True)
class ProgressEvent:
    phase: str
    progress: float
    # refine only
    iteration: Optional[int] = None
    iterations: Optional[int] = None
    radius: Optional[int] = None
    accepted: Optional[int] = None
    # set once, on the event that closes the assignment stage
    permutation: Optional[PermutationModel] = field(default=None, repr=False)

    def describe(self) -> str:
        if self.permutation is not None:
            return "Assignment done. Simulating + rendering..."
        if self.phase == "refine" and self.iteration is not None:
            return (
                f"Assignment: {self.iteration}/{self.iterations} "
                f"(radius={self.radius}, accepted={self.accepted})"
            )
        return {
            "lab": "Converting to Lab...",
            "edges": "Computing edge importance...",
            "init": "Building initial permutation...",
        }.get(self.phase, self.phase)


@dataclass(frozen=True)
class FrameEvent:
    frame: np.ndarray = field(repr=False)  # (side, side, 4) uint8 RGBA
    index: int
    frames: int
    progress: float
    phase: str = "render"

    @property
    def last(self) -> bool:
        return self.index == self.frames - 1

    def describe(self) -> str:
        return f"Rendering frame {self.index + 1}/{self.frames}..."
