"""Run parameters for a mosaic: assignment, animation and resource limits."""

from __future__ import annotations

from dataclasses import dataclass, field

from .errors import InputValidationError, ResourceLimitError

# Rough per-seed footprint of the O(N) buffers: Lab copies, weights, permutation,
# cost cache, positions, velocities, destinations, JFA id/distance planes and
# the per-step neighbour scratch arrays.
BYTES_PER_SEED = 640


@dataclass(frozen=True)
class SimParams:
    """Seed motion parameters.

    Attributes:
        k_dst:          Attraction gain toward the destination cell.
        damp:           Velocity damping factor applied every step.
        max_v:          Speed limit in cells per timestep.
        repel_radius:   Distance below which neighbouring seeds push apart.
        repel_strength: Peak repulsion acceleration (at zero distance).
        align_strength: How strongly a seed's velocity follows its neighbours.
        dt:             Integration timestep.
    """

    k_dst: float = 0.020
    damp: float = 0.97
    max_v: float = 2.0
    repel_radius: float = 0.95
    repel_strength: float = 0.06
    align_strength: float = 0.03
    dt: float = 1.0


@dataclass(frozen=True)
class MosaicSettings:
    """All tuneable parameters for one mosaic run.

    Attributes:
        side:              Working resolution; both images are side x side.
        iterations:        Swap attempts in the refine phase (0 = init only).
        proximity:         Weight of the migration-distance penalty.
        edge_alpha:        Extra cost weight on target edges.
        frames:            Number of animation frames to emit.
        fps:               Playback rate used by viewers and exporters.
        anneal:            Accept some uphill swaps early in the refine phase.
        seed:              Seed for the refine phase random generator.
        progress_interval: Refine iterations between progress snapshots.
        max_side:          Largest side length accepted before a run starts.
        sim:               Seed motion parameters.
    """

    side: int = 96
    iterations: int = 160_000
    proximity: float = 0.025
    edge_alpha: float = 2.0
    frames: int = 240
    fps: int = 30
    anneal: bool = True
    seed: int = 1234
    progress_interval: int = 5000
    max_side: int = 512
    sim: SimParams = field(default_factory=SimParams)

    def validate(self) -> None:
        if self.side <= 0:
            raise InputValidationError(f"side length must be positive, got {self.side}")
        if self.iterations < 0:
            raise InputValidationError(f"iteration count must be >= 0, got {self.iterations}")
        if self.frames < 1:
            raise InputValidationError(f"frame count must be >= 1, got {self.frames}")
        if self.fps < 1:
            raise InputValidationError(f"fps must be >= 1, got {self.fps}")
        if self.proximity < 0:
            raise InputValidationError(f"proximity must be >= 0, got {self.proximity}")
        if self.edge_alpha < 0:
            raise InputValidationError(f"edge alpha must be >= 0, got {self.edge_alpha}")
        if self.progress_interval < 1:
            raise InputValidationError("progress interval must be >= 1")
        if self.sim.max_v <= 0 or self.sim.dt <= 0:
            raise InputValidationError("max speed and timestep must be positive")
        if self.sim.repel_radius <= 0:
            raise InputValidationError("repulsion radius must be positive")

    def check_resources(self) -> None:
        if self.side > self.max_side:
            raise ResourceLimitError(self.side, estimated_bytes(self.side), self.max_side)


def estimated_bytes(side: int) -> int:
    """Approximate working set of a run at the given side length."""
    return side * side * BYTES_PER_SEED
