from dataclasses import dataclass

import numpy as np

from .settings import SimParams

DIST_EPSILON = 1e-6
SPEED_EPSILON = 1e-8

NEIGHBOUR_OFFSETS = [(dy, dx) for dy in (-1, 0, 1) for dx in (-1, 0, 1)]


@dataclass
class SeedState:
    pos: np.ndarray
    vel: np.ndarray

    @classmethod
    def on_grid(cls, side: int) -> "SeedState":
        """Every seed at its own source pixel, at rest."""
        y, x = np.divmod(np.arange(side * side), side)
        pos = np.stack([y, x], axis=1).astype(np.float64)
        return cls(pos=pos, vel=np.zeros_like(pos))

    def speeds(self) -> np.ndarray:
        return np.hypot(self.vel[:, 0], self.vel[:, 1])


@dataclass
class Buckets:
    """Seeds grouped by truncated grid cell.

    table[c, k] is the k-th seed in cell c, -1 past the end of the cell.
    """

    cells: np.ndarray  # (N, 2) int64 cell (y, x) of every seed
    table: np.ndarray  # (side*side, depth) int64

    def members(self, cy: int, cx: int, side: int) -> np.ndarray:
        row = self.table[cy * side + cx]
        return row[row >= 0]


def build_buckets(pos: np.ndarray, side: int) -> Buckets:
    cells = np.clip(pos.astype(np.int64), 0, side - 1)
    cell_id = cells[:, 0] * side + cells[:, 1]
    order = np.argsort(cell_id, kind="stable")
    counts = np.bincount(cell_id, minlength=side * side)
    starts = np.cumsum(counts) - counts
    depth = max(1, int(counts.max()))
    sorted_cells = cell_id[order]
    rank = np.arange(len(order)) - starts[sorted_cells]
    table = np.full((side * side, depth), -1, dtype=np.int64)
    table[sorted_cells, rank] = order
    return Buckets(cells=cells, table=table)


def sim_step(state: SeedState, dst: np.ndarray, side: int, p: SimParams):
    """Advance every seed one timestep, in place."""
    pos, vel = state.pos, state.vel
    N = pos.shape[0]

    # attraction grows with distance: far seeds accelerate, arriving ones slow down
    delta = dst - pos
    dist = np.sqrt((delta * delta).sum(axis=1)) + DIST_EPSILON
    acc = delta * (p.k_dst * dist / side)[:, None]

    buckets = build_buckets(pos, side)
    self_idx = np.arange(N)[:, None]
    v_sum = np.zeros((N, 2))
    w_sum = np.zeros(N)

    # Only the 3x3 block of buckets around each seed is scanned.
    for oy, ox in NEIGHBOUR_OFFSETS:
        ny = buckets.cells[:, 0] + oy
        nx = buckets.cells[:, 1] + ox
        inside = (ny >= 0) & (ny < side) & (nx >= 0) & (nx < side)
        cand = buckets.table[np.clip(ny, 0, side - 1) * side + np.clip(nx, 0, side - 1)]
        mask = (cand >= 0) & inside[:, None] & (cand != self_idx)
        if not mask.any():
            continue
        j = np.where(mask, cand, 0)

        dp = pos[:, None, :] - pos[j]
        d2 = (dp * dp).sum(axis=2) + DIST_EPSILON
        d = np.sqrt(d2)

        close = mask & (d < p.repel_radius)
        w_rep = np.where(close, (p.repel_radius - d) / p.repel_radius, 0.0)
        acc += (dp / d[..., None] * (p.repel_strength * w_rep)[..., None]).sum(axis=1)

        w_vel = np.where(mask, 1.0 / (1.0 + d2), 0.0)
        v_sum += (vel[j] * w_vel[..., None]).sum(axis=1)
        w_sum += w_vel.sum(axis=1)

    has = w_sum > 0
    v_avg = v_sum[has] / w_sum[has, None]
    acc[has] += (v_avg - vel[has]) * p.align_strength

    vel += acc * p.dt
    vel *= p.damp

    speed = np.sqrt((vel * vel).sum(axis=1)) + SPEED_EPSILON
    fast = speed > p.max_v
    vel[fast] *= (p.max_v / speed[fast])[:, None]

    pos += vel * p.dt
    np.clip(pos, 0, side - 1, out=pos)
