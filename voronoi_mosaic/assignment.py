import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)

# Sort key weights for (L, a, b)
SORT_KEY_WEIGHTS = np.array([0.70, 0.15, 0.15])

T_START = 1.0
T_END = 0.02
T_FLOOR = 1e-9

# Uniforms drawn per iteration: cell a, row offset, column offset, acceptance.
DRAWS_PER_ITERATION = 4


def lab_sort_key(lab: np.ndarray) -> np.ndarray:
    return np.asarray(lab, dtype=np.float64) @ SORT_KEY_WEIGHTS


def initial_perm_sort(src_lab: np.ndarray, tgt_lab: np.ndarray) -> np.ndarray:
    """Pair the k-th ranked destination cell with the k-th ranked source pixel."""
    s_order = np.argsort(lab_sort_key(src_lab), kind="stable")
    t_order = np.argsort(lab_sort_key(tgt_lab), kind="stable")
    perm = np.empty(len(s_order), dtype=np.int64)
    perm[t_order] = s_order
    return perm


def assignment_costs(
    perm: np.ndarray,
    src_lab: np.ndarray,
    tgt_lab: np.ndarray,
    weights: np.ndarray,
    side: int,
    proximity: float,
) -> np.ndarray:
    """
    Per destination cell cost of the current assignment, shape (N,).

    perm[dst] = src. cost = w[dst] * |Lab_tgt[dst] - Lab_src[src]|^2
                           + (proximity * |grid(dst) - grid(src)|^2)^2
    """
    perm = np.asarray(perm)
    dst = np.arange(perm.size)
    diff = np.asarray(tgt_lab)[dst] - np.asarray(src_lab)[perm]
    color = (diff * diff).sum(axis=1) * np.asarray(weights)
    dy = dst // side - perm // side
    dx = dst % side - perm % side
    prox = proximity * (dy * dy + dx * dx)
    return color + prox * prox


def total_cost(perm, src_lab, tgt_lab, weights, side, proximity) -> float:
    return float(assignment_costs(perm, src_lab, tgt_lab, weights, side, proximity).sum())


def initial_radius(side: int) -> int:
    return max(4, side // 2)


def temperature(iteration: int, iterations: int) -> float:
    """Linear anneal from T_START at the first iteration to T_END at the last."""
    t = iteration / max(1, iterations - 1)
    return (1.0 - t) * T_START + t * T_END


@dataclass(frozen=True)
class RefineProgress:
    iteration: int
    iterations: int
    radius: int
    accepted: int


class SwapRefiner:
    """
    Resumable refine phase.

    All schedules depend on the global iteration index, and exactly
    DRAWS_PER_ITERATION uniforms are consumed per iteration, so run(a) followed
    by run(b) gives the same permutation as run(a + b) for the same seed.
    """

    def __init__(
        self,
        perm: np.ndarray,
        src_lab: np.ndarray,
        tgt_lab: np.ndarray,
        weights: np.ndarray,
        side: int,
        iterations: int,
        proximity: float = 0.025,
        anneal: bool = True,
        rng: Optional[np.random.Generator] = None,
    ):
        self.side = side
        self.iterations = iterations
        self.proximity = proximity
        self.anneal = anneal
        self.rng = rng if rng is not None else np.random.default_rng(0)

        self.radius = initial_radius(side)
        self.stage_iters = max(1, int(iterations / math.log2(self.radius)))
        self.iteration = 0
        self.accepted = 0

        # The hot loop works on Python lists; numpy scalar access is much slower.
        self._perm = [int(s) for s in np.asarray(perm)]
        self._src = np.asarray(src_lab, dtype=np.float64).tolist()
        self._tgt = np.asarray(tgt_lab, dtype=np.float64).tolist()
        self._w = np.asarray(weights, dtype=np.float64).tolist()
        self._cost = assignment_costs(
            self._perm, src_lab, tgt_lab, weights, side, proximity
        ).tolist()

    @property
    def perm(self) -> np.ndarray:
        return np.asarray(self._perm, dtype=np.int64)

    @property
    def done(self) -> bool:
        return self.iteration >= self.iterations

    def total_cost(self) -> float:
        return math.fsum(self._cost)

    def snapshot(self) -> RefineProgress:
        return RefineProgress(self.iteration, self.iterations, self.radius, self.accepted)

    def _cost_at(self, dst: int, src: int) -> float:
        tl, ta, tb = self._tgt[dst]
        sl, sa, sb = self._src[src]
        dL, da, db = tl - sl, ta - sa, tb - sb
        color = (dL * dL + da * da + db * db) * self._w[dst]
        side = self.side
        dy = dst // side - src // side
        dx = dst % side - src % side
        prox = self.proximity * (dy * dy + dx * dx)
        return color + prox * prox

    def run(self, n: int) -> RefineProgress:
        """Advance up to n iterations and return a progress snapshot."""
        n = min(n, self.iterations - self.iteration)
        if n <= 0:
            return self.snapshot()

        draws = self.rng.random((n, DRAWS_PER_ITERATION)).tolist()
        side = self.side
        N = side * side
        perm = self._perm
        cur = self._cost

        for u_a, u_y, u_x, u_acc in draws:
            it = self.iteration
            self.iteration += 1
            if it > 0 and it % self.stage_iters == 0 and self.radius > 1:
                self.radius = max(1, self.radius // 2)
            radius = self.radius
            span = 2 * radius + 1

            a = int(u_a * N)
            ay, ax = divmod(a, side)
            by = min(side - 1, max(0, ay + int(u_y * span) - radius))
            bx = min(side - 1, max(0, ax + int(u_x * span) - radius))
            b = by * side + bx
            if a == b:
                continue

            src_a = perm[a]
            src_b = perm[b]
            new_a = self._cost_at(a, src_b)
            new_b = self._cost_at(b, src_a)
            delta = (new_a + new_b) - (cur[a] + cur[b])

            accept = delta < 0
            if not accept and self.anneal and delta > 0:
                T = max(T_FLOOR, temperature(it, self.iterations))
                accept = u_acc < math.exp(-delta / T)

            if accept:
                perm[a] = src_b
                perm[b] = src_a
                cur[a] = new_a
                cur[b] = new_b
                self.accepted += 1

        return self.snapshot()


def refine_perm_swaps(
    perm: np.ndarray,
    src_lab: np.ndarray,
    tgt_lab: np.ndarray,
    weights: np.ndarray,
    side: int,
    iterations: int = 160_000,
    proximity: float = 0.025,
    anneal: bool = True,
    seed: int = 0,
) -> np.ndarray:
    refiner = SwapRefiner(
        perm,
        src_lab,
        tgt_lab,
        weights,
        side,
        iterations,
        proximity=proximity,
        anneal=anneal,
        rng=np.random.default_rng(seed),
    )
    progress = refiner.run(iterations)
    logger.debug(
        "refined %d iterations, %d swaps accepted, final radius %d",
        progress.iteration,
        progress.accepted,
        progress.radius,
    )
    return refiner.perm
