import numpy as np
from dataclasses import dataclass

from .errors import InputValidationError


@dataclass
class PermutationModel:
    H: int
    W: int
    perm: np.ndarray  # shape (H*W,), dtype=int64, destination cell -> source pixel
    inv_perm: np.ndarray  # shape (H*W,), dtype=int64, source pixel -> destination cell

    @classmethod
    def from_perm(cls, perm_raw: np.ndarray) -> "PermutationModel":
        perm_raw = np.asarray(perm_raw)
        if perm_raw.ndim != 1:
            raise InputValidationError("Permutation must be a 1D array")

        N = perm_raw.size
        if N == 0:
            raise InputValidationError("Permutation is empty")
        if not np.issubdtype(perm_raw.dtype, np.integer):
            raise InputValidationError("Permutation must hold integer indices")
        if perm_raw.min() != 0 or perm_raw.max() != N - 1:
            raise InputValidationError("Permutation indices must be 0..N-1")
        if np.unique(perm_raw).size != N:
            raise InputValidationError("Permutation is not bijective")

        side = int(np.sqrt(N))
        if side * side != N:
            raise InputValidationError("Permutation size must form a square image")

        perm = perm_raw.astype(np.int64)
        inv_perm = np.empty_like(perm)
        inv_perm[perm] = np.arange(N, dtype=np.int64)

        return cls(H=side, W=side, perm=perm, inv_perm=inv_perm)

    @classmethod
    def from_npy(cls, path: str) -> "PermutationModel":
        return cls.from_perm(np.load(path))

    def save_npy(self, path: str):
        np.save(path, self.perm)

    @property
    def size(self) -> int:
        return self.H * self.W

    def dst_of_src(self) -> np.ndarray:
        """(N, 2) float64 destination (y, x) for every source pixel."""
        yB, xB = np.divmod(self.inv_perm, self.W)
        return np.stack([yB, xB], axis=1).astype(np.float64)

    def map_coords_src_to_dst(self, y: int, x: int) -> tuple[int, int]:
        idx_src = y * self.W + x
        idx_dst = self.inv_perm[idx_src]
        yB, xB = divmod(int(idx_dst), self.W)
        return yB, xB

    def map_coords_dst_to_src(self, y: int, x: int) -> tuple[int, int]:
        idx_dst = y * self.W + x
        idx_src = self.perm[idx_dst]
        yA, xA = divmod(int(idx_src), self.W)
        return yA, xA
