import numpy as np

UNASSIGNED = -1


def jump_steps(side: int) -> list[int]:
    """Step sizes: largest power of two <= side, halving down to 1."""
    step = 1 << (max(1, side).bit_length() - 1)
    steps = []
    while step >= 1:
        steps.append(step)
        step >>= 1
    return steps


def _shifted(ids: np.ndarray, oy: int, ox: int) -> np.ndarray:
    """out[y, x] = ids[y + oy, x + ox], UNASSIGNED outside the grid."""
    H, W = ids.shape
    out = np.full_like(ids, UNASSIGNED)
    if abs(oy) >= H or abs(ox) >= W:
        return out
    ys = slice(max(0, -oy), H - max(0, oy))
    xs = slice(max(0, -ox), W - max(0, ox))
    ys_src = slice(max(0, oy), H - max(0, -oy))
    xs_src = slice(max(0, ox), W - max(0, -ox))
    out[ys, xs] = ids[ys_src, xs_src]
    return out


def stamp_seeds(seed_pos: np.ndarray, side: int) -> np.ndarray:
    """Place every seed on its rounded cell; when several share a cell the
    one nearest the cell centre keeps it."""
    ids = np.full((side, side), UNASSIGNED, dtype=np.int64)
    if len(seed_pos) == 0:
        return ids
    cell = np.clip(np.floor(seed_pos + 0.5), 0, side - 1).astype(np.int64)
    off = cell - seed_pos
    d2 = (off * off).sum(axis=1)
    flat = cell[:, 0] * side + cell[:, 1]
    order = np.lexsort((d2, flat))
    _, first = np.unique(flat[order], return_index=True)
    winners = order[first]
    ids.reshape(-1)[flat[winners]] = winners
    return ids


def jump_flood(seed_pos: np.ndarray, side: int) -> np.ndarray:
    """
    seed_pos: (N, 2) float (y, x) positions, possibly fractional
    Returns (side, side) int64 seed ids, UNASSIGNED where no seed reached.
    """
    seed_pos = np.asarray(seed_pos, dtype=np.float64).reshape(-1, 2)
    best_id = stamp_seeds(seed_pos, side)
    # Stamped cells hold distance 0 and are never taken over.
    best_d2 = np.where(best_id >= 0, 0.0, np.inf)

    Y, X = np.mgrid[0:side, 0:side].astype(np.float64)

    # one extra step-1 pass after the schedule (JFA+1) fixes most cells plain JFA mislabels
    for step in jump_steps(side) + [1]:
        new_id = best_id.copy()
        new_d2 = best_d2.copy()
        for oy in (-step, 0, step):
            for ox in (-step, 0, step):
                cand = _shifted(best_id, oy, ox)
                valid = cand >= 0
                if not valid.any():
                    continue
                c = np.where(valid, cand, 0)
                dy = Y - seed_pos[c, 0]
                dx = X - seed_pos[c, 1]
                d2 = np.where(valid, dy * dy + dx * dx, np.inf)
                better = d2 < new_d2
                new_id[better] = cand[better]
                new_d2[better] = d2[better]
        best_id, best_d2 = new_id, new_d2

    return best_id


def colors_to_rgba(seed_rgb: np.ndarray) -> np.ndarray:
    """(N, 3) floats in [0,1] -> (N, 4) opaque uint8."""
    rgb = np.clip(np.rint(np.asarray(seed_rgb, dtype=np.float64) * 255.0), 0, 255)
    rgba = np.full((len(rgb), 4), 255, dtype=np.uint8)
    rgba[:, :3] = rgb.astype(np.uint8)
    return rgba


def render_frame(seed_pos: np.ndarray, seed_rgb: np.ndarray, side: int) -> np.ndarray:
    """(side, side, 4) uint8 frame; cells no seed reached are opaque black."""
    ids = jump_flood(seed_pos, side)
    palette = colors_to_rgba(seed_rgb)
    out = np.zeros((side, side, 4), dtype=np.uint8)
    out[..., 3] = 255
    hit = ids >= 0
    out[hit] = palette[ids[hit]]
    return out
