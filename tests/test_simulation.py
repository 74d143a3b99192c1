import dataclasses

import numpy as np

from voronoi_mosaic.settings import SimParams
from voronoi_mosaic.simulation import SeedState, build_buckets, sim_step


def _reference_step(pos, vel, dst, side, p):
    """Plain per-seed loop over all pairs in neighbouring cells."""
    pos = pos.copy()
    vel = vel.copy()
    N = len(pos)
    cells = np.clip(pos.astype(np.int64), 0, side - 1)
    acc = np.zeros((N, 2))
    for i in range(N):
        delta = dst[i] - pos[i]
        dist = np.sqrt((delta * delta).sum()) + 1e-6
        acc[i] = delta * (p.k_dst * dist / side)
        v_sum = np.zeros(2)
        w_sum = 0.0
        for j in range(N):
            if j == i or np.abs(cells[j] - cells[i]).max() > 1:
                continue
            dp = pos[i] - pos[j]
            d2 = (dp * dp).sum() + 1e-6
            d = np.sqrt(d2)
            if d < p.repel_radius:
                acc[i] += dp / d * p.repel_strength * (p.repel_radius - d) / p.repel_radius
            w = 1.0 / (1.0 + d2)
            v_sum += vel[j] * w
            w_sum += w
        if w_sum > 0:
            acc[i] += (v_sum / w_sum - vel[i]) * p.align_strength
    vel = (vel + acc * p.dt) * p.damp
    speed = np.sqrt((vel * vel).sum(axis=1)) + 1e-8
    fast = speed > p.max_v
    vel[fast] *= (p.max_v / speed[fast])[:, None]
    pos = np.clip(pos + vel * p.dt, 0, side - 1)
    return pos, vel


def _random_state(side, n, seed):
    rng = np.random.default_rng(seed)
    pos = rng.random((n, 2)) * (side - 1)
    vel = (rng.random((n, 2)) - 0.5) * 2.0
    dst = rng.random((n, 2)) * (side - 1)
    return SeedState(pos=pos, vel=vel), dst


def test_on_grid_layout():
    state = SeedState.on_grid(3)
    assert state.pos.shape == (9, 2)
    assert state.pos[5].tolist() == [1.0, 2.0]
    assert not state.vel.any()


def test_buckets_hold_every_seed_once():
    side = 6
    state, _ = _random_state(side, 50, seed=1)
    buckets = build_buckets(state.pos, side)
    seen = np.concatenate(
        [buckets.members(cy, cx, side) for cy in range(side) for cx in range(side)]
    )
    assert sorted(seen.tolist()) == list(range(50))
    for cy in range(side):
        for cx in range(side):
            for i in buckets.members(cy, cx, side):
                assert state.pos[i].astype(int).tolist() == [cy, cx]


def test_step_matches_reference_loop():
    side = 6
    p = SimParams()
    state, dst = _random_state(side, 40, seed=2)
    expected_pos, expected_vel = _reference_step(state.pos, state.vel, dst, side, p)
    sim_step(state, dst, side, p)
    np.testing.assert_allclose(state.vel, expected_vel, rtol=1e-9, atol=1e-12)
    np.testing.assert_allclose(state.pos, expected_pos, rtol=1e-9, atol=1e-12)


def test_speed_limit_and_bounds_hold():
    side = 12
    p = dataclasses.replace(SimParams(), k_dst=0.5, max_v=1.5)
    state = SeedState.on_grid(side)
    dst = np.random.default_rng(3).permutation(state.pos)
    for _ in range(60):
        sim_step(state, dst, side, p)
        assert state.speeds().max() <= p.max_v + 1e-9
        assert state.pos.min() >= 0.0
        assert state.pos.max() <= side - 1


def test_seeds_at_rest_on_their_destination_stay_put():
    side = 5
    state = SeedState.on_grid(side)
    dst = state.pos.copy()
    for _ in range(10):
        sim_step(state, dst, side, SimParams())
    np.testing.assert_array_equal(state.pos, dst)
    assert not state.vel.any()


def test_seeds_approach_their_destinations():
    side = 8
    state = SeedState.on_grid(side)
    dst = (side - 1) - state.pos

    def mean_distance():
        return np.hypot(*(dst - state.pos).T).mean()

    start = mean_distance()
    for _ in range(200):
        sim_step(state, dst, side, SimParams())
    assert mean_distance() < start
