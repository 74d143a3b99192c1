import threading

import numpy as np
import pytest

from tests.helpers import random_rgb
from voronoi_mosaic.errors import InputValidationError
from voronoi_mosaic.settings import MosaicSettings
from voronoi_mosaic.worker import AssignmentTask


def test_task_reports_phases_and_returns_bijection():
    side = 6
    settings = MosaicSettings(side=side, iterations=1200, progress_interval=300)
    task = AssignmentTask(random_rgb(side, 0), random_rgb(side, 1), settings)
    task.start()
    events = list(task.events())
    task.join(5)

    assert [e.phase for e in events[:4]] == ["lab", "edges", "init", "refine"]
    refine = [e for e in events if e.phase == "refine"]
    assert [e.iteration for e in refine] == [0, 300, 600, 900, 1200]
    assert all(a.progress <= b.progress for a, b in zip(events, events[1:]))

    result = task.result
    assert result is not None
    assert sorted(result.permutation.perm.tolist()) == list(range(side * side))
    assert result.dst_of_src.shape == (side * side, 2)
    assert result.accepted == refine[-1].accepted


def test_task_works_on_copies():
    side = 4
    src = random_rgb(side, 2)
    original = src.copy()
    task = AssignmentTask(src, random_rgb(side, 3), MosaicSettings(side=side, iterations=100))
    src[:] = 0.0
    task.start()
    for _ in task.events():
        pass
    np.testing.assert_array_equal(task.result.seed_rgb, original)


def test_cancel_stops_refine_without_result():
    side = 16
    settings = MosaicSettings(side=side, iterations=2_000_000, progress_interval=1000)
    task = AssignmentTask(random_rgb(side, 4), random_rgb(side, 5), settings)
    cancel = threading.Event()
    task.start()
    seen = 0
    for event in task.events(cancel):
        if event.phase == "refine" and event.iteration:
            seen = event.iteration
            cancel.set()
    task.join(5)
    assert task.cancelled
    assert task.result is None
    assert 0 < seen < settings.iterations


def test_worker_errors_reach_the_consumer():
    side = 4
    # bypasses MosaicSettings.validate, so the error comes from the worker thread
    settings = MosaicSettings(side=side, iterations=10, edge_alpha=-1.0)
    task = AssignmentTask(random_rgb(side), random_rgb(side, 1), settings)
    task.start()
    with pytest.raises(InputValidationError):
        for _ in task.events():
            pass
