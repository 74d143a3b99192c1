import logging
import queue
import threading
from dataclasses import dataclass
from typing import Iterator, Optional

import numpy as np

from .assignment import SwapRefiner, initial_perm_sort, initial_radius
from .color import rgb_to_lab
from .events import ProgressEvent
from .importance import importance_from_edges
from .permutation_model import PermutationModel
from .settings import MosaicSettings

logger = logging.getLogger(__name__)

REFINE_START = 0.14
REFINE_SPAN = 0.26
POLL_SECONDS = 0.05


@dataclass(frozen=True)
class AssignmentResult:
    permutation: PermutationModel
    dst_of_src: np.ndarray  # (N, 2) float64 (y, x)
    seed_rgb: np.ndarray  # (N, 3) float64 in [0,1]
    accepted: int


class AssignmentTask:
    """Lab, edges, initial sort and refine on a worker thread over private copies of the inputs."""

    def __init__(self, src_rgb: np.ndarray, tgt_rgb: np.ndarray, settings: MosaicSettings):
        side = settings.side
        # copy-in: the caller may reuse or mutate its buffers while we run
        self._src = np.array(src_rgb, dtype=np.float64).reshape(side * side, 3)
        self._tgt = np.array(tgt_rgb, dtype=np.float64).reshape(side * side, 3)
        self._settings = settings
        self._messages: "queue.Queue[tuple[str, object]]" = queue.Queue()
        self._cancel = threading.Event()
        self._thread = threading.Thread(target=self._run, name="assignment", daemon=True)
        self.result: Optional[AssignmentResult] = None

    def start(self):
        self._thread.start()

    def cancel(self):
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def join(self, timeout: Optional[float] = None):
        self._thread.join(timeout)

    def events(self, cancel: Optional[threading.Event] = None) -> Iterator[ProgressEvent]:
        """
        Yield progress events until the worker finishes.

        Sets self.result on success. Re-raises any exception from the worker.
        If `cancel` is set meanwhile, the worker is told to stop and the
        generator ends with self.result left as None.
        """
        while True:
            if cancel is not None and cancel.is_set():
                self.cancel()
            try:
                kind, payload = self._messages.get(timeout=POLL_SECONDS)
            except queue.Empty:
                continue
            if kind == "progress":
                yield payload
            elif kind == "done":
                self.result = payload
                return
            elif kind == "cancelled":
                logger.info("assignment cancelled")
                return
            elif kind == "error":
                raise payload

    def _post(self, event: ProgressEvent):
        self._messages.put(("progress", event))

    def _run(self):
        try:
            result = self._compute()
        except Exception as exc:
            logger.exception("assignment failed")
            self._messages.put(("error", exc))
            return
        if result is None:
            self._messages.put(("cancelled", None))
        else:
            self._messages.put(("done", result))

    def _compute(self) -> Optional[AssignmentResult]:
        s = self._settings
        side = s.side

        self._post(ProgressEvent("lab", 0.02))
        src_lab = rgb_to_lab(self._src)
        tgt_lab = rgb_to_lab(self._tgt)

        self._post(ProgressEvent("edges", 0.06))
        weights = importance_from_edges(self._tgt, side, s.edge_alpha)

        self._post(ProgressEvent("init", 0.10))
        perm = initial_perm_sort(src_lab, tgt_lab)

        refiner = SwapRefiner(
            perm,
            src_lab,
            tgt_lab,
            weights,
            side,
            s.iterations,
            proximity=s.proximity,
            anneal=s.anneal,
            rng=np.random.default_rng(s.seed),
        )
        self._post(
            ProgressEvent(
                "refine",
                REFINE_START,
                iteration=0,
                iterations=s.iterations,
                radius=initial_radius(side),
                accepted=0,
            )
        )
        while not refiner.done:
            if self._cancel.is_set():
                return None
            snap = refiner.run(s.progress_interval)
            frac = snap.iteration / max(1, snap.iterations)
            self._post(
                ProgressEvent(
                    "refine",
                    REFINE_START + REFINE_SPAN * frac,
                    iteration=snap.iteration,
                    iterations=snap.iterations,
                    radius=snap.radius,
                    accepted=snap.accepted,
                )
            )
        if self._cancel.is_set():
            return None

        logger.info(
            "assignment done: %d iterations, %d swaps accepted",
            refiner.iteration,
            refiner.accepted,
        )
        model = PermutationModel.from_perm(refiner.perm)
        return AssignmentResult(
            permutation=model,
            dst_of_src=model.dst_of_src(),
            seed_rgb=self._src.copy(),
            accepted=refiner.accepted,
        )
