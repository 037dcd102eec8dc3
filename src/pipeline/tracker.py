"""Completion tracking for the generation loop."""
from __future__ import annotations

from enum import Enum
from typing import List

import numpy as np


class TrackerState(str, Enum):
    RUNNING = "running"
    DONE = "done"


class CompletionTracker:
    """Counts contributing frames per bucket and decides when generation may stop.

    The tracker is DONE once every bucket has at least one frame, or once the
    source reports exhaustion through :meth:`finish`.
    """

    def __init__(self, width: int) -> None:
        if width < 1:
            raise ValueError("width must be at least 1")
        self.done = np.zeros(int(width), dtype=np.int64)
        self._filled = 0
        self._exhausted = False

    @property
    def width(self) -> int:
        return int(self.done.shape[0])

    @property
    def filled(self) -> int:
        return self._filled

    @property
    def progress(self) -> float:
        return 100.0 * self._filled / self.width

    @property
    def is_complete(self) -> bool:
        return self._filled == self.width

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    @property
    def state(self) -> TrackerState:
        if self.is_complete or self._exhausted:
            return TrackerState.DONE
        return TrackerState.RUNNING

    def record(self, index: int) -> TrackerState:
        if not 0 <= index < self.width:
            raise IndexError(f"bucket {index} outside [0, {self.width})")
        if self.done[index] == 0:
            self._filled += 1
        self.done[index] += 1
        return self.state

    def finish(self) -> TrackerState:
        self._exhausted = True
        return self.state

    def missing(self) -> List[int]:
        return [int(i) for i in np.flatnonzero(self.done == 0)]
