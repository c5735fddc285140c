"""Smoothing layer — per-state rolling windows of raw confidence.

Each relevant state id owns a fixed-capacity ring buffer (oldest sample
evicted on overflow).  The smoothed confidence is the buffer **median**,
which shrugs off single-sample spikes; the **population standard
deviation** of the same buffer is the variance/stability signal.
"""

from __future__ import annotations

import statistics
from collections import deque
from collections.abc import Iterable


def median(values: Iterable[float]) -> float:
    data = list(values)
    return statistics.median(data) if data else 0.0


def spread(values: Iterable[float]) -> float:
    """Population standard deviation; 0 for fewer than two values."""
    data = list(values)
    return statistics.pstdev(data) if len(data) >= 2 else 0.0


class SmoothingLayer:
    """Rolling confidence windows keyed by state id.

    Owned by the stabilizer; buffers for ids that are neither current nor
    challenger are dropped by :meth:`retain`, so a returning id starts
    fresh.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._buffers: dict[str, deque[float]] = {}

    @property
    def capacity(self) -> int:
        return self._capacity

    def push(self, state_id: str, confidence: float) -> float:
        """Append a raw confidence and return the new smoothed value."""
        buf = self._buffers.get(state_id)
        if buf is None:
            buf = self._buffers[state_id] = deque(maxlen=self._capacity)
        buf.append(confidence)
        return median(buf)

    def seed(self, state_id: str, confidence: float) -> None:
        """Replace any existing window with a single value."""
        self._buffers[state_id] = deque([confidence], maxlen=self._capacity)

    def smoothed(self, state_id: str) -> float:
        return median(self._buffers.get(state_id, ()))

    def variance(self, state_id: str) -> float:
        return spread(self._buffers.get(state_id, ()))

    def history(self, state_id: str) -> tuple[float, ...]:
        return tuple(self._buffers.get(state_id, ()))

    def retain(self, state_ids: Iterable[str | None]) -> None:
        keep = {s for s in state_ids if s is not None}
        for state_id in list(self._buffers):
            if state_id not in keep:
                del self._buffers[state_id]

    def clear(self) -> None:
        self._buffers.clear()

    def __contains__(self, state_id: object) -> bool:
        return state_id in self._buffers

    def __len__(self) -> int:
        return len(self._buffers)
