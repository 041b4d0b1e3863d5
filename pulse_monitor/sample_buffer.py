"""
Bounded, time-ordered history of brightness samples.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from typing import Deque, Tuple


@dataclass(frozen=True)
class Sample:
    """One brightness reading: ``value`` in [0, 1], ``timestamp`` in ms."""

    value: float
    timestamp: float


class SampleBuffer:
    """
    FIFO of the most recent ``capacity`` samples, oldest first.

    ``push``, ``clear`` and ``snapshot`` hold the same lock, so a session
    stopped from another thread never observes a half-mutated buffer.
    """

    def __init__(self, capacity: int = 300) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._samples: Deque[Sample] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def capacity(self) -> int:
        return self._samples.maxlen

    @property
    def fill_ratio(self) -> float:
        """How full the window is (0 – 1)."""
        return len(self._samples) / self._samples.maxlen

    def push(self, value: float, timestamp: float) -> Sample:
        """Append a sample, evicting the oldest one when full."""
        sample = Sample(float(value), float(timestamp))
        with self._lock:
            self._samples.append(sample)
        return sample

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()

    def snapshot(self) -> Tuple[Sample, ...]:
        """Current contents in insertion order."""
        with self._lock:
            return tuple(self._samples)
