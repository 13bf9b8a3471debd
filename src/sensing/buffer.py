"""
Fixed-capacity ring buffer of motion samples.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Iterator, Optional

from models.motion import MotionSample

DEFAULT_CAPACITY = 100  # ~2 seconds at 50 Hz


class SampleWindow:
    """
    Lazy, restartable view over the most recent samples of a buffer.

    Iterating twice yields the same samples as long as the buffer has not
    been mutated in between. Iteration never consumes the buffer.
    """

    def __init__(self, ring: Deque[MotionSample], cutoff_ms: Optional[float]):
        self._ring = ring
        self._cutoff_ms = cutoff_ms

    def __iter__(self) -> Iterator[MotionSample]:
        if self._cutoff_ms is None:
            return iter(())
        cutoff = self._cutoff_ms
        return (s for s in self._ring if s.timestamp_ms >= cutoff)

    def __len__(self) -> int:
        return sum(1 for _ in self)


class SampleBuffer:
    """
    Ring buffer of timestamped motion samples.

    Owns no detection policy: storage and windowed retrieval only. Samples are
    expected in arrival order; insertion evicts the oldest sample once full.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._ring: Deque[MotionSample] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._ring.maxlen

    @property
    def latest(self) -> Optional[MotionSample]:
        return self._ring[-1] if self._ring else None

    def push(self, sample: MotionSample) -> None:
        """Append a sample, evicting the oldest when at capacity."""
        self._ring.append(sample)

    def window(self, duration_ms: float) -> SampleWindow:
        """
        Samples within duration_ms of the most recent sample, oldest first.

        The boundary is inclusive: a sample exactly duration_ms older than the
        latest one is part of the window.
        """
        latest = self.latest
        cutoff = None if latest is None else latest.timestamp_ms - duration_ms
        return SampleWindow(self._ring, cutoff)

    def clear(self) -> None:
        self._ring.clear()

    def __len__(self) -> int:
        return len(self._ring)

    def __iter__(self) -> Iterator[MotionSample]:
        return iter(list(self._ring))
