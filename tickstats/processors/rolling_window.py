"""
RollingStatsBuffer  –  bounded FIFO with running min / max / mean / var.

Every append is O(1) except when the evicted value is the current
minimum or maximum; then both extrema are recomputed by scanning the
remaining window.
"""

from __future__ import annotations

from collections import deque
from dataclasses import asdict, dataclass
from typing import Deque, Dict, Iterable

__all__ = ["RollingStatsBuffer", "StatsSnapshot"]


@dataclass(frozen=True)
class StatsSnapshot:
    """Point‑in‑time statistics readout of one window."""

    min: float = 0.0
    max: float = 0.0
    last: float = 0.0
    avg: float = 0.0
    var: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


class RollingStatsBuffer:
    """
    Keeps the most recent *capacity* values together with their running
    sum, sum of squares and extrema.

    Parameters
    ----------
    capacity : int – window length, must be positive
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"capacity must be a positive integer, got {capacity}")

        self._capacity = capacity
        self._values: Deque[float] = deque()
        self._sum = 0.0
        self._sum_sq = 0.0
        self._min = float("inf")
        self._max = float("-inf")

    # ------------------------------------------------------------------ #
    # public API                                                         #
    # ------------------------------------------------------------------ #
    @property
    def capacity(self) -> int:
        return self._capacity

    def append_batch(self, values: Iterable[float]) -> None:
        """Append *values* in order, evicting the oldest ones as needed."""
        for value in values:
            self._append(value)

    def snapshot(self) -> StatsSnapshot:
        """
        Return the current statistics; all zeros while the window is empty.

        ``var`` is the population variance, clamped at zero to hide
        floating‑point cancellation on constant windows.
        """
        n = len(self._values)
        if n == 0:
            return StatsSnapshot()

        avg = self._sum / n
        var = self._sum_sq / n - avg * avg
        return StatsSnapshot(
            min=self._min,
            max=self._max,
            last=self._values[-1],
            avg=avg,
            var=max(var, 0.0),
        )

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"RollingStatsBuffer(capacity={self._capacity}, size={len(self._values)})"

    # ------------------------------------------------------------------ #
    # internal                                                           #
    # ------------------------------------------------------------------ #
    def _append(self, value: float) -> None:
        if len(self._values) >= self._capacity:
            old = self._values.popleft()
            self._sum -= old
            self._sum_sq -= old * old
            # rescan even when a duplicate of the extremum is still retained
            if old == self._min or old == self._max:
                self._rescan_extrema()

        self._values.append(value)
        self._sum += value
        self._sum_sq += value * value
        if value < self._min:
            self._min = value
        if value > self._max:
            self._max = value

    def _rescan_extrema(self) -> None:
        if not self._values:
            self._min = float("inf")
            self._max = float("-inf")
            return
        self._min = min(self._values)
        self._max = max(self._values)
