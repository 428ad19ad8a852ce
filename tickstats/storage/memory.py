"""
In‑memory symbol registry.

Notes
-----
* Every symbol owns a fixed tuple of RollingStatsBuffer instances, one
  per tier; tier *i* (1‑indexed) keeps the last ``tier_base ** i`` values.
* The symbol → entry map is guarded by a plain mutex that is held only
  for lookup / insertion.  Each entry carries its own reader/writer
  lock: ingest holds it exclusively across the whole fan‑out, query
  holds it shared, so a query never sees half of a batch and calls for
  different symbols do not wait on each other.
* Entries are created lazily on first ingest and never removed.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, NoReturn, Sequence, Tuple

from prometheus_client import Counter, Gauge

from tickstats.errors import BatchTooLarge, InvalidTier, SymbolNotFound, TickStatsError
from tickstats.processors.rolling_window import RollingStatsBuffer, StatsSnapshot
from tickstats.storage.rwlock import ReadWriteLock

logger = logging.getLogger(__name__)

DEFAULT_TIERS = 8
DEFAULT_TIER_BASE = 10
DEFAULT_MAX_BATCH = 10_000

# Prometheus
_BATCHES = Counter("tickstats_batches_total", "accepted ingest batches")
_VALUES = Counter("tickstats_values_total", "values ingested across all symbols")
_REJECTED = Counter("tickstats_rejected_total", "rejected registry calls", ["reason"])
_SYMBOLS = Gauge("tickstats_symbols", "symbols tracked by the registry")


class _SymbolEntry:
    __slots__ = ("buffers", "lock")

    def __init__(self, buffers: Tuple[RollingStatsBuffer, ...]):
        self.buffers = buffers
        self.lock = ReadWriteLock()


class SymbolRegistry:
    """
    Thread‑safe map of symbol → per‑tier rolling statistics.

    Parameters
    ----------
    tiers     : int – number of windows per symbol (default 8)
    tier_base : int – tier *i* holds ``tier_base ** i`` values (default 10)
    max_batch : int – largest batch accepted by :meth:`ingest` (default 10 000)
    """

    def __init__(
        self,
        tiers: int = DEFAULT_TIERS,
        tier_base: int = DEFAULT_TIER_BASE,
        max_batch: int = DEFAULT_MAX_BATCH,
    ):
        if tiers <= 0:
            raise ValueError("tiers must be a positive integer")
        if tier_base < 2:
            raise ValueError("tier_base must be at least 2")
        if max_batch <= 0:
            raise ValueError("max_batch must be a positive integer")

        self.tiers = tiers
        self.tier_base = tier_base
        self.max_batch = max_batch
        self.capacities: Tuple[int, ...] = tuple(
            tier_base ** k for k in range(1, tiers + 1)
        )

        self._entries: Dict[str, _SymbolEntry] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # public API                                                         #
    # ------------------------------------------------------------------ #
    def ingest(self, symbol: str, values: Sequence[float]) -> None:
        """
        Append *values* to every tier of *symbol*, creating the symbol on
        first use.

        :raises BatchTooLarge: more than ``max_batch`` values; nothing is
            applied in that case.
        """
        if len(values) > self.max_batch:
            self._reject(BatchTooLarge(len(values), self.max_batch))

        entry = self._get_or_create(symbol)
        with entry.lock.write():
            for buf in entry.buffers:
                buf.append_batch(values)

        _BATCHES.inc()
        _VALUES.inc(len(values))
        logger.debug("Ingested %d value(s) for %s", len(values), symbol)

    def query(self, symbol: str, tier: int) -> StatsSnapshot:
        """
        Snapshot of *symbol*'s window at *tier* (1‑indexed).

        :raises InvalidTier: *tier* is not an integer in ``[1, tiers]``
        :raises SymbolNotFound: *symbol* was never ingested
        """
        if isinstance(tier, bool) or not isinstance(tier, int) or not 1 <= tier <= self.tiers:
            self._reject(InvalidTier(tier, self.tiers))

        with self._lock:
            entry = self._entries.get(symbol)
        if entry is None:
            self._reject(SymbolNotFound(symbol))

        with entry.lock.read():
            return entry.buffers[tier - 1].snapshot()

    def symbols(self) -> List[str]:
        """Sorted list of every symbol seen so far."""
        with self._lock:
            return sorted(self._entries)

    def __contains__(self, symbol: object) -> bool:
        with self._lock:
            return symbol in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ------------------------------------------------------------------ #
    # internal                                                           #
    # ------------------------------------------------------------------ #
    def _make_buffers(self) -> Tuple[RollingStatsBuffer, ...]:
        return tuple(RollingStatsBuffer(cap) for cap in self.capacities)

    def _get_or_create(self, symbol: str) -> _SymbolEntry:
        with self._lock:
            entry = self._entries.get(symbol)
            if entry is None:
                entry = _SymbolEntry(self._make_buffers())
                self._entries[symbol] = entry
                _SYMBOLS.inc()
                logger.info("Tracking new symbol %s (%d tiers)", symbol, self.tiers)
            return entry

    @staticmethod
    def _reject(exc: TickStatsError) -> NoReturn:
        _REJECTED.labels(exc.reason).inc()
        logger.debug("Rejected registry call: %s", exc)
        raise exc
