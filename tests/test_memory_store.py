"""Test SymbolRegistry ingest / query semantics and locking."""
import threading

import pytest
from prometheus_client import REGISTRY

from tickstats.errors import BatchTooLarge, InvalidTier, SymbolNotFound, TickStatsError
from tickstats.storage.memory import SymbolRegistry

from conftest import assert_stats


class TestLayout:

    def test_default_tier_capacities(self, registry):
        assert registry.capacities == tuple(10 ** k for k in range(1, 9))

    def test_entry_created_lazily(self, registry):
        assert "AAPL" not in registry
        registry.ingest("AAPL", [1.0])

        assert "AAPL" in registry
        assert len(registry) == 1
        assert [b.capacity for b in registry._entries["AAPL"].buffers] == list(registry.capacities)

    def test_empty_batch_still_creates_symbol(self, registry):
        registry.ingest("MSFT", [])

        assert registry.symbols() == ["MSFT"]
        assert_stats(registry.query("MSFT", 1), min=0, max=0, last=0, avg=0, var=0)

    def test_symbols_sorted(self, registry):
        for sym in ("TSLA", "AAPL", "NVDA"):
            registry.ingest(sym, [1.0])

        assert registry.symbols() == ["AAPL", "NVDA", "TSLA"]

    @pytest.mark.parametrize(
        "kwargs", [{"tiers": 0}, {"tier_base": 1}, {"max_batch": 0}]
    )
    def test_rejects_bad_layout(self, kwargs):
        with pytest.raises(ValueError):
            SymbolRegistry(**kwargs)


class TestIngest:

    def test_fan_out_to_every_tier(self, small_registry):
        small_registry.ingest("BTC", [1.0, 2.0, 3.0, 4.0, 5.0])

        assert_stats(small_registry.query("BTC", 1), min=4.0, max=5.0, last=5.0, avg=4.5)
        assert_stats(small_registry.query("BTC", 2), min=2.0, max=5.0, avg=3.5)
        assert_stats(small_registry.query("BTC", 3), min=1.0, max=5.0, avg=3.0)

    def test_batch_at_limit_accepted(self, small_registry):
        small_registry.ingest("BTC", [1.0] * 16)

        assert_stats(small_registry.query("BTC", 3), avg=1.0)

    def test_batch_too_large_leaves_state_untouched(self, registry):
        with pytest.raises(BatchTooLarge) as exc_info:
            registry.ingest("AAPL", [1.0] * 10_001)

        assert str(exc_info.value) == "Batch size exceeds maximum limit of 10000"
        assert "AAPL" not in registry
        assert len(registry) == 0

    def test_batch_too_large_on_existing_symbol(self, registry):
        registry.ingest("AAPL", [1.0, 2.0])
        with pytest.raises(BatchTooLarge):
            registry.ingest("AAPL", [9.0] * 10_001)

        assert_stats(registry.query("AAPL", 1), max=2.0, last=2.0, avg=1.5)

    def test_symbols_are_independent(self, registry):
        registry.ingest("AAPL", [1.0, 2.0])
        registry.ingest("MSFT", [100.0])

        assert_stats(registry.query("AAPL", 1), avg=1.5)
        assert_stats(registry.query("MSFT", 1), avg=100.0)

    def test_large_data_input(self, registry):
        """Ten increasing batches; each tier holds the newest values."""
        batch_size, batches = 1000, 10
        for b in range(batches):
            registry.ingest("AAPL", [float(b * batch_size + i) for i in range(1, batch_size + 1)])

        total = batch_size * batches
        for k in range(1, 9):
            n = min(10 ** k, total)
            lo, hi = float(total - n + 1), float(total)
            stats = registry.query("AAPL", k)
            assert stats.min == lo
            assert stats.max == hi
            assert stats.last == hi
            assert abs(stats.avg - (lo + hi) / 2) < 1e-6


class TestQuery:

    @pytest.mark.parametrize("tier", [0, 9, -1, 1.5, "3", True, None])
    def test_invalid_tier(self, registry, tier):
        registry.ingest("AAPL", [1.0])
        with pytest.raises(InvalidTier) as exc_info:
            registry.query("AAPL", tier)

        assert str(exc_info.value) == "Invalid k input. Only values 1-8 are accepted."

    def test_invalid_tier_checked_before_symbol(self, registry):
        with pytest.raises(InvalidTier):
            registry.query("NOPE", 9)

    def test_unknown_symbol(self, registry):
        with pytest.raises(SymbolNotFound) as exc_info:
            registry.query("NOPE", 1)

        assert str(exc_info.value) == "Symbol not found"
        assert exc_info.value.symbol == "NOPE"

    def test_errors_share_base_class(self, registry):
        for call in (lambda: registry.query("X", 1), lambda: registry.query("X", 0)):
            with pytest.raises(TickStatsError):
                call()


class TestConcurrency:

    def test_concurrent_first_writes_create_one_entry(self, registry):
        barrier = threading.Barrier(8)

        def writer():
            barrier.wait()
            for _ in range(25):
                registry.ingest("ETH", [1.0, 2.0])

        threads = [threading.Thread(target=writer) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert registry.symbols() == ["ETH"]
        assert len(registry._entries["ETH"].buffers[-1]) == 8 * 25 * 2
        assert_stats(registry.query("ETH", 8), min=1.0, max=2.0, avg=1.5)

    def test_query_never_sees_partial_batch(self, small_registry):
        # every batch fills tier 1 with one repeated value
        stop = threading.Event()
        torn = []

        def writer():
            for i in range(500):
                small_registry.ingest("SOL", [float(i)] * 2)
            stop.set()

        def reader():
            while not stop.is_set():
                stats = small_registry.query("SOL", 1)
                if stats.min != stats.max:
                    torn.append(stats)

        small_registry.ingest("SOL", [0.0, 0.0])
        threads = [threading.Thread(target=writer)] + [
            threading.Thread(target=reader) for _ in range(4)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert torn == []
        assert_stats(small_registry.query("SOL", 1), min=499.0, max=499.0)


class TestMetrics:

    def test_values_counter_has_no_symbol_label(self, registry):
        before = REGISTRY.get_sample_value("tickstats_values_total") or 0.0
        registry.ingest("AAPL", [1.0, 2.0, 3.0])
        registry.ingest("MSFT", [4.0])

        assert REGISTRY.get_sample_value("tickstats_values_total") == before + 4
        assert REGISTRY.get_sample_value("tickstats_values_total", {"symbol": "AAPL"}) is None
