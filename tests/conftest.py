"""Shared fixtures for tick-stats tests."""
from typing import Dict

import pytest

from tickstats.processors.rolling_window import RollingStatsBuffer, StatsSnapshot
from tickstats.storage.memory import SymbolRegistry

DELTA = 1e-6


def assert_stats(stats: StatsSnapshot, **expected: float) -> None:
    """Compare the named snapshot fields within DELTA."""
    actual: Dict[str, float] = stats.to_dict()
    for field, value in expected.items():
        assert abs(actual[field] - value) < DELTA, f"{field}: {actual[field]} != {value}"


@pytest.fixture
def buffer5():
    """Empty capacity‑5 buffer."""
    return RollingStatsBuffer(5)


@pytest.fixture
def registry():
    """Registry with the production tier layout (10 … 10**8)."""
    return SymbolRegistry()


@pytest.fixture
def small_registry():
    """Three tiers of 2, 4 and 8 values and a batch cap of 16."""
    return SymbolRegistry(tiers=3, tier_base=2, max_batch=16)
