"""Exceptions raised by the symbol registry."""

from __future__ import annotations


class TickStatsError(Exception):
    """Base class for every rejected ingest / query call."""

    reason = "error"


class BatchTooLarge(TickStatsError):
    reason = "batch_too_large"

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Batch size exceeds maximum limit of {limit}")


class InvalidTier(TickStatsError):
    reason = "invalid_tier"

    def __init__(self, tier, tiers: int):
        self.tier = tier
        self.tiers = tiers
        super().__init__(f"Invalid k input. Only values 1-{tiers} are accepted.")


class SymbolNotFound(TickStatsError):
    reason = "symbol_not_found"

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__("Symbol not found")
