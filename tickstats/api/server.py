"""
tickstats.api.server
====================
Thin aiohttp front end over :class:`SymbolRegistry`.

Routes
------
* ``POST /add_batch``  – body ``{"symbol": "AAPL", "values": [1.0, 2.5, ...]}``
* ``GET  /stats``      – ``?symbol=AAPL&k=3`` → ``{min, max, last, avg, var}``
* ``GET  /symbols``    – every symbol seen so far
* ``GET  /healthz``    – liveness probe incl. process RSS
* ``GET  /metrics``    – Prometheus exposition

Registry errors and malformed payloads are answered with
``400 {"error": "..."}``.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Any, List

import psutil
from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from tickstats.errors import TickStatsError
from tickstats.storage.memory import SymbolRegistry

logger = logging.getLogger(__name__)

__all__ = ["StatsAPI", "create_app"]


class PayloadError(ValueError):
    """Request body or query string is malformed."""


def _error(message: str, status: int = 400) -> web.Response:
    return web.json_response({"error": message}, status=status)


def _parse_values(raw: Any) -> List[float]:
    if not isinstance(raw, list):
        raise PayloadError("'values' must be a list of numbers")
    values: List[float] = []
    for v in raw:
        # bool is an int subclass – reject it explicitly
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise PayloadError("'values' must be a list of numbers")
        try:
            v = float(v)
        except OverflowError:
            raise PayloadError("'values' must be finite numbers") from None
        # squares feed the running variance and must stay finite too
        if not math.isfinite(v) or not math.isfinite(v * v):
            raise PayloadError("'values' must be finite numbers with finite squares")
        values.append(v)
    return values


class StatsAPI:
    """Request handlers bound to one shared registry."""

    def __init__(self, registry: SymbolRegistry):
        self.registry = registry
        self.started_at = time.time()
        self._proc = psutil.Process()

    # ------------------------------------------------------------------ #
    # core routes                                                        #
    # ------------------------------------------------------------------ #
    async def handle_add_batch(self, request: web.Request) -> web.Response:
        """Handle POST /add_batch"""
        try:
            body = await request.json()
        except ValueError:
            return _error("Request body must be valid JSON")

        try:
            if not isinstance(body, dict):
                raise PayloadError("Request body must be a JSON object")
            symbol = body.get("symbol")
            if not isinstance(symbol, str) or not symbol:
                raise PayloadError("'symbol' must be a non-empty string")
            values = _parse_values(body.get("values"))
        except PayloadError as exc:
            return _error(str(exc))

        try:
            # fan‑out over large tiers can take a while; keep the loop free
            await asyncio.to_thread(self.registry.ingest, symbol, values)
        except TickStatsError as exc:
            logger.warning("add_batch rejected for %s: %s", symbol, exc)
            return _error(str(exc))

        return web.Response(text="Batch data added successfully")

    async def handle_stats(self, request: web.Request) -> web.Response:
        """Handle GET /stats"""
        symbol = request.query.get("symbol")
        if not symbol:
            return _error("Query parameter 'symbol' is required")
        try:
            k = int(request.query.get("k", ""))
        except ValueError:
            return _error("Query parameter 'k' must be an integer")

        try:
            # a symbol's write lock can be held for a long fan‑out
            stats = await asyncio.to_thread(self.registry.query, symbol, k)
        except TickStatsError as exc:
            return _error(str(exc))

        return web.json_response(stats.to_dict())

    # ------------------------------------------------------------------ #
    # operational routes                                                 #
    # ------------------------------------------------------------------ #
    async def handle_symbols(self, request: web.Request) -> web.Response:
        """Handle GET /symbols"""
        symbols = self.registry.symbols()
        return web.json_response({"count": len(symbols), "symbols": symbols})

    async def handle_health(self, request: web.Request) -> web.Response:
        """Handle GET /healthz"""
        return web.json_response(
            {
                "status": "operational",
                "symbols": len(self.registry),
                "tiers": list(self.registry.capacities),
                "uptime_s": round(time.time() - self.started_at, 3),
                "rss_bytes": self._proc.memory_info().rss,
            }
        )

    async def handle_metrics(self, request: web.Request) -> web.Response:
        """Handle GET /metrics"""
        return web.Response(
            body=generate_latest(),
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )


def create_app(registry: SymbolRegistry, cfg: dict | None = None) -> web.Application:
    """Create the web application around *registry*."""
    max_mb = (cfg or {}).get("server", {}).get("client_max_size_mb", 4)
    api = StatsAPI(registry)
    app = web.Application(client_max_size=max_mb * 1024 ** 2)

    app.router.add_post("/add_batch", api.handle_add_batch)
    app.router.add_get("/stats", api.handle_stats)
    app.router.add_get("/symbols", api.handle_symbols)
    app.router.add_get("/healthz", api.handle_health)
    app.router.add_get("/metrics", api.handle_metrics)

    return app
