"""
tick-stats main entry point.

* loads YAML config (``--config``) and applies ``--host`` / ``--port``
* pluggable log‑level via --log‑level
* builds one SymbolRegistry and serves it over aiohttp
* graceful shutdown on SIGINT / SIGTERM
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal

from aiohttp import web

from tickstats.api.server import create_app
from tickstats.config import load_config
from tickstats.storage.memory import SymbolRegistry

logger = logging.getLogger("tickstats.main")


# --------------------------------------------------------------------------- #
# helpers                                                                     #
# --------------------------------------------------------------------------- #
def build_registry(cfg: dict) -> SymbolRegistry:
    reg = cfg["registry"]
    return SymbolRegistry(
        tiers=reg["tiers"],
        tier_base=reg["tier_base"],
        max_batch=reg["max_batch"],
    )


def apply_overrides(cfg: dict, args) -> dict:
    if args.host:
        cfg["server"]["host"] = args.host
    if args.port:
        cfg["server"]["port"] = args.port
    return cfg


# --------------------------------------------------------------------------- #
# service runner                                                              #
# --------------------------------------------------------------------------- #
async def run_service(args, stop_event: asyncio.Event | None = None):
    cfg = apply_overrides(load_config(args.config), args)
    registry = build_registry(cfg)
    app = create_app(registry, cfg)

    runner = web.AppRunner(app)
    await runner.setup()
    host, port = cfg["server"]["host"], cfg["server"]["port"]
    site = web.TCPSite(runner, host, port)
    await site.start()

    loop = asyncio.get_running_loop()
    if stop_event is None:
        stop_event = asyncio.Event()

    def _shutdown():
        logger.info("Shutdown signal received – stopping server …")
        stop_event.set()

    signals = (signal.SIGINT, signal.SIGTERM)
    for sig in signals:
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, _shutdown)

    logger.info(
        "tick-stats listening on http://%s:%d (tiers=%s, max_batch=%d)",
        host,
        port,
        ",".join(str(c) for c in registry.capacities),
        registry.max_batch,
    )

    # wait until shutdown requested
    await stop_event.wait()

    for sig in signals:
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.remove_signal_handler(sig)
    await runner.cleanup()
    logger.info("tick-stats stopped (%d symbol(s) in memory discarded).", len(registry))


# --------------------------------------------------------------------------- #
# CLI                                                                         #
# --------------------------------------------------------------------------- #
def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Rolling tick statistics service")
    p.add_argument(
        "-c",
        "--config",
        default="config/service.yaml",
        help="Path to service configuration YAML",
    )
    p.add_argument("--host", help="Bind address (overrides server.host)")
    p.add_argument("--port", type=int, help="Bind port (overrides server.port)")
    p.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Console log level (default INFO)",
    )
    return p.parse_args(argv)


def setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.log_level)
    try:
        asyncio.run(run_service(args))
    except KeyboardInterrupt:
        # already handled by signal handler on Unix; this is for Windows
        pass


if __name__ == "__main__":
    main()
