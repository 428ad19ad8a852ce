"""
YAML configuration loader & validator for tick-stats.

* merges the file over sane defaults (server + registry sections)
* validates that every numeric knob is a positive integer
* raises early, clear exceptions instead of logging‑and‑continuing
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

# --------------------------------------------------------------------------- #
# defaults                                                                    #
# --------------------------------------------------------------------------- #
DEFAULTS: Dict[str, Any] = {
    "server": {
        "host": "127.0.0.1",
        "port": 8080,
        "client_max_size_mb": 4,
    },
    "registry": {
        "tiers": 8,
        "tier_base": 10,
        "max_batch": 10_000,
    },
}


def _recursive_merge(base: dict, override: dict) -> dict:
    """Non‑destructive deep merge (override wins)."""
    merged = base.copy()
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            merged[k] = _recursive_merge(base[k], v)
        else:
            merged[k] = v
    return merged


def _positive_int(section: dict, key: str, prefix: str) -> None:
    value = section[key]
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{prefix}.{key} must be a positive integer")


# --------------------------------------------------------------------------- #
# public API                                                                  #
# --------------------------------------------------------------------------- #
def validate_config(cfg: dict) -> dict:
    """
    Check structure and value ranges of an already‑merged config dict.

    :raises ValueError
    """
    for section in ("server", "registry"):
        if not isinstance(cfg.get(section), dict):
            raise ValueError(f"Config section '{section}' must be a mapping")

    srv = cfg["server"]
    if not isinstance(srv["host"], str) or not srv["host"]:
        raise ValueError("server.host must be a non-empty string")
    _positive_int(srv, "port", "server")
    if srv["port"] > 65535:
        raise ValueError("server.port must be <= 65535")
    _positive_int(srv, "client_max_size_mb", "server")

    reg = cfg["registry"]
    for key in ("tiers", "tier_base", "max_batch"):
        _positive_int(reg, key, "registry")
    if reg["tier_base"] < 2:
        raise ValueError("registry.tier_base must be at least 2")

    return cfg


def load_config(path: Optional[str | Path] = None) -> dict:
    """
    Read YAML file, apply defaults, and validate structure.

    :param path: path to config YAML (str or Path); ``None`` → defaults only
    :returns: fully‑populated config dict
    :raises FileNotFoundError, ValueError
    """
    if path is None:
        return validate_config(_recursive_merge(copy.deepcopy(DEFAULTS), {}))

    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a mapping")

    cfg = validate_config(_recursive_merge(copy.deepcopy(DEFAULTS), raw))
    logger.debug("Loaded config from %s", path)
    return cfg
