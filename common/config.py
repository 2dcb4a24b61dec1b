from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


DEFAULT_CONFIG: Dict[str, Any] = {
    "storage": {"root": "data/fleetmap", "workers": 1, "max_resident_tiles": None},
    "feed": {"url": "https://tracker.ets2map.com/v2/fullmap", "timeout_s": 10.0},
    "service": {"poll_interval_s": 2.0, "save_interval_s": 3600.0},
    "maps": [
        {"name": "ATS", "routing_keys": [10, 11]},
        {"name": "ETS2", "routing_keys": [1, 3, 4, 5, 7, 8, 13]},
    ],
    "logging": {"level": "INFO"},
    "viewer": {"host": "0.0.0.0", "port": 8000},
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def load_config(path: Optional[str] = "config/params.yaml") -> Dict[str, Any]:
    """
    Read the YAML config at `path` layered over DEFAULT_CONFIG.
    A missing file yields the defaults; a malformed one raises yaml.YAMLError.
    """
    defaults = copy.deepcopy(DEFAULT_CONFIG)
    if not path or not Path(path).exists():
        return defaults
    with open(path, "r") as f:
        user = yaml.safe_load(f) or {}
    if not isinstance(user, dict):
        raise ValueError(f"config root must be a mapping: {path}")
    return _merge(defaults, user)
