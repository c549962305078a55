"""
User configuration file support.

Reads/writes ``~/.speedtest-tui/config.json``.  Command-line flags override
whatever is stored here.

Supported keys::

    server_url = "http://127.0.0.1:8080"
    cycles = 10                   # measurement cycles per session
    sizes_mb = [2, 5]             # payload sizes probed per cycle
    measurements_per_size = 2
    ping_attempts = 8
    trial_timeout = 30.0          # seconds before a trial is abandoned
    sequential = false            # run download / upload / ping one by one
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict

from .constants import (
    DEFAULT_SERVER_URL,
    FILE_SIZES_MB,
    MEASUREMENTS_PER_SIZE,
    PING_ATTEMPTS,
    SAMPLE_COUNT,
    TRIAL_TIMEOUT,
)

_CONFIG_DIR = os.path.join(Path.home(), ".speedtest-tui")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "server_url": DEFAULT_SERVER_URL,
    "cycles": SAMPLE_COUNT,
    "sizes_mb": list(FILE_SIZES_MB),
    "measurements_per_size": MEASUREMENTS_PER_SIZE,
    "ping_attempts": PING_ATTEMPTS,
    "trial_timeout": TRIAL_TIMEOUT,
    "sequential": False,
}


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def _number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _same_type(default: Any, value: Any) -> bool:
    """A stored value is kept only when it has the default's shape."""
    if isinstance(default, bool):
        return isinstance(value, bool)
    if isinstance(default, float):
        return _number(value)
    if isinstance(default, int):
        return isinstance(value, int) and not isinstance(value, bool)
    if isinstance(default, list):
        return isinstance(value, list) and bool(value) and all(_number(v) for v in value)
    return isinstance(value, type(default))


def load_config() -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing keys."""
    path = _config_path()
    config = dict(DEFAULTS)

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
        if isinstance(user, dict):
            config.update({k: v for k, v in user.items() if k in DEFAULTS and _same_type(DEFAULTS[k], v)})
    except (json.JSONDecodeError, IOError):
        pass  # corrupt file; use defaults

    return config


def save_config(config: Dict[str, Any]) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = _config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()
