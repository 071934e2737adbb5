"""Runtime settings for depaudit.

Values come from environment variables first, then from
``$DEPAUDIT_HOME/config.toml`` (``~/.depaudit`` by default), then defaults.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

BASE_DIR = Path(os.environ.get("DEPAUDIT_HOME", str(Path.home() / ".depaudit"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

# Not the root logger: nothing may run basicConfig at import time
log = logging.getLogger(__name__)


def load_config(path: Path = CONFIG_FILE) -> Dict[str, Any]:
    """Read the [depaudit] table (or the top level) of a TOML config file.

    An unreadable or malformed file is ignored with a warning.
    """
    if not path.exists():
        return {}
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        log.warning(f"Ignoring config file {path}: {e}")
        return {}
    table = data.get("depaudit", data)
    return table if isinstance(table, dict) else {}


def _setting(key: str, default: Any, cast=str) -> Any:
    env_name = f"DEPAUDIT_{key.upper()}"
    env_value = os.environ.get(env_name)
    if env_value is not None and env_value != "":
        source, raw = env_name, env_value
    elif key in _toml_config:
        source, raw = f"{CONFIG_FILE}:{key}", _toml_config[key]
    else:
        return default

    try:
        return cast(raw)
    except (TypeError, ValueError):
        log.warning(f"Invalid value {raw!r} for {source}, using {default!r}")
        return default


def _optional_float(value: Any) -> Optional[float]:
    if value in (None, "", "none", "None"):
        return None
    return float(value)


_toml_config = load_config()

# Recursion cap for nested lockfiles and tool output
MAX_DEPTH = _setting("max_depth", 50, int)

# The core imposes no timeout on ecosystem tools unless one is configured
TOOL_TIMEOUT = _setting("tool_timeout", None, _optional_float)

CATALOG_PATH = _setting("catalog_path", None, str)

OSV_URL = _setting("osv_url", "https://api.osv.dev/v1", str)
OSV_BATCH_SIZE = _setting("osv_batch_size", 250, int)
OSV_TIMEOUT = _setting("osv_timeout", 45.0, float)

BATCH_CONCURRENCY = _setting("batch_concurrency", 4, int)

LOG_FILE = _setting("log_file", str(BASE_DIR / "debug.log"), str)
LOG_LEVEL = _setting("log_level", "DEBUG", str)
