"""kiln.json settings with environment-variable fallbacks.

Settings are addressed by key path: ``["cache", "file"]`` reads
``{"cache": {"file": ...}}`` from kiln.json and, when absent there, the
``CACHE_FILE`` environment variable.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "kiln.json"


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """Read kiln.json.

    A missing or unparsable file yields ``{}`` so every setting falls back
    to its environment variable or default.
    """
    path = Path(config_path)

    if not path.exists():
        return {}

    try:
        with open(path, "r") as f:
            return json.load(f)
    except (json.JSONDecodeError, IOError):
        return {}


def get_config_value(
    keys: List[str], default: Any = None, config: Optional[Dict[str, Any]] = None
) -> Any:
    """Look up a setting by key path.

    Args:
        keys: Key path, e.g. ["preparer", "directory"]
        default: Returned when neither kiln.json nor the environment sets it
        config: Parsed kiln.json (read from the working directory if omitted)

    Returns:
        The kiln.json value, else the upper-snake environment variable
        (``PREPARER_DIRECTORY``) as a string, else ``default``
    """
    if config is None:
        config = load_config()

    value = config
    for key in keys:
        if isinstance(value, dict):
            value = value.get(key)
            if value is None:
                break
        else:
            return default

    if value is not None:
        return value

    env_value = os.environ.get("_".join(k.upper() for k in keys))
    if env_value is not None:
        return env_value

    return default


def get_config_flag(
    keys: List[str], default: bool, config: Optional[Dict[str, Any]] = None
) -> bool:
    """Get a boolean configuration value.

    Environment variables arrive as strings, so "0", "false", "no" and "off"
    (any case) are read as False.
    """
    value = get_config_value(keys, default=default, config=config)
    if isinstance(value, str):
        return value.strip().lower() not in ("0", "false", "no", "off", "")
    return bool(value)


def get_config_mapping(
    keys: List[str], config: Optional[Dict[str, Any]] = None
) -> Dict[str, str]:
    """Get an object-valued setting; the environment fallback holds JSON text."""
    value = get_config_value(keys, config=config)
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring {'.'.join(keys)}: not a JSON object")
            return {}
    if not isinstance(value, dict):
        if value is not None:
            logger.warning(f"Ignoring {'.'.join(keys)}: expected an object")
        return {}
    return {str(k): str(v) for k, v in value.items()}
