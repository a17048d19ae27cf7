"""
Settings loader (``shopfloor_config.loader``).

Responsibility
--------------
Reads the purchasing settings YAML and parses it into a frozen
``PurchasingSettings``.  ``get_settings()`` is the runtime entry point and
caches the parsed result; ``load_settings(path)`` is the uncached primitive.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or out-of-range values  -> ``ValueError`` propagates.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Any

import yaml

from shopfloor_config.schema import PurchasingSettings
from shopfloor_kernel.logging_config import get_logger

logger = get_logger("config.loader")

SETTINGS_ENV_VAR = "SHOPFLOOR_SETTINGS"
DATABASE_URL_ENV_VAR = "DATABASE_URL"

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

_cached: PurchasingSettings | None = None
_lock = threading.Lock()


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def load_settings(path: Path | str | None = None) -> PurchasingSettings:
    """
    Parse the settings file into ``PurchasingSettings``.

    The file may hold the settings at the top level or under a
    ``purchasing:`` key.
    """
    resolved = Path(path) if path is not None else settings_path()
    data = load_yaml_file(resolved)
    section = data.get("purchasing", data)
    settings = PurchasingSettings.from_dict(section)
    logger.info(
        "settings_loaded",
        extra={"path": str(resolved)},
    )
    return settings


def settings_path() -> Path:
    """``$SHOPFLOOR_SETTINGS`` if set, else the packaged settings.yaml."""
    override = os.environ.get(SETTINGS_ENV_VAR)
    return Path(override) if override else DEFAULT_SETTINGS_PATH


def get_settings() -> PurchasingSettings:
    """Cached settings for the running process."""
    global _cached
    with _lock:
        if _cached is None:
            _cached = load_settings()
        return _cached


def reset_settings_cache() -> None:
    """Forget cached settings.  FOR TESTING ONLY."""
    global _cached
    with _lock:
        _cached = None


def database_url(default: str | None = None) -> str:
    """
    The configured database URL.

    Raises:
        RuntimeError: if ``DATABASE_URL`` is unset and no default is given.
    """
    url = os.environ.get(DATABASE_URL_ENV_VAR, default)
    if not url:
        raise RuntimeError(f"{DATABASE_URL_ENV_VAR} is not set")
    return url
