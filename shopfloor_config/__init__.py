"""
shopfloor_config -- purchasing settings.

Runtime code obtains settings through ``get_settings()`` or receives a
``PurchasingSettings`` by constructor injection.  The kernel never imports
from this package.
"""

from shopfloor_config.loader import (
    DATABASE_URL_ENV_VAR,
    SETTINGS_ENV_VAR,
    database_url,
    get_settings,
    load_settings,
    reset_settings_cache,
)
from shopfloor_config.schema import PurchasingSettings

__all__ = [
    "DATABASE_URL_ENV_VAR",
    "SETTINGS_ENV_VAR",
    "PurchasingSettings",
    "database_url",
    "get_settings",
    "load_settings",
    "reset_settings_cache",
]
