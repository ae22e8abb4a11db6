# Configuration module for the Honeycomb middleware
from .settings import (
    HoneycombSettings,
    MiddlewareOptions,
    build_options,
    get_settings,
    clear_settings_cache,
)

__all__ = [
    "HoneycombSettings",
    "MiddlewareOptions",
    "build_options",
    "get_settings",
    "clear_settings_cache",
]
