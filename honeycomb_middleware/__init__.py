"""
Honeycomb request instrumentation for WSGI and ASGI applications.

One event per request: response headers, status, time taken, selected
request fields, plus any ``honeycomb.``-prefixed metadata the application
attached to the request context.
"""

from honeycomb_middleware.config.settings import HoneycombSettings
from honeycomb_middleware.errors.exceptions import ConfigurationError, HoneycombError
from honeycomb_middleware.middleware import (
    ENV_PREFIX,
    HoneycombASGIMiddleware,
    HoneycombMiddleware,
    add_request_field,
    setup_honeycomb,
)
from honeycomb_middleware.telemetry.logging import configure_logging

__version__ = "0.1.0"

__all__ = [
    "ENV_PREFIX",
    "HoneycombMiddleware",
    "HoneycombASGIMiddleware",
    "HoneycombSettings",
    "ConfigurationError",
    "HoneycombError",
    "add_request_field",
    "setup_honeycomb",
    "configure_logging",
]
