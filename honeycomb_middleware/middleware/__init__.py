"""
Middleware components for the Honeycomb integration.

This module contains the WSGI and ASGI middlewares that send one
Honeycomb event per request, and the shared instrumentation core.
"""

from honeycomb_middleware.middleware.fields import (
    ENV_PREFIX,
    add_field,
    add_request_field,
    pop_dynamic_fields,
    response_header_fields,
    wsgi_request_fields,
)
from honeycomb_middleware.middleware.instrumentor import RequestInstrumentor
from honeycomb_middleware.middleware.wsgi import HoneycombMiddleware
from honeycomb_middleware.middleware.asgi import (
    HoneycombASGIMiddleware,
    asgi_request_fields,
    setup_honeycomb,
)

__all__ = [
    "ENV_PREFIX",
    "add_field",
    "add_request_field",
    "pop_dynamic_fields",
    "response_header_fields",
    "wsgi_request_fields",
    "RequestInstrumentor",
    "HoneycombMiddleware",
    "HoneycombASGIMiddleware",
    "asgi_request_fields",
    "setup_honeycomb",
]
