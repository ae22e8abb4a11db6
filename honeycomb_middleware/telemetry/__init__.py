"""
Telemetry module: client registry and structured logging.

This module provides:
- ClientRegistry for one telemetry client per execution context
- create_libhoney_client, the default client factory
- StructuredFormatter and configure_logging for JSON log output
"""

from honeycomb_middleware.telemetry.client import (
    ClientFactory,
    ClientRegistry,
    create_libhoney_client,
)
from honeycomb_middleware.telemetry.logging import (
    StructuredFormatter,
    configure_logging,
)

__all__ = [
    "ClientFactory",
    "ClientRegistry",
    "create_libhoney_client",
    "StructuredFormatter",
    "configure_logging",
]
