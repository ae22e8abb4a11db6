"""
Error handling module for the Honeycomb middleware.

This module provides:
- ErrorCode enum for standardized error codes
- HoneycombError and its subclasses for configuration and
  instrumentation failures
"""

from honeycomb_middleware.errors.codes import ErrorCode
from honeycomb_middleware.errors.exceptions import (
    HoneycombError,
    ConfigurationError,
    InstrumentationError,
    client_unavailable,
    event_send_failed,
)

__all__ = [
    "ErrorCode",
    "HoneycombError",
    "ConfigurationError",
    "InstrumentationError",
    "client_unavailable",
    "event_send_failed",
]
