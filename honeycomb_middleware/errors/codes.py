"""
Error code catalog for the Honeycomb middleware.

Codes cover configuration problems caught at construction time and the
instrumentation failures that are logged (never raised) while a request
is being served.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """
    Enumeration of all error codes used by the middleware.
    
    - Configuration errors: raised when the middleware is built
    - Instrumentation errors: logged and swallowed on the request path
    """
    
    # Configuration errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """Middleware options or settings failed validation"""
    
    # Instrumentation errors
    CLIENT_UNAVAILABLE = "CLIENT_UNAVAILABLE"
    """Telemetry client could not be created or could not build an event"""
    
    EVENT_SEND_FAILED = "EVENT_SEND_FAILED"
    """Populating or sending the request event failed"""
    
    INVALID_CONTENT_LENGTH = "INVALID_CONTENT_LENGTH"
    """Response Content-Length header is not an integer"""
