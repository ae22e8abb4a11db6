"""
Exception classes for the Honeycomb middleware.

HoneycombError carries a code from the ErrorCode catalog plus optional
details, so the same object can be raised at construction time or logged
as structured data on the request path.
"""

from typing import Any, Optional

from honeycomb_middleware.errors.codes import ErrorCode


class HoneycombError(Exception):
    """
    Base exception class for all middleware errors.
    
    Example:
        raise HoneycombError(
            error_code=ErrorCode.EVENT_SEND_FAILED,
            message="Failed to send request event",
            details={"dataset": "web"}
        )
    """
    
    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        details: Optional[dict[str, Any]] = None
    ):
        """
        Initialize a HoneycombError.
        
        Args:
            error_code: The error code from the ErrorCode enum
            message: A human-readable error message
            details: Optional dictionary with additional error context
        """
        self.error_code = error_code
        self.message = message
        self.details = details
        super().__init__(message)
    
    def to_dict(self) -> dict[str, Any]:
        """
        Convert the exception to a dictionary for structured logging.
        
        Returns:
            Dictionary containing error_code, message, and details
        """
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details is not None:
            result["details"] = self.details
        return result
    
    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(error_code={self.error_code.value!r}, "
            f"message={self.message!r}, details={self.details!r})"
        )


class ConfigurationError(HoneycombError):
    """Exception raised when middleware options fail validation."""
    
    def __init__(self, message: str, invalid_fields: Optional[dict] = None):
        self.invalid_fields = invalid_fields or {}
        details = {"invalid_fields": self.invalid_fields} if self.invalid_fields else None
        super().__init__(ErrorCode.CONFIGURATION_ERROR, message, details)
        # Exception.args carries the full description for tracebacks
        self.args = (self.format_error_message(),)
    
    def format_error_message(self) -> str:
        """Format a descriptive error message listing all issues."""
        parts = [self.message]
        
        if self.invalid_fields:
            invalid_parts = [f"  - {field}: {error}" for field, error in self.invalid_fields.items()]
            parts.append(f"\nInvalid field values:\n" + "\n".join(invalid_parts))
        
        return "".join(parts)


class InstrumentationError(HoneycombError):
    """Failure inside the instrumentation path; logged, never propagated."""


def client_unavailable(
    message: str = "Telemetry client unavailable",
    details: Optional[dict[str, Any]] = None
) -> InstrumentationError:
    """Create a client unavailable exception."""
    return InstrumentationError(
        error_code=ErrorCode.CLIENT_UNAVAILABLE,
        message=message,
        details=details
    )


def event_send_failed(
    message: str = "Failed to send request event",
    details: Optional[dict[str, Any]] = None
) -> InstrumentationError:
    """Create an event send failure exception."""
    return InstrumentationError(
        error_code=ErrorCode.EVENT_SEND_FAILED,
        message=message,
        details=details
    )
