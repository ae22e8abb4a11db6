"""
Request instrumentation core shared by the WSGI and ASGI middlewares.

RequestInstrumentor creates one event per request from the calling thread's
telemetry client, fills it from the response, the timing and the request
context, and sends it. Failures inside instrumentation are logged and
swallowed; they never change what the application returns.
"""

import logging
from collections.abc import Mapping, MutableMapping
from typing import Any, Optional

from honeycomb_middleware.config.settings import HoneycombSettings, build_options
from honeycomb_middleware.errors.exceptions import (
    HoneycombError,
    client_unavailable,
    event_send_failed,
)
from honeycomb_middleware.middleware.fields import (
    Headers,
    add_field,
    add_fields,
    pop_dynamic_fields,
    response_header_fields,
    status_code,
)
from honeycomb_middleware.telemetry.client import ClientFactory, ClientRegistry

logger = logging.getLogger(__name__)


def resolve_settings(
    settings: Optional[HoneycombSettings] = None,
    send_on_error: Optional[bool] = None,
    **options: Any,
) -> HoneycombSettings:
    """
    Combine a settings object with explicit constructor options.

    Explicit options win over ``settings``. Without ``settings`` the
    options are validated on their own and the environment is not read.

    Raises:
        ConfigurationError: If the resulting options are invalid.
    """
    given = {name: value for name, value in options.items() if value is not None}
    if send_on_error is not None:
        given["send_on_error"] = send_on_error

    if settings is None:
        return build_options(**given)
    if not given:
        return settings
    return build_options(**{**settings.model_dump(), **given})


class RequestInstrumentor:
    """
    Builds and sends exactly one event per instrumented request.

    Construction validates options but does not create a telemetry client;
    the first request on each thread does.
    """

    def __init__(
        self,
        settings: HoneycombSettings,
        client_factory: Optional[ClientFactory] = None,
    ):
        self.settings = settings
        self.clients = ClientRegistry(settings, client_factory)

    @property
    def send_on_error(self) -> bool:
        return self.settings.send_on_error

    def new_event(self) -> Optional[Any]:
        """
        Create an event from the current thread's client.

        Returns:
            A new event, or None when no client is available. Callers pass
            the request through uninstrumented in that case.
        """
        try:
            return self.clients.get_client().new_event()
        except HoneycombError as e:
            error = e
        except Exception as e:
            error = client_unavailable(
                "Telemetry client failed to create an event",
                details={"error": str(e)}
            )
        logger.warning(
            error.message,
            exc_info=True,
            extra={"extra_data": error.to_dict()}
        )
        return None

    def emit(
        self,
        event: Any,
        status: Any,
        headers: Headers,
        elapsed_ms: float,
        context: MutableMapping,
        request_fields: Mapping,
    ) -> None:
        """
        Populate the event from a completed request and send it.

        Fields are added in a fixed order: response headers, HTTP_STATUS,
        REQUEST_TIME_MS, dynamic metadata, request fields. A later field
        with the same name overwrites an earlier one.

        Dynamic metadata is removed from ``context`` before anything else
        runs, so it is gone even when populating the event fails.
        """
        dynamic_fields = pop_dynamic_fields(context)
        try:
            add_fields(event, response_header_fields(headers))
            add_field(event, "HTTP_STATUS", status_code(status))
            add_field(event, "REQUEST_TIME_MS", elapsed_ms)
            add_fields(event, dynamic_fields)
            add_fields(event, request_fields)
            event.send()
        except Exception as e:
            self._log_send_failure(e, status)

    def emit_failure(
        self,
        event: Any,
        exc: BaseException,
        elapsed_ms: float,
        context: MutableMapping,
        request_fields: Mapping,
    ) -> None:
        """
        Send an event for a request whose application raised.

        The caller re-raises ``exc`` afterwards.
        """
        dynamic_fields = pop_dynamic_fields(context)
        try:
            add_field(event, "REQUEST_TIME_MS", elapsed_ms)
            add_field(event, "error", exc.__class__.__name__)
            add_field(event, "error_message", str(exc))
            add_fields(event, dynamic_fields)
            add_fields(event, request_fields)
            event.send()
        except Exception as e:
            self._log_send_failure(e, None)

    def close(self) -> None:
        """Flush and close all telemetry clients."""
        self.clients.close()

    def _log_send_failure(self, error: Exception, status: Any) -> None:
        failure = event_send_failed(details={
            "error": str(error),
            "status": status,
            "dataset": self.settings.dataset,
        })
        logger.warning(
            failure.message,
            exc_info=error,
            extra={"extra_data": failure.to_dict()}
        )
