"""
Honeycomb middleware for WSGI applications.

Wraps a WSGI application and sends one Honeycomb event per request with the
response headers, status, time taken, request environ fields and any
``honeycomb.``-prefixed metadata the application put in the environ.

Example:
    from honeycomb_middleware import HoneycombMiddleware

    app.wsgi_app = HoneycombMiddleware(app.wsgi_app, writekey="...", dataset="web")
"""

import logging
from time import perf_counter
from typing import Any, Callable, Iterable, Optional

from honeycomb_middleware.config.settings import HoneycombSettings
from honeycomb_middleware.middleware.fields import (
    pop_dynamic_fields,
    wsgi_request_fields,
)
from honeycomb_middleware.middleware.instrumentor import (
    RequestInstrumentor,
    resolve_settings,
)
from honeycomb_middleware.telemetry.client import ClientFactory

logger = logging.getLogger(__name__)

WSGIApp = Callable[[dict, Callable[..., Any]], Iterable[bytes]]


class HoneycombMiddleware:
    """
    WSGI middleware that sends one Honeycomb event per request.

    The application's status, headers and body are returned unchanged. If
    the application raises, the exception propagates untouched; an event is
    sent for it only when ``send_on_error`` is enabled.
    """

    def __init__(
        self,
        app: WSGIApp,
        writekey: Optional[str] = None,
        dataset: Optional[str] = None,
        api_host: Optional[str] = None,
        *,
        settings: Optional[HoneycombSettings] = None,
        client_factory: Optional[ClientFactory] = None,
        send_on_error: Optional[bool] = None,
    ):
        """
        Initialize the middleware. No telemetry client is created here.

        Args:
            app: The WSGI application to wrap
            writekey: Honeycomb write key
            dataset: Dataset to send events to
            api_host: Collector endpoint override
            settings: Base settings, e.g. HoneycombSettings() from the environment;
                     explicit options above take precedence
            client_factory: Builds a telemetry client from keyword options
            send_on_error: Send an event for requests whose app raised

        Raises:
            ConfigurationError: If the options are invalid
        """
        self.app = app
        self.settings = resolve_settings(
            settings,
            send_on_error=send_on_error,
            writekey=writekey,
            dataset=dataset,
            api_host=api_host,
        )
        self.instrumentor = RequestInstrumentor(self.settings, client_factory)

        logger.info("Honeycomb WSGI middleware initialized", extra={
            "extra_data": {
                "dataset": self.settings.dataset,
                "api_host": self.settings.api_host,
                "send_on_error": self.settings.send_on_error,
            }
        })

    def __call__(self, environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
        event = self.instrumentor.new_event()
        if event is None:
            try:
                return self.app(environ, start_response)
            finally:
                pop_dynamic_fields(environ)

        response: dict[str, Any] = {}

        def _start_response(status, headers, *args):
            response["status"] = status
            response["headers"] = headers
            return start_response(status, headers, *args)

        started = perf_counter()
        try:
            body = self.app(environ, _start_response)
        except Exception as e:
            if self.instrumentor.send_on_error:
                self.instrumentor.emit_failure(
                    event, e, (perf_counter() - started) * 1000.0,
                    environ, wsgi_request_fields(environ),
                )
            else:
                pop_dynamic_fields(environ)
            raise
        elapsed_ms = (perf_counter() - started) * 1000.0

        if "status" not in response:
            # start_response is deferred until the body is iterated
            return _ClosingBody(body, self.instrumentor, event, environ, response, started)

        self.instrumentor.emit(
            event, response["status"], response["headers"], elapsed_ms,
            environ, wsgi_request_fields(environ),
        )
        return body

    def close(self) -> None:
        """Flush and close the telemetry clients; call on worker shutdown."""
        self.instrumentor.close()


class _ClosingBody:
    """Body wrapper that sends the event once the server closes the response."""

    def __init__(self, body, instrumentor, event, environ, response, started):
        self._body = body
        self._instrumentor = instrumentor
        self._event = event
        self._environ = environ
        self._response = response
        self._started = started
        self._closed = False

    def __iter__(self):
        return iter(self._body)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            close = getattr(self._body, "close", None)
            if close is not None:
                close()
        finally:
            elapsed_ms = (perf_counter() - self._started) * 1000.0
            if "status" in self._response:
                self._instrumentor.emit(
                    self._event, self._response["status"], self._response["headers"],
                    elapsed_ms, self._environ, wsgi_request_fields(self._environ),
                )
            else:
                pop_dynamic_fields(self._environ)
                logger.debug("Response closed before start_response; no event sent")
