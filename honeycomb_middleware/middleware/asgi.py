"""
Honeycomb middleware for ASGI applications (FastAPI, Starlette).

Request fields are taken from the ASGI scope and reported under the same
CGI-style names the WSGI middleware uses, so WSGI and ASGI services can
share a dataset. Application code attaches extra fields with
``add_request_field(request.scope, name, value)``.
"""

import logging
from time import perf_counter
from typing import Any, Optional

from fastapi import FastAPI
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from honeycomb_middleware.config.settings import HoneycombSettings
from honeycomb_middleware.middleware.fields import (
    HEADER_REQUEST_FIELDS,
    pop_dynamic_fields,
)
from honeycomb_middleware.middleware.instrumentor import (
    RequestInstrumentor,
    resolve_settings,
)
from honeycomb_middleware.telemetry.client import ClientFactory

logger = logging.getLogger(__name__)


def asgi_request_fields(scope: Scope) -> dict[str, Any]:
    """
    Allow-listed request fields derived from an ASGI HTTP scope.

    Args:
        scope: The ASGI connection scope

    Returns:
        Field name to value; absent values are None
    """
    asgi = scope.get("asgi") or {}
    http_version = scope.get("http_version")
    query_string = scope.get("query_string", b"").decode("latin-1")
    raw_path = scope.get("raw_path")
    path = raw_path.decode("latin-1").split("?", 1)[0] if raw_path else scope.get("path")
    client = scope.get("client")
    headers = Headers(scope=scope)

    fields: dict[str, Any] = {
        "asgi.version": asgi.get("version"),
        "asgi.spec_version": asgi.get("spec_version"),
        "SCRIPT_NAME": scope.get("root_path"),
        "QUERY_STRING": query_string,
        "SERVER_PROTOCOL": f"HTTP/{http_version}" if http_version else None,
        "REQUEST_METHOD": scope.get("method"),
        "PATH_INFO": scope.get("path"),
        "REQUEST_URI": f"{path}?{query_string}" if query_string and path else path,
        "HTTP_VERSION": http_version,
    }
    for name in HEADER_REQUEST_FIELDS:
        header = name[len("HTTP_"):].lower().replace("_", "-")
        fields[name] = headers.get(header)
    fields["REMOTE_ADDR"] = client[0] if client else None
    return fields


class HoneycombASGIMiddleware:
    """
    ASGI middleware that sends one Honeycomb event per HTTP request.

    Response messages are forwarded unchanged. WebSocket and lifespan
    scopes pass straight through.
    """

    def __init__(
        self,
        app: ASGIApp,
        writekey: Optional[str] = None,
        dataset: Optional[str] = None,
        api_host: Optional[str] = None,
        *,
        settings: Optional[HoneycombSettings] = None,
        client_factory: Optional[ClientFactory] = None,
        send_on_error: Optional[bool] = None,
    ) -> None:
        self.app = app
        self.settings = resolve_settings(
            settings,
            send_on_error=send_on_error,
            writekey=writekey,
            dataset=dataset,
            api_host=api_host,
        )
        self.instrumentor = RequestInstrumentor(self.settings, client_factory)

        logger.info("Honeycomb ASGI middleware initialized", extra={
            "extra_data": {
                "dataset": self.settings.dataset,
                "api_host": self.settings.api_host,
                "send_on_error": self.settings.send_on_error,
            }
        })

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        event = self.instrumentor.new_event()
        if event is None:
            try:
                await self.app(scope, receive, send)
            finally:
                pop_dynamic_fields(scope)
            return

        response: dict[str, Any] = {}

        async def send_wrapper(message: Message) -> None:
            if message.get("type") == "http.response.start":
                response["status"] = message.get("status")
                response["headers"] = [
                    (name.decode("latin-1"), value.decode("latin-1"))
                    for name, value in message.get("headers", [])
                ]
            await send(message)

        started = perf_counter()
        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as e:
            if self.instrumentor.send_on_error:
                self.instrumentor.emit_failure(
                    event, e, (perf_counter() - started) * 1000.0,
                    scope, asgi_request_fields(scope),
                )
            else:
                pop_dynamic_fields(scope)
            raise
        elapsed_ms = (perf_counter() - started) * 1000.0

        self.instrumentor.emit(
            event, response.get("status"), response.get("headers", []), elapsed_ms,
            scope, asgi_request_fields(scope),
        )

    def close(self) -> None:
        """Flush and close the telemetry clients; call on shutdown."""
        self.instrumentor.close()


def setup_honeycomb(
    app: FastAPI,
    writekey: Optional[str] = None,
    dataset: Optional[str] = None,
    api_host: Optional[str] = None,
    *,
    settings: Optional[HoneycombSettings] = None,
    client_factory: Optional[ClientFactory] = None,
    send_on_error: Optional[bool] = None,
) -> None:
    """
    Add HoneycombASGIMiddleware to a FastAPI application.

    Options are validated by the middleware when the application builds
    its middleware stack.
    """
    app.add_middleware(
        HoneycombASGIMiddleware,
        writekey=writekey,
        dataset=dataset,
        api_host=api_host,
        settings=settings,
        client_factory=client_factory,
        send_on_error=send_on_error,
    )

    logger.info(
        f"Honeycomb middleware configured: dataset={dataset or (settings and settings.dataset)}"
    )
