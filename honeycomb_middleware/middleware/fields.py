"""
Field extraction for request events.

Every attribute goes through add_field, which skips None and empty-string
values. Response headers, dynamic metadata and the request allow-list are
all extracted here so the WSGI and ASGI middlewares populate events the
same way.
"""

import logging
from collections.abc import Mapping, MutableMapping
from typing import Any, Iterable, Tuple, Union

from honeycomb_middleware.errors.codes import ErrorCode

logger = logging.getLogger(__name__)

# Prefix for attaching arbitrary metadata to the request context. Matching
# keys are moved onto the event and deleted from the context.
ENV_PREFIX = "honeycomb."

CONTENT_LENGTH = "content-length"

# Header-derived request fields, named as in a WSGI environ
HEADER_REQUEST_FIELDS: Tuple[str, ...] = (
    "HTTP_HOST",
    "HTTP_CONNECTION",
    "HTTP_CACHE_CONTROL",
    "HTTP_UPGRADE_INSECURE_REQUESTS",
    "HTTP_USER_AGENT",
    "HTTP_ACCEPT",
    "HTTP_ACCEPT_LANGUAGE",
)

WSGI_REQUEST_FIELDS: Tuple[str, ...] = (
    "wsgi.version",
    "wsgi.multithread",
    "wsgi.multiprocess",
    "wsgi.run_once",
    "SCRIPT_NAME",
    "QUERY_STRING",
    "SERVER_PROTOCOL",
    "SERVER_SOFTWARE",
    "GATEWAY_INTERFACE",
    "REQUEST_METHOD",
    "PATH_INFO",
    "REQUEST_URI",
    "HTTP_VERSION",
) + HEADER_REQUEST_FIELDS + (
    "REMOTE_ADDR",
)

Headers = Union[Mapping, Iterable[Tuple[str, Any]]]


def add_field(event: Any, name: str, value: Any) -> None:
    """Add ``name`` to the event unless the value is None or empty."""
    if value is None or value == "":
        return
    event.add_field(name, value)


def add_fields(event: Any, fields: Mapping) -> None:
    for name, value in fields.items():
        add_field(event, name, value)


def response_header_fields(headers: Headers) -> dict[str, Any]:
    """
    Map response headers to event fields.

    Header names are kept exactly as the application produced them. Values
    of a header that appears more than once (Set-Cookie, Vary) are joined
    with newlines in order. A Content-Length header (any case) is converted
    to an int; a value that does not parse is dropped.

    Args:
        headers: A mapping or an iterable of (name, value) pairs

    Returns:
        Field name to value, before empty values are filtered
    """
    items = headers.items() if isinstance(headers, Mapping) else headers
    fields: dict[str, Any] = {}
    for name, value in items:
        previous = fields.get(name)
        if previous is None or previous == "":
            fields[name] = value
        elif value is not None and value != "":
            fields[name] = f"{previous}\n{value}"

    for name in list(fields):
        if not isinstance(name, str) or name.lower() != CONTENT_LENGTH:
            continue
        value = fields[name]
        if value is None or value == "":
            continue
        try:
            fields[name] = int(value)
        except (TypeError, ValueError):
            logger.warning("Dropping non-integer Content-Length", extra={
                "extra_data": {
                    "error_code": ErrorCode.INVALID_CONTENT_LENGTH.value,
                    "header": name,
                    "value": str(value)[:64],
                }
            })
            del fields[name]

    return fields


def status_code(status: Any) -> Any:
    """
    Numeric form of a response status.

    WSGI statuses are strings like ``"200 OK"``; the leading code is
    returned as an int. Values that don't start with a number are returned
    unchanged.
    """
    if isinstance(status, str):
        code = status.split(" ", 1)[0]
        if code.isdigit():
            return int(code)
    return status


def pop_dynamic_fields(context: MutableMapping) -> dict[str, Any]:
    """
    Remove every ``honeycomb.``-prefixed key from the request context.

    Matching keys are collected before any is deleted, so the context is
    never mutated while it is being iterated.

    Returns:
        Field name (prefix stripped) to value, including empty values
    """
    keys = [
        key for key in context
        if isinstance(key, str) and key.startswith(ENV_PREFIX)
    ]
    return {key[len(ENV_PREFIX):]: context.pop(key) for key in keys}


def wsgi_request_fields(environ: Mapping) -> dict[str, Any]:
    """Allow-listed request fields from a WSGI environ."""
    fields = {name: environ.get(name) for name in WSGI_REQUEST_FIELDS}
    version = fields.get("wsgi.version")
    if isinstance(version, tuple):
        fields["wsgi.version"] = ".".join(str(part) for part in version)
    return fields


def add_request_field(context: MutableMapping, name: str, value: Any) -> None:
    """
    Attach a field to the current request's event.

    ``context`` is the WSGI environ or ASGI scope of the request being
    served (``request.environ`` in Flask, ``request.scope`` in Starlette).
    The key is removed from the context when the event is built.

    Example:
        add_request_field(request.scope, "user_id", user.id)
    """
    context[ENV_PREFIX + name] = value
