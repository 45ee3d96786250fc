from __future__ import annotations

from time import perf_counter
from typing import Any, Callable

from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.responses import Response

from pageserver.content.store import ContentStore
from pageserver.observability.metrics import MetricsRecorder

CONTENT_TYPE = "text/html"
CACHE_CONTROL = "public, max-age=3600, must-revalidate"


def _header_text(headers: Headers, name: bytes) -> str | None:
    """First value of ``name`` as text, or None when absent or not visible ASCII."""
    for key, value in headers.raw:
        if key.lower() != name:
            continue
        if any((byte < 0x20 and byte != 0x09) or byte >= 0x7F for byte in value):
            return None
        return value.decode("ascii")
    return None


def _not_modified(store: ContentStore) -> Response:
    # No body, no Content-Length, no Content-Encoding.
    return Response(
        status_code=304,
        headers={"ETag": store.etag, "Cache-Control": CACHE_CONTROL},
    )


def _full(store: ContentStore, use_gzip: bool) -> Response:
    body, length, encoding = store.representation(use_gzip)
    return Response(
        content=body,
        status_code=200,
        headers={
            "Content-Type": CONTENT_TYPE,
            "Cache-Control": CACHE_CONTROL,
            "ETag": store.etag,
            "Content-Length": str(length),
            "Content-Encoding": encoding,
        },
    )


def handle_request(method: str, headers: Headers, store: ContentStore, metrics: MetricsRecorder) -> Response:
    """Answer one request for the document. Total: every input maps to a response.

    A byte-exact ``If-None-Match`` hit yields 304 regardless of
    ``Accept-Encoding``; otherwise the gzip representation is chosen when the
    client mentions ``gzip`` anywhere in ``Accept-Encoding``.
    """

    metrics.record_request(method)
    start = perf_counter()
    status = 500
    try:
        if _header_text(headers, b"if-none-match") == store.etag:
            response = _not_modified(store)
        else:
            accept_encoding = _header_text(headers, b"accept-encoding")
            response = _full(store, use_gzip=accept_encoding is not None and "gzip" in accept_encoding)
        status = response.status_code
        return response
    finally:
        metrics.record_response(method, status, start)


class DocumentEndpoint:
    """ASGI endpoint answering every path and method with the document.

    Mounted as a raw ASGI app rather than a function route so Starlette does
    not restrict it to GET/HEAD.
    """

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        request = Request(scope, receive)
        state = request.app.state
        response = handle_request(request.method, request.headers, state.content_store, state.metrics)
        await response(scope, receive, send)
