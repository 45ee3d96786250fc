from __future__ import annotations

from typing import Any, Callable

import structlog
from fastapi import Request
from fastapi.responses import PlainTextResponse, Response

from pageserver.observability.metrics import EXPOSITION_CONTENT_TYPE, MetricsRecorder


def render_exposition(recorder: MetricsRecorder) -> Response:
    try:
        payload = recorder.render()
    except Exception:  # noqa: BLE001 - report, keep the listener alive
        structlog.get_logger("metrics").exception("metrics_render_failed")
        return PlainTextResponse("Internal Server Error", status_code=500)
    return Response(content=payload, media_type=EXPOSITION_CONTENT_TYPE)


class MetricsEndpoint:
    """ASGI endpoint for ``/metrics``. Routed by path alone, whatever the method."""

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        request = Request(scope, receive)
        response = render_exposition(request.app.state.metrics)
        await response(scope, receive, send)


class NotFound:
    """ASGI fallback: 404 for every other path, whatever the method."""

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        await PlainTextResponse("Not Found", status_code=404)(scope, receive, send)
