from __future__ import annotations

import asyncio

import structlog
from fastapi import FastAPI

from pageserver import __version__
from pageserver.api.content import DocumentEndpoint
from pageserver.api.metrics import MetricsEndpoint, NotFound
from pageserver.config import Settings
from pageserver.content.source import load_document
from pageserver.content.store import ContentStore
from pageserver.observability.logging import log_loop_exception
from pageserver.observability.metrics import MetricsRecorder, get_metrics
from pageserver.observability.middleware import RequestContextMiddleware
from pageserver.server.acceptor import RECV_BUFFER, Acceptor, send_buffer_size
from pageserver.server.shutdown import ShutdownCoordinator
from pageserver.server.tls import issue_self_signed


def create_content_app(store: ContentStore, metrics: MetricsRecorder) -> FastAPI:
    # Every path belongs to the document, so no docs/openapi routes.
    app = FastAPI(title="pageserver", version=__version__, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.content_store = store
    app.state.metrics = metrics
    app.add_route("/{path:path}", DocumentEndpoint(), include_in_schema=False)
    app.add_middleware(RequestContextMiddleware)
    return app


def create_metrics_app(metrics: MetricsRecorder) -> FastAPI:
    app = FastAPI(title="pageserver-metrics", version=__version__, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.metrics = metrics
    app.add_route("/metrics", MetricsEndpoint(), include_in_schema=False)
    app.add_route("/{path:path}", NotFound(), include_in_schema=False)
    app.add_middleware(RequestContextMiddleware, logger_name="metrics.access")
    return app


async def run(settings: Settings, shutdown: ShutdownCoordinator | None = None) -> int:
    """Serve the document and the metrics endpoint until shutdown; return the exit code.

    Startup errors (unreadable document, bad address, rejected socket options)
    propagate before either listener starts serving.
    """

    log = structlog.get_logger("server")
    asyncio.get_running_loop().set_exception_handler(log_loop_exception)

    store = ContentStore.build(load_document(settings.index_file))
    metrics = get_metrics()
    tls = issue_self_signed() if settings.tls else None

    owns_shutdown = shutdown is None
    coordinator = shutdown if shutdown is not None else ShutdownCoordinator()
    acceptors: list[Acceptor] = []
    try:
        acceptors.append(
            Acceptor.bind(
                "content",
                settings.addr,
                settings.port,
                create_content_app(store, metrics),
                send_buffer=send_buffer_size(store.uncompressed_length),
                recv_buffer=RECV_BUFFER,
                tls=tls,
                keep_alive_timeout=settings.keep_alive_timeout,
                graceful_shutdown_timeout=settings.graceful_shutdown_timeout,
            )
        )
        acceptors.append(
            Acceptor.bind(
                "metrics",
                settings.metrics_host,
                settings.metrics_port,
                create_metrics_app(metrics),
                keep_alive_timeout=settings.keep_alive_timeout,
                graceful_shutdown_timeout=settings.graceful_shutdown_timeout,
            )
        )

        if owns_shutdown:
            coordinator.install()

        log.info(
            "server_starting",
            content_url=acceptors[0].url,
            metrics_url=f"{acceptors[1].url}/metrics",
            etag=store.etag,
            uncompressed_length=store.uncompressed_length,
            compressed_length=store.compressed_length,
        )
        results = await asyncio.gather(*(acceptor.serve(coordinator) for acceptor in acceptors), return_exceptions=True)
    finally:
        if owns_shutdown:
            coordinator.uninstall()
        for acceptor in acceptors:
            acceptor.close()
        if tls is not None:
            tls.cleanup()

    exit_code = 0
    for acceptor, result in zip(acceptors, results):
        if isinstance(result, BaseException):
            exit_code = 1
            log.error("server_failed", acceptor=acceptor.name, error=repr(result), exc_info=result)

    log.info("server_stopped", trigger=coordinator.trigger_name, exit_code=exit_code)
    return exit_code
