from __future__ import annotations

import asyncio
import contextlib
import logging
import socket
from collections.abc import Iterator
from ipaddress import ip_address
from typing import Any

import uvicorn

from pageserver.server.shutdown import ShutdownCoordinator
from pageserver.server.tls import TlsMaterial

logger = logging.getLogger(__name__)

MIN_SEND_BUFFER = 32 * 1024
MAX_SEND_BUFFER = 2 * 1024 * 1024
RECV_BUFFER = 32 * 1024


def send_buffer_size(content_length: int) -> int:
    """Twice the payload, clamped to [32 KiB, 2 MiB]."""
    return max(MIN_SEND_BUFFER, min(content_length * 2, MAX_SEND_BUFFER))


def bind_socket(
    host: str,
    port: int,
    send_buffer: int | None = None,
    recv_buffer: int | None = None,
) -> socket.socket:
    """Create and bind a TCP socket. The event loop calls listen() when serving.

    Buffer sizes set here are inherited by every accepted connection.
    """

    family = socket.AF_INET6 if ip_address(host).version == 6 else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        if send_buffer is not None:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, send_buffer)
        if recv_buffer is not None:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, recv_buffer)
        sock.bind((host, port))
    except OSError:
        sock.close()
        raise
    return sock


class _ManagedServer(uvicorn.Server):
    """uvicorn server whose lifetime is driven by a ShutdownCoordinator, not by its own signal handlers."""

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield

    def install_signal_handlers(self) -> None:
        return None


class Acceptor:
    """One listening socket plus the HTTP layer serving an ASGI app on it.

    Plain and TLS differ only in ``tls``: ``None`` hands connections straight
    to HTTP, a :class:`TlsMaterial` has uvicorn terminate TLS first. A failed
    handshake drops that one connection; the listener keeps accepting.
    """

    def __init__(self, name: str, sock: socket.socket, config: uvicorn.Config, tls: TlsMaterial | None = None) -> None:
        self.name = name
        self._sock = sock
        self._config = config
        self._tls = tls
        self._server: _ManagedServer | None = None
        # Captured up front: uvicorn closes the socket when it shuts down.
        self.host, self.port = sock.getsockname()[:2]

    @classmethod
    def bind(
        cls,
        name: str,
        host: str,
        port: int,
        app: Any,
        *,
        send_buffer: int | None = None,
        recv_buffer: int | None = None,
        tls: TlsMaterial | None = None,
        keep_alive_timeout: int = 5,
        graceful_shutdown_timeout: int = 30,
    ) -> Acceptor:
        sock = bind_socket(host, port, send_buffer=send_buffer, recv_buffer=recv_buffer)
        config = uvicorn.Config(
            app,
            host=host,
            port=port,
            lifespan="off",
            log_config=None,
            access_log=False,
            server_header=False,
            timeout_keep_alive=keep_alive_timeout,
            timeout_graceful_shutdown=graceful_shutdown_timeout,
            ssl_certfile=str(tls.certfile) if tls else None,
            ssl_keyfile=str(tls.keyfile) if tls else None,
        )
        logger.info(
            "acceptor.bound",
            extra={
                "acceptor": name,
                "address": f"{host}:{sock.getsockname()[1]}",
                "tls": tls is not None,
                "send_buffer": send_buffer,
                "recv_buffer": recv_buffer,
            },
        )
        return cls(name, sock, config, tls)

    @property
    def scheme(self) -> str:
        return "https" if self._tls is not None else "http"

    @property
    def url(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{self.scheme}://{host}:{self.port}"

    @property
    def started(self) -> bool:
        return self._server is not None and self._server.started

    async def serve(self, shutdown: ShutdownCoordinator) -> None:
        """Accept until ``shutdown`` fires, then drain in-flight requests and return."""

        server = _ManagedServer(self._config)
        self._server = server
        serve_task = asyncio.create_task(server.serve(sockets=[self._sock]), name=f"{self.name}-serve")
        shutdown_task = asyncio.create_task(shutdown.wait(), name=f"{self.name}-shutdown")
        logger.info("acceptor.serving", extra={"acceptor": self.name, "url": self.url})

        try:
            done, _ = await asyncio.wait({serve_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED)
            if shutdown_task in done:
                logger.info("acceptor.draining", extra={"acceptor": self.name, "signal": shutdown_task.result()})
                server.should_exit = True
            await serve_task
        finally:
            shutdown_task.cancel()
            if not serve_task.done():
                server.should_exit = True
                serve_task.cancel()

        logger.info("acceptor.stopped", extra={"acceptor": self.name})

    def close(self) -> None:
        self._sock.close()
