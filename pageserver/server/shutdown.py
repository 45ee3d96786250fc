from __future__ import annotations

import asyncio
import signal

import structlog

SHUTDOWN_SIGNALS = ("SIGINT", "SIGTERM")


class ShutdownCoordinator:
    """Single-fire shutdown event, set by whichever termination signal arrives first.

    Every acceptor awaits :meth:`wait` independently; they all observe the
    same trigger but never wait on each other.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._trigger: str | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_signals: list[signal.Signals] = []
        self._previous_handlers: dict[signal.Signals, object] = {}

    @property
    def trigger_name(self) -> str | None:
        return self._trigger

    def is_set(self) -> bool:
        return self._event.is_set()

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        loop = loop or asyncio.get_running_loop()
        self._loop = loop
        for name in SHUTDOWN_SIGNALS:
            # SIGTERM is missing on some platforms.
            sig = getattr(signal, name, None)
            if sig is None:
                continue
            try:
                loop.add_signal_handler(sig, self.trigger, name)
                self._loop_signals.append(sig)
            except (NotImplementedError, RuntimeError):
                self._previous_handlers[sig] = signal.signal(sig, self._threadsafe_handler(name))

    def uninstall(self) -> None:
        if self._loop is not None:
            for sig in self._loop_signals:
                self._loop.remove_signal_handler(sig)
        for sig, previous in self._previous_handlers.items():
            signal.signal(sig, previous)
        self._loop_signals.clear()
        self._previous_handlers.clear()

    def _threadsafe_handler(self, name: str):
        def _handler(signum, frame) -> None:
            _ = signum, frame
            if self._loop is not None:
                self._loop.call_soon_threadsafe(self.trigger, name)

        return _handler

    def trigger(self, name: str = "manual") -> None:
        log = structlog.get_logger("shutdown")
        if self._event.is_set():
            log.info("shutdown_already_requested", signal=name, trigger=self._trigger)
            return
        self._trigger = name
        log.info("shutdown_requested", signal=name)
        self._event.set()

    async def wait(self) -> str:
        await self._event.wait()
        return self._trigger or "manual"
