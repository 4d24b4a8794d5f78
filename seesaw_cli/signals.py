"""
Signal coordination — turns process signals into session notifications.

SIGINT, SIGQUIT and SIGTERM all funnel into one shutdown callback. Once the
terminal is raw the driver no longer generates these from the keyboard, so
the handlers must be in place before raw mode begins; they are then the
only route to a clean shutdown for signals sent from outside.

A scheduled resume always arms a fixed-delay timer. SIGCONT, the "continued"
notification after a job-control stop, fires it early where it can be
observed. The timer covers a stop that never happens (orphaned process
group, SIGTSTP ignored); it cannot fire while the process is stopped.
"""

from __future__ import annotations

import asyncio
import enum
import signal
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class ShutdownSignal(enum.Enum):
    INTERRUPT = "interrupt"
    QUIT = "quit"
    TERMINATE = "terminate"


SHUTDOWN_SIGNALS: dict[int, ShutdownSignal] = {
    signal.SIGINT: ShutdownSignal.INTERRUPT,
    signal.SIGQUIT: ShutdownSignal.QUIT,
    signal.SIGTERM: ShutdownSignal.TERMINATE,
}


class SignalCoordinator:
    """Installs signal handlers on the running event loop."""

    def __init__(self, resume_delay: float = 1.0) -> None:
        self._resume_delay = resume_delay
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._loop_handlers: list[int] = []
        # Handlers replaced via signal.signal() where the loop cannot take them.
        self._previous: dict[int, Any] = {}
        self._on_shutdown: Optional[Callable[[ShutdownSignal], object]] = None
        self._pending_resume: Optional[Callable[[], object]] = None
        self._resume_timer: Optional[asyncio.TimerHandle] = None
        self._continue_supported = False

    @property
    def installed(self) -> bool:
        return self._on_shutdown is not None

    @property
    def continue_supported(self) -> bool:
        return self._continue_supported

    def install(self, on_shutdown: Callable[[ShutdownSignal], object]) -> None:
        """Start relaying shutdown signals to *on_shutdown*."""
        if self.installed:
            return
        loop = asyncio.get_running_loop()
        self._loop = loop
        self._on_shutdown = on_shutdown

        for signum, kind in SHUTDOWN_SIGNALS.items():
            try:
                loop.add_signal_handler(signum, self._relay_shutdown, kind)
                self._loop_handlers.append(signum)
            except NotImplementedError:
                self._previous[signum] = signal.signal(
                    signum, lambda _signum, _frame, k=kind: self._relay_shutdown(k)
                )

        sigcont = getattr(signal, "SIGCONT", None)
        if sigcont is not None:
            try:
                loop.add_signal_handler(sigcont, self._relay_continue)
                self._loop_handlers.append(sigcont)
                self._continue_supported = True
            except NotImplementedError:
                logger.debug("signals.continue_unavailable")
        logger.debug(
            "signals.installed",
            loop_handlers=len(self._loop_handlers),
            continue_supported=self._continue_supported,
        )

    def uninstall(self) -> None:
        """Remove every handler added by install()."""
        loop = self._loop
        if loop is not None and not loop.is_closed():
            for signum in self._loop_handlers:
                loop.remove_signal_handler(signum)
        self._loop_handlers.clear()
        for signum, previous in self._previous.items():
            signal.signal(signum, previous)
        self._previous.clear()

        if self._resume_timer is not None:
            self._resume_timer.cancel()
            self._resume_timer = None
        self._pending_resume = None
        self._on_shutdown = None
        self._continue_supported = False
        self._loop = None

    def trigger(self, kind: ShutdownSignal) -> None:
        """Deliver a shutdown notification as if *kind* had been received."""
        self._relay_shutdown(kind)

    def schedule_resume(self, callback: Callable[[], object]) -> None:
        """Run *callback* on SIGCONT or after the resume delay, whichever comes first."""
        self._pending_resume = callback
        loop = self._loop or asyncio.get_running_loop()
        if self._resume_timer is not None:
            self._resume_timer.cancel()
        self._resume_timer = loop.call_later(self._resume_delay, self._fire_resume)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _relay_shutdown(self, kind: ShutdownSignal) -> None:
        logger.info("signals.received", signal=kind.value)
        callback = self._on_shutdown
        if callback is not None:
            callback(kind)

    def _relay_continue(self) -> None:
        logger.debug("signals.continued")
        self._fire_resume()

    def _fire_resume(self) -> None:
        if self._resume_timer is not None:
            self._resume_timer.cancel()
            self._resume_timer = None
        callback, self._pending_resume = self._pending_resume, None
        if callback is not None:
            callback()
