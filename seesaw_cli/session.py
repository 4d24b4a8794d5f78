"""
Session — the raw-terminal interactive console.

``SessionController`` is the only component that changes the terminal mode.
It moves through COOKED -> RAW -> (SUSPENDED -> RAW)* -> TERMINATED and
guarantees that whichever way the session ends (end of input, the quit
command, Ctrl-C, or a SIGINT/SIGQUIT/SIGTERM from outside) the terminal is
put back exactly as it was found.

The read-edit-dispatch loop runs on the event loop. The blocking terminal
read happens on a dedicated thread and is raced against a single shutdown
notification, so every shutdown trigger only has to call ``exit()``.
"""

from __future__ import annotations

import asyncio
import enum
import os
import signal
import threading
from typing import Any, Awaitable, Callable, Optional

import structlog
from rich.console import Console

from seesaw_cli.autocomplete import AutoCompleter
from seesaw_cli.commands import CommandRegistry
from seesaw_cli.dispatcher import CommandDispatcher
from seesaw_cli.editor import LineEditor
from seesaw_cli.errors import RawModeError
from seesaw_cli.signals import ShutdownSignal, SignalCoordinator
from seesaw_cli.terminal import RawTerminal

logger = structlog.get_logger(__name__)


class SessionState(enum.Enum):
    COOKED = "cooked"
    RAW = "raw"
    SUSPENDED = "suspended"
    TERMINATED = "terminated"


def build_prompt(username: str, site: str) -> str:
    return f"{username}@{site}> "


def _stop_self() -> None:
    """Ask the OS to stop this process, as the shell's Ctrl-Z would."""
    os.kill(os.getpid(), signal.SIGTSTP)


class SessionController:
    """Owns terminal mode and the interactive loop for one console session."""

    def __init__(
        self,
        prompt: str,
        registry: CommandRegistry,
        *,
        terminal: Optional[RawTerminal] = None,
        signals: Optional[SignalCoordinator] = None,
        dispatcher: Optional[CommandDispatcher] = None,
        console: Optional[Console] = None,
        stop_process: Callable[[], None] = _stop_self,
    ) -> None:
        self.prompt = prompt
        self._registry = registry
        self._terminal = terminal or RawTerminal()
        self._signals = signals or SignalCoordinator()
        self._dispatcher = dispatcher or CommandDispatcher(registry, console or Console())
        self._stop_process = stop_process

        self._state = SessionState.COOKED
        self._editor: Optional[LineEditor] = None
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._shutdown_event = asyncio.Event()
        self._exit_status = 0
        self._fatal_error: Optional[RawModeError] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def editor(self) -> Optional[LineEditor]:
        return self._editor

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Capture the terminal, switch it to raw mode and build the editor."""
        with self._lock:
            if self._state is not SessionState.COOKED:
                raise RuntimeError(f"Cannot start a session that is {self._state.value}")
            if not self._signals.installed:
                raise RuntimeError("Signal handlers must be installed before entering raw mode")
            self._terminal.capture()
            self._terminal.enter_raw()
            self._state = SessionState.RAW
            self._editor = self._new_editor()
        logger.debug("session.raw_mode_entered", prompt=self.prompt)

    def exit(self, status: int = 0) -> bool:
        """Restore the terminal and end the session.

        Only the first call has any effect and returns True; later or
        concurrent calls return False.
        """
        with self._lock:
            if self._state is SessionState.TERMINATED:
                return False
            previous = self._state
            self._terminal.restore()
            self._state = SessionState.TERMINATED
            self._exit_status = status
        if previous in (SessionState.RAW, SessionState.SUSPENDED):
            self._terminal.write("\n")
        logger.debug("session.exit", previous=previous.value, status=status)
        self._notify_shutdown()
        return True

    def suspend(self) -> None:
        """Give the terminal back and stop the process (job control)."""
        with self._lock:
            if self._state is not SessionState.RAW:
                return
            self._terminal.restore()
            self._state = SessionState.SUSPENDED
        self._signals.schedule_resume(self.resume)
        logger.debug("session.suspended")
        self._stop_process()

    def resume(self) -> None:
        """Re-enter raw mode after a suspend, with a fresh editor."""
        with self._lock:
            if self._state is not SessionState.SUSPENDED:
                return
            self._terminal.write("resuming...\n")
            try:
                self._terminal.enter_raw()
            except RawModeError as e:
                self._fatal_error = e
            else:
                self._state = SessionState.RAW
                self._editor = self._new_editor()

        if self._fatal_error is not None:
            logger.error("session.resume_failed", error=str(self._fatal_error))
            self.exit(1)
            return
        logger.debug("session.resumed")
        self._editor.show_prompt()

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def run(self) -> int:
        """Run the interactive session and return the exit status."""
        self._loop = asyncio.get_running_loop()
        self._signals.install(self._on_shutdown_signal)
        try:
            self.start()
            await self._interaction_loop()
        finally:
            self.exit()
            self._signals.uninstall()

        if self._fatal_error is not None:
            raise self._fatal_error
        return self._exit_status

    async def _interaction_loop(self) -> None:
        while not self._shutdown_event.is_set():
            if self._state is SessionState.RAW:
                self._editor.show_prompt()

            finished, data = await self._until_shutdown(self._read_input())
            if not finished:
                break
            if not data:
                logger.debug("session.end_of_input")
                break

            try:
                for line in self._editor.feed(data):
                    if self._shutdown_event.is_set():
                        break
                    finished, _ = await self._until_shutdown(self._dispatcher.dispatch(line))
                    if not finished:
                        break
            except EOFError:
                logger.debug("session.end_of_input")
                break

    async def _until_shutdown(self, aw: Awaitable[Any]) -> tuple[bool, Any]:
        """Await *aw* unless shutdown is requested first.

        Returns (True, result) when *aw* finished, (False, None) on shutdown.
        """
        task = asyncio.ensure_future(aw)
        shutdown_wait = asyncio.create_task(
            self._shutdown_event.wait(),
            name="seesaw-session-shutdown",
        )
        try:
            done, _ = await asyncio.wait(
                {task, shutdown_wait},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if task in done:
                return True, task.result()
            return False, None
        finally:
            if not task.done():
                task.cancel()
            shutdown_wait.cancel()
            await asyncio.gather(task, shutdown_wait, return_exceptions=True)

    async def _read_input(self) -> bytes:
        """
        Read one chunk of terminal input on a daemon thread.

        ``os.read`` cannot be interrupted from the loop, so on shutdown the
        thread is left blocked and dies with the process.
        """
        loop = asyncio.get_running_loop()
        chunk: asyncio.Future[bytes] = loop.create_future()

        def _deliver(data: bytes, error: Optional[Exception]) -> None:
            if chunk.done():
                return
            if error is not None:
                chunk.set_exception(error)
            else:
                chunk.set_result(data)

        def _read() -> None:
            data, error = b"", None
            try:
                data = self._terminal.read()
            except Exception as exc:
                error = exc
            if loop.is_closed():
                return
            try:
                loop.call_soon_threadsafe(_deliver, data, error)
            except RuntimeError:
                logger.debug("session.read_after_loop_closed", bytes=len(data))

        threading.Thread(target=_read, name="seesaw-terminal-read", daemon=True).start()
        return await chunk

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def _new_editor(self) -> LineEditor:
        completer = AutoCompleter(
            self._registry,
            self.prompt,
            write=self._write_above_line,
            on_interrupt=self.exit,
            on_suspend=self.suspend,
        )
        return LineEditor(self.prompt, write=self._editor_output, autocomplete=completer)

    def _editor_output(self, text: str) -> None:
        # Only a raw, live session may draw on the terminal.
        if self._state is SessionState.RAW:
            self._terminal.write(text)

    def _write_above_line(self, text: str) -> None:
        if self._editor is not None:
            self._editor.write(text)

    def _on_shutdown_signal(self, kind: ShutdownSignal) -> None:
        logger.debug("session.shutdown_signal", signal=kind.value)
        self.exit()

    def _notify_shutdown(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            self._shutdown_event.set()
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._shutdown_event.set()
        else:
            loop.call_soon_threadsafe(self._shutdown_event.set)
