"""
Shared fixtures for the seesaw-cli test suite.

Provides a termios stand-in, a pipe-backed terminal and a small command tree
so individual test modules can focus on behavior rather than setup. No test
needs a real tty.
"""

from __future__ import annotations

import copy
import io
import logging
import os
import termios
from dataclasses import dataclass, field
from typing import Any

import pytest
import structlog

from seesaw_cli.commands import Command, CommandRegistry
from seesaw_cli.terminal import RawTerminal

# Keep debug events from the modules under test off stdout.
structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING))


# ---------------------------------------------------------------------------
# termios stand-in
# ---------------------------------------------------------------------------

def cooked_attributes() -> list[Any]:
    """A plausible canonical-mode configuration as returned by tcgetattr()."""
    cc: list[Any] = [b"\x00"] * termios.NCCS
    cc[termios.VINTR] = b"\x03"
    cc[termios.VEOF] = b"\x04"
    return [
        termios.BRKINT | termios.ICRNL | termios.IXON,
        termios.OPOST | termios.ONLCR,
        termios.CS8 | termios.CREAD,
        termios.ECHO | termios.ECHOE | termios.ICANON | termios.ISIG | termios.IEXTEN,
        termios.B38400,
        termios.B38400,
        cc,
    ]


class FakeTermios:
    """Replaces the termios module; records every tcsetattr() call.

    Constants are looked up on the real module.
    """

    error = termios.error

    def __init__(self) -> None:
        self.original = cooked_attributes()
        self.attrs = copy.deepcopy(self.original)
        self.calls: list[tuple[int, list[Any]]] = []
        self.fail_get = False
        self.fail_set = False

    def __getattr__(self, name: str) -> Any:
        return getattr(termios, name)

    def tcgetattr(self, fd: int) -> list[Any]:
        if self.fail_get:
            raise termios.error(25, "Inappropriate ioctl for device")
        return copy.deepcopy(self.attrs)

    def tcsetattr(self, fd: int, when: int, attrs: list[Any]) -> None:
        if self.fail_set:
            raise termios.error(5, "Input/output error")
        self.calls.append((when, copy.deepcopy(attrs)))
        self.attrs = copy.deepcopy(attrs)

    @property
    def modes(self) -> list[int]:
        return [when for when, _ in self.calls]


@pytest.fixture()
def fake_termios(monkeypatch) -> FakeTermios:
    fake = FakeTermios()
    monkeypatch.setattr("seesaw_cli.terminal._termios", fake)
    return fake


# ---------------------------------------------------------------------------
# Terminal double
# ---------------------------------------------------------------------------

@dataclass
class PipeTTY:
    """A RawTerminal reading from a pipe and writing into a buffer."""

    terminal: RawTerminal
    output: io.StringIO
    _write_fd: int
    _closed: bool = field(default=False)

    def send(self, data: bytes) -> None:
        os.write(self._write_fd, data)

    def hang_up(self) -> None:
        if not self._closed:
            self._closed = True
            os.close(self._write_fd)


@pytest.fixture()
def tty(fake_termios):
    read_fd, write_fd = os.pipe()
    output = io.StringIO()
    pipe_tty = PipeTTY(RawTerminal(fd=read_fd, output=output), output, write_fd)
    yield pipe_tty
    # EOF releases any reader thread still blocked on the pipe.
    pipe_tty.hang_up()
    os.close(read_fd)


# ---------------------------------------------------------------------------
# Command tree
# ---------------------------------------------------------------------------

class Recorder:
    """Collects (name, args) for every handler invocation."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, list[str]]] = []

    def handler(self, name: str):
        async def _handle(args: list[str]) -> None:
            self.calls.append((name, list(args)))

        return _handle


@pytest.fixture()
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture()
def registry(recorder) -> CommandRegistry:
    """exit, ping [ARGS...], show {status, stats, version}, config {reload}."""
    return CommandRegistry([
        Command("exit", "Leave", handler=recorder.handler("exit")),
        Command("ping", "Ping a backend", handler=recorder.handler("ping"), max_args=None),
        Command(
            "show",
            "Show things",
            subcommands=[
                Command("status", handler=recorder.handler("status")),
                Command("stats", handler=recorder.handler("stats")),
                Command("version", handler=recorder.handler("version")),
            ],
        ),
        Command(
            "config",
            "Configuration",
            subcommands=[Command("reload", handler=recorder.handler("reload"))],
        ),
    ])
