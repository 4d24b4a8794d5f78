"""
Terminal — raw mode for the controlling tty.

``RawTerminal`` captures the terminal configuration once, switches the tty
to raw mode (keys delivered one at a time, no echo, no line editing, no
signal generation from Ctrl-C / Ctrl-\\ / Ctrl-Z) and restores the captured
configuration on request. Output post-processing is left on so that a plain
``\\n`` still returns the carriage.
"""

from __future__ import annotations

import enum
import os
import sys
from typing import IO, Any, Optional

import structlog

from seesaw_cli.errors import RawModeError

try:  # pragma: no cover - platform-dependent optional module
    import termios as _termios
except Exception:  # pragma: no cover
    _termios = None

logger = structlog.get_logger(__name__)

# Positions in the list returned by tcgetattr().
_IFLAG, _OFLAG, _CFLAG, _LFLAG, _ISPEED, _OSPEED, _CC = range(7)

_READ_SIZE = 1024


class TerminalMode(enum.Enum):
    COOKED = "cooked"
    RAW = "raw"


def raw_attributes(attrs: list[Any]) -> list[Any]:
    """Return a raw-mode copy of *attrs*, as produced by tcgetattr()."""
    t = _termios
    raw = list(attrs)
    raw[_CC] = list(attrs[_CC])
    raw[_IFLAG] &= ~(
        t.IGNBRK | t.BRKINT | t.PARMRK | t.ISTRIP | t.INLCR | t.IGNCR | t.ICRNL | t.IXON
    )
    raw[_LFLAG] &= ~(t.ECHO | t.ECHONL | t.ICANON | t.ISIG | t.IEXTEN)
    raw[_CFLAG] &= ~(t.CSIZE | t.PARENB)
    raw[_CFLAG] |= t.CS8
    raw[_CC][t.VMIN] = 1
    raw[_CC][t.VTIME] = 0
    return raw


class RawTerminal:
    """The controlling terminal: mode switching plus byte-level I/O."""

    def __init__(
        self,
        fd: Optional[int] = None,
        output: Optional[IO[str]] = None,
    ) -> None:
        self._fd = fd
        self._output = output if output is not None else sys.stdout
        self._saved: Optional[list[Any]] = None
        self._mode = TerminalMode.COOKED

    @property
    def fd(self) -> int:
        if self._fd is None:
            self._fd = sys.stdin.fileno()
        return self._fd

    @property
    def mode(self) -> TerminalMode:
        return self._mode

    @property
    def captured(self) -> bool:
        return self._saved is not None

    def capture(self) -> None:
        """Remember the current configuration so it can be restored later."""
        if _termios is None:
            raise RawModeError("Failed to get raw terminal: terminal control is not supported")
        try:
            self._saved = _termios.tcgetattr(self.fd)
        except (_termios.error, OSError, ValueError) as e:
            raise RawModeError(f"Failed to get raw terminal: {e}") from e

    def enter_raw(self) -> None:
        """Switch to raw mode, derived from the captured configuration."""
        if self._saved is None:
            self.capture()
        try:
            _termios.tcsetattr(self.fd, _termios.TCSAFLUSH, raw_attributes(self._saved))
        except (_termios.error, OSError) as e:
            raise RawModeError(f"Failed to get raw terminal: {e}") from e
        self._mode = TerminalMode.RAW
        logger.debug("terminal.raw_entered", fd=self.fd)

    def restore(self) -> bool:
        """Put back the captured configuration. Returns False when already cooked."""
        if self._mode is not TerminalMode.RAW or self._saved is None:
            return False
        try:
            _termios.tcsetattr(self.fd, _termios.TCSADRAIN, self._saved)
        except (_termios.error, OSError) as e:
            logger.warning("terminal.restore_failed", error=str(e))
        self._mode = TerminalMode.COOKED
        logger.debug("terminal.restored", fd=self.fd)
        return True

    def read(self) -> bytes:
        """Block until input is available; b"" means end of input."""
        return os.read(self.fd, _READ_SIZE)

    def write(self, text: str) -> None:
        self._output.write(text)
        self._output.flush()
