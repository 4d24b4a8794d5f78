"""
Line editor — turns raw keystrokes into finished command lines.

The editor owns the pending line and its cursor and renders them after the
prompt using plain VT100 sequences. Every key is first offered to the
autocomplete callback; only keys it passes through get the default
treatment (insert, Enter, Backspace, Ctrl-D at an empty line).
"""

from __future__ import annotations

import codecs
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from seesaw_cli.autocomplete import CompletionResult, Replace

_ESC = "\x1b"
_ENTER = ("\r", "\n")
_BACKSPACE = ("\x7f", "\x08")
_CTRL_D = "\x04"
_CLEAR_LINE = "\r\x1b[K"

KeyCallback = Callable[[str, int, str], CompletionResult]


@dataclass
class PendingLine:
    """Text being edited and the cursor offset into it."""

    text: str = ""
    cursor: int = 0

    def insert(self, ch: str) -> None:
        self.text = self.text[: self.cursor] + ch + self.text[self.cursor :]
        self.cursor += len(ch)

    def backspace(self) -> bool:
        if self.cursor == 0:
            return False
        self.text = self.text[: self.cursor - 1] + self.text[self.cursor :]
        self.cursor -= 1
        return True

    def replace(self, text: str, cursor: int) -> None:
        self.text = text
        self.cursor = max(0, min(cursor, len(text)))


class LineEditor:
    """Line-buffered input on top of a raw terminal."""

    def __init__(
        self,
        prompt: str,
        write: Callable[[str], None],
        autocomplete: Optional[KeyCallback] = None,
    ) -> None:
        self.prompt = prompt
        self.autocomplete = autocomplete
        self.line = PendingLine()
        self._out = write
        self._decoder = codecs.getincrementaldecoder("utf-8")("replace")
        self._escape = ""
        self._prompt_shown = False

    def show_prompt(self) -> None:
        """Draw the prompt and pending text unless already on screen."""
        if self._prompt_shown:
            return
        self._prompt_shown = True
        self._redraw()

    def write(self, text: str) -> None:
        """Print *text* above the line being edited, then redraw it."""
        if not self._prompt_shown:
            self._out(text)
            return
        self._out(_CLEAR_LINE + text)
        self._redraw()

    def feed(self, data: bytes) -> Iterator[str]:
        """Process raw input, yielding each line completed by Enter.

        Raises EOFError when Ctrl-D is pressed on an empty line.
        """
        for ch in self._decoder.decode(data):
            if self._in_escape(ch):
                continue
            self.show_prompt()
            line = self._handle_key(ch)
            if line is not None:
                yield line

    # ------------------------------------------------------------------
    # Key handling
    # ------------------------------------------------------------------

    def _in_escape(self, ch: str) -> bool:
        """Swallow escape sequences (arrows, function keys)."""
        if not self._escape:
            if ch == _ESC:
                self._escape = ch
                return True
            return False
        if self._escape == _ESC:
            if ch in "[O":
                self._escape += ch
            else:
                self._escape = ""
            return True
        # CSI / SS3 body runs until a final byte in 0x40-0x7e.
        if "\x40" <= ch <= "\x7e":
            self._escape = ""
        return True

    def _handle_key(self, ch: str) -> Optional[str]:
        if self.autocomplete is not None:
            result = self.autocomplete(self.line.text, self.line.cursor, ch)
            if isinstance(result, Replace):
                self._apply(result)
                return None

        if ch in _ENTER:
            text = self.line.text
            self._out("\r\n")
            self.line = PendingLine()
            self._prompt_shown = False
            return text
        if ch in _BACKSPACE:
            if self.line.backspace():
                self._redraw()
            return None
        if ch == _CTRL_D:
            if not self.line.text:
                raise EOFError
            return None
        if ch < " ":
            return None

        at_end = self.line.cursor == len(self.line.text)
        self.line.insert(ch)
        if at_end:
            self._out(ch)
        else:
            self._redraw()
        return None

    def _apply(self, result: Replace) -> None:
        self.line.replace(result.line, result.cursor)
        if result.refresh:
            self._redraw()
        else:
            self._place_cursor()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _redraw(self) -> None:
        out = _CLEAR_LINE + self.prompt + self.line.text
        back = len(self.line.text) - self.line.cursor
        if back:
            out += f"\x1b[{back}D"
        self._out(out)

    def _place_cursor(self) -> None:
        column = len(self.prompt) + self.line.cursor
        self._out(f"\r\x1b[{column}C" if column else "\r")
