"""
Autocomplete — maps (line, cursor, key) to a completion decision.

The line editor asks the completer about every key before applying its own
default handling. The answer is either ``PassThrough`` (let the editor
insert or interpret the key) or ``Replace`` (a new line and cursor, with a
flag saying whether the whole line must be redrawn).

Prefix resolution is delegated to the command registry; what the completer
adds is the chain-join rule and the operator feedback for unknown and
ambiguous prefixes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Sequence, Union

import structlog

if TYPE_CHECKING:
    from seesaw_cli.commands import CommandRegistry

logger = structlog.get_logger(__name__)

CTRL_A = "\x01"
CTRL_C = "\x03"
CTRL_E = "\x05"
TAB = "\t"
CTRL_U = "\x15"
CTRL_Z = "\x1a"
HELP = "?"


@dataclass(frozen=True)
class PassThrough:
    """No completion; the editor applies its default handling."""


@dataclass(frozen=True)
class Replace:
    """Replace the pending line and cursor.

    ``refresh`` is True when the line text changed and must be redrawn;
    False when only the cursor moves.
    """

    line: str
    cursor: int
    refresh: bool = True


CompletionResult = Union[PassThrough, Replace]

PASS_THROUGH = PassThrough()


def join_chain(chain: Sequence[str], args: Sequence[str]) -> str:
    """Join resolved command tokens and free-form arguments.

    With no arguments an empty token is appended so the result ends in a
    space and the operator can keep typing the next word.
    """
    tokens = list(chain)
    tokens.extend(args)
    if tokens and not args:
        tokens.append("")
    return " ".join(tokens)


class AutoCompleter:
    """Key handler installed on the line editor.

    ``write`` prints above the line being edited. ``on_interrupt`` and
    ``on_suspend`` are the session's exit and suspend paths.

    Tab on an ambiguous token and ``?`` both echo ``prompt + line`` before
    listing candidates. The listing scrolls the edited line away and the
    editor redraws it below, so the echo leaves what was typed in the
    scrollback next to its candidates. ``?`` echoes with a trailing ``?``
    because that is the key that was pressed; Tab has no printable form.
    """

    def __init__(
        self,
        registry: CommandRegistry,
        prompt: str,
        write: Callable[[str], None],
        on_interrupt: Callable[[], object],
        on_suspend: Callable[[], object],
    ) -> None:
        self._registry = registry
        self._prompt = prompt
        self._write = write
        self._on_interrupt = on_interrupt
        self._on_suspend = on_suspend

    def __call__(self, line: str, pos: int, key: str) -> CompletionResult:
        if key == CTRL_A:
            return Replace(line, 0, refresh=False)
        if key == CTRL_C:
            self._on_interrupt()
            return Replace(line, pos, refresh=False)
        if key == CTRL_E:
            return Replace(line, len(line), refresh=False)
        if key == TAB:
            return self.expand(line, pos)
        if key == CTRL_U:
            return Replace("", 0)
        if key == CTRL_Z:
            self._on_suspend()
            return Replace(line, pos, refresh=False)
        if key == HELP:
            return self.help(line, pos)
        return PASS_THROUGH

    def expand(self, line: str, pos: int) -> Replace:
        """Complete the text left of the cursor to its command chain."""
        resolution = self._registry.resolve(line[:pos])
        if resolution.ambiguous:
            logger.debug("autocomplete.ambiguous", prefix=line[:pos])
            self._write(f"{self._prompt}{line}\n")
            self._write_candidates(resolution.candidate_names)
        completed = join_chain(resolution.chain_names, resolution.args)
        return Replace(completed, len(completed))

    def help(self, line: str, pos: int) -> Replace:
        """Describe what may follow the text left of the cursor."""
        resolution = self._registry.resolve(line[:pos])
        if resolution.command is None:
            self._write(f"{self._prompt}{line}?\n")
        if resolution.candidates is not None:
            self._write_candidates(resolution.candidate_names)
        elif resolution.command is None:
            self._write("Unknown command.\n")
        completed = join_chain(resolution.chain_names, resolution.args)
        return Replace(completed, len(completed))

    def _write_candidates(self, names: Sequence[str]) -> None:
        for name in names:
            self._write(f" {name}\n")
