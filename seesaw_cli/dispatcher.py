"""Command dispatch — hands finished lines to the command registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.markup import escape as markup_escape

if TYPE_CHECKING:
    from seesaw_cli.commands import CommandRegistry

logger = structlog.get_logger(__name__)


class CommandDispatcher:
    """Forwards non-blank lines to the registry and reports failures."""

    def __init__(
        self,
        registry: CommandRegistry,
        console: Console,
        err_console: Console | None = None,
    ) -> None:
        self._registry = registry
        self._console = console
        self._err_console = err_console or Console(stderr=True)

    async def dispatch(self, line: str) -> bool:
        """Run one interactive line. Returns False when the line was blank.

        A failing command is reported and the session carries on.
        """
        line = line.strip()
        if not line:
            return False
        try:
            await self._registry.execute(line)
        except Exception as e:
            logger.debug("dispatcher.command_failed", line=line, error=str(e))
            self._console.print(markup_escape(str(e)), highlight=False)
        return True

    async def run_once(self, line: str) -> int:
        """Run a single externally supplied command and return the exit status."""
        try:
            await self._registry.execute(line.strip())
        except Exception as e:
            logger.debug("dispatcher.one_shot_failed", line=line, error=str(e))
            self._err_console.print(markup_escape(str(e)), highlight=False)
            return 1
        return 0
