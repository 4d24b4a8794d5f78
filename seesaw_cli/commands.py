"""
Command registry — the tree of console commands.

The session only needs two things from the registry: ``resolve`` to find
where a partially typed line sits in the tree (used by autocompletion) and
``execute`` to run a finished line. Tokens are matched by unique prefix; an
exact name always wins over longer names sharing the prefix.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, Sequence

import structlog
from rich.console import Console

from seesaw_cli.errors import CommandError

if TYPE_CHECKING:
    from seesaw_cli.engine import EngineConnection

logger = structlog.get_logger(__name__)

CommandHandler = Callable[[list[str]], Awaitable[None]]


@dataclass
class Command:
    """A node in the command tree.

    A node has either ``subcommands`` (a group such as ``show``) or a
    ``handler`` (a leaf such as ``show ha``).
    """

    name: str
    description: str = ""
    subcommands: Optional[list[Command]] = None
    handler: Optional[CommandHandler] = None
    min_args: int = 0
    max_args: Optional[int] = 0


@dataclass
class Resolution:
    """Where a command line lands in the tree.

    ``command`` is the matched leaf (None for groups, unknown or ambiguous
    input). ``candidates`` lists what may follow: the subcommands of the
    group reached, or the commands an ambiguous token could mean. ``chain``
    holds the resolved nodes and ``args`` the tokens typed beyond them.
    """

    command: Optional[Command] = None
    candidates: Optional[list[Command]] = None
    chain: list[Command] = field(default_factory=list)
    args: list[str] = field(default_factory=list)

    @property
    def chain_names(self) -> list[str]:
        return [c.name for c in self.chain]

    @property
    def candidate_names(self) -> list[str]:
        return [c.name for c in self.candidates or []]

    @property
    def ambiguous(self) -> bool:
        return self.command is None and self.candidates is not None and bool(self.args)

    @property
    def unknown(self) -> bool:
        return self.command is None and self.candidates is None


def _match(commands: Sequence[Command], token: str) -> list[Command]:
    for command in commands:
        if command.name == token:
            return [command]
    return [c for c in commands if c.name.startswith(token)]


class CommandRegistry:
    """Resolves and executes lines against a command tree."""

    def __init__(self, commands: Sequence[Command]) -> None:
        self._commands = list(commands)

    @property
    def commands(self) -> list[Command]:
        return list(self._commands)

    def resolve(self, line: str) -> Resolution:
        tokens = line.split()
        level: Optional[list[Command]] = self._commands
        chain: list[Command] = []

        for idx, token in enumerate(tokens):
            if level is None:
                return Resolution(command=chain[-1], chain=chain, args=tokens[idx:])
            matches = _match(level, token)
            if not matches:
                return Resolution(chain=chain, args=tokens[idx:])
            if len(matches) > 1:
                return Resolution(candidates=matches, chain=chain, args=tokens[idx:])
            chain.append(matches[0])
            level = matches[0].subcommands

        if level is None:
            return Resolution(command=chain[-1], chain=chain)
        return Resolution(candidates=list(level), chain=chain)

    async def execute(self, line: str) -> None:
        resolution = self.resolve(line)
        command = resolution.command
        if command is None:
            if resolution.ambiguous:
                raise CommandError("Ambiguous command")
            if resolution.candidates is not None:
                raise CommandError("Incomplete command")
            raise CommandError("Unknown command")
        if command.handler is None:
            raise CommandError(f"Command {command.name!r} is not implemented")

        args = resolution.args
        if len(args) < command.min_args:
            raise CommandError(f"Too few arguments for {' '.join(resolution.chain_names)}")
        if command.max_args is not None and len(args) > command.max_args:
            raise CommandError(f"Too many arguments for {' '.join(resolution.chain_names)}")

        logger.debug("commands.execute", chain=resolution.chain_names, args=args)
        await command.handler(args)


def builtin_commands(
    engine: EngineConnection,
    on_exit: Callable[[], object],
    console: Console,
) -> list[Command]:
    """The console's own commands: leaving the session and engine status."""

    async def _exit(args: list[str]) -> None:
        on_exit()

    async def _show_ha(args: list[str]) -> None:
        status = await engine.ha_status()
        console.print(f"HA state: {status.state.value}")

    async def _show_version(args: list[str]) -> None:
        status = await engine.cluster_status()
        console.print(f"Engine version {status.version} (site {status.site})")

    return [
        Command("exit", "Exit the console", handler=_exit),
        Command("quit", "Exit the console", handler=_exit),
        Command(
            "show",
            "Show engine information",
            subcommands=[
                Command("ha", "Show high-availability state", handler=_show_ha),
                Command("version", "Show engine version and site", handler=_show_version),
            ],
        ),
    ]
