"""
Seesaw CLI — entry point.

Connects to the engine, prints the banner and the HA warning, then either
runs a single command (``-c``) or hands the terminal to an interactive
``SessionController`` until the operator leaves.
"""

from __future__ import annotations

import asyncio
import logging
import os
import pwd
from pathlib import Path
from typing import Optional

import click
import structlog
from pydantic import ValidationError
from rich.console import Console

from seesaw_cli import __version__
from seesaw_cli.commands import CommandRegistry, builtin_commands
from seesaw_cli.config import SeesawConfig
from seesaw_cli.dispatcher import CommandDispatcher
from seesaw_cli.engine import EngineConnection, EngineError, HAState
from seesaw_cli.errors import EngineConnectionError, FatalError, IdentityLookupError
from seesaw_cli.session import SessionController, build_prompt
from seesaw_cli.signals import SignalCoordinator
from seesaw_cli.terminal import RawTerminal

_logging_configured = False


def configure_logging(level: str = "WARNING") -> None:
    """Configure structlog and standard-library logging.

    The processor chain is set up once; later calls only change the level.
    """
    global _logging_configured  # noqa: PLW0603
    numeric = getattr(logging, level.upper(), logging.WARNING)
    if _logging_configured:
        logging.getLogger().setLevel(numeric)
        return
    _logging_configured = True

    logging.basicConfig(format="%(message)s", level=numeric)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.dev.ConsoleRenderer(colors=True),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


logger = structlog.get_logger(__name__)
console = Console()
err_console = Console(stderr=True)


def current_username() -> str:
    try:
        return pwd.getpwuid(os.getuid()).pw_name
    except KeyError as e:
        raise IdentityLookupError(f"Failed to get current user: {e}") from e


async def connect_engine(config: SeesawConfig) -> EngineConnection:
    engine = EngineConnection(
        component=config.engine.component,
        request_timeout=config.engine.request_timeout,
    )
    try:
        await engine.connect(config.engine.socket_path)
    except EngineError as e:
        raise EngineConnectionError(f"Failed to connect to engine: {e}") from e
    return engine


async def run_interactive(engine: EngineConnection, config: SeesawConfig) -> int:
    """Print the banner, build the prompt and run the interactive session."""
    try:
        status = await engine.cluster_status()
    except EngineError as e:
        raise EngineConnectionError(f"Failed to get cluster status: {e}") from e
    console.print(f"\nSeesaw CLI - Engine version {status.version}\n", highlight=False)

    username = current_username()

    try:
        ha = await engine.ha_status()
    except EngineError as e:
        raise EngineConnectionError(f"Failed to get HA status: {e}") from e
    if ha.state is not HAState.MASTER:
        console.print("WARNING: This seesaw is not currently the master.", highlight=False)

    session: Optional[SessionController] = None

    def _leave() -> None:
        if session is not None:
            session.exit()

    registry = CommandRegistry(builtin_commands(engine, _leave, console))
    session = SessionController(
        build_prompt(username, status.site),
        registry,
        terminal=RawTerminal(),
        signals=SignalCoordinator(resume_delay=config.console.resume_delay),
        dispatcher=CommandDispatcher(registry, console, err_console),
    )
    logger.debug("main.session_starting", user=username, site=status.site)
    return await session.run()


async def run_once(engine: EngineConnection, command: str) -> int:
    """Execute one command without touching the terminal."""
    registry = CommandRegistry(builtin_commands(engine, lambda: None, console))
    return await CommandDispatcher(registry, console, err_console).run_once(command)


async def _run(config: SeesawConfig, command: str) -> int:
    engine = await connect_engine(config)
    try:
        if command.strip():
            return await run_once(engine, command)
        return await run_interactive(engine, config)
    finally:
        await engine.disconnect()


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-c", "--command", default="", help="Command to execute")
@click.option(
    "--engine",
    "engine_socket",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Seesaw engine socket (overrides SEESAW_ENGINE_SOCKET)",
)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.version_option(__version__, prog_name="seesaw-cli")
@click.pass_context
def cli(ctx: click.Context, command: str, engine_socket: Optional[Path], verbose: bool) -> None:
    """Seesaw CLI - operator console for the Seesaw engine."""
    try:
        config = SeesawConfig()
    except ValidationError as e:
        raise FatalError(f"Invalid configuration: {e}") from e

    configure_logging("DEBUG" if verbose else config.console.log_level)
    if engine_socket is not None:
        config.engine.socket_path = engine_socket
    logger.debug("main.config", config=repr(config))

    status = asyncio.run(_run(config, command))
    ctx.exit(status)


def main() -> None:
    """Entry point for the seesaw-cli command."""
    cli()


if __name__ == "__main__":
    main()
