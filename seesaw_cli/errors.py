"""Error classes shared by the console.

Fatal errors derive from ``click.ClickException`` so the entry point prints
them to stderr and exits with status 1. Command failures are recoverable:
the interactive loop reports them and keeps going.
"""

from __future__ import annotations

import click


class FatalError(click.ClickException):
    """A start-up or terminal failure that ends the process with status 1."""

    exit_code = 1


class EngineConnectionError(FatalError):
    """The engine could not be reached or refused a start-up request."""


class RawModeError(FatalError):
    """The controlling terminal could not be switched to raw mode."""


class IdentityLookupError(FatalError):
    """The operator's user name could not be determined."""


class CommandError(Exception):
    """A command failed; the description is shown to the operator."""
