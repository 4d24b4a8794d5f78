# seesaw_cli/config.py
"""
Configuration for the Seesaw console.

Values are loaded from environment variables (and an optional .env file next
to the project) and validated with Pydantic. Command-line flags override
whatever is loaded here.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import structlog
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

logger = structlog.get_logger(__name__)

# .env lives in the project root (one level above seesaw_cli/), not the cwd.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"

DEFAULT_ENGINE_SOCKET = Path("/var/run/seesaw/engine/engine.sock")

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class EngineConfig(BaseSettings):
    """How to reach the Seesaw engine."""

    socket_path: Path = Field(DEFAULT_ENGINE_SOCKET, alias="SEESAW_ENGINE_SOCKET")
    # Unset means requests wait for the engine indefinitely.
    request_timeout: Optional[float] = Field(None, alias="SEESAW_ENGINE_REQUEST_TIMEOUT")
    component: str = Field("local-cli", alias="SEESAW_CLI_COMPONENT")

    model_config = {"env_file": _ENV_FILE, "extra": "ignore"}

    @model_validator(mode="after")
    def normalize_timeout(self) -> "EngineConfig":
        if self.request_timeout is not None and self.request_timeout <= 0:
            self.request_timeout = None
        return self


class ConsoleConfig(BaseSettings):
    """Interactive session behaviour."""

    # Upper bound on a suspend; SIGCONT resumes sooner.
    resume_delay: float = Field(1.0, alias="SEESAW_CLI_RESUME_DELAY")
    log_level: str = Field("WARNING", alias="SEESAW_CLI_LOG_LEVEL")

    model_config = {"env_file": _ENV_FILE, "extra": "ignore"}

    @model_validator(mode="after")
    def normalize(self) -> "ConsoleConfig":
        self.resume_delay = max(0.0, float(self.resume_delay))
        level = str(self.log_level).strip().upper()
        if level not in _LOG_LEVELS:
            logger.debug("config.unknown_log_level", value=self.log_level)
            level = "WARNING"
        self.log_level = level
        return self


class SeesawConfig:
    """Composes the engine and console configs into one object."""

    def __init__(self) -> None:
        self.engine = EngineConfig()
        self.console = ConsoleConfig()

    def __repr__(self) -> str:
        return (
            f"SeesawConfig(engine_socket={self.engine.socket_path}, "
            f"resume_delay={self.console.resume_delay}s)"
        )
