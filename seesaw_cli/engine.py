"""
Engine connection — client for the Seesaw engine's control socket.

Requests and responses are newline-delimited JSON objects over a Unix domain
socket. Each request carries a ``req_id`` and the caller's component
identity; the engine echoes the ``req_id`` back. A response with an
``error`` field is a failed request.

Usage:
    engine = EngineConnection()
    await engine.connect(socket_path)
    status = await engine.cluster_status()
    await engine.disconnect()
"""

from __future__ import annotations

import asyncio
import enum
import json
import uuid
from pathlib import Path
from typing import Any, Optional

import structlog
from pydantic import BaseModel, ValidationError

logger = structlog.get_logger(__name__)


class EngineError(Exception):
    """An engine request failed or the connection was lost."""


class EngineNotRunningError(EngineError):
    """Raised when the engine socket is missing or the connection is refused."""


class HAState(str, enum.Enum):
    UNKNOWN = "unknown"
    DISABLED = "disabled"
    BACKUP = "backup"
    MASTER = "master"
    SHUTDOWN = "shutdown"


class ClusterStatus(BaseModel):
    version: int
    site: str


class HAStatus(BaseModel):
    state: HAState = HAState.UNKNOWN


class EngineConnection:
    """Async client for the engine socket."""

    def __init__(
        self,
        component: str = "local-cli",
        request_timeout: Optional[float] = None,
    ) -> None:
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._component = component
        self._request_timeout = request_timeout

    @property
    def connected(self) -> bool:
        return self._writer is not None

    async def connect(self, socket_path: Path) -> None:
        """Open the engine socket. Missing or refusing sockets raise EngineNotRunningError."""
        if not socket_path.exists():
            raise EngineNotRunningError(f"Engine socket not found: {socket_path}")
        try:
            reader, writer = await asyncio.open_unix_connection(str(socket_path))
        except OSError as e:
            raise EngineNotRunningError(f"Cannot connect to engine at {socket_path}: {e}") from e
        self._reader, self._writer = reader, writer
        logger.debug("engine.connected", socket=str(socket_path), component=self._component)

    async def disconnect(self) -> None:
        writer, self._writer, self._reader = self._writer, None, None
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug("engine.close_failed", error=str(e))
        logger.debug("engine.disconnected")

    # ------------------------------------------------------------------
    # Request methods
    # ------------------------------------------------------------------

    async def cluster_status(self) -> ClusterStatus:
        """Engine version and the site this cluster serves."""
        resp = await self._request({"type": "cluster_status"})
        return self._parse(ClusterStatus, resp)

    async def ha_status(self) -> HAStatus:
        """High-availability role of the engine this console is attached to."""
        resp = await self._request({"type": "ha_status"})
        return self._parse(HAStatus, resp)

    # ------------------------------------------------------------------
    # Internal transport
    # ------------------------------------------------------------------

    @staticmethod
    def _parse(model: type[BaseModel], resp: dict[str, Any]) -> Any:
        try:
            return model.model_validate(resp.get("result", {}))
        except ValidationError as e:
            raise EngineError(f"Malformed {model.__name__} response: {e}") from e

    async def _request(self, payload: dict) -> dict[str, Any]:
        """Send a JSON request and await the matching response."""
        if not self._reader or not self._writer:
            raise RuntimeError("EngineConnection is not connected")

        req_id = uuid.uuid4().hex[:8]
        payload["req_id"] = req_id
        payload["component"] = self._component

        line = json.dumps(payload, ensure_ascii=False) + "\n"
        try:
            self._writer.write(line.encode("utf-8"))
            await self._writer.drain()
        except (ConnectionError, OSError) as e:
            raise EngineError(f"Engine connection lost: {e}") from e

        try:
            resp = await asyncio.wait_for(
                self._read_response(req_id),
                timeout=self._request_timeout,
            )
        except asyncio.TimeoutError:
            raise EngineError(
                f"Engine did not respond within {self._request_timeout}s (req_id={req_id})"
            )

        error = resp.get("error")
        if error:
            raise EngineError(str(error))
        return resp

    async def _read_response(self, req_id: str) -> dict[str, Any]:
        """Read lines until the response matching req_id arrives.

        Lines that are not JSON objects are logged and skipped; the engine
        may interleave notifications with replies.
        """
        while True:
            raw = await self._reader.readline()
            if not raw:
                raise EngineError("Engine closed the connection")
            try:
                msg = json.loads(raw)
            except (UnicodeDecodeError, json.JSONDecodeError):
                logger.warning("engine.bad_json", raw=raw[:200])
                continue
            if not isinstance(msg, dict):
                logger.warning("engine.unexpected_payload", kind=type(msg).__name__)
                continue
            if msg.get("req_id") != req_id:
                logger.debug("engine.stale_reply", req_id=msg.get("req_id"))
                continue
            return msg
