"""Automation session: one page executor handle owned by the host router."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Mapping, Protocol

from .bridge_protocol import decode_response_envelope, encode_command_envelope
from .bridge_types import (
    ERROR_CONTEXT_UNAVAILABLE,
    ERROR_DUPLICATE_ID,
    ERROR_MALFORMED_RESPONSE,
    ERROR_SESSION_CLOSED,
    ERROR_TIMEOUT,
    Command,
    ContextUnavailableError,
    ProtocolError,
    Response,
    SessionState,
)

__all__ = ["AutomationSession", "ContextTransport"]

LOGGER = logging.getLogger(__name__)


class ContextTransport(Protocol):
    """Host capability for reaching page contexts.

    ``send_to_context`` delivers a command envelope and returns the reply
    envelope. It raises :class:`ContextUnavailableError` (or
    :class:`ConnectionError`) when the context cannot be reached.
    """

    async def send_to_context(self, context_id: str, envelope: Mapping[str, Any]) -> Mapping[str, Any]:
        ...

    def active_context_id(self) -> str | None:
        ...

    def has_context(self, context_id: str) -> bool:
        ...


class AutomationSession:
    """Tracks lifecycle and in-flight commands for one page context.

    Outstanding commands are futures keyed by command id, so any number of
    commands may be in flight and complete in any order.
    """

    def __init__(self, context_id: str, transport: ContextTransport, *, default_timeout: float = 30.0) -> None:
        self.context_id = context_id
        self.state = SessionState.UNINITIALIZED
        self.launched = False
        self.created_at = time.monotonic()
        self.last_used_at = self.created_at
        self._transport = transport
        self._default_timeout = default_timeout
        self._pending: dict[str, asyncio.Future[Response]] = {}
        self._launch_lock = asyncio.Lock()

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"AutomationSession(context_id={self.context_id!r}, state={self.state.value}, pending={len(self._pending)})"

    @property
    def pending_ids(self) -> tuple[str, ...]:
        return tuple(self._pending)

    @property
    def is_closed(self) -> bool:
        return self.state in (SessionState.CLOSING, SessionState.CLOSED)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def send(self, command: Command, *, timeout: float | None = None) -> Response:
        """Dispatch ``command``, launching the session first when needed."""

        if self.is_closed:
            return Response.failure(command.id, ERROR_SESSION_CLOSED)
        if command.action == "launch":
            return await self.ensure_launched(command, timeout=timeout)
        if not self.launched:
            launch = await self.ensure_launched(timeout=timeout)
            if not launch.success:
                return Response.failure(command.id, launch.error or ERROR_CONTEXT_UNAVAILABLE)
            if self.is_closed:
                return Response.failure(command.id, ERROR_SESSION_CLOSED)
        return await self._dispatch(command, timeout)

    async def ensure_launched(self, command: Command | None = None, *, timeout: float | None = None) -> Response:
        """Launch the page executor once; concurrent callers share the result."""

        command = command or Command.create("launch")
        if self.launched:
            return Response.ok(command.id, {"launched": True, "alreadyLaunched": True})
        async with self._launch_lock:
            if self.launched:
                return Response.ok(command.id, {"launched": True, "alreadyLaunched": True})
            if self.is_closed:
                return Response.failure(command.id, ERROR_SESSION_CLOSED)
            self.state = SessionState.LAUNCHING
            response = await self._dispatch(command, timeout)
            if self.is_closed:
                return response
            if response.success:
                self.launched = True
                self.state = SessionState.READY
                LOGGER.info("Automation session launched for context %s", self.context_id)
            else:
                self.state = SessionState.UNINITIALIZED
                LOGGER.warning("Launch failed for context %s: %s", self.context_id, response.error)
            return response

    async def close(self, command: Command | None = None, *, timeout: float | None = None) -> Response:
        """Close the session.

        Outstanding commands are failed with ``"session closed"`` before the
        close command is sent, so their callers resume on the next loop turn.
        """

        command = command or Command.create("close")
        if self.state is SessionState.CLOSED:
            return Response.ok(command.id, {"closed": True, "alreadyClosed": True})
        self.state = SessionState.CLOSING
        settled = self.settle_pending(ERROR_SESSION_CLOSED)
        was_launched = self.launched
        self.launched = False
        remote: Response | None = None
        if was_launched:
            remote = await self._dispatch(command, timeout)
            if not remote.success:
                LOGGER.debug("Close command for context %s failed: %s", self.context_id, remote.error)
        self.state = SessionState.CLOSED
        LOGGER.info("Automation session closed for context %s (settled=%s)", self.context_id, settled)
        return Response.ok(command.id, {"closed": True, "settled": settled, "remote": bool(remote and remote.success)})

    def discard(self) -> int:
        """Mark the session closed without contacting the page."""

        self.state = SessionState.CLOSED
        self.launched = False
        return self.settle_pending(ERROR_CONTEXT_UNAVAILABLE)

    def settle_pending(self, error: str) -> int:
        """Resolve every outstanding future with a failure; returns the count."""

        settled = 0
        for command_id, future in list(self._pending.items()):
            if not future.done():
                future.set_result(Response.failure(command_id, error))
                settled += 1
        self._pending.clear()
        return settled

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    async def _dispatch(self, command: Command, timeout: float | None) -> Response:
        if command.id in self._pending:
            return Response.failure(command.id, ERROR_DUPLICATE_ID)
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Response] = loop.create_future()
        self._pending[command.id] = future
        self.last_used_at = time.monotonic()
        delivery = asyncio.ensure_future(self._deliver(command, future))
        limit = self._default_timeout if timeout is None else timeout
        try:
            return await asyncio.wait_for(asyncio.shield(future), limit)
        except asyncio.TimeoutError:
            LOGGER.warning("Command %s (%s) timed out after %.2fs", command.id, command.action, limit)
            return Response.failure(command.id, ERROR_TIMEOUT)
        finally:
            if self._pending.get(command.id) is future:
                del self._pending[command.id]
            if not delivery.done():
                delivery.cancel()

    async def _deliver(self, command: Command, future: asyncio.Future[Response]) -> None:
        LOGGER.debug("-> %s %s %s", self.context_id, command.id, command.action)
        try:
            reply = await self._transport.send_to_context(self.context_id, encode_command_envelope(command))
            response = decode_response_envelope(reply)
        except (ContextUnavailableError, ConnectionError) as exc:
            LOGGER.debug("Context %s unreachable: %s", self.context_id, exc)
            response = Response.failure(command.id, ERROR_CONTEXT_UNAVAILABLE)
        except ProtocolError as exc:
            LOGGER.warning("Malformed reply for %s: %s", command.id, exc)
            response = Response.failure(command.id, ERROR_MALFORMED_RESPONSE)
        except Exception as exc:
            LOGGER.warning("Transport failed for context %s: %s", self.context_id, exc, exc_info=True)
            response = Response.failure(command.id, ERROR_CONTEXT_UNAVAILABLE)
        LOGGER.debug("<- %s %s success=%s", self.context_id, response.id, response.success)
        self._resolve(command, future, response)

    def _resolve(self, command: Command, future: asyncio.Future[Response], response: Response) -> None:
        target = self._pending.get(response.id)
        if target is not None and not target.done():
            target.set_result(response)
        elif response.id != command.id:
            LOGGER.warning("Dropping reply with unknown id %s (expected %s)", response.id, command.id)
        if response.id != command.id and not future.done():
            future.set_result(Response.failure(command.id, ERROR_MALFORMED_RESPONSE))
