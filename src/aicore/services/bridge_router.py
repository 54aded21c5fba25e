"""Host router that forwards browser commands to the active page context."""

from __future__ import annotations

import asyncio
import logging
from types import MappingProxyType
from typing import Any, Mapping

from .bridge_session import AutomationSession, ContextTransport
from .bridge_types import (
    ERROR_CONTEXT_UNAVAILABLE,
    ERROR_SESSION_CLOSED,
    Command,
    ProtocolError,
    Response,
    SessionState,
)

__all__ = ["HostRouter"]

LOGGER = logging.getLogger(__name__)


class HostRouter:
    """Routes commands to page contexts and owns their automation sessions.

    The target context is resolved when a command is dispatched, not when
    the caller started waiting, so focus changes during a long tool loop
    are honoured. Sessions live in a table keyed by context id; the router
    never closes them on idle.
    """

    def __init__(self, transport: ContextTransport, *, default_timeout: float = 30.0) -> None:
        self._transport = transport
        self._default_timeout = default_timeout
        self._sessions: dict[str, AutomationSession] = {}

    # ------------------------------------------------------------------
    # Session table
    # ------------------------------------------------------------------
    @property
    def sessions(self) -> Mapping[str, AutomationSession]:
        return MappingProxyType(self._sessions)

    @property
    def default_timeout(self) -> float:
        return self._default_timeout

    def active_context_id(self) -> str | None:
        return self._transport.active_context_id()

    def get_session(self, context_id: str | None = None) -> AutomationSession | None:
        """Return the existing session for a context without creating one."""

        target = context_id or self._transport.active_context_id()
        if target is None:
            return None
        return self._sessions.get(target)

    def _session_for(self, context_id: str, *, replace_closed: bool = False) -> AutomationSession:
        session = self._sessions.get(context_id)
        if session is None or (replace_closed and session.state is SessionState.CLOSED):
            session = AutomationSession(context_id, self._transport, default_timeout=self._default_timeout)
            self._sessions[context_id] = session
        return session

    def _reachable_context(self, context_id: str | None) -> str | None:
        target = context_id or self._transport.active_context_id()
        if target is None:
            return None
        if not self._transport.has_context(target):
            self._discard(target)
            return None
        return target

    def _discard(self, context_id: str) -> None:
        session = self._sessions.pop(context_id, None)
        if session is not None:
            settled = session.discard()
            LOGGER.info("Discarded session for unreachable context %s (settled=%s)", context_id, settled)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    async def send(
        self,
        command: Command | Mapping[str, Any],
        target_context_id: str | None = None,
        *,
        timeout: float | None = None,
    ) -> Response:
        """Forward ``command`` and return its correlated response.

        Never raises for transport problems: an unreachable context, a
        timeout or a closed session all come back as ``success=False``.
        """

        if not isinstance(command, Command):
            try:
                command = Command.from_dict(command)
            except ProtocolError as exc:
                raw_id = command.get("id") if isinstance(command, Mapping) else None
                return Response.failure(raw_id if isinstance(raw_id, str) and raw_id else "unknown", str(exc))

        context_id = self._reachable_context(target_context_id)
        if context_id is None:
            LOGGER.debug("No reachable context for %s (%s)", command.id, command.action)
            return Response.failure(command.id, ERROR_CONTEXT_UNAVAILABLE)

        if command.action == "close":
            return await self.close(context_id, command=command, timeout=timeout)
        if command.action == "launch":
            return await self.launch(context_id, command=command, timeout=timeout)

        session = self._session_for(context_id)
        if session.state is SessionState.CLOSED:
            return Response.failure(command.id, ERROR_SESSION_CLOSED)
        response = await session.send(command, timeout=timeout)
        self._after_response(context_id, response)
        return response

    async def launch(
        self,
        context_id: str | None = None,
        *,
        command: Command | None = None,
        timeout: float | None = None,
    ) -> Response:
        """Launch (or reuse) the session for a context."""

        command = command or Command.create("launch")
        target = self._reachable_context(context_id)
        if target is None:
            return Response.failure(command.id, ERROR_CONTEXT_UNAVAILABLE)
        session = self._session_for(target, replace_closed=True)
        response = await session.ensure_launched(command, timeout=timeout)
        self._after_response(target, response)
        return response

    async def close(
        self,
        context_id: str | None = None,
        *,
        command: Command | None = None,
        timeout: float | None = None,
    ) -> Response:
        """Close the session for a context; pending commands fail immediately."""

        command = command or Command.create("close")
        target = context_id or self._transport.active_context_id()
        session = self._sessions.get(target) if target else None
        if session is None:
            return Response.ok(command.id, {"closed": False, "reason": "no session"})
        return await session.close(command, timeout=timeout)

    async def close_all(self, *, timeout: float | None = None) -> None:
        sessions = [session for session in self._sessions.values() if session.state is not SessionState.CLOSED]
        if sessions:
            await asyncio.gather(*(session.close(timeout=timeout) for session in sessions))

    def _after_response(self, context_id: str, response: Response) -> None:
        if response.error == ERROR_CONTEXT_UNAVAILABLE and not self._transport.has_context(context_id):
            self._discard(context_id)
