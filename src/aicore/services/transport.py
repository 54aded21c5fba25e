"""In-process rendition of the runtime host that owns page contexts.

Real hosts (a browser extension background, an embedded webview) provide
their own "send message to context X" primitive. ``InMemoryContextHost``
implements the same :class:`~aicore.services.bridge_session.ContextTransport`
contract with asyncio only: every envelope is JSON round-tripped on the way
in and out, so nothing but plain data crosses between the host side and the
page side.
"""

from __future__ import annotations

import inspect
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Union

from ..page.agent import PageAgent
from ..page.document import BLANK_URL, PageDocument, PageLoader, Renderer, ScriptEngine
from .bridge_protocol import decode_command_envelope, encode_response_envelope, ensure_json_safe
from .bridge_types import ContextUnavailableError, ProtocolError, Response

__all__ = ["PageContext", "InMemoryContextHost", "LatencyHook"]

LOGGER = logging.getLogger(__name__)

LatencyHook = Callable[[str, Mapping[str, Any]], Union[None, Awaitable[None]]]


@dataclass(slots=True)
class PageContext:
    """One isolated page: its document and, once loaded, its executor."""

    context_id: str
    document: PageDocument
    agent: PageAgent | None = None
    alive: bool = True
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def executor_ready(self) -> bool:
        return self.alive and self.agent is not None

    def load_executor(self) -> PageAgent:
        if self.agent is None:
            self.agent = PageAgent(self.document)
        return self.agent

    async def handle_message(self, envelope: Mapping[str, Any]) -> dict[str, Any]:
        """Page-side message listener: decode, execute, encode."""

        try:
            command = decode_command_envelope(envelope)
        except ProtocolError as exc:
            raw = envelope.get("command") if isinstance(envelope, Mapping) else None
            command_id = raw.get("id") if isinstance(raw, Mapping) else None
            failure = Response.failure(command_id if isinstance(command_id, str) and command_id else "unknown", str(exc))
            return encode_response_envelope(failure)
        if self.agent is None:
            raise ContextUnavailableError(self.context_id, "executor not loaded")
        response = await self.agent.execute(command)
        try:
            return encode_response_envelope(response)
        except TypeError as exc:  # pragma: no cover - handlers only return plain data
            return encode_response_envelope(Response.failure(command.id, f"unserializable result: {exc}"))


class InMemoryContextHost:
    """Registry of page contexts with focus tracking and message delivery."""

    def __init__(self, *, latency: LatencyHook | None = None) -> None:
        self._contexts: dict[str, PageContext] = {}
        self._focus_order: list[str] = []
        self._latency = latency

    # ------------------------------------------------------------------
    # Context management
    # ------------------------------------------------------------------
    def open_context(
        self,
        context_id: str | None = None,
        *,
        html: str | None = None,
        url: str = BLANK_URL,
        loader: PageLoader | None = None,
        renderer: Renderer | None = None,
        script_engine: ScriptEngine | None = None,
        load_executor: bool = True,
        focus: bool = True,
    ) -> PageContext:
        context_id = context_id or f"ctx_{uuid.uuid4().hex[:8]}"
        document = PageDocument(html, url=url, loader=loader, renderer=renderer, script_engine=script_engine)
        context = PageContext(context_id=context_id, document=document)
        if load_executor:
            context.load_executor()
        self.register(context, focus=focus)
        return context

    def register(self, context: PageContext, *, focus: bool = True) -> None:
        self._contexts[context.context_id] = context
        if focus:
            self.focus(context.context_id)
        LOGGER.debug("Registered page context %s", context.context_id)

    def focus(self, context_id: str) -> None:
        if context_id not in self._contexts:
            raise KeyError(context_id)
        if context_id in self._focus_order:
            self._focus_order.remove(context_id)
        self._focus_order.append(context_id)

    def tear_down(self, context_id: str) -> None:
        """Simulate the host evicting a context; later sends fail."""

        context = self._contexts.get(context_id)
        if context is None:
            return
        context.alive = False
        if context_id in self._focus_order:
            self._focus_order.remove(context_id)
        LOGGER.info("Page context %s torn down", context_id)

    def get(self, context_id: str) -> PageContext | None:
        return self._contexts.get(context_id)

    @property
    def contexts(self) -> dict[str, PageContext]:
        return {key: value for key, value in self._contexts.items() if value.alive}

    # ------------------------------------------------------------------
    # ContextTransport
    # ------------------------------------------------------------------
    def active_context_id(self) -> str | None:
        for context_id in reversed(self._focus_order):
            context = self._contexts.get(context_id)
            if context is not None and context.alive:
                return context_id
        return None

    def has_context(self, context_id: str) -> bool:
        context = self._contexts.get(context_id)
        return context is not None and context.executor_ready

    async def send_to_context(self, context_id: str, envelope: Mapping[str, Any]) -> dict[str, Any]:
        context = self._reachable(context_id)
        wire = ensure_json_safe(dict(envelope))
        if self._latency is not None:
            delay = self._latency(context_id, wire)
            if inspect.isawaitable(delay):
                await delay
        context = self._reachable(context_id)
        reply = await context.handle_message(wire)
        return ensure_json_safe(reply)

    def _reachable(self, context_id: str) -> PageContext:
        context = self._contexts.get(context_id)
        if context is None:
            raise ContextUnavailableError(context_id, "unknown context")
        if not context.alive:
            raise ContextUnavailableError(context_id, "context was torn down")
        if context.agent is None:
            raise ContextUnavailableError(context_id, "executor not loaded")
        return context
