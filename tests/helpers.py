"""Shared test helpers and stub classes.

This module contains reusable pages and stubs used across multiple test files.
Import from here instead of duplicating them in individual test files.
"""

from __future__ import annotations

from typing import Any, Mapping

from aicore.ai.types import ModelResponse, ParsedToolCall
from aicore.page.document import StaticPageLoader
from aicore.services.transport import InMemoryContextHost

BASE_URL = "https://example.test/login"
NEXT_URL = "https://example.test/next"

LOGIN_PAGE = """
<html>
  <head><title>Login</title></head>
  <body>
    <h1>Sign in</h1>
    <form id="login">
      <label for="user">Username</label>
      <input id="user" name="user" type="text" placeholder="Your name">
      <label for="pw">Password</label>
      <input id="pw" name="pw" type="password">
      <label><input id="remember" type="checkbox"> Remember me</label>
      <select id="color" name="color">
        <option value="red">Red</option>
        <option value="blue">Blue</option>
      </select>
      <button id="submit" type="submit">Sign in</button>
      <button id="disabled-btn" type="button" disabled>Locked</button>
      <button id="hidden-btn" type="button" style="display: none">Secret</button>
    </form>
    <p id="intro">Welcome back.</p>
    <a id="next" href="/next">Next page</a>
  </body>
</html>
"""

NEXT_PAGE = """
<html>
  <head><title>Next</title></head>
  <body><h1>Second page</h1><button id="done">Done</button></body>
</html>
"""


def make_loader() -> StaticPageLoader:
    return StaticPageLoader({BASE_URL: LOGIN_PAGE, NEXT_URL: NEXT_PAGE})


def make_host(latency: Any = None, **options: Any) -> InMemoryContextHost:
    """Host with the login page open as ``page-1``."""

    host = InMemoryContextHost(latency=latency)
    host.open_context("page-1", html=LOGIN_PAGE, url=BASE_URL, loader=make_loader(), **options)
    return host


def tool_call(name: str, arguments: str = "{}", call_id: str | None = None, index: int = 0) -> ParsedToolCall:
    return ParsedToolCall(call_id=call_id or f"call_{name}_{index}", name=name, arguments=arguments, index=index)


class ScriptedProvider:
    """Provider stub that replays queued responses and records every call.

    Each queued item is either a :class:`ModelResponse` or an exception to
    raise. Once the queue is empty a plain ``"done"`` response is returned.
    """

    provider_id = "scripted"

    def __init__(self, *responses: Any, stream_events: tuple[Any, ...] = ()) -> None:
        self.responses = list(responses)
        self.stream_events = stream_events
        self.calls: list[dict[str, Any]] = []
        self.contexts: list[Any] = []

    async def generate(self, params: Mapping[str, Any], context: Any) -> Any:
        self.calls.append(dict(params))
        self.contexts.append(context)
        if not self.responses:
            return ModelResponse(text="done")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def stream(self, params: Mapping[str, Any], context: Any):
        self.calls.append(dict(params))
        self.contexts.append(context)
        for event in self.stream_events:
            if isinstance(event, Exception):
                raise event
            yield event
