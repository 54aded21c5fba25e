"""Provider adapters used by the plugin engine."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Iterable, Mapping, Protocol, Sequence, runtime_checkable

from ..client import AIClient, AIStreamEvent
from ..types import Message, ModelResponse
from .types import RequestContext

__all__ = ["Provider", "OpenAIProvider", "render_tools", "build_messages"]

LOGGER = logging.getLogger(__name__)

_FORWARDED_PARAMS = ("model", "temperature", "max_tokens", "tool_choice", "metadata")


@runtime_checkable
class Provider(Protocol):
    """Underlying model call wrapped by the pipeline."""

    async def generate(self, params: Mapping[str, Any], context: RequestContext) -> Any:
        ...

    def stream(self, params: Mapping[str, Any], context: RequestContext) -> AsyncIterator[Any]:
        ...


def render_tools(tools: Any) -> list[dict[str, Any]]:
    """Render ``params["tools"]`` (mapping or sequence) as OpenAI function tools."""

    if not tools:
        return []
    values: Iterable[Any] = tools.values() if isinstance(tools, Mapping) else tools
    rendered: list[dict[str, Any]] = []
    for tool in values:
        if hasattr(tool, "to_openai_tool"):
            rendered.append(tool.to_openai_tool())
        elif isinstance(tool, Mapping):
            rendered.append(dict(tool))
        else:
            raise TypeError(f"Cannot render tool {tool!r} for the provider")
    return rendered


def build_messages(params: Mapping[str, Any]) -> list[Message]:
    """Messages for the provider call with ``params["system"]`` prepended."""

    raw: Sequence[Any] = params.get("messages") or ()
    messages = [Message.coerce(item) for item in raw]
    system = params.get("system")
    if isinstance(system, str) and system:
        messages.insert(0, Message.system(system))
    return messages


class OpenAIProvider:
    """Adapts :class:`AIClient` to the engine's :class:`Provider` protocol."""

    def __init__(self, client: AIClient, *, provider_id: str = "openai") -> None:
        self._client = client
        self.provider_id = provider_id

    @property
    def client(self) -> AIClient:
        return self._client

    async def generate(self, params: Mapping[str, Any], context: RequestContext) -> ModelResponse:
        messages = build_messages(params)
        tools = render_tools(params.get("tools"))
        LOGGER.debug(
            "Provider call %s (depth=%s) with %s message(s) and %s tool(s)",
            context.request_id,
            context.depth,
            len(messages),
            len(tools),
        )
        return await self._client.complete_chat(messages, tools=tools or None, **self._options(params))

    async def stream(self, params: Mapping[str, Any], context: RequestContext) -> AsyncIterator[AIStreamEvent]:
        messages = build_messages(params)
        tools = render_tools(params.get("tools"))
        LOGGER.debug("Streaming provider call %s with %s tool(s)", context.request_id, len(tools))
        async for event in self._client.stream_chat(messages, tools=tools or None, **self._options(params)):
            yield event

    @staticmethod
    def _options(params: Mapping[str, Any]) -> dict[str, Any]:
        options: dict[str, Any] = {}
        for key in _FORWARDED_PARAMS:
            if key in params and params[key] is not None:
                options[key] = params[key]
        return options
