"""Tests for the OpenAI-compatible AI client and its provider adapter."""

from __future__ import annotations

from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any, Iterable, cast

import httpx
import pytest
from openai import APIConnectionError, AsyncOpenAI

from aicore.ai.client import AIClient, AIStreamEvent, ClientSettings
from aicore.ai.plugins.provider import OpenAIProvider, build_messages, render_tools
from aicore.ai.plugins.types import RequestContext
from aicore.ai.tools.types import ToolDescriptor, ToolSpec
from aicore.ai.types import Message
from aicore.services.settings import Settings


@dataclass
class _FakeEvent:
    """Simple structure emulating ChatCompletionStreamEvent attributes."""

    type: str
    delta: str | None = None
    content: str | None = None
    name: str | None = None
    index: int | None = None
    arguments: str | None = None
    arguments_delta: str | None = None
    parsed_arguments: Any | None = None


class _FakeStream:
    def __init__(self, events: Iterable[_FakeEvent]):
        self._iterator = iter(list(events))

    def __aiter__(self) -> "_FakeStream":
        return self

    async def __anext__(self) -> _FakeEvent:
        try:
            return next(self._iterator)
        except StopIteration as exc:
            raise StopAsyncIteration from exc


class _FakeStreamContext:
    def __init__(self, events: Iterable[_FakeEvent]):
        self._events = list(events)

    async def __aenter__(self) -> _FakeStream:
        return _FakeStream(self._events)

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


class _FakeCompletions:
    def __init__(self, completions: Iterable[Any] = (), events: Iterable[_FakeEvent] = ()):
        self._completions = list(completions)
        self._events = list(events)
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        item = self._completions.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def stream(self, **kwargs: Any) -> _FakeStreamContext:
        self.calls.append(kwargs)
        return _FakeStreamContext(self._events)


def _completion(content: str | None = "Hello", tool_calls: list[Any] | None = None) -> SimpleNamespace:
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message, finish_reason="tool_calls" if tool_calls else "stop")],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=3),
        model="stub-model",
    )


def _function_call(call_id: str, name: str, arguments: str | None) -> SimpleNamespace:
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


def _make_client(completions: _FakeCompletions, **overrides: Any) -> AIClient:
    options: dict[str, Any] = {"retry_min_seconds": 0.0, "retry_max_seconds": 0.0}
    options.update(overrides)
    settings = ClientSettings(base_url="http://local", api_key="test", model="stub", **options)
    fake = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return AIClient(settings, client=cast(AsyncOpenAI, fake))


def _connection_error() -> APIConnectionError:
    return APIConnectionError(request=httpx.Request("POST", "http://local/chat/completions"))


# ---------------------------------------------------------------------------
# Tests: complete_chat
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_complete_chat_parses_text_and_usage() -> None:
    completions = _FakeCompletions([_completion("Hi there")])
    client = _make_client(completions)

    response = await client.complete_chat([Message.user("Hello")], max_tokens=64)

    assert response.text == "Hi there"
    assert (response.prompt_tokens, response.completion_tokens) == (12, 3)
    assert response.finish_reason == "stop"
    assert response.model == "stub-model"
    payload = completions.calls[0]
    assert payload["model"] == "stub"
    assert payload["messages"] == [{"role": "user", "content": "Hello"}]
    assert payload["max_tokens"] == 64
    assert "tools" not in payload


@pytest.mark.asyncio
async def test_complete_chat_parses_tool_calls() -> None:
    completions = _FakeCompletions(
        [
            _completion(
                None,
                [_function_call("call_1", "browser_click", '{"selector": "#go"}'), _function_call("call_2", "browser_url", None)],
            )
        ]
    )
    client = _make_client(completions)

    response = await client.complete_chat([{"role": "user", "content": "go"}])

    assert response.text == ""
    assert [(call.call_id, call.name, call.arguments, call.index) for call in response.tool_calls] == [
        ("call_1", "browser_click", '{"selector": "#go"}', 0),
        ("call_2", "browser_url", "{}", 1),
    ]


@pytest.mark.asyncio
async def test_complete_chat_requires_messages() -> None:
    client = _make_client(_FakeCompletions())

    with pytest.raises(ValueError, match="At least one message"):
        await client.complete_chat([])


@pytest.mark.asyncio
async def test_complete_chat_retries_connection_errors() -> None:
    completions = _FakeCompletions([_connection_error(), _completion("Recovered")])
    client = _make_client(completions, max_retries=3)

    response = await client.complete_chat([Message.user("Hello")])

    assert response.text == "Recovered"
    assert len(completions.calls) == 2


@pytest.mark.asyncio
async def test_complete_chat_gives_up_after_max_retries() -> None:
    completions = _FakeCompletions([_connection_error(), _connection_error()])
    client = _make_client(completions, max_retries=2)

    with pytest.raises(APIConnectionError):
        await client.complete_chat([Message.user("Hello")])

    assert len(completions.calls) == 2


@pytest.mark.asyncio
async def test_complete_chat_does_not_retry_other_errors() -> None:
    completions = _FakeCompletions([KeyError("bad"), _completion()])
    client = _make_client(completions)

    with pytest.raises(KeyError):
        await client.complete_chat([Message.user("Hello")])

    assert len(completions.calls) == 1


@pytest.mark.asyncio
async def test_metadata_is_merged() -> None:
    completions = _FakeCompletions([_completion()])
    client = _make_client(completions, metadata={"app": "aicore", "env": "test"})

    await client.complete_chat([Message.user("Hello")], metadata={"env": "ci"})

    assert completions.calls[0]["metadata"] == {"app": "aicore", "env": "ci"}


# ---------------------------------------------------------------------------
# Tests: stream_chat
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_stream_chat_normalizes_events() -> None:
    events = [
        _FakeEvent(type="chunk"),
        _FakeEvent(type="content.delta", delta="Hel"),
        _FakeEvent(type="content.delta", delta=""),
        _FakeEvent(
            type="tool_calls.function.arguments.done",
            name="browser_click",
            index=0,
            arguments='{"selector": "#go"}',
            parsed_arguments={"selector": "#go"},
        ),
        _FakeEvent(type="content.done", content="Hello"),
    ]
    client = _make_client(_FakeCompletions(events=events))

    received = [event async for event in client.stream_chat([Message.user("Hi")])]

    assert [event.type for event in received] == [
        "content.delta",
        "tool_calls.function.arguments.done",
        "content.done",
    ]
    assert received[0] == AIStreamEvent(type="content.delta", content="Hel")
    assert received[1].tool_name == "browser_click"
    assert received[1].parsed == {"selector": "#go"}
    assert received[2].content == "Hello"


def test_client_settings_from_settings() -> None:
    settings = Settings(api_key="sk-test", model="gpt-4.1", default_headers={"X-Trace": "1"})

    client_settings = ClientSettings.from_settings(settings)

    assert client_settings.api_key == "sk-test"
    assert client_settings.model == "gpt-4.1"
    assert client_settings.default_headers == {"X-Trace": "1"}
    assert ClientSettings.from_settings(Settings()).default_headers is None


# ---------------------------------------------------------------------------
# Tests: provider adapter
# ---------------------------------------------------------------------------


class TestProviderAdapter:
    def test_build_messages_prepends_system(self) -> None:
        messages = build_messages({"system": "Be brief.", "messages": [{"role": "user", "content": "hi"}]})

        assert messages == [Message.system("Be brief."), Message.user("hi")]

    def test_render_tools(self) -> None:
        descriptor = ToolDescriptor(ToolSpec(name="lookup", description="Look up"), lambda args: None)
        raw = {"type": "function", "function": {"name": "raw"}}

        rendered = render_tools({"lookup": descriptor, "raw": raw})

        assert [tool["function"]["name"] for tool in rendered] == ["lookup", "raw"]
        assert render_tools(None) == []

    def test_render_tools_rejects_unknown_objects(self) -> None:
        with pytest.raises(TypeError):
            render_tools([object()])

    @pytest.mark.asyncio
    async def test_generate_forwards_params(self) -> None:
        completions = _FakeCompletions([_completion("ok")])
        provider = OpenAIProvider(_make_client(completions))
        descriptor = ToolDescriptor(ToolSpec(name="lookup", description="Look up"), lambda args: None)
        params = {
            "system": "Be brief.",
            "messages": [Message.user("hi")],
            "tools": {"lookup": descriptor},
            "temperature": 0.5,
            "model": "override",
            "ignored": True,
        }

        response = await provider.generate(params, RequestContext.create(provider.provider_id, params))

        payload = completions.calls[0]
        assert response.text == "ok"
        assert payload["model"] == "override"
        assert payload["temperature"] == 0.5
        assert payload["messages"][0] == {"role": "system", "content": "Be brief."}
        assert payload["tools"][0]["function"]["name"] == "lookup"
        assert "ignored" not in payload
