"""Async AI client wrapper built around OpenAI-compatible endpoints."""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, Dict, Iterable, List, Mapping, Union, cast

import httpx
from openai import AsyncOpenAI, APIConnectionError, APIError, APIStatusError, RateLimitError
from openai.types.chat import (
    ChatCompletionMessageParam,
    ChatCompletionToolChoiceOptionParam,
    ChatCompletionToolParam,
)
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .types import Message, ModelResponse, ParsedToolCall

if TYPE_CHECKING:  # pragma: no cover - import only for annotations
    from ..services.settings import Settings

__all__ = ["AIClient", "AIStreamEvent", "ClientSettings", "normalize_stream_event", "parse_completion"]

LOGGER = logging.getLogger(__name__)

_RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    APIError,
    APIStatusError,
    APIConnectionError,
    RateLimitError,
    httpx.TimeoutException,
)

ChatInput = Iterable[Union[Message, Mapping[str, Any], ChatCompletionMessageParam]]


@dataclass(slots=True)
class ClientSettings:
    """Connection and retry options of :class:`AIClient`."""

    base_url: str
    api_key: str
    model: str
    organization: str | None = None
    request_timeout: float | None = 90.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    default_headers: Mapping[str, str] | None = None
    metadata: Mapping[str, str] | None = None
    debug_logging: bool = False

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ClientSettings":
        return cls(
            base_url=settings.base_url,
            api_key=settings.api_key,
            model=settings.model,
            organization=settings.organization,
            request_timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            retry_min_seconds=settings.retry_min_seconds,
            retry_max_seconds=settings.retry_max_seconds,
            default_headers=dict(settings.default_headers) or None,
            debug_logging=settings.debug_logging,
        )


@dataclass(slots=True)
class AIStreamEvent:
    """One streamed delta, flattened from the SDK's event types."""

    type: str
    content: str | None = None
    parsed: Any | None = None
    tool_name: str | None = None
    tool_index: int | None = None
    tool_arguments: str | None = None
    arguments_delta: str | None = None
    tool_call_id: str | None = None


# -----------------------------------------------------------------------------
# Completion parsing
# -----------------------------------------------------------------------------


def parse_completion(completion: Any) -> ModelResponse:
    """Turn a chat completion object into a :class:`ModelResponse`.

    Only the first choice is read. Tool calls keep their position as
    ``index``; a call without arguments gets ``"{}"``.
    """

    choices = getattr(completion, "choices", None) or []
    if not choices:
        raise ValueError("Chat completion returned no choices")
    choice = choices[0]
    message = choice.message
    raw_calls = getattr(message, "tool_calls", None) or []
    usage = getattr(completion, "usage", None)
    return ModelResponse(
        text=message.content or "",
        tool_calls=tuple(
            ParsedToolCall(
                call_id=call.id,
                name=call.function.name,
                arguments=call.function.arguments or "{}",
                index=position,
            )
            for position, call in enumerate(raw_calls)
        ),
        finish_reason=getattr(choice, "finish_reason", None),
        prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
        model=getattr(completion, "model", None),
    )


def _content_delta(event: Any) -> AIStreamEvent | None:
    delta = getattr(event, "delta", None)
    return AIStreamEvent(type=event.type, content=str(delta)) if delta else None


def _content_done(event: Any) -> AIStreamEvent:
    return AIStreamEvent(type=event.type, content=getattr(event, "content", None), parsed=getattr(event, "parsed", None))


def _refusal(attribute: str) -> Callable[[Any], AIStreamEvent]:
    def build(event: Any) -> AIStreamEvent:
        return AIStreamEvent(type=event.type, content=getattr(event, attribute, None))

    return build


def _tool_arguments(event: Any) -> AIStreamEvent:
    return AIStreamEvent(
        type=event.type,
        tool_name=getattr(event, "name", None),
        tool_index=getattr(event, "index", None),
        tool_arguments=getattr(event, "arguments", None),
        arguments_delta=getattr(event, "arguments_delta", None),
        parsed=getattr(event, "parsed_arguments", None),
        tool_call_id=getattr(event, "id", None) or getattr(event, "tool_call_id", None),
    )


_STREAM_EVENT_BUILDERS: Mapping[str, Callable[[Any], AIStreamEvent | None]] = {
    "content.delta": _content_delta,
    "content.done": _content_done,
    "refusal.delta": _refusal("delta"),
    "refusal.done": _refusal("refusal"),
    "tool_calls.function.arguments.delta": _tool_arguments,
    "tool_calls.function.arguments.done": _tool_arguments,
}


def normalize_stream_event(event: Any) -> AIStreamEvent | None:
    """Map an SDK stream event to :class:`AIStreamEvent`; raw chunks are dropped."""

    builder = _STREAM_EVENT_BUILDERS.get(getattr(event, "type", None) or "")
    return builder(event) if builder is not None else None


def _to_chat_params(messages: ChatInput) -> List[ChatCompletionMessageParam]:
    params: List[ChatCompletionMessageParam] = []
    for message in messages:
        if isinstance(message, Message):
            params.append(message.to_chat_param())
            continue
        try:
            params.append(cast(ChatCompletionMessageParam, dict(message)))
        except (TypeError, ValueError) as exc:
            raise TypeError("Messages must be mapping-like objects") from exc
    if not params:
        raise ValueError("At least one message is required to start a chat")
    return params


# -----------------------------------------------------------------------------
# Client
# -----------------------------------------------------------------------------


class AIClient:
    """Chat completions against an OpenAI-compatible endpoint, retried with tenacity."""

    def __init__(self, settings: ClientSettings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client or AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            organization=settings.organization,
            timeout=settings.request_timeout,
            default_headers=dict(settings.default_headers) if settings.default_headers else None,
        )

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def complete_chat(
        self,
        messages: ChatInput,
        *,
        tools: Iterable[ChatCompletionToolParam] | None = None,
        tool_choice: ChatCompletionToolChoiceOptionParam | None = None,
        temperature: float | None = 0.2,
        max_tokens: int | None = None,
        metadata: Mapping[str, str] | None = None,
        **extra_params: Any,
    ) -> ModelResponse:
        """Run one chat completion and parse it into a :class:`ModelResponse`.

        Connection, status and rate-limit errors are retried up to
        ``max_retries`` attempts; anything else propagates immediately.
        """

        payload = self._payload(messages, tools, tool_choice, temperature, max_tokens, metadata, extra_params)
        LOGGER.debug("Chat completion via %s with %s message(s)", payload["model"], len(payload["messages"]))

        completion: Any = None
        async for attempt in self._retrying():
            with attempt:
                completion = await self._client.chat.completions.create(**payload)
        return parse_completion(completion)

    async def stream_chat(
        self,
        messages: ChatInput,
        *,
        tools: Iterable[ChatCompletionToolParam] | None = None,
        tool_choice: ChatCompletionToolChoiceOptionParam | None = None,
        temperature: float | None = 0.2,
        max_tokens: int | None = None,
        metadata: Mapping[str, str] | None = None,
        **extra_params: Any,
    ) -> AsyncIterator[AIStreamEvent]:
        """Stream a chat completion as :class:`AIStreamEvent` objects."""

        payload = self._payload(messages, tools, tool_choice, temperature, max_tokens, metadata, extra_params)
        LOGGER.debug("Streamed chat completion via %s with %s message(s)", payload["model"], len(payload["messages"]))

        async for attempt in self._retrying():
            with attempt:
                async with self._client.chat.completions.stream(**payload) as stream:
                    async for event in stream:
                        normalized = normalize_stream_event(event)
                        if normalized is not None:
                            yield normalized
                break

    async def aclose(self) -> None:
        """Close the underlying OpenAI client to release network resources."""

        close = getattr(self._client, "close", None)
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _payload(
        self,
        messages: ChatInput,
        tools: Iterable[ChatCompletionToolParam] | None,
        tool_choice: ChatCompletionToolChoiceOptionParam | None,
        temperature: float | None,
        max_tokens: int | None,
        metadata: Mapping[str, str] | None,
        extra_params: Mapping[str, Any],
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"model": self._settings.model, "messages": _to_chat_params(messages)}
        merged_metadata = {**(self._settings.metadata or {}), **(metadata or {})}
        optional = {
            "metadata": merged_metadata or None,
            "tools": list(tools) if tools else None,
            "tool_choice": tool_choice or None,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        payload.update(extra_params)
        if self._settings.debug_logging:
            try:
                LOGGER.debug("AI prompt payload:\n%s", json.dumps(payload, ensure_ascii=False, indent=2))
            except (TypeError, ValueError):
                LOGGER.debug("AI prompt payload (unserializable): %s", payload)
        return payload

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(multiplier=self._settings.retry_min_seconds, max=self._settings.retry_max_seconds),
            retry=retry_if_exception_type(_RETRYABLE_ERRORS),
        )
