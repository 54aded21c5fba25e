"""Chat message and model response types shared by the client and the pipeline.

All types are frozen and shared between pipeline stages; stages that change
a response build a new one.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Literal, Mapping, Sequence

from openai.types.chat import ChatCompletionMessageParam

__all__ = ["Message", "MessageRole", "ParsedToolCall", "ModelResponse"]

MessageRole = Literal["system", "user", "assistant", "tool"]

_OPTIONAL_PARAM_FIELDS = ("name", "tool_call_id", "tool_calls")


# -----------------------------------------------------------------------------
# Messages
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class Message:
    """One chat turn in OpenAI's message shape.

    Attributes:
        role: Sender role.
        content: Text content; tool results are already rendered to text.
        name: Tool name on tool messages.
        tool_call_id: Call a tool message answers.
        tool_calls: OpenAI-shaped tool calls of an assistant turn.
    """

    role: MessageRole
    content: str
    name: str | None = None
    tool_call_id: str | None = None
    tool_calls: tuple[Mapping[str, Any], ...] | None = None

    def to_chat_param(self) -> ChatCompletionMessageParam:
        payload: dict[str, Any] = {"role": self.role, "content": self.content}
        for key in _OPTIONAL_PARAM_FIELDS:
            value = getattr(self, key)
            if value is not None:
                payload[key] = list(value) if key == "tool_calls" else value
        return payload  # type: ignore[return-value]

    @classmethod
    def from_chat_param(cls, param: Mapping[str, Any]) -> Message:
        content = param.get("content")
        tool_calls = param.get("tool_calls")
        return cls(
            role=param.get("role", "user"),  # type: ignore[arg-type]
            content="" if content is None else str(content),
            name=param.get("name"),
            tool_call_id=param.get("tool_call_id"),
            tool_calls=None if tool_calls is None else tuple(tool_calls),
        )

    @classmethod
    def coerce(cls, value: Message | Mapping[str, Any]) -> Message:
        return value if isinstance(value, Message) else cls.from_chat_param(value)

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str, tool_calls: Sequence[Mapping[str, Any]] | None = None) -> Message:
        return cls(role="assistant", content=content, tool_calls=tuple(tool_calls) if tool_calls else None)

    @classmethod
    def tool(cls, content: str, tool_call_id: str, name: str | None = None) -> Message:
        return cls(role="tool", content=content, tool_call_id=tool_call_id, name=name)


# -----------------------------------------------------------------------------
# Model responses
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ParsedToolCall:
    """A tool call requested by the model; ``arguments`` is the raw JSON text."""

    call_id: str
    name: str
    arguments: str
    index: int = 0

    def to_openai(self) -> dict[str, Any]:
        return {
            "id": self.call_id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(slots=True, frozen=True)
class ModelResponse:
    """Result of one provider call, or of a whole tool loop.

    Attributes:
        text: Assistant text.
        tool_calls: Tool calls the model asked for.
        finish_reason: Why the model stopped generating.
        prompt_tokens: Prompt tokens, summed over every round trip.
        completion_tokens: Completion tokens, summed over every round trip.
        model: Model that generated the response.
        messages: Turns appended while producing this response (assistant
            tool-call turns and tool results of a tool loop).
        steps: Number of provider round trips behind this response.
    """

    text: str
    tool_calls: tuple[ParsedToolCall, ...] = ()
    finish_reason: str | None = None
    prompt_tokens: int = 0
    completion_tokens: int = 0
    model: str | None = None
    messages: tuple[Message, ...] = ()
    steps: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "tool_calls", tuple(self.tool_calls))
        object.__setattr__(self, "messages", tuple(self.messages))

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def to_message(self) -> Message:
        """The assistant turn that carries this response into the history."""
        return Message.assistant(self.text, tool_calls=[call.to_openai() for call in self.tool_calls])

    def with_updates(self, **changes: Any) -> ModelResponse:
        return replace(self, **changes)
