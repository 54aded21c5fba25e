"""Runs the tool calls of one model turn and renders each outcome as a tool message.

A tool failure never aborts the turn. Every call yields exactly one tool
message; failures are rendered as a JSON object the model can act on::

    {"error": "element not found: #missing", "tool": "browser_get_text", "commandId": "9f1c..."}

Browser commands that came back with ``success: false`` carry the id of the
command that failed, so a follow-up turn can be matched against the bridge
logs.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from ..types import Message, ModelResponse, ParsedToolCall
from .browser_tools import BrowserToolError
from .registry import ToolNotFoundError, ToolRegistry

__all__ = [
    "DEFAULT_TOOL_TIMEOUT",
    "ToolExecutor",
    "ToolExecutionError",
    "ToolExecutionResult",
    "ToolResults",
    "append_tool_results",
    "parse_tool_arguments",
    "render_tool_value",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_TOOL_TIMEOUT = 30.0
TOOL_NOT_FOUND = "tool_not_found"


class ToolExecutionError(Exception):
    """A tool handler raised; ``cause`` holds the original exception."""

    def __init__(self, message: str, tool_name: str = "", cause: Exception | None = None) -> None:
        self.tool_name = tool_name
        self.cause = cause
        super().__init__(message)


# -----------------------------------------------------------------------------
# Outcomes
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ToolExecutionResult:
    """Outcome of one tool call.

    Attributes:
        call_id: Id of the model's tool call.
        name: Tool that was called.
        content: Text handed back to the model.
        error: Failure description; ``None`` on success.
        command_id: Bridge command behind a failed browser tool.
        duration_ms: Wall time of the call.
        value: Raw handler return value on success.
    """

    call_id: str
    name: str
    content: str
    error: str | None = None
    command_id: str | None = None
    duration_ms: float = 0.0
    value: Any = None

    @property
    def success(self) -> bool:
        return self.error is None

    @classmethod
    def succeeded(cls, call: ParsedToolCall, value: Any, duration_ms: float = 0.0) -> ToolExecutionResult:
        return cls(call.call_id, call.name, render_tool_value(value), duration_ms=duration_ms, value=value)

    @classmethod
    def failed(
        cls,
        call: ParsedToolCall,
        error: str,
        *,
        command_id: str | None = None,
        duration_ms: float = 0.0,
        **details: Any,
    ) -> ToolExecutionResult:
        payload: dict[str, Any] = {"error": error, "tool": call.name}
        if command_id:
            payload["commandId"] = command_id
        payload.update({key: value for key, value in details.items() if value})
        return cls(
            call.call_id,
            call.name,
            json.dumps(payload, ensure_ascii=False),
            error=error,
            command_id=command_id,
            duration_ms=duration_ms,
        )

    def to_message(self) -> Message:
        return Message.tool(self.content, tool_call_id=self.call_id, name=self.name)


@dataclass(slots=True, frozen=True)
class ToolResults:
    """Outcomes of every tool call of one model turn, in call order."""

    results: tuple[ToolExecutionResult, ...] = ()
    total_duration_ms: float = 0.0

    @property
    def success_count(self) -> int:
        return sum(1 for outcome in self.results if outcome.success)

    @property
    def error_count(self) -> int:
        return len(self.results) - self.success_count


def render_tool_value(value: Any) -> str:
    """Text for a successful tool value: strings as-is, everything else as JSON."""

    if isinstance(value, str):
        return value
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        value = to_dict()
    try:
        return json.dumps(value, ensure_ascii=False, indent=2 if isinstance(value, (dict, list)) else None)
    except (TypeError, ValueError):
        return str(value)


def parse_tool_arguments(arguments: str | Mapping[str, Any]) -> dict[str, Any]:
    """Decode a tool call's argument text into a dict.

    Raises:
        ValueError: when the text is not a JSON object.
    """

    if isinstance(arguments, Mapping):
        return dict(arguments)
    if not arguments or not arguments.strip():
        return {}
    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in tool arguments: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ValueError(f"Arguments must be a JSON object, got {type(parsed).__name__}")
    return parsed


# -----------------------------------------------------------------------------
# Executor
# -----------------------------------------------------------------------------


class ToolExecutor:
    """Looks tools up in a registry and runs them under a timeout."""

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        timeout: float | None = DEFAULT_TOOL_TIMEOUT,
        log_arguments: bool = False,
    ) -> None:
        self._registry = registry
        self._timeout = timeout
        self._log_arguments = log_arguments

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def timeout(self) -> float | None:
        return self._timeout

    async def execute(self, name: str, arguments: Mapping[str, Any], *, timeout: float | None = None) -> Any:
        """Run tool ``name`` and return its raw value.

        Raises:
            ToolNotFoundError: the tool is unknown or disabled; carries close matches.
            ToolExecutionError: the handler raised.
            asyncio.TimeoutError: the handler outlived the timeout.
        """

        tool = self._registry.get(name)
        if tool is None:
            raise ToolNotFoundError(name, self._registry.suggest(name))
        if self._log_arguments:
            LOGGER.debug("Running tool %s with %s", name, arguments)

        limit = self._timeout if timeout is None else timeout
        try:
            if limit is not None and limit > 0:
                return await asyncio.wait_for(tool.execute(arguments), timeout=limit)
            return await tool.execute(arguments)
        except asyncio.TimeoutError:
            raise
        except Exception as exc:
            raise ToolExecutionError(str(exc), tool_name=name, cause=exc) from exc

    async def run_call(self, call: ParsedToolCall, *, timeout: float | None = None) -> ToolExecutionResult:
        """Run one model tool call; every failure becomes an error outcome."""

        started = time.perf_counter()

        def elapsed() -> float:
            return (time.perf_counter() - started) * 1000

        try:
            arguments = parse_tool_arguments(call.arguments)
            value = await self.execute(call.name, arguments, timeout=timeout)
        except ValueError as exc:
            LOGGER.warning("Rejected arguments for tool %s: %s", call.name, exc)
            return ToolExecutionResult.failed(call, f"Invalid arguments: {exc}", duration_ms=elapsed())
        except ToolNotFoundError as exc:
            LOGGER.warning("%s", exc)
            return ToolExecutionResult.failed(
                call, TOOL_NOT_FOUND, duration_ms=elapsed(), message=str(exc), suggestions=list(exc.suggestions)
            )
        except asyncio.TimeoutError:
            limit = self._timeout if timeout is None else timeout
            LOGGER.warning("Tool %s timed out after %ss", call.name, limit)
            return ToolExecutionResult.failed(call, f"Tool execution timed out after {limit}s", duration_ms=elapsed())
        except ToolExecutionError as exc:
            cause = exc.cause
            if isinstance(cause, BrowserToolError):
                LOGGER.info("Browser tool %s failed (command %s): %s", call.name, cause.command_id, cause.error)
                return ToolExecutionResult.failed(
                    call, cause.error, command_id=cause.command_id, duration_ms=elapsed()
                )
            LOGGER.warning("Tool %s failed: %s", call.name, exc)
            return ToolExecutionResult.failed(call, str(exc) or type(cause or exc).__name__, duration_ms=elapsed())

        duration = elapsed()
        LOGGER.debug("Tool %s finished in %.1fms", call.name, duration)
        return ToolExecutionResult.succeeded(call, value, duration)

    async def run_turn(
        self,
        response: ModelResponse,
        *,
        parallel: bool = False,
        timeout: float | None = None,
    ) -> ToolResults:
        """Run every tool call of ``response``.

        Calls run one after another unless ``parallel``; browser tools share
        one page, so ordering matters for them.
        """

        if not response.has_tool_calls:
            return ToolResults()
        started = time.perf_counter()
        if parallel:
            outcomes = await asyncio.gather(*(self.run_call(call, timeout=timeout) for call in response.tool_calls))
        else:
            outcomes = [await self.run_call(call, timeout=timeout) for call in response.tool_calls]
        return ToolResults(tuple(outcomes), (time.perf_counter() - started) * 1000)


def append_tool_results(
    messages: Sequence[Message],
    response: ModelResponse,
    tool_results: ToolResults,
) -> tuple[Message, ...]:
    """``messages`` plus the assistant turn and one tool message per outcome."""

    history = tuple(messages)
    if not response.has_tool_calls:
        return history + (response.to_message(),) if response.text else history
    return history + (response.to_message(),) + tuple(outcome.to_message() for outcome in tool_results.results)
