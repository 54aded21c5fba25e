"""Tool-use loop plugin: executes model tool calls and continues the conversation."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from ..tools.executor import ToolExecutor, append_tool_results
from ..tools.registry import ToolRegistry
from ..tools.types import ToolDescriptor
from ..types import Message, ModelResponse
from .types import Plugin, PluginEnforce, RequestContext

__all__ = ["tool_loop_plugin", "TOOL_LOOP_PLUGIN_NAME"]

LOGGER = logging.getLogger(__name__)

TOOL_LOOP_PLUGIN_NAME = "tool-loop"


def tool_loop_plugin(max_steps: int = 8, *, parallel: bool = False, timeout: float | None = None) -> Plugin:
    """Create the ``tool-loop`` plugin.

    When a model result carries tool calls, the tools in the call's final
    ``params["tools"]`` run (sequentially unless ``parallel``), the assistant
    turn and one tool message per call are appended to ``messages``, and the
    pipeline is re-entered through ``context.recursive_call``. ``max_steps``
    bounds the number of provider round trips of one outer request.
    """

    if max_steps < 1:
        raise ValueError("max_steps must be at least 1")

    async def transform_result(result: Any, context: RequestContext) -> Any:
        if not isinstance(result, ModelResponse) or not result.has_tool_calls:
            return result
        if context.depth + 1 >= max_steps:
            LOGGER.warning(
                "Tool loop stopped after %s step(s); %s tool call(s) left unanswered",
                context.depth + 1,
                len(result.tool_calls),
            )
            return result

        registry = ToolRegistry.from_tools(_executable(context.params.get("tools")))
        executor = ToolExecutor(registry, timeout=timeout)
        tool_results = await executor.run_turn(result, parallel=parallel)
        LOGGER.debug(
            "Tool loop step %s: %s call(s), %s error(s)",
            context.depth + 1,
            len(tool_results.results),
            tool_results.error_count,
        )

        history = tuple(Message.coerce(item) for item in context.params.get("messages") or ())
        conversation = append_tool_results(history, result, tool_results)
        next_params = dict(context.params)
        next_params["messages"] = list(conversation)

        follow_up = await context.recursive_call(next_params)
        if not isinstance(follow_up, ModelResponse):
            return follow_up
        return follow_up.with_updates(
            messages=conversation[len(history) :] + follow_up.messages,
            steps=follow_up.steps + 1,
            prompt_tokens=result.prompt_tokens + follow_up.prompt_tokens,
            completion_tokens=result.completion_tokens + follow_up.completion_tokens,
        )

    return Plugin(
        name=TOOL_LOOP_PLUGIN_NAME,
        enforce=PluginEnforce.POST,
        transform_result=transform_result,
    )


def _executable(tools: Any) -> list[ToolDescriptor]:
    """Descriptors among ``tools``; raw provider tool dicts have no handler."""

    if not tools:
        return []
    values = tools.values() if isinstance(tools, Mapping) else tools
    return [tool for tool in values if isinstance(tool, ToolDescriptor)]
