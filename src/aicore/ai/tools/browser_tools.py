"""Browser tools: one descriptor per page action, dispatched through the host router.

Every tool turns its arguments into a bridge command, sends it to the active
page context and returns the response data. A command that comes back with
``success: false`` raises :class:`BrowserToolError`, which the tool executor
reports to the model as an error result.
"""

from __future__ import annotations

import inspect
import json
import logging
import re
from typing import Any, Callable, Mapping, TYPE_CHECKING

from ...page.describe import ACTION_DESCRIPTIONS, action_schema, describe, tool_name_for
from ...services.bridge_protocol import ActionType
from ...services.bridge_types import Command
from .types import ToolCategory, ToolDescriptor, ToolSpec

if TYPE_CHECKING:  # pragma: no cover - import only for annotations
    from ...services.bridge_router import HostRouter

__all__ = [
    "BrowserToolError",
    "BrowserCallback",
    "DESCRIBE_TOOL_NAME",
    "DEFAULT_MAX_SNAPSHOT_SIZE",
    "build_browser_tools",
    "truncate_snapshot",
]

LOGGER = logging.getLogger(__name__)

DESCRIBE_TOOL_NAME = "browser_describe"
DEFAULT_MAX_SNAPSHOT_SIZE = 50000

BrowserCallback = Callable[[str, Any], Any]

_REF_PATTERN = re.compile(r"\[ref=(@ref:\d+)\]")

_CATEGORIES: dict[ActionType, str] = {
    ActionType.LAUNCH: ToolCategory.SESSION,
    ActionType.CLOSE: ToolCategory.SESSION,
    ActionType.NAVIGATE: ToolCategory.NAVIGATION,
    ActionType.BACK: ToolCategory.NAVIGATION,
    ActionType.FORWARD: ToolCategory.NAVIGATION,
    ActionType.RELOAD: ToolCategory.NAVIGATION,
    ActionType.URL: ToolCategory.NAVIGATION,
    ActionType.TITLE: ToolCategory.NAVIGATION,
    ActionType.WAIT_FOR_URL: ToolCategory.NAVIGATION,
    ActionType.SCREENSHOT: ToolCategory.VISUAL,
    ActionType.HIGHLIGHT: ToolCategory.VISUAL,
    ActionType.FRAME: ToolCategory.ADVANCED,
    ActionType.MAIN_FRAME: ToolCategory.ADVANCED,
    ActionType.EVALUATE: ToolCategory.ADVANCED,
    ActionType.CONSOLE: ToolCategory.ADVANCED,
    ActionType.SET_CONTENT: ToolCategory.ADVANCED,
}
_INSPECTION = {
    ActionType.SNAPSHOT,
    ActionType.GET_TEXT,
    ActionType.GET_ATTRIBUTE,
    ActionType.IS_VISIBLE,
    ActionType.IS_ENABLED,
    ActionType.COUNT,
    ActionType.GET_BY_ROLE,
    ActionType.GET_BY_TEXT,
    ActionType.GET_BY_LABEL,
    ActionType.GET_BY_PLACEHOLDER,
}


class BrowserToolError(RuntimeError):
    """Raised when a browser command comes back with ``success: false``."""

    def __init__(self, tool_name: str, error: str, command_id: str | None = None) -> None:
        self.tool_name = tool_name
        self.error = error
        self.command_id = command_id
        super().__init__(error)


# ------------------------------------------------------------------
# Snapshot truncation
# ------------------------------------------------------------------
def _payload_size(payload: Any) -> int:
    return len(json.dumps(payload, ensure_ascii=False))


def truncate_snapshot(payload: Mapping[str, Any], max_size: int) -> Mapping[str, Any]:
    """Cut an oversized snapshot payload down to ``max_size`` characters.

    Size is measured on the JSON text of the whole payload. Payloads at or
    under the limit are returned unchanged. Larger ones keep as many leading
    snapshot lines as fit, drop refs no longer present in the kept text, and
    gain ``_truncated`` and ``_message`` keys. When not even the page
    details fit, only an empty snapshot with the ``_truncated`` flag is left.
    """

    if max_size <= 0 or _payload_size(payload) <= max_size:
        return payload

    text = payload.get("snapshot")
    lines = text.splitlines() if isinstance(text, str) else []
    refs = payload.get("refs") if isinstance(payload.get("refs"), Mapping) else {}
    total = len(lines)

    def build(kept: int) -> dict[str, Any]:
        snapshot_text = "\n".join(lines[:kept])
        visible = set(_REF_PATTERN.findall(snapshot_text))
        result = dict(payload)
        result["snapshot"] = snapshot_text
        if "refs" in payload:
            result["refs"] = {ref: info for ref, info in refs.items() if ref in visible}
        result["_truncated"] = True
        result["_message"] = (
            f"Snapshot truncated to {max_size} chars ({total - kept} of {total} lines omitted). "
            "Pass a selector or interactive=true to narrow it."
        )
        return result

    low, high = 0, total
    while low < high:
        middle = (low + high + 1) // 2
        if _payload_size(build(middle)) <= max_size:
            low = middle
        else:
            high = middle - 1
    truncated = build(low)
    if low == 0 and _payload_size(truncated) > max_size:
        truncated = _minimal_snapshot(truncated, max_size)
    LOGGER.debug("Truncated snapshot to %s of %s lines (limit %s chars)", low, total, max_size)
    return truncated


def _minimal_snapshot(full: Mapping[str, Any], max_size: int) -> dict[str, Any]:
    """Empty snapshot marked as truncated; other keys are kept while they fit."""

    result: dict[str, Any] = {"snapshot": "", "_truncated": True}
    if "refs" in full:
        result["refs"] = {}
    for key in ("_message", "url", "title"):
        if key in full:
            candidate = {**result, key: full[key]}
            if _payload_size(candidate) <= max_size:
                result = candidate
    return result


# ------------------------------------------------------------------
# Tool construction
# ------------------------------------------------------------------
def build_browser_tools(
    router: "HostRouter",
    *,
    context_id: str | None = None,
    max_snapshot_size: int = DEFAULT_MAX_SNAPSHOT_SIZE,
    command_timeout: float | None = None,
    on_tool_call: BrowserCallback | None = None,
    on_tool_result: BrowserCallback | None = None,
    on_error: BrowserCallback | None = None,
) -> dict[str, ToolDescriptor]:
    """Build every browser tool keyed by name, in catalog order.

    ``context_id`` pins the tools to one page context; by default each call
    targets whichever context is active when the command is dispatched.
    """

    tools: dict[str, ToolDescriptor] = {}
    for action in ActionType:
        name = tool_name_for(action)
        spec = ToolSpec(
            name=name,
            description=ACTION_DESCRIPTIONS[action],
            parameters=action_schema(action),
            category=_category_for(action),
        )
        handler = _command_handler(
            router,
            action,
            name,
            context_id=context_id,
            max_snapshot_size=max_snapshot_size,
            command_timeout=command_timeout,
            callbacks=(on_tool_call, on_tool_result, on_error),
        )
        tools[name] = ToolDescriptor(spec=spec, handler=handler)

    describe_spec = ToolSpec(
        name=DESCRIBE_TOOL_NAME,
        description="Get help for browser actions. Call with no action to list all of them, or name one action.",
        parameters={
            "type": "object",
            "properties": {"action": {"type": "string", "description": "Action or tool name to get help for"}},
            "additionalProperties": False,
        },
        category=ToolCategory.UTILITY,
    )
    tools[DESCRIBE_TOOL_NAME] = ToolDescriptor(
        spec=describe_spec,
        handler=_describe_handler((on_tool_call, on_tool_result, on_error)),
    )
    return tools


def _category_for(action: ActionType) -> str:
    if action in _INSPECTION:
        return ToolCategory.INSPECTION
    return _CATEGORIES.get(action, ToolCategory.INTERACTION)


def _command_handler(
    router: "HostRouter",
    action: ActionType,
    name: str,
    *,
    context_id: str | None,
    max_snapshot_size: int,
    command_timeout: float | None,
    callbacks: tuple[BrowserCallback | None, BrowserCallback | None, BrowserCallback | None],
) -> Callable[[Mapping[str, Any]], Any]:
    on_tool_call, on_tool_result, on_error = callbacks

    async def handler(arguments: Mapping[str, Any]) -> Any:
        args = dict(arguments or {})
        await _notify(on_tool_call, name, args)
        try:
            command = Command.create(action.value, **_command_fields(args))
            response = await router.send(command, context_id, timeout=command_timeout)
            if not response.success:
                raise BrowserToolError(name, response.error or "unknown error", response.id)
            result = response.data if response.data is not None else {}
            if action is ActionType.SNAPSHOT and isinstance(result, Mapping):
                result = truncate_snapshot(result, max_snapshot_size)
        except Exception as exc:
            await _notify(on_error, name, exc)
            raise
        await _notify(on_tool_result, name, result)
        return result

    handler.__name__ = name
    return handler


def _describe_handler(
    callbacks: tuple[BrowserCallback | None, BrowserCallback | None, BrowserCallback | None],
) -> Callable[[Mapping[str, Any]], Any]:
    on_tool_call, on_tool_result, _ = callbacks

    async def handler(arguments: Mapping[str, Any]) -> Any:
        args = dict(arguments or {})
        await _notify(on_tool_call, DESCRIBE_TOOL_NAME, args)
        action = args.get("action")
        result = describe(action if isinstance(action, str) else None)
        await _notify(on_tool_result, DESCRIBE_TOOL_NAME, result)
        return result

    handler.__name__ = DESCRIBE_TOOL_NAME
    return handler


def _command_fields(args: Mapping[str, Any]) -> dict[str, Any]:
    """Tool arguments as command fields; ``action`` is accepted for ``subaction``."""

    fields = {key: value for key, value in args.items() if key not in ("id", "action")}
    if "action" in args and "subaction" not in fields:
        fields["subaction"] = args["action"]
    return fields


async def _notify(callback: BrowserCallback | None, name: str, payload: Any) -> None:
    if callback is None:
        return
    try:
        outcome = callback(name, payload)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception:
        LOGGER.warning("Browser tool callback failed for %s", name, exc_info=True)
