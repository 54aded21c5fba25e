"""Toolset presets and the pure tool filter.

Preset membership is data. Each preset is built by extending the previous
one, so ``minimal`` is contained in ``standard`` which is contained in
``full`` by construction; adding a tool to ``full`` cannot change what the
smaller presets expose.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Sequence, TypeVar, Union, overload

__all__ = [
    "TOOL_PRESETS",
    "PRESET_NAMES",
    "DEFAULT_PRESET",
    "ConfigurationError",
    "ToolSelector",
    "is_preset",
    "preset_tool_names",
    "resolve_tool_names",
    "select_tools",
    "tool_name_of",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_PRESET = "standard"

_MINIMAL: tuple[str, ...] = (
    "browser_snapshot",
    "browser_get_text",
    "browser_url",
    "browser_title",
    "browser_describe",
)
_STANDARD: tuple[str, ...] = _MINIMAL + (
    # Session management
    "browser_launch",
    "browser_close",
    # Navigation
    "browser_navigate",
    "browser_back",
    "browser_forward",
    "browser_reload",
    # Inspection
    "browser_get_attribute",
    "browser_is_visible",
    "browser_is_enabled",
    "browser_count",
    "browser_get_by_role",
    "browser_get_by_text",
    "browser_get_by_label",
    "browser_get_by_placeholder",
    # Interaction
    "browser_click",
    "browser_type",
    "browser_fill",
    "browser_clear",
    "browser_press",
    "browser_hover",
    "browser_check",
    "browser_uncheck",
    "browser_select",
    "browser_scroll",
    "browser_scroll_into_view",
    "browser_wait",
    # Visual
    "browser_screenshot",
)
# Script evaluation and whole-document replacement only ship with ``full``.
_FULL: tuple[str, ...] = _STANDARD + (
    "browser_wait_for_url",
    "browser_highlight",
    "browser_frame",
    "browser_main_frame",
    "browser_console",
    "browser_evaluate",
    "browser_set_content",
)

TOOL_PRESETS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {"minimal": _MINIMAL, "standard": _STANDARD, "full": _FULL}
)
PRESET_NAMES: tuple[str, ...] = tuple(TOOL_PRESETS)

ToolSelector = Union[str, Sequence[str], None]
T = TypeVar("T")


class ConfigurationError(ValueError):
    """Raised when a tool selector cannot be interpreted at all."""


def is_preset(name: Any) -> bool:
    return isinstance(name, str) and name.strip().lower() in TOOL_PRESETS


def preset_tool_names(name: str) -> tuple[str, ...]:
    """Return the tool names of a preset, falling back to ``standard``."""

    key = name.strip().lower() if isinstance(name, str) else ""
    if key in TOOL_PRESETS:
        return TOOL_PRESETS[key]
    LOGGER.warning("Unknown tool preset %r; falling back to %r", name, DEFAULT_PRESET)
    return TOOL_PRESETS[DEFAULT_PRESET]


def resolve_tool_names(selector: ToolSelector, known: Iterable[str]) -> frozenset[str]:
    """Turn a preset name or explicit list into the set of allowed names.

    Raises:
        ConfigurationError: when ``selector`` is neither a string nor a
            sequence of names.
    """

    known_names = set(known)
    if selector is None:
        return frozenset(TOOL_PRESETS[DEFAULT_PRESET])
    if isinstance(selector, str):
        return frozenset(preset_tool_names(selector))
    if isinstance(selector, (bytes, bytearray)) or not isinstance(selector, (Sequence, set, frozenset)):
        raise ConfigurationError(f"Tool selector must be a preset name or a list of tool names, got {type(selector).__name__}")

    allowed: set[str] = set()
    dropped: list[Any] = []
    for entry in selector:
        if isinstance(entry, str) and entry in known_names:
            allowed.add(entry)
        else:
            dropped.append(entry)
    if dropped:
        LOGGER.warning("Ignoring unknown tools in explicit toolset: %s", dropped)
    return frozenset(allowed)


@overload
def select_tools(all_tools: Mapping[str, T], selector: ToolSelector = ...) -> dict[str, T]:
    ...


@overload
def select_tools(all_tools: Sequence[T], selector: ToolSelector = ...) -> list[T]:
    ...


def select_tools(all_tools: Any, selector: ToolSelector = DEFAULT_PRESET) -> Any:
    """Return the subset of ``all_tools`` allowed by ``selector``.

    Pure and order-preserving: the result follows the iteration order of
    ``all_tools``. Mappings are keyed by tool name; sequences hold objects
    exposing a ``name`` attribute.
    """

    if isinstance(all_tools, Mapping):
        allowed = resolve_tool_names(selector, all_tools.keys())
        return {name: tool for name, tool in all_tools.items() if name in allowed}
    tools = list(all_tools)
    allowed = resolve_tool_names(selector, (tool_name_of(tool) for tool in tools))
    return [tool for tool in tools if tool_name_of(tool) in allowed]


def tool_name_of(tool: Any) -> str:
    name = getattr(tool, "name", None)
    if isinstance(name, str):
        return name
    if isinstance(tool, Mapping):
        function = tool.get("function")
        if isinstance(function, Mapping) and isinstance(function.get("name"), str):
            return function["name"]
        if isinstance(tool.get("name"), str):
            return tool["name"]
    raise ConfigurationError(f"Cannot determine the name of tool {tool!r}")
