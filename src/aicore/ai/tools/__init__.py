"""Tool descriptors, presets, registry and execution helpers."""

from .browser_tools import BrowserToolError, build_browser_tools, truncate_snapshot
from .executor import (
    ToolExecutionError,
    ToolExecutionResult,
    ToolExecutor,
    ToolResults,
    append_tool_results,
)
from .presets import (
    DEFAULT_PRESET,
    PRESET_NAMES,
    TOOL_PRESETS,
    ConfigurationError,
    is_preset,
    preset_tool_names,
    select_tools,
)
from .registry import DuplicateToolError, ToolNotFoundError, ToolRegistry
from .types import ToolCategory, ToolDescriptor, ToolSpec

__all__ = [
    "BrowserToolError",
    "ConfigurationError",
    "DEFAULT_PRESET",
    "DuplicateToolError",
    "PRESET_NAMES",
    "TOOL_PRESETS",
    "ToolCategory",
    "ToolDescriptor",
    "ToolExecutionError",
    "ToolExecutionResult",
    "ToolExecutor",
    "ToolNotFoundError",
    "ToolRegistry",
    "ToolResults",
    "ToolSpec",
    "append_tool_results",
    "build_browser_tools",
    "is_preset",
    "preset_tool_names",
    "select_tools",
    "truncate_snapshot",
]
