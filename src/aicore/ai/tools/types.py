"""Tool descriptor types.

A tool is a closed :class:`ToolDescriptor`: an immutable :class:`ToolSpec`
(name, description, JSON schema) paired with the callable that executes it.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine, Mapping, Union

__all__ = [
    "ToolSpec",
    "ToolHandler",
    "AsyncToolHandler",
    "ToolDescriptor",
    "ToolCategory",
]


# -----------------------------------------------------------------------------
# Tool Categories
# -----------------------------------------------------------------------------


class ToolCategory:
    """Standard tool categories for organization."""

    SESSION = "session"
    NAVIGATION = "navigation"
    INSPECTION = "inspection"
    INTERACTION = "interaction"
    VISUAL = "visual"
    ADVANCED = "advanced"
    UTILITY = "utility"


# -----------------------------------------------------------------------------
# Tool Specification
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ToolSpec:
    """Specification for a tool's interface.

    Attributes:
        name: Unique identifier for the tool.
        description: Human-readable description of what the tool does.
        parameters: JSON Schema for the tool's parameters.
        category: Tool category for organization.
    """

    name: str
    description: str
    parameters: Mapping[str, Any] = field(default_factory=dict)
    category: str = ToolCategory.UTILITY

    def to_openai_tool(self) -> dict[str, Any]:
        """Convert to OpenAI tool definition format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": dict(self.parameters) if self.parameters else {
                    "type": "object",
                    "properties": {},
                },
            },
        }

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": dict(self.parameters) if self.parameters else {},
            "category": self.category,
        }


# -----------------------------------------------------------------------------
# Tool Handler Types
# -----------------------------------------------------------------------------

# Synchronous tool handler
ToolHandler = Callable[[Mapping[str, Any]], Any]

# Asynchronous tool handler
AsyncToolHandler = Callable[[Mapping[str, Any]], Coroutine[Any, Any, Any]]


# -----------------------------------------------------------------------------
# Tool Descriptor
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ToolDescriptor:
    """Immutable tool: specification plus executor.

    Example:
        def greet(args):
            return f"Hello, {args.get('name', 'World')}!"

        tool = ToolDescriptor(ToolSpec(name="greet", description="Greet someone"), greet)
    """

    spec: ToolSpec
    handler: Union[ToolHandler, AsyncToolHandler]

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def description(self) -> str:
        return self.spec.description

    @property
    def parameters(self) -> Mapping[str, Any]:
        return self.spec.parameters

    async def execute(self, arguments: Mapping[str, Any]) -> Any:
        """Run the handler; sync handlers are called inline."""
        result = self.handler(arguments)
        if inspect.isawaitable(result):
            return await result
        return result

    def to_openai_tool(self) -> dict[str, Any]:
        return self.spec.to_openai_tool()
