"""Tool registry.

Holds :class:`ToolDescriptor` registrations by name, renders them for the
model API, filters them through presets and offers introspection (schema
lookup and near-miss suggestions) for models that mistype a tool name.
"""

from __future__ import annotations

import difflib
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from .presets import ToolSelector, select_tools
from .types import AsyncToolHandler, ToolDescriptor, ToolHandler, ToolSpec

__all__ = [
    "ToolRegistry",
    "ToolRegistration",
    "DuplicateToolError",
    "ToolNotFoundError",
]

LOGGER = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Exceptions
# -----------------------------------------------------------------------------


class DuplicateToolError(Exception):
    """Raised when attempting to register a tool with a name that already exists."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool '{name}' is already registered")


class ToolNotFoundError(Exception):
    """Raised when a requested tool is not found in the registry."""

    def __init__(self, name: str, suggestions: Sequence[str] = ()) -> None:
        self.name = name
        self.suggestions = tuple(suggestions)
        hint = f" (did you mean '{self.suggestions[0]}'?)" if self.suggestions else ""
        super().__init__(f"Tool '{name}' not found{hint}")


# -----------------------------------------------------------------------------
# Tool Registration
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class ToolRegistration:
    """Record of a registered tool.

    Attributes:
        name: Tool name.
        tool: The tool descriptor.
        enabled: Whether the tool is currently enabled.
        metadata: Additional registration metadata.
    """

    name: str
    tool: ToolDescriptor
    enabled: bool = True
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def spec(self) -> ToolSpec:
        return self.tool.spec


# -----------------------------------------------------------------------------
# Tool Registry
# -----------------------------------------------------------------------------


class ToolRegistry:
    """Registry for managing tool registrations.

    Example:
        registry = ToolRegistry()
        registry.register_function(
            spec=ToolSpec(name="greet", description="Greet"),
            handler=lambda args: f"Hello, {args['name']}!",
        )
        tool = registry.get_required("greet")
        result = await tool.execute({"name": "World"})
    """

    def __init__(self, tools: Iterable[ToolDescriptor] = ()) -> None:
        self._tools: dict[str, ToolRegistration] = {}
        for tool in tools:
            self.register(tool)

    @classmethod
    def from_tools(cls, tools: Mapping[str, ToolDescriptor] | Iterable[ToolDescriptor] | None) -> ToolRegistry:
        """Build a registry from a tool mapping or sequence; later names win."""

        registry = cls()
        if not tools:
            return registry
        values = tools.values() if isinstance(tools, Mapping) else tools
        for tool in values:
            registry.register(tool, allow_override=True)
        return registry

    def register(
        self,
        tool: ToolDescriptor,
        *,
        enabled: bool = True,
        allow_override: bool = False,
        metadata: Mapping[str, Any] | None = None,
    ) -> ToolRegistration:
        """Register a tool descriptor.

        Raises:
            DuplicateToolError: If tool name already registered and allow_override is False.
        """
        name = tool.name
        if name in self._tools and not allow_override:
            raise DuplicateToolError(name)

        registration = ToolRegistration(
            name=name,
            tool=tool,
            enabled=enabled,
            metadata=dict(metadata) if metadata else {},
        )
        self._tools[name] = registration
        LOGGER.debug("Registered tool: %s", name)
        return registration

    def register_function(
        self,
        spec: ToolSpec,
        handler: ToolHandler | AsyncToolHandler,
        *,
        enabled: bool = True,
        allow_override: bool = False,
        metadata: Mapping[str, Any] | None = None,
    ) -> ToolRegistration:
        """Register a plain function (sync or async) under ``spec``."""
        return self.register(
            ToolDescriptor(spec=spec, handler=handler),
            enabled=enabled,
            allow_override=allow_override,
            metadata=metadata,
        )

    def unregister(self, name: str) -> bool:
        if name in self._tools:
            del self._tools[name]
            LOGGER.debug("Unregistered tool: %s", name)
            return True
        return False

    def get(self, name: str) -> ToolDescriptor | None:
        """Get a tool by name; disabled tools are invisible."""
        registration = self._tools.get(name)
        if registration is None or not registration.enabled:
            return None
        return registration.tool

    def get_required(self, name: str) -> ToolDescriptor:
        """Get a tool by name, raising if not found.

        Raises:
            ToolNotFoundError: If tool not found or disabled, with close matches attached.
        """
        tool = self.get(name)
        if tool is None:
            raise ToolNotFoundError(name, self.suggest(name))
        return tool

    def get_registration(self, name: str) -> ToolRegistration | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        registration = self._tools.get(name)
        return registration is not None and registration.enabled

    def list_tools(self, *, include_disabled: bool = False) -> list[ToolSpec]:
        return [
            registration.spec
            for registration in self._tools.values()
            if registration.enabled or include_disabled
        ]

    def list_names(self, *, include_disabled: bool = False) -> list[str]:
        return [
            registration.name
            for registration in self._tools.values()
            if registration.enabled or include_disabled
        ]

    def tools(self) -> dict[str, ToolDescriptor]:
        """Enabled tools keyed by name, in registration order."""
        return {name: reg.tool for name, reg in self._tools.items() if reg.enabled}

    def select(self, selector: ToolSelector) -> dict[str, ToolDescriptor]:
        """Enabled tools allowed by a preset name or explicit list."""
        return select_tools(self.tools(), selector)

    def get_openai_tools(
        self,
        *,
        filter_names: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Get tool definitions in OpenAI format."""
        tools: list[dict[str, Any]] = []
        for registration in self._tools.values():
            if not registration.enabled:
                continue
            if filter_names is not None and registration.name not in filter_names:
                continue
            tools.append(registration.spec.to_openai_tool())
        return tools

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    def describe(self, name: str) -> dict[str, Any]:
        """Return the specification of ``name`` or an error with suggestions."""
        tool = self.get(name)
        if tool is not None:
            return tool.spec.to_dict()
        suggestions = self.suggest(name)
        return {
            "error": f"Unknown tool '{name}'",
            "suggestions": suggestions,
            "didYouMean": suggestions[0] if suggestions else None,
        }

    def suggest(self, name: str, *, limit: int = 3, cutoff: float = 0.6) -> list[str]:
        """Closest registered tool names to ``name``."""
        return difflib.get_close_matches(name.strip(), self.list_names(), n=limit, cutoff=cutoff)

    def enable(self, name: str) -> bool:
        registration = self._tools.get(name)
        if registration is None:
            return False
        registration.enabled = True
        return True

    def disable(self, name: str) -> bool:
        registration = self._tools.get(name)
        if registration is None:
            return False
        registration.enabled = False
        return True

    def clear(self) -> None:
        """Remove all registered tools."""
        self._tools.clear()

    def __len__(self) -> int:
        """Number of registered tools (including disabled)."""
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
