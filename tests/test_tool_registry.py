"""Tests for the tool registry."""

from __future__ import annotations

import pytest

from aicore.ai.tools.registry import DuplicateToolError, ToolNotFoundError, ToolRegistry
from aicore.ai.tools.types import ToolCategory, ToolDescriptor, ToolSpec


def _tool(name: str, description: str = "", handler=None) -> ToolDescriptor:
    return ToolDescriptor(
        ToolSpec(name=name, description=description or name, category=ToolCategory.INSPECTION),
        handler or (lambda args: name),
    )


@pytest.fixture
def registry() -> ToolRegistry:
    return ToolRegistry([_tool("browser_click"), _tool("browser_snapshot"), _tool("browser_fill")])


class TestRegistration:
    def test_duplicate_names_are_rejected(self, registry: ToolRegistry) -> None:
        with pytest.raises(DuplicateToolError, match="already registered"):
            registry.register(_tool("browser_click"))

    def test_override_replaces(self, registry: ToolRegistry) -> None:
        replacement = _tool("browser_click", "new")
        registry.register(replacement, allow_override=True)

        assert registry.get("browser_click") is replacement
        assert len(registry) == 3

    def test_from_tools_accepts_mapping(self) -> None:
        tools = {"a": _tool("a"), "b": _tool("b")}

        registry = ToolRegistry.from_tools(tools)

        assert registry.list_names() == ["a", "b"]

    def test_from_tools_empty(self) -> None:
        assert len(ToolRegistry.from_tools(None)) == 0

    def test_register_function(self) -> None:
        registry = ToolRegistry()
        registry.register_function(ToolSpec(name="greet", description="Greet"), lambda args: f"Hello, {args['name']}!")

        assert registry.has("greet")

    @pytest.mark.asyncio
    async def test_descriptor_executes_sync_and_async(self) -> None:
        async def async_handler(args):
            return args["x"] * 2

        sync_tool = _tool("sync", handler=lambda args: args["x"] + 1)
        async_tool = _tool("async", handler=async_handler)

        assert await sync_tool.execute({"x": 1}) == 2
        assert await async_tool.execute({"x": 4}) == 8


class TestLookup:
    def test_disabled_tools_are_invisible(self, registry: ToolRegistry) -> None:
        registry.disable("browser_fill")

        assert registry.get("browser_fill") is None
        assert "browser_fill" not in registry.list_names()
        assert "browser_fill" in registry
        assert registry.enable("browser_fill")
        assert registry.has("browser_fill")

    def test_get_required_suggests(self, registry: ToolRegistry) -> None:
        with pytest.raises(ToolNotFoundError) as info:
            registry.get_required("browser_clik")

        assert info.value.suggestions[0] == "browser_click"
        assert "did you mean 'browser_click'" in str(info.value)

    def test_describe_known_tool(self, registry: ToolRegistry) -> None:
        described = registry.describe("browser_snapshot")

        assert described["name"] == "browser_snapshot"
        assert described["category"] == ToolCategory.INSPECTION

    def test_describe_unknown_tool(self, registry: ToolRegistry) -> None:
        described = registry.describe("browser_snapshto")

        assert described["error"] == "Unknown tool 'browser_snapshto'"
        assert described["didYouMean"] == "browser_snapshot"

    def test_select_uses_presets(self, registry: ToolRegistry) -> None:
        assert list(registry.select("minimal")) == ["browser_snapshot"]

    def test_openai_rendering(self, registry: ToolRegistry) -> None:
        rendered = registry.get_openai_tools(filter_names=["browser_fill"])

        assert rendered == [
            {
                "type": "function",
                "function": {
                    "name": "browser_fill",
                    "description": "browser_fill",
                    "parameters": {"type": "object", "properties": {}},
                },
            }
        ]
