"""Tests for the browser-tool plugin."""

from __future__ import annotations

import pytest

from aicore.ai.plugins.browser import BROWSER_PLUGIN_NAME, BrowserPluginConfig, browser_plugin
from aicore.ai.plugins.engine import PluginEngine
from aicore.ai.plugins.types import PluginEnforce, RequestContext, define_plugin
from aicore.ai.prompts import BROWSER_SYSTEM_PROMPT
from aicore.ai.tools.browser_tools import build_browser_tools
from aicore.ai.tools.presets import TOOL_PRESETS
from aicore.services.bridge_router import HostRouter
from aicore.services.bridge_types import SessionState
from aicore.services.settings import AssistantBrowserUse, BrowserUseSettings, Settings
from aicore.services.transport import InMemoryContextHost
from tests.helpers import ScriptedProvider


class TestParams:
    @pytest.mark.asyncio
    async def test_tools_and_prompt_are_added(self, router: HostRouter) -> None:
        provider = ScriptedProvider()
        engine = PluginEngine(provider, [browser_plugin(router, toolset="minimal")])

        await engine.run({"messages": [], "system": "Be brief."})
        params = provider.calls[0]

        catalog = build_browser_tools(router)
        assert list(params["tools"]) == [name for name in catalog if name in TOOL_PRESETS["minimal"]]
        assert params["system"] == f"Be brief.\n\n{BROWSER_SYSTEM_PROMPT}"

    @pytest.mark.asyncio
    async def test_prompt_is_not_duplicated(self, router: HostRouter) -> None:
        provider = ScriptedProvider()
        engine = PluginEngine(provider, [browser_plugin(router)])

        await engine.run({"system": BROWSER_SYSTEM_PROMPT})

        assert provider.calls[0]["system"] == BROWSER_SYSTEM_PROMPT

    @pytest.mark.asyncio
    async def test_existing_tools_keep_their_place(self, router: HostRouter) -> None:
        provider = ScriptedProvider()
        custom = {"type": "function", "function": {"name": "lookup", "parameters": {}}}
        engine = PluginEngine(provider, [browser_plugin(router, toolset=["browser_click"])])

        await engine.run({"tools": [custom]})

        tools = provider.calls[0]["tools"]
        assert tools[0] is custom
        assert tools[1].name == "browser_click"

    @pytest.mark.asyncio
    async def test_disabled_plugin_leaves_params_alone(self, router: HostRouter) -> None:
        provider = ScriptedProvider()
        engine = PluginEngine(provider, [browser_plugin(router, enabled=False)])

        await engine.run({"messages": [], "system": "Plain."})

        assert provider.calls[0] == {"messages": [], "system": "Plain."}

    @pytest.mark.asyncio
    async def test_prompt_injection_can_be_turned_off(self, router: HostRouter) -> None:
        provider = ScriptedProvider()
        engine = PluginEngine(provider, [browser_plugin(router, inject_system_prompt=False)])

        await engine.run({})

        assert "system" not in provider.calls[0]
        assert "browser_snapshot" in provider.calls[0]["tools"]

    def test_plugin_runs_early(self, router: HostRouter) -> None:
        plugin = browser_plugin(router)

        assert plugin.name == BROWSER_PLUGIN_NAME
        assert plugin.enforce is PluginEnforce.PRE


class TestSessionContext:
    @pytest.mark.asyncio
    async def test_no_session_before_first_command(self, router: HostRouter) -> None:
        provider = ScriptedProvider()
        engine = PluginEngine(provider, [browser_plugin(router)])

        await engine.run({})

        assert provider.contexts[0].session is None
        assert router.sessions == {}

    @pytest.mark.asyncio
    async def test_existing_session_is_exposed(self, router: HostRouter) -> None:
        await router.launch()
        provider = ScriptedProvider()
        engine = PluginEngine(provider, [browser_plugin(router)])

        await engine.run({})

        assert provider.contexts[0].session is router.get_session()


class TestTracking:
    @pytest.mark.asyncio
    async def test_console_cleared_after_outer_request(self, host: InMemoryContextHost, router: HostRouter) -> None:
        await router.launch()
        document = host.get("page-1").document
        document.log("log", "hello")
        engine = PluginEngine(ScriptedProvider(), [browser_plugin(router, enable_tracking=True)])

        await engine.run({})

        assert document.console == []

    @pytest.mark.asyncio
    async def test_nested_requests_do_not_clear(self, host: InMemoryContextHost, router: HostRouter) -> None:
        await router.launch()
        document = host.get("page-1").document
        seen: list[int] = []

        async def recurse(result, context: RequestContext):
            if context.depth == 0:
                await context.recursive_call({})
            else:
                seen.append(len(document.console))
            return result

        document.log("log", "hello")
        engine = PluginEngine(
            ScriptedProvider(),
            [browser_plugin(router, enable_tracking=True), define_plugin("recurse", transform_result=recurse)],
        )

        await engine.run({})

        assert seen == [1]
        assert document.console == []

    @pytest.mark.asyncio
    async def test_tracking_off_keeps_console(self, host: InMemoryContextHost, router: HostRouter) -> None:
        await router.launch()
        document = host.get("page-1").document
        document.log("log", "hello")
        engine = PluginEngine(ScriptedProvider(), [browser_plugin(router)])

        await engine.run({})

        assert len(document.console) == 1

    @pytest.mark.asyncio
    async def test_tracking_without_session_is_a_no_op(self) -> None:
        router = HostRouter(InMemoryContextHost())
        engine = PluginEngine(ScriptedProvider(), [browser_plugin(router, enable_tracking=True)])

        result = await engine.run({})

        assert result.text == "done"
        assert router.get_session() is None

    @pytest.mark.asyncio
    async def test_closed_session_is_left_alone(self, host: InMemoryContextHost, router: HostRouter) -> None:
        await router.launch()
        await router.close()
        host.get("page-1").document.log("log", "kept")
        engine = PluginEngine(ScriptedProvider(), [browser_plugin(router, enable_tracking=True)])

        await engine.run({})

        assert router.get_session().state is SessionState.CLOSED
        assert len(host.get("page-1").document.console) == 1


class TestFromSettings:
    def test_global_section(self) -> None:
        settings = Settings(
            browser_use=BrowserUseSettings(enabled=True, toolset="full", max_snapshot_size=1000, enable_tracking=True)
        )

        config = BrowserPluginConfig.from_settings(settings)

        assert config.enabled is True
        assert config.toolset == "full"
        assert config.max_snapshot_size == 1000
        assert config.enable_tracking is True

    def test_assistant_override(self) -> None:
        settings = Settings(
            browser_use=BrowserUseSettings(enabled=False, toolset="standard"),
            assistants={"helper": AssistantBrowserUse(enabled=True, toolset="minimal")},
        )

        config = BrowserPluginConfig.from_settings(settings, "helper")
        other = BrowserPluginConfig.from_settings(settings, "stranger")

        assert (config.enabled, config.toolset) == (True, "minimal")
        assert (other.enabled, other.toolset) == (False, "standard")

    def test_overrides_win(self) -> None:
        config = BrowserPluginConfig.from_settings(Settings(), context_id="page-9")

        assert config.context_id == "page-9"
        assert config.enabled is False
