"""Browser-tool plugin: exposes page automation tools to the model."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from ...services.bridge_types import Command, SessionState
from ..prompts import with_browser_prompt
from ..tools.browser_tools import DEFAULT_MAX_SNAPSHOT_SIZE, BrowserCallback, build_browser_tools
from ..tools.presets import DEFAULT_PRESET, ToolSelector, select_tools
from .engine import merge_tools
from .types import Plugin, PluginEnforce, RequestContext, RequestParams

if TYPE_CHECKING:  # pragma: no cover - import only for annotations
    from ...services.bridge_router import HostRouter
    from ...services.settings import Settings

__all__ = ["BrowserPluginConfig", "browser_plugin", "BROWSER_PLUGIN_NAME"]

LOGGER = logging.getLogger(__name__)

BROWSER_PLUGIN_NAME = "browser-tools"


@dataclass(slots=True)
class BrowserPluginConfig:
    """Options of the browser-tool plugin.

    Attributes:
        enabled: When False the plugin leaves params untouched.
        toolset: Preset name or explicit list of tool names.
        max_snapshot_size: Snapshot payloads above this many JSON characters
            are truncated.
        inject_system_prompt: Append the browser usage prompt to ``system``.
        enable_tracking: Clear the page console after each outer request.
        enable_screencast: Reserved toggle carried from settings.
        context_id: Pin the tools to one page context instead of the active one.
        command_timeout: Per-command timeout in seconds.
        on_tool_call: Called with ``(tool_name, arguments)`` before a command.
        on_tool_result: Called with ``(tool_name, result)`` after success.
        on_error: Called with ``(tool_name, exception)`` on failure.
    """

    enabled: bool = True
    toolset: ToolSelector = DEFAULT_PRESET
    max_snapshot_size: int = DEFAULT_MAX_SNAPSHOT_SIZE
    inject_system_prompt: bool = True
    enable_tracking: bool = False
    enable_screencast: bool = False
    context_id: str | None = None
    command_timeout: float | None = 30.0
    on_tool_call: BrowserCallback | None = None
    on_tool_result: BrowserCallback | None = None
    on_error: BrowserCallback | None = None

    @classmethod
    def from_settings(cls, settings: "Settings", assistant_id: str | None = None, **overrides: Any) -> "BrowserPluginConfig":
        """Build the config from stored settings, resolving per-assistant overrides."""

        section = settings.browser_use
        effective = settings.browser_use_for(assistant_id)
        config = cls(
            enabled=effective.enabled,
            toolset=effective.toolset,
            max_snapshot_size=section.max_snapshot_size,
            inject_system_prompt=section.inject_system_prompt,
            enable_tracking=section.enable_tracking,
            enable_screencast=section.enable_screencast,
            command_timeout=section.command_timeout,
        )
        return replace(config, **overrides) if overrides else config


def browser_plugin(router: "HostRouter", config: BrowserPluginConfig | None = None, **overrides: Any) -> Plugin:
    """Create the ``browser-tools`` plugin.

    The plugin never creates or closes automation sessions; it only reads the
    router's existing session into the request context. Sessions start lazily
    on the first browser command.
    """

    config = config or BrowserPluginConfig()
    if overrides:
        config = replace(config, **overrides)

    all_tools = build_browser_tools(
        router,
        context_id=config.context_id,
        max_snapshot_size=config.max_snapshot_size,
        command_timeout=config.command_timeout,
        on_tool_call=config.on_tool_call,
        on_tool_result=config.on_tool_result,
        on_error=config.on_error,
    )
    selected = select_tools(all_tools, config.toolset)
    LOGGER.debug("Browser plugin exposes %s tool(s): %s", len(selected), list(selected))

    def configure_context(context: RequestContext) -> None:
        context.session = router.get_session(config.context_id)

    def transform_params(params: RequestParams, context: RequestContext) -> RequestParams:
        if not config.enabled:
            return params
        params["tools"] = merge_tools(params.get("tools"), selected)
        if config.inject_system_prompt:
            params["system"] = with_browser_prompt(params.get("system"))
        return params

    async def on_request_end(context: RequestContext, result: Any) -> None:
        if not (config.enabled and config.enable_tracking) or context.depth > 0:
            return
        session = router.get_session(config.context_id)
        if session is None or session.state is not SessionState.READY:
            return
        response = await router.send(
            Command.create("console", clear=True),
            config.context_id,
            timeout=config.command_timeout,
        )
        if not response.success:
            LOGGER.debug("Could not clear page console: %s", response.error)

    return Plugin(
        name=BROWSER_PLUGIN_NAME,
        enforce=PluginEnforce.PRE,
        configure_context=configure_context,
        transform_params=transform_params,
        on_request_end=on_request_end,
    )
