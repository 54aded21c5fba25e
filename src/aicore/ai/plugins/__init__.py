"""Request pipeline: plugins, the engine that runs them and built-in plugins."""

from .browser import BROWSER_PLUGIN_NAME, BrowserPluginConfig, browser_plugin
from .engine import PipelineError, PluginEngine, merge_tools, order_plugins
from .provider import OpenAIProvider, Provider
from .tool_loop import TOOL_LOOP_PLUGIN_NAME, tool_loop_plugin
from .types import Plugin, PluginEnforce, RequestContext, define_plugin

__all__ = [
    "BROWSER_PLUGIN_NAME",
    "BrowserPluginConfig",
    "OpenAIProvider",
    "PipelineError",
    "Plugin",
    "PluginEngine",
    "PluginEnforce",
    "Provider",
    "RequestContext",
    "TOOL_LOOP_PLUGIN_NAME",
    "browser_plugin",
    "define_plugin",
    "merge_tools",
    "order_plugins",
    "tool_loop_plugin",
]
