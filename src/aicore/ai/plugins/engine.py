"""Plugin engine: the request pipeline around a single provider call.

Stages for one call, in order:

1. build the :class:`RequestContext` and fire ``on_request_start`` hooks;
2. ``configure_context`` on every plugin;
3. fold ``transform_params`` across plugins;
4. call the provider with the final params;
5. fold ``transform_result`` (or ``transform_stream``) across plugins;
6. fire ``on_request_end`` or ``on_error`` hooks.

A cancelled request fires ``on_error`` with a ``cancelled`` stage error and
then lets the cancellation propagate.

Sequential stages follow plugin order strictly: ``pre`` plugins, then
untagged ones, then ``post`` plugins, each group in registration order.
Lifecycle hooks run concurrently; their failures are logged and dropped.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, AsyncIterator, Callable, Iterable, Mapping, Sequence

from ..tools.presets import tool_name_of
from .provider import Provider
from .types import Plugin, PluginEnforce, RequestContext, RequestParams

__all__ = ["PluginEngine", "PipelineError", "order_plugins", "merge_tools"]

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_RECURSION_DEPTH = 8


class PipelineError(RuntimeError):
    """Raised when a pipeline stage fails.

    Attributes:
        stage: Stage that failed (``configure_context``, ``transform_params``,
            ``provider``, ``transform_result``, ``transform_stream``,
            ``stream``, ``recursion`` or ``cancelled``).
        plugin: Name of the plugin whose hook failed, if any.
        cause: Underlying exception.
    """

    def __init__(
        self,
        stage: str,
        plugin: str | None = None,
        cause: BaseException | None = None,
        message: str | None = None,
    ) -> None:
        self.stage = stage
        self.plugin = plugin
        self.cause = cause
        if message is None:
            where = f" in plugin '{plugin}'" if plugin else ""
            detail = f": {cause}" if cause is not None else ""
            message = f"Pipeline stage '{stage}' failed{where}{detail}"
        super().__init__(message)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def order_plugins(plugins: Iterable[Plugin]) -> list[Plugin]:
    """Stable partition: ``pre`` plugins, then untagged, then ``post``."""

    items = list(plugins)
    pre = [plugin for plugin in items if plugin.enforce is PluginEnforce.PRE]
    normal = [plugin for plugin in items if plugin.enforce is None]
    post = [plugin for plugin in items if plugin.enforce is PluginEnforce.POST]
    return pre + normal + post


def merge_tools(existing: Any, added: Any) -> Any:
    """Merge two tool collections by name.

    Existing tools keep their position, new names are appended, and a
    same-name entry from ``added`` replaces the existing one in place. The
    result is a dict when ``existing`` is a mapping (or empty and ``added``
    is one), otherwise a list.
    """

    merged: dict[str, Any] = {}
    for collection in (existing, added):
        if not collection:
            continue
        if isinstance(collection, Mapping):
            merged.update(collection)
        else:
            for tool in collection:
                merged[tool_name_of(tool)] = tool

    as_mapping = isinstance(existing, Mapping) if existing else isinstance(added, Mapping) or not added
    if as_mapping:
        return merged
    return list(merged.values())


async def _invoke(hook: Callable[..., Any], *args: Any) -> Any:
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


# -----------------------------------------------------------------------------
# Engine
# -----------------------------------------------------------------------------


class PluginEngine:
    """Runs provider calls through an ordered set of plugins."""

    def __init__(
        self,
        provider: Provider,
        plugins: Sequence[Plugin] = (),
        *,
        provider_id: str | None = None,
        max_recursion_depth: int = DEFAULT_MAX_RECURSION_DEPTH,
    ) -> None:
        self._provider = provider
        self._provider_id = provider_id or getattr(provider, "provider_id", None) or type(provider).__name__
        self._max_recursion_depth = max(0, max_recursion_depth)
        self._plugins: list[Plugin] = []
        for plugin in plugins:
            self.register(plugin)

    @property
    def provider(self) -> Provider:
        return self._provider

    @property
    def provider_id(self) -> str:
        return self._provider_id

    @property
    def plugins(self) -> tuple[Plugin, ...]:
        """Plugins in pipeline order."""
        return tuple(order_plugins(self._plugins))

    def register(self, plugin: Plugin) -> Plugin:
        if any(existing.name == plugin.name for existing in self._plugins):
            raise ValueError(f"Plugin '{plugin.name}' is already registered")
        self._plugins.append(plugin)
        LOGGER.debug("Registered plugin %s (enforce=%s)", plugin.name, plugin.enforce)
        return plugin

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def run(self, params: Mapping[str, Any]) -> Any:
        """Run one provider call through the pipeline.

        Raises:
            PipelineError: when any stage fails; ``on_error`` hooks have
                already fired by then.
        """
        return await self._execute(params, parent=None)

    async def stream(self, params: Mapping[str, Any]) -> AsyncIterator[Any]:
        """Stream provider events through every ``transform_stream`` hook."""

        plugins = self.plugins
        context = self._new_context(params, parent=None)
        await self._fire(plugins, "on_request_start", context)
        try:
            final_params = await self._prepare(plugins, params, context)
            try:
                events: AsyncIterator[Any] = self._provider.stream(final_params, context)
            except Exception as exc:
                raise PipelineError("provider", None, exc) from exc
            for plugin in plugins:
                if plugin.transform_stream is None:
                    continue
                try:
                    events = plugin.transform_stream(events, context)
                except Exception as exc:
                    raise PipelineError("transform_stream", plugin.name, exc) from exc
        except PipelineError as exc:
            await self._fire(plugins, "on_error", context, exc)
            raise
        except asyncio.CancelledError:
            await self._cancelled(plugins, context)
            raise

        try:
            async for event in events:
                yield event
        except PipelineError as exc:
            await self._fire(plugins, "on_error", context, exc)
            raise
        except asyncio.CancelledError:
            await self._cancelled(plugins, context)
            raise
        except Exception as exc:
            error = PipelineError("stream", None, exc)
            await self._fire(plugins, "on_error", context, error)
            raise error from exc
        await self._fire(plugins, "on_request_end", context, None)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    async def _execute(self, params: Mapping[str, Any], parent: RequestContext | None) -> Any:
        plugins = self.plugins
        context = self._new_context(params, parent=parent)
        LOGGER.debug(
            "Pipeline %s start (provider=%s, depth=%s, plugins=%s)",
            context.request_id,
            self._provider_id,
            context.depth,
            [plugin.name for plugin in plugins],
        )
        await self._fire(plugins, "on_request_start", context)
        try:
            final_params = await self._prepare(plugins, params, context)
            try:
                result = await self._provider.generate(final_params, context)
            except Exception as exc:
                raise PipelineError("provider", None, exc) from exc
            for plugin in plugins:
                if plugin.transform_result is None:
                    continue
                transformed = await self._stage("transform_result", plugin, plugin.transform_result, result, context)
                if transformed is not None:
                    result = transformed
        except PipelineError as exc:
            LOGGER.warning("Pipeline %s failed at %s: %s", context.request_id, exc.stage, exc)
            await self._fire(plugins, "on_error", context, exc)
            raise
        except asyncio.CancelledError:
            await self._cancelled(plugins, context)
            raise

        await self._fire(plugins, "on_request_end", context, result)
        LOGGER.debug("Pipeline %s finished in %.1fms", context.request_id, context.elapsed * 1000)
        return result

    async def _prepare(self, plugins: Sequence[Plugin], params: Mapping[str, Any], context: RequestContext) -> RequestParams:
        for plugin in plugins:
            if plugin.configure_context is not None:
                await self._stage("configure_context", plugin, plugin.configure_context, context)

        current: RequestParams = dict(params)
        for plugin in plugins:
            if plugin.transform_params is None:
                continue
            transformed = await self._stage("transform_params", plugin, plugin.transform_params, current, context)
            if transformed is not None:
                current = transformed
        context.params = current
        return current

    async def _stage(self, stage: str, plugin: Plugin, hook: Callable[..., Any], *args: Any) -> Any:
        try:
            return await _invoke(hook, *args)
        except PipelineError:
            raise
        except Exception as exc:
            raise PipelineError(stage, plugin.name, exc) from exc

    def _new_context(self, params: Mapping[str, Any], *, parent: RequestContext | None) -> RequestContext:
        return RequestContext.create(self._provider_id, params, parent=parent, recurse=self._recurse)

    async def _recurse(self, params: RequestParams, parent: RequestContext) -> Any:
        depth = parent.depth + 1
        if depth > self._max_recursion_depth:
            raise PipelineError(
                "recursion",
                message=f"Maximum recursion depth {self._max_recursion_depth} exceeded",
            )
        return await self._execute(params, parent=parent)

    async def _cancelled(self, plugins: Sequence[Plugin], context: RequestContext) -> None:
        LOGGER.info("Pipeline %s cancelled at depth %s", context.request_id, context.depth)
        await self._fire(plugins, "on_error", context, PipelineError("cancelled", message="Request was cancelled"))

    async def _fire(self, plugins: Sequence[Plugin], hook_name: str, *args: Any) -> None:
        calls = [(plugin, getattr(plugin, hook_name)) for plugin in plugins if getattr(plugin, hook_name) is not None]
        if not calls:
            return
        outcomes = await asyncio.gather(*(_invoke(hook, *args) for _, hook in calls), return_exceptions=True)
        for (plugin, _), outcome in zip(calls, outcomes):
            if isinstance(outcome, Exception):
                LOGGER.warning(
                    "Plugin %s %s hook failed: %s",
                    plugin.name,
                    hook_name,
                    outcome,
                    exc_info=outcome,
                )
