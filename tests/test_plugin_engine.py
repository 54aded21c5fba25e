"""Tests for the plugin engine request pipeline."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any

import pytest

from aicore.ai.plugins.engine import PipelineError, PluginEngine, merge_tools, order_plugins
from aicore.ai.plugins.types import Plugin, PluginEnforce, RequestContext, define_plugin
from aicore.ai.tools.types import ToolDescriptor, ToolSpec
from aicore.ai.types import ModelResponse
from tests.helpers import ScriptedProvider


def _tool(name: str) -> ToolDescriptor:
    return ToolDescriptor(ToolSpec(name=name, description=name), lambda args: name)


def _recording_plugin(name: str, log: list[str], enforce: str | None = None) -> Plugin:
    def configure_context(context: RequestContext) -> None:
        log.append(f"{name}:configure")

    def transform_params(params, context):
        log.append(f"{name}:params")
        return params

    async def transform_result(result, context):
        log.append(f"{name}:result")
        return result

    return define_plugin(
        name,
        enforce=enforce,
        configure_context=configure_context,
        transform_params=transform_params,
        transform_result=transform_result,
    )


# ---------------------------------------------------------------------------
# Tests: plugin definitions and ordering
# ---------------------------------------------------------------------------


class TestPluginDefinition:
    def test_name_is_required(self) -> None:
        with pytest.raises(ValueError):
            define_plugin("  ")

    def test_enforce_strings_are_coerced(self) -> None:
        assert define_plugin("a", enforce="pre").enforce is PluginEnforce.PRE
        assert Plugin(name="b", enforce="post").enforce is PluginEnforce.POST  # type: ignore[arg-type]

    def test_invalid_enforce(self) -> None:
        with pytest.raises(ValueError):
            define_plugin("a", enforce="middle")

    def test_order_is_stable_within_groups(self) -> None:
        plugins = [
            define_plugin("post-1", enforce="post"),
            define_plugin("normal-1"),
            define_plugin("pre-1", enforce="pre"),
            define_plugin("normal-2"),
            define_plugin("pre-2", enforce="pre"),
        ]

        assert [plugin.name for plugin in order_plugins(plugins)] == ["pre-1", "pre-2", "normal-1", "normal-2", "post-1"]

    def test_duplicate_registration(self) -> None:
        engine = PluginEngine(ScriptedProvider(), [define_plugin("a")])

        with pytest.raises(ValueError, match="already registered"):
            engine.register(define_plugin("a"))


class TestMergeTools:
    def test_mapping_merge_appends_and_replaces(self) -> None:
        first, replacement = _tool("a"), _tool("a")

        merged = merge_tools({"a": first, "b": _tool("b")}, {"a": replacement, "c": _tool("c")})

        assert list(merged) == ["a", "b", "c"]
        assert merged["a"] is replacement

    def test_list_merge(self) -> None:
        raw = {"type": "function", "function": {"name": "raw"}}

        merged = merge_tools([raw], {"x": _tool("x")})

        assert [getattr(tool, "name", None) or tool["function"]["name"] for tool in merged] == ["raw", "x"]

    def test_empty_existing_takes_added_shape(self) -> None:
        assert isinstance(merge_tools(None, {"x": _tool("x")}), dict)
        assert isinstance(merge_tools([], [_tool("x")]), list)
        assert merge_tools(None, None) == {}


# ---------------------------------------------------------------------------
# Tests: pipeline
# ---------------------------------------------------------------------------


class TestPipeline:
    @pytest.mark.asyncio
    async def test_stages_follow_plugin_order(self) -> None:
        log: list[str] = []
        engine = PluginEngine(
            ScriptedProvider(),
            [
                _recording_plugin("late", log, "post"),
                _recording_plugin("mid", log),
                _recording_plugin("early", log, "pre"),
            ],
        )

        await engine.run({"messages": []})

        assert log == [
            "early:configure",
            "mid:configure",
            "late:configure",
            "early:params",
            "mid:params",
            "late:params",
            "early:result",
            "mid:result",
            "late:result",
        ]

    @pytest.mark.asyncio
    async def test_tools_from_pre_plugin_come_first(self) -> None:
        """A pre plugin's tool lands before a normal plugin's tool."""
        provider = ScriptedProvider()

        def add(name: str):
            def transform_params(params, context):
                params["tools"] = merge_tools(params.get("tools"), {name: _tool(name)})
                return params

            return transform_params

        engine = PluginEngine(
            provider,
            [define_plugin("p2", transform_params=add("y")), define_plugin("p1", enforce="pre", transform_params=add("x"))],
        )

        await engine.run({"messages": []})

        assert list(provider.calls[0]["tools"]) == ["x", "y"]

    @pytest.mark.asyncio
    async def test_none_from_transform_keeps_previous_value(self) -> None:
        provider = ScriptedProvider(ModelResponse(text="hello"))
        engine = PluginEngine(
            provider,
            [
                define_plugin("noop", transform_params=lambda params, context: None, transform_result=lambda r, c: None),
            ],
        )

        result = await engine.run({"model": "m", "messages": []})

        assert provider.calls[0]["model"] == "m"
        assert result.text == "hello"

    @pytest.mark.asyncio
    async def test_context_snapshots_params(self) -> None:
        provider = ScriptedProvider()

        def transform_params(params, context):
            params["temperature"] = 0.9
            return params

        engine = PluginEngine(provider, [define_plugin("t", transform_params=transform_params)])
        original = {"model": "gpt", "messages": [{"role": "user", "content": "hi"}]}

        await engine.run(original)
        context = provider.contexts[0]

        assert context.original_params == original
        assert context.params["temperature"] == 0.9
        assert "temperature" not in original
        assert context.model == "gpt"
        assert context.provider_id == "scripted"
        assert context.depth == 0

    @pytest.mark.asyncio
    async def test_result_transform_replaces_result(self) -> None:
        engine = PluginEngine(
            ScriptedProvider(ModelResponse(text="raw")),
            [define_plugin("upper", transform_result=lambda result, context: result.with_updates(text=result.text.upper()))],
        )

        assert (await engine.run({})).text == "RAW"


class TestFailures:
    @pytest.mark.asyncio
    async def test_params_failure_aborts_before_provider(self) -> None:
        provider = ScriptedProvider()
        errors: list[BaseException] = []

        def boom(params, context):
            raise KeyError("missing")

        engine = PluginEngine(
            provider,
            [
                define_plugin("broken", transform_params=boom),
                define_plugin("observer", on_error=lambda context, exc: errors.append(exc)),
            ],
        )

        with pytest.raises(PipelineError) as info:
            await engine.run({})

        assert info.value.stage == "transform_params"
        assert info.value.plugin == "broken"
        assert isinstance(info.value.cause, KeyError)
        assert provider.calls == []
        assert errors == [info.value]

    @pytest.mark.asyncio
    async def test_provider_failure_fires_on_error(self) -> None:
        errors: list[BaseException] = []
        ended: list[Any] = []
        engine = PluginEngine(
            ScriptedProvider(ConnectionError("offline")),
            [
                define_plugin(
                    "observer",
                    on_error=lambda context, exc: errors.append(exc),
                    on_request_end=lambda context, result: ended.append(result),
                )
            ],
        )

        with pytest.raises(PipelineError, match="Pipeline stage 'provider' failed: offline"):
            await engine.run({})

        assert errors[0].stage == "provider"
        assert errors[0].plugin is None
        assert ended == []

    @pytest.mark.asyncio
    async def test_result_failure(self) -> None:
        def boom(result, context):
            raise ValueError("bad result")

        engine = PluginEngine(ScriptedProvider(), [define_plugin("r", transform_result=boom)])

        with pytest.raises(PipelineError) as info:
            await engine.run({})

        assert info.value.stage == "transform_result"
        assert str(info.value) == "Pipeline stage 'transform_result' failed in plugin 'r': bad result"

    @pytest.mark.asyncio
    async def test_cancellation_fires_on_error_and_propagates(self) -> None:
        started = asyncio.Event()
        errors: list[BaseException] = []
        ended: list[Any] = []

        class HangingProvider(ScriptedProvider):
            async def generate(self, params, context):
                started.set()
                await asyncio.Event().wait()

        engine = PluginEngine(
            HangingProvider(),
            [
                define_plugin(
                    "observer",
                    on_error=lambda context, exc: errors.append(exc),
                    on_request_end=lambda context, result: ended.append(result),
                )
            ],
        )

        task = asyncio.create_task(engine.run({}))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(errors) == 1
        assert isinstance(errors[0], PipelineError)
        assert errors[0].stage == "cancelled"
        assert str(errors[0]) == "Request was cancelled"
        assert ended == []

    @pytest.mark.asyncio
    async def test_lifecycle_hook_failures_are_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """Failing start/end/error hooks never change the outcome."""

        def explode(*args):
            raise RuntimeError("observer crashed")

        seen: list[str] = []
        engine = PluginEngine(
            ScriptedProvider(ModelResponse(text="ok")),
            [
                define_plugin("noisy", on_request_start=explode, on_request_end=explode),
                define_plugin("quiet", on_request_end=lambda context, result: seen.append(result.text)),
            ],
        )

        with caplog.at_level(logging.WARNING):
            result = await engine.run({})

        assert result.text == "ok"
        assert seen == ["ok"]
        assert "Plugin noisy on_request_start hook failed" in caplog.text
        assert "Plugin noisy on_request_end hook failed" in caplog.text


# ---------------------------------------------------------------------------
# Tests: recursion
# ---------------------------------------------------------------------------


class TestRecursion:
    @pytest.mark.asyncio
    async def test_recursive_call_runs_child_pipeline(self) -> None:
        provider = ScriptedProvider(ModelResponse(text="outer"), ModelResponse(text="inner"))
        depths: list[int] = []

        async def recurse_once(result, context):
            depths.append(context.depth)
            if context.depth == 0:
                child = await context.recursive_call({"messages": [], "marker": "child"})
                return result.with_updates(text=f"{result.text}+{child.text}")
            return result

        engine = PluginEngine(provider, [define_plugin("recurse", transform_result=recurse_once)])

        result = await engine.run({"messages": []})

        assert result.text == "outer+inner"
        assert depths == [0, 1]
        parent, child = provider.contexts
        assert child.parent_request_id == parent.request_id
        assert provider.calls[1]["marker"] == "child"

    @pytest.mark.asyncio
    async def test_recursion_limit(self) -> None:
        async def forever(result, context):
            return await context.recursive_call({})

        engine = PluginEngine(ScriptedProvider(), [define_plugin("loop", transform_result=forever)], max_recursion_depth=2)

        with pytest.raises(PipelineError) as info:
            await engine.run({})

        assert info.value.stage == "recursion"
        assert str(info.value) == "Maximum recursion depth 2 exceeded"

    @pytest.mark.asyncio
    async def test_unattached_context(self) -> None:
        context = RequestContext.create("p", {})

        with pytest.raises(RuntimeError, match="not attached"):
            await context.recursive_call({})

    def test_uncopyable_params_fall_back_to_shallow_copy(self) -> None:
        lock = threading.Lock()
        context = RequestContext.create("p", {"lock": lock})

        assert context.original_params["lock"] is lock


# ---------------------------------------------------------------------------
# Tests: streaming
# ---------------------------------------------------------------------------


class TestStream:
    @pytest.mark.asyncio
    async def test_stream_transforms_events(self) -> None:
        ended: list[Any] = []

        async def double(events, context):
            async for event in events:
                yield event * 2

        engine = PluginEngine(
            ScriptedProvider(stream_events=(1, 2, 3)),
            [define_plugin("double", transform_stream=double, on_request_end=lambda c, r: ended.append(r))],
        )

        events = [event async for event in engine.stream({})]

        assert events == [2, 4, 6]
        assert ended == [None]

    @pytest.mark.asyncio
    async def test_stream_failure_is_wrapped(self) -> None:
        errors: list[BaseException] = []
        engine = PluginEngine(
            ScriptedProvider(stream_events=(1, RuntimeError("dropped"))),
            [define_plugin("observer", on_error=lambda c, exc: errors.append(exc))],
        )

        received: list[Any] = []
        with pytest.raises(PipelineError) as info:
            async for event in engine.stream({}):
                received.append(event)

        assert received == [1]
        assert info.value.stage == "stream"
        assert errors == [info.value]
