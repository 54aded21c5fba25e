"""Plugin and request-context types for the request pipeline."""

from __future__ import annotations

import copy
import enum
import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, AsyncIterator, Awaitable, Callable, Mapping, MutableMapping, Union

if TYPE_CHECKING:  # pragma: no cover - import only for annotations
    from ...services.bridge_session import AutomationSession

__all__ = [
    "Plugin",
    "PluginEnforce",
    "RequestContext",
    "RequestParams",
    "define_plugin",
]

RequestParams = MutableMapping[str, Any]

_MaybeAwaitable = Union[Any, Awaitable[Any]]


class PluginEnforce(str, enum.Enum):
    """Ordering tag of a plugin; untagged plugins run between the two."""

    PRE = "pre"
    POST = "post"


# -----------------------------------------------------------------------------
# Request Context
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class RequestContext:
    """Per-call state threaded through every pipeline stage.

    Attributes:
        provider_id: Identifier of the provider serving the call.
        model: Model requested by the caller, if any.
        original_params: Deep copy of the caller's params, never mutated.
        params: Final transformed params once the transform stage completes.
        metadata: Free-form bag shared between plugins.
        started_at: ``time.monotonic()`` at context creation.
        request_id: Unique id of this call.
        depth: Recursion depth, 0 for the outer call.
        parent_request_id: Request id of the call that recursed into this one.
        session: Automation session of the active page, when one exists.
    """

    provider_id: str
    model: str | None = None
    original_params: Mapping[str, Any] = field(default_factory=dict)
    params: RequestParams = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    started_at: float = field(default_factory=time.monotonic)
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    depth: int = 0
    parent_request_id: str | None = None
    session: "AutomationSession | None" = None
    recurse: Callable[[RequestParams, "RequestContext"], Awaitable[Any]] | None = field(default=None, repr=False)

    @classmethod
    def create(
        cls,
        provider_id: str,
        params: Mapping[str, Any],
        *,
        parent: "RequestContext | None" = None,
        recurse: Callable[[RequestParams, "RequestContext"], Awaitable[Any]] | None = None,
    ) -> "RequestContext":
        model = params.get("model")
        try:
            original = copy.deepcopy(dict(params))
        except (TypeError, copy.Error):
            # Params holding uncopyable objects (locks, sockets) keep a shallow copy.
            original = dict(params)
        context = cls(
            provider_id=provider_id,
            model=model if isinstance(model, str) else None,
            original_params=original,
            recurse=recurse,
        )
        if parent is not None:
            context.depth = parent.depth + 1
            context.parent_request_id = parent.request_id
            context.metadata = dict(parent.metadata)
            context.session = parent.session
        return context

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    async def recursive_call(self, params: RequestParams) -> Any:
        """Run the whole pipeline again with ``params`` as a child of this call."""

        if self.recurse is None:
            raise RuntimeError("Request context is not attached to a pipeline")
        return await self.recurse(params, self)


# -----------------------------------------------------------------------------
# Plugin
# -----------------------------------------------------------------------------

ConfigureContextHook = Callable[[RequestContext], _MaybeAwaitable]
TransformParamsHook = Callable[[RequestParams, RequestContext], _MaybeAwaitable]
TransformResultHook = Callable[[Any, RequestContext], _MaybeAwaitable]
TransformStreamHook = Callable[[AsyncIterator[Any], RequestContext], AsyncIterator[Any]]
RequestStartHook = Callable[[RequestContext], _MaybeAwaitable]
RequestEndHook = Callable[[RequestContext, Any], _MaybeAwaitable]
ErrorHook = Callable[[RequestContext, BaseException], _MaybeAwaitable]


@dataclass(slots=True)
class Plugin:
    """Named unit of request-time behaviour.

    Every hook is optional and may be a plain function or a coroutine
    function. Sequential hooks (``configure_context``, ``transform_*``) run in
    pipeline order; lifecycle hooks (``on_request_start``, ``on_request_end``,
    ``on_error``) run concurrently and cannot affect the result.
    """

    name: str
    enforce: PluginEnforce | None = None
    configure_context: ConfigureContextHook | None = None
    transform_params: TransformParamsHook | None = None
    transform_result: TransformResultHook | None = None
    transform_stream: TransformStreamHook | None = None
    on_request_start: RequestStartHook | None = None
    on_request_end: RequestEndHook | None = None
    on_error: ErrorHook | None = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Plugin name must be a non-empty string")
        if self.enforce is not None and not isinstance(self.enforce, PluginEnforce):
            self.enforce = PluginEnforce(self.enforce)


def define_plugin(name: str, *, enforce: PluginEnforce | str | None = None, **hooks: Any) -> Plugin:
    """Build a :class:`Plugin`; ``enforce`` accepts ``"pre"`` and ``"post"``."""

    return Plugin(name=name, enforce=PluginEnforce(enforce) if enforce else None, **hooks)
