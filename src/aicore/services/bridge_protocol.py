"""Command parsing and envelope codec for the browser bridge.

Commands travel as flat JSON objects (``{"id", "action", ...fields}``). On the
page side they are parsed into one frozen dataclass per action so the executor
can match on a closed set of variants instead of probing loose dictionaries.
The field tables below double as the source for the action help catalog.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from .bridge_types import (
    COMMAND_ENVELOPE,
    RESPONSE_ENVELOPE,
    Command,
    ProtocolError,
    Response,
)

__all__ = [
    "ActionType",
    "FieldSpec",
    "ACTION_FIELDS",
    "ACTION_VARIANTS",
    "parse_action",
    "encode_command_envelope",
    "decode_command_envelope",
    "encode_response_envelope",
    "decode_response_envelope",
    "ensure_json_safe",
]


class ActionType(str, enum.Enum):
    """Closed set of actions understood by the page executor."""

    LAUNCH = "launch"
    CLOSE = "close"
    NAVIGATE = "navigate"
    BACK = "back"
    FORWARD = "forward"
    RELOAD = "reload"
    URL = "url"
    TITLE = "title"
    SNAPSHOT = "snapshot"
    GET_TEXT = "gettext"
    GET_ATTRIBUTE = "getattribute"
    IS_VISIBLE = "isvisible"
    IS_ENABLED = "isenabled"
    COUNT = "count"
    GET_BY_ROLE = "getbyrole"
    GET_BY_TEXT = "getbytext"
    GET_BY_LABEL = "getbylabel"
    GET_BY_PLACEHOLDER = "getbyplaceholder"
    CLICK = "click"
    TYPE = "type"
    FILL = "fill"
    CLEAR = "clear"
    PRESS = "press"
    HOVER = "hover"
    CHECK = "check"
    UNCHECK = "uncheck"
    SELECT = "select"
    SCROLL = "scroll"
    SCROLL_INTO_VIEW = "scrollintoview"
    WAIT = "wait"
    WAIT_FOR_URL = "waitforurl"
    SCREENSHOT = "screenshot"
    HIGHLIGHT = "highlight"
    FRAME = "frame"
    MAIN_FRAME = "mainframe"
    EVALUATE = "evaluate"
    CONSOLE = "console"
    SET_CONTENT = "setcontent"


@dataclass(slots=True, frozen=True)
class FieldSpec:
    """Wire field accepted by an action.

    ``kind`` is one of ``str``, ``bool``, ``int``, ``number`` or ``strings``
    (a string or a list of strings).
    """

    wire: str
    attr: str
    kind: str = "str"
    required: bool = False
    default: Any = None
    choices: tuple[str, ...] = ()
    description: str = ""


_SELECTOR = FieldSpec("selector", "selector", required=True, description="CSS selector or element reference (@ref:N)")
_OPT_SELECTOR = FieldSpec("selector", "selector", description="CSS selector or element reference (@ref:N)")
_SUBACTION_FIELDS = (
    FieldSpec("subaction", "subaction", choices=("click", "fill", "check", "hover"), description="Action to perform on the match"),
    FieldSpec("value", "value", description="Value used by the fill subaction"),
)

ACTION_FIELDS: dict[ActionType, tuple[FieldSpec, ...]] = {
    ActionType.LAUNCH: (),
    ActionType.CLOSE: (),
    ActionType.NAVIGATE: (
        FieldSpec("url", "url", required=True, description="URL to navigate to"),
        FieldSpec("waitUntil", "wait_until", choices=("load", "domcontentloaded", "networkidle")),
    ),
    ActionType.BACK: (),
    ActionType.FORWARD: (),
    ActionType.RELOAD: (),
    ActionType.URL: (),
    ActionType.TITLE: (),
    ActionType.SNAPSHOT: (
        _OPT_SELECTOR,
        FieldSpec("interactive", "interactive", "bool", default=False, description="Only include interactive elements"),
        FieldSpec("maxDepth", "max_depth", "int", description="Maximum tree depth"),
        FieldSpec("compact", "compact", "bool", default=False, description="Omit unnamed structural nodes"),
    ),
    ActionType.GET_TEXT: (_SELECTOR,),
    ActionType.GET_ATTRIBUTE: (_SELECTOR, FieldSpec("attribute", "attribute", required=True, description="Attribute name")),
    ActionType.IS_VISIBLE: (_SELECTOR,),
    ActionType.IS_ENABLED: (_SELECTOR,),
    ActionType.COUNT: (FieldSpec("selector", "selector", required=True, description="CSS selector"),),
    ActionType.GET_BY_ROLE: (
        FieldSpec("role", "role", required=True, description="ARIA role"),
        FieldSpec("name", "name", description="Accessible name to filter by"),
    )
    + _SUBACTION_FIELDS,
    ActionType.GET_BY_TEXT: (
        FieldSpec("text", "text", required=True, description="Text to search for"),
        FieldSpec("exact", "exact", "bool", default=False, description="Exact match"),
    )
    + _SUBACTION_FIELDS,
    ActionType.GET_BY_LABEL: (FieldSpec("label", "label", required=True, description="Label text"),) + _SUBACTION_FIELDS,
    ActionType.GET_BY_PLACEHOLDER: (
        FieldSpec("placeholder", "placeholder", required=True, description="Placeholder text"),
    )
    + _SUBACTION_FIELDS,
    ActionType.CLICK: (
        _SELECTOR,
        FieldSpec("button", "button", default="left", choices=("left", "right", "middle")),
        FieldSpec("clickCount", "click_count", "int", default=1, description="Number of clicks"),
    ),
    ActionType.TYPE: (
        _SELECTOR,
        FieldSpec("text", "text", required=True, description="Text to type"),
        FieldSpec("delay", "delay", "number", description="Delay between keystrokes in ms"),
        FieldSpec("clear", "clear", "bool", default=False, description="Clear existing text first"),
    ),
    ActionType.FILL: (_SELECTOR, FieldSpec("value", "value", required=True, description="Value to fill")),
    ActionType.CLEAR: (_SELECTOR,),
    ActionType.PRESS: (
        FieldSpec("key", "key", required=True, description="Key to press"),
        FieldSpec("selector", "selector", description="Element to focus before pressing"),
    ),
    ActionType.HOVER: (_SELECTOR,),
    ActionType.CHECK: (_SELECTOR,),
    ActionType.UNCHECK: (_SELECTOR,),
    ActionType.SELECT: (
        _SELECTOR,
        FieldSpec("values", "values", "strings", required=True, description="Option value(s) to select"),
    ),
    ActionType.SCROLL: (
        _OPT_SELECTOR,
        FieldSpec("direction", "direction", choices=("up", "down", "left", "right")),
        FieldSpec("amount", "amount", "number", description="Pixels to scroll in the given direction"),
        FieldSpec("x", "x", "number", description="Horizontal scroll amount"),
        FieldSpec("y", "y", "number", description="Vertical scroll amount"),
    ),
    ActionType.SCROLL_INTO_VIEW: (_SELECTOR,),
    ActionType.WAIT: (
        _OPT_SELECTOR,
        FieldSpec("timeout", "timeout", "number", description="Timeout or plain delay in ms"),
        FieldSpec("state", "state", default="visible", choices=("attached", "visible", "hidden")),
    ),
    ActionType.WAIT_FOR_URL: (
        FieldSpec("url", "url", required=True, description="URL substring to wait for"),
        FieldSpec("timeout", "timeout", "number", description="Timeout in ms"),
    ),
    ActionType.SCREENSHOT: (
        _OPT_SELECTOR,
        FieldSpec("fullPage", "full_page", "bool", default=False),
        FieldSpec("format", "format", default="png", choices=("png", "jpeg")),
        FieldSpec("quality", "quality", "int", description="JPEG quality 0-100"),
    ),
    ActionType.HIGHLIGHT: (_SELECTOR,),
    ActionType.FRAME: (
        FieldSpec("selector", "selector", description="CSS selector of the iframe"),
        FieldSpec("name", "name", description="Frame name attribute"),
        FieldSpec("url", "url", description="Frame URL (partial match)"),
    ),
    ActionType.MAIN_FRAME: (),
    ActionType.EVALUATE: (FieldSpec("script", "script", required=True, description="Script to evaluate"),),
    ActionType.CONSOLE: (FieldSpec("clear", "clear", "bool", default=False, description="Clear messages after reading"),),
    ActionType.SET_CONTENT: (FieldSpec("html", "html", required=True, description="Replacement document markup"),),
}


# -----------------------------------------------------------------------------
# Action variants
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class Launch:
    pass


@dataclass(slots=True, frozen=True)
class Close:
    pass


@dataclass(slots=True, frozen=True)
class Navigate:
    url: str
    wait_until: str | None = None


@dataclass(slots=True, frozen=True)
class Back:
    pass


@dataclass(slots=True, frozen=True)
class Forward:
    pass


@dataclass(slots=True, frozen=True)
class Reload:
    pass


@dataclass(slots=True, frozen=True)
class GetUrl:
    pass


@dataclass(slots=True, frozen=True)
class GetTitle:
    pass


@dataclass(slots=True, frozen=True)
class Snapshot:
    selector: str | None = None
    interactive: bool = False
    max_depth: int | None = None
    compact: bool = False


@dataclass(slots=True, frozen=True)
class GetText:
    selector: str


@dataclass(slots=True, frozen=True)
class GetAttribute:
    selector: str
    attribute: str


@dataclass(slots=True, frozen=True)
class IsVisible:
    selector: str


@dataclass(slots=True, frozen=True)
class IsEnabled:
    selector: str


@dataclass(slots=True, frozen=True)
class Count:
    selector: str


@dataclass(slots=True, frozen=True)
class GetByRole:
    role: str
    name: str | None = None
    subaction: str | None = None
    value: str | None = None


@dataclass(slots=True, frozen=True)
class GetByText:
    text: str
    exact: bool = False
    subaction: str | None = None
    value: str | None = None


@dataclass(slots=True, frozen=True)
class GetByLabel:
    label: str
    subaction: str | None = None
    value: str | None = None


@dataclass(slots=True, frozen=True)
class GetByPlaceholder:
    placeholder: str
    subaction: str | None = None
    value: str | None = None


@dataclass(slots=True, frozen=True)
class Click:
    selector: str
    button: str = "left"
    click_count: int = 1


@dataclass(slots=True, frozen=True)
class Type:
    selector: str
    text: str
    delay: float | None = None
    clear: bool = False


@dataclass(slots=True, frozen=True)
class Fill:
    selector: str
    value: str


@dataclass(slots=True, frozen=True)
class Clear:
    selector: str


@dataclass(slots=True, frozen=True)
class Press:
    key: str
    selector: str | None = None


@dataclass(slots=True, frozen=True)
class Hover:
    selector: str


@dataclass(slots=True, frozen=True)
class Check:
    selector: str


@dataclass(slots=True, frozen=True)
class Uncheck:
    selector: str


@dataclass(slots=True, frozen=True)
class Select:
    selector: str
    values: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class Scroll:
    selector: str | None = None
    direction: str | None = None
    amount: float | None = None
    x: float | None = None
    y: float | None = None


@dataclass(slots=True, frozen=True)
class ScrollIntoView:
    selector: str


@dataclass(slots=True, frozen=True)
class Wait:
    selector: str | None = None
    timeout: float | None = None
    state: str = "visible"


@dataclass(slots=True, frozen=True)
class WaitForUrl:
    url: str
    timeout: float | None = None


@dataclass(slots=True, frozen=True)
class Screenshot:
    selector: str | None = None
    full_page: bool = False
    format: str = "png"
    quality: int | None = None


@dataclass(slots=True, frozen=True)
class Highlight:
    selector: str


@dataclass(slots=True, frozen=True)
class Frame:
    selector: str | None = None
    name: str | None = None
    url: str | None = None


@dataclass(slots=True, frozen=True)
class MainFrame:
    pass


@dataclass(slots=True, frozen=True)
class Evaluate:
    script: str


@dataclass(slots=True, frozen=True)
class Console:
    clear: bool = False


@dataclass(slots=True, frozen=True)
class SetContent:
    html: str


ACTION_VARIANTS: dict[ActionType, type] = {
    ActionType.LAUNCH: Launch,
    ActionType.CLOSE: Close,
    ActionType.NAVIGATE: Navigate,
    ActionType.BACK: Back,
    ActionType.FORWARD: Forward,
    ActionType.RELOAD: Reload,
    ActionType.URL: GetUrl,
    ActionType.TITLE: GetTitle,
    ActionType.SNAPSHOT: Snapshot,
    ActionType.GET_TEXT: GetText,
    ActionType.GET_ATTRIBUTE: GetAttribute,
    ActionType.IS_VISIBLE: IsVisible,
    ActionType.IS_ENABLED: IsEnabled,
    ActionType.COUNT: Count,
    ActionType.GET_BY_ROLE: GetByRole,
    ActionType.GET_BY_TEXT: GetByText,
    ActionType.GET_BY_LABEL: GetByLabel,
    ActionType.GET_BY_PLACEHOLDER: GetByPlaceholder,
    ActionType.CLICK: Click,
    ActionType.TYPE: Type,
    ActionType.FILL: Fill,
    ActionType.CLEAR: Clear,
    ActionType.PRESS: Press,
    ActionType.HOVER: Hover,
    ActionType.CHECK: Check,
    ActionType.UNCHECK: Uncheck,
    ActionType.SELECT: Select,
    ActionType.SCROLL: Scroll,
    ActionType.SCROLL_INTO_VIEW: ScrollIntoView,
    ActionType.WAIT: Wait,
    ActionType.WAIT_FOR_URL: WaitForUrl,
    ActionType.SCREENSHOT: Screenshot,
    ActionType.HIGHLIGHT: Highlight,
    ActionType.FRAME: Frame,
    ActionType.MAIN_FRAME: MainFrame,
    ActionType.EVALUATE: Evaluate,
    ActionType.CONSOLE: Console,
    ActionType.SET_CONTENT: SetContent,
}


def parse_action(command: Command | Mapping[str, Any]) -> Any:
    """Return the typed variant for ``command``.

    Raises:
        ProtocolError: unknown action, missing required field, or a field of
            the wrong type.
    """

    if not isinstance(command, Command):
        command = Command.from_dict(command)
    try:
        action = ActionType(command.action.strip().lower())
    except ValueError as exc:
        raise ProtocolError(f"Unknown action '{command.action}'") from exc

    kwargs: dict[str, Any] = {}
    for spec in ACTION_FIELDS[action]:
        raw = command.fields.get(spec.wire)
        if raw is None:
            if spec.required:
                raise ProtocolError(f"Action '{action.value}' requires '{spec.wire}'")
            if spec.default is not None:
                kwargs[spec.attr] = spec.default
            continue
        value = _coerce(spec, raw, action)
        if spec.choices and value not in spec.choices:
            allowed = ", ".join(spec.choices)
            raise ProtocolError(f"'{spec.wire}' must be one of: {allowed}")
        kwargs[spec.attr] = value
    return ACTION_VARIANTS[action](**kwargs)


def _coerce(spec: FieldSpec, raw: Any, action: ActionType) -> Any:
    label = f"'{spec.wire}' for action '{action.value}'"
    if spec.kind == "str":
        if not isinstance(raw, str):
            raise ProtocolError(f"{label} must be a string")
        return raw
    if spec.kind == "bool":
        if not isinstance(raw, bool):
            raise ProtocolError(f"{label} must be a boolean")
        return raw
    if spec.kind == "int":
        if isinstance(raw, bool) or not isinstance(raw, (int, float)) or int(raw) != raw:
            raise ProtocolError(f"{label} must be an integer")
        return int(raw)
    if spec.kind == "number":
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise ProtocolError(f"{label} must be a number")
        return float(raw)
    if spec.kind == "strings":
        if isinstance(raw, str):
            return (raw,)
        if isinstance(raw, Sequence) and all(isinstance(item, str) for item in raw):
            return tuple(raw)
        raise ProtocolError(f"{label} must be a string or a list of strings")
    raise ProtocolError(f"Unsupported field kind {spec.kind!r}")  # pragma: no cover - table guard


# -----------------------------------------------------------------------------
# Envelopes
# -----------------------------------------------------------------------------


def ensure_json_safe(payload: Any) -> Any:
    """Round-trip ``payload`` through JSON so no live objects cross contexts."""

    try:
        return json.loads(json.dumps(payload, ensure_ascii=False))
    except (TypeError, ValueError) as exc:
        raise ProtocolError(f"Payload is not JSON-serializable: {exc}") from exc


def encode_command_envelope(command: Command) -> dict[str, Any]:
    return {"type": COMMAND_ENVELOPE, "command": command.to_dict()}


def decode_command_envelope(envelope: Mapping[str, Any]) -> Command:
    if not isinstance(envelope, Mapping) or envelope.get("type") != COMMAND_ENVELOPE:
        raise ProtocolError("Expected a bridge:command envelope")
    return Command.from_dict(envelope.get("command") or {})


def encode_response_envelope(response: Response) -> dict[str, Any]:
    return {"type": RESPONSE_ENVELOPE, "response": response.to_dict()}


def decode_response_envelope(envelope: Mapping[str, Any]) -> Response:
    if not isinstance(envelope, Mapping) or envelope.get("type") != RESPONSE_ENVELOPE:
        raise ProtocolError("Expected a bridge:response envelope")
    return Response.from_dict(envelope.get("response") or {})
