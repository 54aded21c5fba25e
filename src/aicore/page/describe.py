"""Action catalog: descriptions, JSON schemas and typo-tolerant lookup."""

from __future__ import annotations

import difflib
from typing import Any

from ..services.bridge_protocol import ACTION_FIELDS, ActionType, FieldSpec

__all__ = [
    "ACTION_DESCRIPTIONS",
    "TOOL_PREFIX",
    "action_schema",
    "describe",
    "normalize_action_name",
    "resolve_action",
    "tool_name_for",
]

TOOL_PREFIX = "browser_"

ACTION_DESCRIPTIONS: dict[ActionType, str] = {
    ActionType.LAUNCH: "Start the browser session for the active page",
    ActionType.CLOSE: "Close the browser session and release element references",
    ActionType.NAVIGATE: "Navigate to a URL",
    ActionType.BACK: "Go back in browser history",
    ActionType.FORWARD: "Go forward in browser history",
    ActionType.RELOAD: "Reload the current page",
    ActionType.URL: "Get the current page URL",
    ActionType.TITLE: "Get the current page title",
    ActionType.SNAPSHOT: "Get the accessibility tree of the page with element references (@ref:N) for interaction",
    ActionType.GET_TEXT: "Get the text content of an element",
    ActionType.GET_ATTRIBUTE: "Get an attribute value of an element",
    ActionType.IS_VISIBLE: "Check whether an element is visible",
    ActionType.IS_ENABLED: "Check whether an element is enabled",
    ActionType.COUNT: "Count elements matching a CSS selector",
    ActionType.GET_BY_ROLE: "Find elements by ARIA role and optional name, optionally acting on the first match",
    ActionType.GET_BY_TEXT: "Find elements by their text, optionally acting on the first match",
    ActionType.GET_BY_LABEL: "Find form fields by label text, optionally acting on the first match",
    ActionType.GET_BY_PLACEHOLDER: "Find inputs by placeholder text, optionally acting on the first match",
    ActionType.CLICK: "Click an element by reference (@ref:N) or CSS selector",
    ActionType.TYPE: "Type text into an element key by key",
    ActionType.FILL: "Fill an input with a value, replacing its content",
    ActionType.CLEAR: "Clear an input",
    ActionType.PRESS: "Press a keyboard key, optionally on an element",
    ActionType.HOVER: "Hover over an element",
    ActionType.CHECK: "Check a checkbox or radio button",
    ActionType.UNCHECK: "Uncheck a checkbox",
    ActionType.SELECT: "Select option(s) in a dropdown",
    ActionType.SCROLL: "Scroll the page or an element",
    ActionType.SCROLL_INTO_VIEW: "Scroll an element into view",
    ActionType.WAIT: "Wait for an element to reach a state, or for a fixed delay",
    ActionType.WAIT_FOR_URL: "Wait until the page URL contains a value",
    ActionType.SCREENSHOT: "Take a screenshot of the page or an element",
    ActionType.HIGHLIGHT: "Highlight an element on the page",
    ActionType.FRAME: "Switch into an iframe",
    ActionType.MAIN_FRAME: "Switch back to the main frame",
    ActionType.EVALUATE: "Evaluate a script in the page",
    ActionType.CONSOLE: "Read console messages from the page",
    ActionType.SET_CONTENT: "Replace the whole page content with new markup",
}

_QUICK_REF = (
    "Workflow: browser_snapshot to list elements with @ref:N references, then act with "
    "browser_click/browser_fill/browser_type using those references. Take a new snapshot "
    "after navigation or large page changes; references from older pages are stale."
)

_JSON_TYPES = {"str": "string", "bool": "boolean", "int": "integer", "number": "number"}


def tool_name_for(action: ActionType) -> str:
    return TOOL_PREFIX + action.name.lower()


def normalize_action_name(name: str) -> str:
    """``browser_get_text``, ``get-text`` and ``GetText`` all become ``gettext``."""

    cleaned = name.strip().lower()
    if cleaned.startswith(TOOL_PREFIX):
        cleaned = cleaned[len(TOOL_PREFIX) :]
    return cleaned.replace("_", "").replace("-", "").replace(" ", "")


def resolve_action(name: str) -> ActionType | None:
    try:
        return ActionType(normalize_action_name(name))
    except ValueError:
        return None


def action_schema(action: ActionType) -> dict[str, Any]:
    """JSON schema of the arguments an action accepts."""

    properties: dict[str, Any] = {}
    required: list[str] = []
    for spec in ACTION_FIELDS[action]:
        properties[spec.wire] = _field_schema(spec)
        if spec.required:
            required.append(spec.wire)
    schema: dict[str, Any] = {"type": "object", "properties": properties, "additionalProperties": False}
    if required:
        schema["required"] = required
    return schema


def _field_schema(spec: FieldSpec) -> dict[str, Any]:
    if spec.kind == "strings":
        schema: dict[str, Any] = {
            "anyOf": [{"type": "string"}, {"type": "array", "items": {"type": "string"}}],
        }
    else:
        schema = {"type": _JSON_TYPES[spec.kind]}
    if spec.choices:
        schema["enum"] = list(spec.choices)
    if spec.default is not None:
        schema["default"] = spec.default
    if spec.description:
        schema["description"] = spec.description
    return schema


def describe(action: str | None = None) -> dict[str, Any]:
    """Return catalog help for every action or for one action.

    Unknown names produce an error payload with close matches rather than
    raising, since the caller is usually a model recovering from a typo.
    """

    if action is None or not action.strip():
        return {
            "actions": [
                {"name": item.value, "tool": tool_name_for(item), "description": ACTION_DESCRIPTIONS[item]}
                for item in ActionType
            ],
            "quickRef": _QUICK_REF,
        }

    resolved = resolve_action(action)
    if resolved is not None:
        return {
            "action": {
                "name": resolved.value,
                "tool": tool_name_for(resolved),
                "description": ACTION_DESCRIPTIONS[resolved],
                "parameters": action_schema(resolved),
            }
        }

    known = [item.value for item in ActionType]
    suggestions = difflib.get_close_matches(normalize_action_name(action), known, n=3, cutoff=0.5)
    return {
        "error": f"Unknown action '{action}'",
        "suggestions": suggestions,
        "didYouMean": suggestions[0] if suggestions else None,
    }
