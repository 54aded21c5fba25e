"""Accessibility-style snapshot of a page document.

Each meaningful node becomes one line of an indented tree::

    - heading "Sign in" [level=1] [ref=@ref:1]
    - textbox "Email" [ref=@ref:2]
    - button "Continue" [disabled] [ref=@ref:3]

Interactive and semantic nodes receive element references from the
session's :class:`~aicore.page.refs.ElementRefMap`, so the lines double as
the addressing scheme for follow-up actions.
"""

from __future__ import annotations

import re
from typing import Any

from bs4 import NavigableString, Tag
from bs4.element import Comment

from .refs import ElementRefMap

__all__ = [
    "build_snapshot",
    "role_of",
    "accessible_name",
    "is_hidden",
    "is_disabled",
    "is_editable",
    "is_checkable",
    "node_text",
    "INTERACTIVE_ROLES",
]

INTERACTIVE_ROLES = frozenset(
    {
        "button",
        "link",
        "textbox",
        "searchbox",
        "checkbox",
        "radio",
        "combobox",
        "listbox",
        "option",
        "spinbutton",
        "slider",
        "switch",
        "tab",
        "menuitem",
    }
)
_SEMANTIC_ROLES = frozenset(
    {
        "heading",
        "img",
        "navigation",
        "main",
        "banner",
        "contentinfo",
        "form",
        "dialog",
        "list",
        "listitem",
        "table",
        "row",
        "cell",
        "columnheader",
        "region",
        "iframe",
        "alert",
        "paragraph",
    }
)
# Names of these roles come from their own text, so their text children are not repeated.
_NAME_FROM_CONTENT = frozenset({"button", "link", "heading", "option", "tab", "menuitem", "cell", "columnheader"})
_STRUCTURAL_ROLES = frozenset({"list", "listitem", "row", "table", "paragraph", "region", "form"})
# Landmarks and containers are named only by their labelling attributes.
_NAME_FROM_LABEL_ONLY = frozenset(
    {"form", "region", "list", "table", "row", "navigation", "main", "banner", "contentinfo", "dialog", "iframe"}
)
_SKIPPED_TAGS = frozenset({"script", "style", "template", "noscript", "head", "meta", "link"})
_TEXT_INPUT_TYPES = frozenset({"text", "email", "password", "search", "tel", "url", "number", ""})
_TAG_ROLES = {
    "button": "button",
    "textarea": "textbox",
    "select": "combobox",
    "option": "option",
    "img": "img",
    "nav": "navigation",
    "main": "main",
    "header": "banner",
    "footer": "contentinfo",
    "form": "form",
    "dialog": "dialog",
    "ul": "list",
    "ol": "list",
    "li": "listitem",
    "table": "table",
    "tr": "row",
    "td": "cell",
    "th": "columnheader",
    "section": "region",
    "iframe": "iframe",
    "p": "paragraph",
    "summary": "button",
}
_INPUT_ROLES = {
    "checkbox": "checkbox",
    "radio": "radio",
    "button": "button",
    "submit": "button",
    "reset": "button",
    "image": "button",
    "search": "searchbox",
    "number": "spinbutton",
    "range": "slider",
}
_HIDDEN_STYLE = re.compile(r"(display\s*:\s*none|visibility\s*:\s*hidden)", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")
_MAX_NAME = 100


# ----------------------------------------------------------------------
# Node semantics
# ----------------------------------------------------------------------


def role_of(node: Tag) -> str | None:
    explicit = node.get("role")
    if isinstance(explicit, str) and explicit.strip():
        return explicit.strip().split()[0].lower()
    name = (node.name or "").lower()
    if name == "a":
        return "link" if node.has_attr("href") else None
    if name == "input":
        input_type = _input_type(node)
        if input_type == "hidden":
            return None
        return _INPUT_ROLES.get(input_type, "textbox")
    if len(name) == 2 and name[0] == "h" and name[1] in "123456":
        return "heading"
    if node.has_attr("contenteditable") and node.get("contenteditable") != "false":
        return "textbox"
    return _TAG_ROLES.get(name)


def accessible_name(node: Tag) -> str:
    """Best-effort accessible name following the usual label precedence."""

    label = node.get("aria-label")
    if isinstance(label, str) and label.strip():
        return _clip(label)
    labelled_by = node.get("aria-labelledby")
    if isinstance(labelled_by, str) and labelled_by.strip():
        root = _root_of(node)
        parts = []
        for ref_id in labelled_by.split():
            target = root.find(id=ref_id)
            if isinstance(target, Tag):
                parts.append(node_text(target))
        if any(parts):
            return _clip(" ".join(part for part in parts if part))

    tag = (node.name or "").lower()
    if tag in ("input", "textarea", "select"):
        if tag == "input" and _input_type(node) in ("button", "submit", "reset"):
            value = node.get("value")
            if isinstance(value, str) and value.strip():
                return _clip(value)
        label_node = find_label(node)
        if label_node is not None:
            text = node_text(label_node)
            if text:
                return _clip(text)
        for attr in ("placeholder", "title"):
            value = node.get(attr)
            if isinstance(value, str) and value.strip():
                return _clip(value)
        return ""
    if tag == "img":
        alt = node.get("alt")
        return _clip(alt) if isinstance(alt, str) else ""
    if role_of(node) not in _NAME_FROM_LABEL_ONLY:
        text = node_text(node)
        if text:
            return _clip(text)
    title = node.get("title")
    return _clip(title) if isinstance(title, str) else ""


def find_label(node: Tag) -> Tag | None:
    node_id = node.get("id")
    if isinstance(node_id, str) and node_id:
        label = _root_of(node).find("label", attrs={"for": node_id})
        if isinstance(label, Tag):
            return label
    parent = node.find_parent("label")
    return parent if isinstance(parent, Tag) else None


def node_text(node: Tag) -> str:
    """Rendered text of ``node``; text inside hidden descendants is left out."""

    chunks = []
    for piece in node.find_all(string=True):
        if isinstance(piece, Comment) or _hidden_below(piece.parent, node):
            continue
        chunks.append(str(piece))
    return _WHITESPACE.sub(" ", " ".join(chunks)).strip()


def is_hidden(node: Tag) -> bool:
    """Return True when ``node`` or an ancestor is not rendered."""

    current: Any = node
    while isinstance(current, Tag):
        if _hides(current):
            return True
        current = current.parent
    return False


def _hides(node: Tag) -> bool:
    name = (node.name or "").lower()
    if name in _SKIPPED_TAGS:
        return True
    if node.has_attr("hidden") or node.get("aria-hidden") == "true":
        return True
    if name == "input" and _input_type(node) == "hidden":
        return True
    style = node.get("style")
    return isinstance(style, str) and bool(_HIDDEN_STYLE.search(style))


def _hidden_below(start: Any, stop: Tag) -> bool:
    current = start
    while isinstance(current, Tag) and current is not stop:
        if _hides(current):
            return True
        current = current.parent
    return False


def is_disabled(node: Tag) -> bool:
    if node.has_attr("disabled") or node.get("aria-disabled") == "true":
        return True
    fieldset = node.find_parent("fieldset")
    return isinstance(fieldset, Tag) and fieldset.has_attr("disabled")


def is_editable(node: Tag) -> bool:
    tag = (node.name or "").lower()
    if node.has_attr("readonly"):
        return False
    if tag == "textarea":
        return True
    if tag == "input":
        return _input_type(node) in _TEXT_INPUT_TYPES
    contenteditable = node.get("contenteditable")
    return contenteditable is not None and contenteditable != "false"


def is_checkable(node: Tag) -> bool:
    if (node.name or "").lower() == "input":
        return _input_type(node) in ("checkbox", "radio")
    return role_of(node) in ("checkbox", "radio", "switch")


def _input_type(node: Tag) -> str:
    value = node.get("type")
    return value.strip().lower() if isinstance(value, str) else "text"


def _root_of(node: Tag) -> Tag:
    current = node
    while isinstance(current.parent, Tag):
        current = current.parent
    return current


def _clip(text: str) -> str:
    collapsed = _WHITESPACE.sub(" ", text).strip()
    if len(collapsed) > _MAX_NAME:
        return collapsed[: _MAX_NAME - 3] + "..."
    return collapsed


# ----------------------------------------------------------------------
# Snapshot
# ----------------------------------------------------------------------


def build_snapshot(
    root: Tag,
    refs: ElementRefMap,
    *,
    interactive: bool = False,
    max_depth: int | None = None,
    compact: bool = False,
) -> tuple[str, dict[str, dict[str, str]]]:
    """Walk ``root`` and return ``(text_tree, ref_table)``.

    Hidden subtrees are skipped entirely. With ``interactive`` only
    actionable nodes are listed; ``compact`` drops unnamed structural
    nodes while still descending into them.
    """

    refs.prune_detached()
    lines: list[str] = []
    table: dict[str, dict[str, str]] = {}

    def emit_text(text: str, depth: int) -> None:
        if interactive:
            return
        collapsed = _WHITESPACE.sub(" ", text).strip()
        if collapsed:
            lines.append(f"{'  ' * depth}- text: {_clip(collapsed)}")

    def walk(node: Tag, depth: int, inside_named: bool) -> None:
        for child in node.children:
            if isinstance(child, Tag):
                visit(child, depth, inside_named)
            elif isinstance(child, NavigableString) and not isinstance(child, Comment):
                if not inside_named:
                    emit_text(str(child), depth)

    def visit(node: Tag, depth: int, inside_named: bool) -> None:
        if is_hidden(node):
            return
        role = role_of(node)
        listed = role is not None and (
            role in INTERACTIVE_ROLES or (not interactive and role in _SEMANTIC_ROLES)
        )
        if role is None or not listed:
            walk(node, depth, inside_named)
            return
        name = accessible_name(node)
        if compact and role in _STRUCTURAL_ROLES and not name:
            walk(node, depth, inside_named)
            return
        if max_depth is not None and depth > max_depth:
            return
        ref = refs.ref_for(node)
        table[ref] = {"role": role, "name": name}
        lines.append(f"{'  ' * depth}- {_describe(node, role, name)} [ref={ref}]")
        named_from_content = role in _NAME_FROM_CONTENT or role in INTERACTIVE_ROLES
        walk(node, depth + 1, inside_named or named_from_content)

    if role_of(root) is not None and root.name not in ("body", "html", "[document]"):
        visit(root, 0, False)
    else:
        walk(root, 0, False)
    return "\n".join(lines), table


def _describe(node: Tag, role: str, name: str) -> str:
    parts = [role]
    if name:
        escaped = name.replace('"', '\\"')
        parts.append(f'"{escaped}"')
    if role == "heading" and node.name and node.name[1:].isdigit():
        parts.append(f"[level={node.name[1:]}]")
    if is_checkable(node):
        parts.append("[checked]" if node.has_attr("checked") else "[unchecked]")
    if role in INTERACTIVE_ROLES and is_disabled(node):
        parts.append("[disabled]")
    if role == "option" and node.has_attr("selected"):
        parts.append("[selected]")
    value = node.get("value")
    if role in ("textbox", "searchbox", "spinbutton") and isinstance(value, str) and value:
        parts.append(f"[value={_clip(value)}]")
    href = node.get("href")
    if role == "link" and isinstance(href, str) and href:
        parts.append(f"[url={href}]")
    return " ".join(parts)
