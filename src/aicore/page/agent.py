"""Page-side executor that answers bridge commands against a live document."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Mapping
from urllib.parse import urljoin

from bs4 import Tag
from soupsieve import SelectorSyntaxError

from ..services import bridge_protocol as proto
from ..services.bridge_types import Command, ProtocolError, Response
from .document import PageDocument, PageLoadError, describe_node
from .refs import ElementRefMap, is_ref
from .snapshot import (
    accessible_name,
    build_snapshot,
    find_label,
    is_checkable,
    is_disabled,
    is_editable,
    is_hidden,
    node_text,
    role_of,
)

__all__ = ["PageAgent", "ExecutionError"]

LOGGER = logging.getLogger(__name__)

_DEFAULT_WAIT_MS = 5000.0
_DEFAULT_SCROLL = 300.0
_SCROLL_VECTORS = {"up": (0.0, -1.0), "down": (0.0, 1.0), "left": (-1.0, 0.0), "right": (1.0, 0.0)}
_HIGHLIGHT_ATTR = "data-aicore-highlight"


class ExecutionError(RuntimeError):
    """An action could not be carried out against the document."""


Handler = Callable[[Any], Awaitable[dict[str, Any]]]


class PageAgent:
    """Executes one command at a time against a :class:`PageDocument`.

    ``execute`` never raises: parse failures, selector problems, unmet
    preconditions and unexpected exceptions all come back as a failed
    :class:`Response` carrying the command id.
    """

    def __init__(self, document: PageDocument, *, poll_interval: float = 0.05) -> None:
        self._main = document
        self._frame: PageDocument | None = None
        self._focused: Tag | None = None
        self._poll_interval = poll_interval
        self.refs = ElementRefMap()
        self.launched = False
        self._handlers: dict[type, Handler] = {
            proto.Launch: self._launch,
            proto.Close: self._close,
            proto.Navigate: self._navigate,
            proto.Back: self._back,
            proto.Forward: self._forward,
            proto.Reload: self._reload,
            proto.GetUrl: self._get_url,
            proto.GetTitle: self._get_title,
            proto.Snapshot: self._snapshot,
            proto.GetText: self._get_text,
            proto.GetAttribute: self._get_attribute,
            proto.IsVisible: self._is_visible,
            proto.IsEnabled: self._is_enabled,
            proto.Count: self._count,
            proto.GetByRole: self._get_by_role,
            proto.GetByText: self._get_by_text,
            proto.GetByLabel: self._get_by_label,
            proto.GetByPlaceholder: self._get_by_placeholder,
            proto.Click: self._click,
            proto.Type: self._type,
            proto.Fill: self._fill,
            proto.Clear: self._clear,
            proto.Press: self._press,
            proto.Hover: self._hover,
            proto.Check: self._check,
            proto.Uncheck: self._uncheck,
            proto.Select: self._select_option,
            proto.Scroll: self._scroll,
            proto.ScrollIntoView: self._scroll_into_view,
            proto.Wait: self._wait,
            proto.WaitForUrl: self._wait_for_url,
            proto.Screenshot: self._screenshot,
            proto.Highlight: self._highlight,
            proto.Frame: self._enter_frame,
            proto.MainFrame: self._main_frame,
            proto.Evaluate: self._evaluate,
            proto.Console: self._console,
            proto.SetContent: self._set_content,
        }
        missing = set(proto.ACTION_VARIANTS.values()) - set(self._handlers)
        if missing:  # pragma: no cover - guards the handler table
            raise RuntimeError(f"Unhandled action variants: {sorted(cls.__name__ for cls in missing)}")

    @property
    def document(self) -> PageDocument:
        """Document the next action runs against (the selected frame, if any)."""

        return self._frame if self._frame is not None else self._main

    @property
    def main_document(self) -> PageDocument:
        return self._main

    # ------------------------------------------------------------------
    # Command boundary
    # ------------------------------------------------------------------
    async def execute(self, command: Command | Mapping[str, Any]) -> Response:
        command_id = _command_id(command)
        try:
            parsed = command if isinstance(command, Command) else Command.from_dict(command)
            variant = proto.parse_action(parsed)
            data = await self._handlers[type(variant)](variant)
        except (ProtocolError, ExecutionError) as exc:
            LOGGER.debug("Command %s failed: %s", command_id, exc)
            return Response.failure(command_id, str(exc))
        except PageLoadError as exc:
            return Response.failure(command_id, f"navigation failed: {exc}")
        except Exception as exc:  # pragma: no cover - unexpected failures still answer
            LOGGER.exception("Command %s raised unexpectedly", command_id)
            return Response.failure(command_id, f"{type(exc).__name__}: {exc}")
        return Response.ok(command_id, data)

    # ------------------------------------------------------------------
    # Convenience API
    # ------------------------------------------------------------------
    async def click(self, selector: str, **options: Any) -> dict[str, Any]:
        return await self._call("click", selector=selector, **options)

    async def fill(self, selector: str, value: str) -> dict[str, Any]:
        return await self._call("fill", selector=selector, value=value)

    async def type(self, selector: str, text: str, *, clear: bool = False) -> dict[str, Any]:
        return await self._call("type", selector=selector, text=text, clear=clear)

    async def press(self, key: str, selector: str | None = None) -> dict[str, Any]:
        return await self._call("press", key=key, selector=selector)

    async def scroll(self, selector: str | None = None, **options: Any) -> dict[str, Any]:
        return await self._call("scroll", selector=selector, **options)

    async def get_text(self, selector: str) -> str:
        data = await self._call("gettext", selector=selector)
        return data["text"]

    async def get_attribute(self, selector: str, attribute: str) -> str | None:
        data = await self._call("getattribute", selector=selector, attribute=attribute)
        return data["value"]

    async def navigate(self, url: str) -> dict[str, Any]:
        return await self._call("navigate", url=url)

    async def back(self) -> dict[str, Any]:
        return await self._call("back")

    async def forward(self) -> dict[str, Any]:
        return await self._call("forward")

    async def snapshot(self, **options: Any) -> dict[str, Any]:
        return await self._call("snapshot", **options)

    async def _call(self, action: str, **fields: Any) -> dict[str, Any]:
        response = await self.execute(Command.create(action, **fields))
        if not response.success:
            raise ExecutionError(response.error)
        return response.data

    # ------------------------------------------------------------------
    # Element resolution
    # ------------------------------------------------------------------
    def resolve(self, selector: str) -> Tag:
        """Return the live node for a CSS selector or ``@ref:N`` token."""

        selector = selector.strip()
        if is_ref(selector):
            node = self.refs.lookup(selector)
            if node is None:
                if self.refs.was_issued(selector):
                    raise ExecutionError(f"stale element reference {selector}: node is no longer in the document")
                raise ExecutionError(f"unknown element reference {selector}")
            if not self.document.is_attached(node):
                raise ExecutionError(f"stale element reference {selector}: node is no longer in the document")
            return node
        matches = self._select(selector)
        if not matches:
            raise ExecutionError(f"element not found: {selector}")
        return matches[0]

    def _select(self, selector: str) -> list[Tag]:
        try:
            return self.document.select(selector)
        except (SelectorSyntaxError, ValueError) as exc:
            raise ExecutionError(f"invalid selector: {selector}") from exc

    def _try_resolve(self, selector: str) -> Tag | None:
        try:
            return self.resolve(selector)
        except ExecutionError as exc:
            message = str(exc)
            if message.startswith(("element not found", "stale element reference")):
                return None
            raise

    def _actionable(self, selector: str, *, editable: bool = False) -> Tag:
        node = self.resolve(selector)
        if is_hidden(node):
            raise ExecutionError(f"element is not visible: {selector}")
        if is_disabled(node):
            raise ExecutionError(f"element is disabled: {selector}")
        if editable and not is_editable(node):
            raise ExecutionError(f"element is not editable: {selector}")
        return node

    def _location(self) -> dict[str, Any]:
        return {"url": self.document.url, "title": self.document.title}

    # ------------------------------------------------------------------
    # Lifecycle and navigation
    # ------------------------------------------------------------------
    async def _launch(self, _: proto.Launch) -> dict[str, Any]:
        already = self.launched
        self.launched = True
        return {"launched": True, "alreadyLaunched": already, **self._location()}

    async def _close(self, _: proto.Close) -> dict[str, Any]:
        self.launched = False
        self.refs.clear()
        self._frame = None
        self._focused = None
        return {"closed": True}

    async def _navigate(self, action: proto.Navigate) -> dict[str, Any]:
        await self._main.navigate(action.url)
        self._after_document_change()
        return self._location()

    async def _back(self, _: proto.Back) -> dict[str, Any]:
        moved = await self._main.back()
        if moved:
            self._after_document_change()
        return {"navigated": moved, **self._location()}

    async def _forward(self, _: proto.Forward) -> dict[str, Any]:
        moved = await self._main.forward()
        if moved:
            self._after_document_change()
        return {"navigated": moved, **self._location()}

    async def _reload(self, _: proto.Reload) -> dict[str, Any]:
        await self._main.reload()
        self._after_document_change()
        return self._location()

    async def _get_url(self, _: proto.GetUrl) -> dict[str, Any]:
        return {"url": self.document.url}

    async def _get_title(self, _: proto.GetTitle) -> dict[str, Any]:
        return {"title": self.document.title}

    async def _set_content(self, action: proto.SetContent) -> dict[str, Any]:
        self._main.set_content(action.html)
        self._after_document_change()
        return self._location()

    def _after_document_change(self) -> None:
        # Old nodes are gone; their refs stay retired because the counter keeps going.
        self.refs.clear()
        self._frame = None
        self._focused = None

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------
    async def _snapshot(self, action: proto.Snapshot) -> dict[str, Any]:
        root = self.resolve(action.selector) if action.selector else self.document.root
        text, refs = build_snapshot(
            root,
            self.refs,
            interactive=action.interactive,
            max_depth=action.max_depth,
            compact=action.compact,
        )
        return {"snapshot": text, "refs": refs, **self._location()}

    async def _get_text(self, action: proto.GetText) -> dict[str, Any]:
        node = self.resolve(action.selector)
        return {"text": node_text(node)}

    async def _get_attribute(self, action: proto.GetAttribute) -> dict[str, Any]:
        node = self.resolve(action.selector)
        value = node.get(action.attribute)
        if isinstance(value, list):
            value = " ".join(value)
        return {"value": value}

    async def _is_visible(self, action: proto.IsVisible) -> dict[str, Any]:
        node = self._try_resolve(action.selector)
        return {"visible": node is not None and not is_hidden(node)}

    async def _is_enabled(self, action: proto.IsEnabled) -> dict[str, Any]:
        node = self.resolve(action.selector)
        return {"enabled": not is_disabled(node)}

    async def _count(self, action: proto.Count) -> dict[str, Any]:
        return {"count": len(self._select(action.selector))}

    # ------------------------------------------------------------------
    # Semantic locators
    # ------------------------------------------------------------------
    async def _get_by_role(self, action: proto.GetByRole) -> dict[str, Any]:
        wanted = action.role.strip().lower()
        name = (action.name or "").strip().lower()

        def matches(node: Tag) -> bool:
            if role_of(node) != wanted:
                return False
            return not name or name in accessible_name(node).lower()

        return await self._locate(matches, action.subaction, action.value, f"role={action.role}")

    async def _get_by_text(self, action: proto.GetByText) -> dict[str, Any]:
        needle = action.text.strip()

        def matches(node: Tag) -> bool:
            own = " ".join(str(piece) for piece in node.find_all(string=True, recursive=False)).strip()
            own = " ".join(own.split())
            if not own:
                return False
            if action.exact:
                return own == needle
            return needle.lower() in own.lower()

        return await self._locate(matches, action.subaction, action.value, f"text={action.text}")

    async def _get_by_label(self, action: proto.GetByLabel) -> dict[str, Any]:
        needle = action.label.strip().lower()

        def matches(node: Tag) -> bool:
            if node.name not in ("input", "textarea", "select"):
                aria = node.get("aria-label")
                return isinstance(aria, str) and needle in aria.lower()
            label = find_label(node)
            if label is not None and needle in node_text(label).lower():
                return True
            aria = node.get("aria-label")
            return isinstance(aria, str) and needle in aria.lower()

        return await self._locate(matches, action.subaction, action.value, f"label={action.label}")

    async def _get_by_placeholder(self, action: proto.GetByPlaceholder) -> dict[str, Any]:
        needle = action.placeholder.strip().lower()

        def matches(node: Tag) -> bool:
            placeholder = node.get("placeholder")
            return isinstance(placeholder, str) and needle in placeholder.lower()

        return await self._locate(matches, action.subaction, action.value, f"placeholder={action.placeholder}")

    async def _locate(
        self, predicate: Callable[[Tag], bool], subaction: str | None, value: str | None, label: str
    ) -> dict[str, Any]:
        root = self.document.root
        found = [node for node in root.find_all(True) if not is_hidden(node) and predicate(node)]
        if subaction is None:
            elements = [
                {"ref": self.refs.ref_for(node), "role": role_of(node) or node.name, "name": accessible_name(node)}
                for node in found
            ]
            return {"count": len(found), "elements": elements}
        if not found:
            raise ExecutionError(f"element not found: {label}")
        ref = self.refs.ref_for(found[0])
        if subaction == "click":
            result = await self._click(proto.Click(selector=ref))
        elif subaction == "fill":
            if value is None:
                raise ExecutionError("fill subaction requires 'value'")
            result = await self._fill(proto.Fill(selector=ref, value=value))
        elif subaction == "check":
            result = await self._check(proto.Check(selector=ref))
        else:
            result = await self._hover(proto.Hover(selector=ref))
        return {"count": len(found), "ref": ref, **result}

    # ------------------------------------------------------------------
    # Interaction
    # ------------------------------------------------------------------
    async def _click(self, action: proto.Click) -> dict[str, Any]:
        node = self._actionable(action.selector)
        document = self.document
        self._focused = node
        event_type = "contextmenu" if action.button == "right" else "click"
        for _ in range(max(1, action.click_count)):
            await document.dispatch(event_type, node, button=action.button)
        if action.click_count >= 2:
            await document.dispatch("dblclick", node)
        if event_type != "click":
            return {"clicked": True}

        if is_checkable(node):
            self._set_checked(node, not node.has_attr("checked") or _is_radio(node))
            await document.dispatch("change", node)
        elif _is_submit(node):
            form = node.find_parent("form")
            if isinstance(form, Tag):
                await document.dispatch("submit", form)
        elif node.name == "a":
            await self._follow_link(node)
        return {"clicked": True}

    async def _follow_link(self, node: Tag) -> None:
        href = node.get("href")
        if not isinstance(href, str) or not href or href.startswith(("#", "javascript:")):
            return
        if self._frame is not None:
            return
        target = urljoin(self._main.url, href)
        await self._main.navigate(target)
        self._after_document_change()

    async def _type(self, action: proto.Type) -> dict[str, Any]:
        node = self._actionable(action.selector, editable=True)
        self._focused = node
        current = "" if action.clear else _read_value(node)
        delay = (action.delay or 0.0) / 1000.0
        for char in action.text:
            await self.document.dispatch("keydown", node, key=char)
            current += char
            _write_value(node, current)
            await self.document.dispatch("input", node, data=char)
            if delay:
                await asyncio.sleep(delay)
        self.document.mark_mutated()
        return {"value": current}

    async def _fill(self, action: proto.Fill) -> dict[str, Any]:
        node = self._actionable(action.selector, editable=True)
        self._focused = node
        _write_value(node, action.value)
        self.document.mark_mutated()
        await self.document.dispatch("input", node, data=action.value)
        await self.document.dispatch("change", node)
        return {"value": action.value}

    async def _clear(self, action: proto.Clear) -> dict[str, Any]:
        node = self._actionable(action.selector, editable=True)
        _write_value(node, "")
        self.document.mark_mutated()
        await self.document.dispatch("input", node, data="")
        return {"value": ""}

    async def _press(self, action: proto.Press) -> dict[str, Any]:
        if action.selector:
            node = self._actionable(action.selector)
            self._focused = node
        elif self._focused is not None and self.document.is_attached(self._focused):
            node = self._focused
        else:
            node = self.document.root
        await self.document.dispatch("keydown", node, key=action.key)
        await self.document.dispatch("keyup", node, key=action.key)
        if action.key == "Enter" and node.name == "input":
            form = node.find_parent("form")
            if isinstance(form, Tag):
                await self.document.dispatch("submit", form)
        return {"key": action.key, "target": describe_node(node)}

    async def _hover(self, action: proto.Hover) -> dict[str, Any]:
        node = self.resolve(action.selector)
        if is_hidden(node):
            raise ExecutionError(f"element is not visible: {action.selector}")
        await self.document.dispatch("mouseover", node)
        return {"hovered": True}

    async def _check(self, action: proto.Check) -> dict[str, Any]:
        return await self._toggle(action.selector, True)

    async def _uncheck(self, action: proto.Uncheck) -> dict[str, Any]:
        return await self._toggle(action.selector, False)

    async def _toggle(self, selector: str, checked: bool) -> dict[str, Any]:
        node = self._actionable(selector)
        if not is_checkable(node):
            raise ExecutionError(f"element is not a checkbox or radio: {selector}")
        if not checked and _is_radio(node):
            raise ExecutionError(f"radio buttons cannot be unchecked: {selector}")
        if node.has_attr("checked") != checked:
            self._set_checked(node, checked)
            await self.document.dispatch("change", node)
        return {"checked": checked}

    def _set_checked(self, node: Tag, checked: bool) -> None:
        if checked:
            if _is_radio(node):
                group = node.get("name")
                scope = node.find_parent("form") or self.document.root
                if isinstance(group, str) and group:
                    for peer in scope.find_all("input", attrs={"type": "radio", "name": group}):
                        if "checked" in peer.attrs:
                            del peer["checked"]
            node["checked"] = ""
        elif "checked" in node.attrs:
            del node["checked"]
        if node.get("role") in ("checkbox", "switch"):
            node["aria-checked"] = "true" if checked else "false"
        self.document.mark_mutated()

    async def _select_option(self, action: proto.Select) -> dict[str, Any]:
        node = self._actionable(action.selector)
        if node.name != "select":
            raise ExecutionError(f"element is not a select: {action.selector}")
        options = node.find_all("option")
        chosen: list[Tag] = []
        for wanted in action.values:
            match = next((opt for opt in options if _option_value(opt) == wanted), None)
            if match is None:
                match = next((opt for opt in options if node_text(opt) == wanted), None)
            if match is None:
                raise ExecutionError(f"option not found: {wanted}")
            chosen.append(match)
        if len(chosen) > 1 and not node.has_attr("multiple"):
            raise ExecutionError(f"select does not allow multiple values: {action.selector}")
        for option in options:
            if "selected" in option.attrs:
                del option["selected"]
        for option in chosen:
            option["selected"] = ""
        self.document.mark_mutated()
        await self.document.dispatch("change", node)
        return {"selected": [_option_value(option) for option in chosen]}

    async def _scroll(self, action: proto.Scroll) -> dict[str, Any]:
        if action.selector:
            node = self.resolve(action.selector)
            key = f"element:{id(node)}"
        else:
            node, key = None, "window"
        dx, dy = action.x or 0.0, action.y or 0.0
        if action.direction:
            vx, vy = _SCROLL_VECTORS[action.direction]
            amount = action.amount if action.amount is not None else _DEFAULT_SCROLL
            dx += vx * amount
            dy += vy * amount
        elif action.x is None and action.y is None:
            dy = action.amount if action.amount is not None else _DEFAULT_SCROLL
        x, y = self.document.scroll_positions.get(key, (0.0, 0.0))
        position = (max(0.0, x + dx), max(0.0, y + dy))
        self.document.scroll_positions[key] = position
        if node is not None:
            await self.document.dispatch("scroll", node)
        return {"x": position[0], "y": position[1]}

    async def _scroll_into_view(self, action: proto.ScrollIntoView) -> dict[str, Any]:
        node = self.resolve(action.selector)
        if is_hidden(node):
            raise ExecutionError(f"element is not visible: {action.selector}")
        return {"scrolled": True, "target": describe_node(node)}

    async def _highlight(self, action: proto.Highlight) -> dict[str, Any]:
        node = self.resolve(action.selector)
        for previous in self.document.soup.select(f"[{_HIGHLIGHT_ATTR}]"):
            del previous[_HIGHLIGHT_ATTR]
        node[_HIGHLIGHT_ATTR] = "true"
        return {"highlighted": True}

    # ------------------------------------------------------------------
    # Waiting
    # ------------------------------------------------------------------
    async def _wait(self, action: proto.Wait) -> dict[str, Any]:
        timeout_ms = action.timeout if action.timeout is not None else _DEFAULT_WAIT_MS
        if not action.selector:
            await asyncio.sleep(max(0.0, timeout_ms) / 1000.0)
            return {"waited": timeout_ms}

        def satisfied() -> bool:
            node = self._try_resolve(action.selector)
            if action.state == "attached":
                return node is not None
            if action.state == "hidden":
                return node is None or is_hidden(node)
            return node is not None and not is_hidden(node)

        if not await self._poll(satisfied, timeout_ms):
            raise ExecutionError(f"timeout waiting for {action.selector} to be {action.state}")
        return {"state": action.state}

    async def _wait_for_url(self, action: proto.WaitForUrl) -> dict[str, Any]:
        timeout_ms = action.timeout if action.timeout is not None else _DEFAULT_WAIT_MS
        if not await self._poll(lambda: action.url in self._main.url, timeout_ms):
            raise ExecutionError(f"timeout waiting for URL containing {action.url}")
        return {"url": self._main.url}

    async def _poll(self, condition: Callable[[], bool], timeout_ms: float) -> bool:
        deadline = time.monotonic() + max(0.0, timeout_ms) / 1000.0
        while True:
            if condition():
                return True
            if time.monotonic() >= deadline:
                return False
            await asyncio.sleep(self._poll_interval)

    # ------------------------------------------------------------------
    # Host capabilities, frames and console
    # ------------------------------------------------------------------
    async def _screenshot(self, action: proto.Screenshot) -> dict[str, Any]:
        renderer = self.document.renderer
        if renderer is None:
            raise ExecutionError("screenshot is not supported: no renderer attached")
        node = self.resolve(action.selector) if action.selector else None
        data = await renderer.capture(
            self.document, node, full_page=action.full_page, fmt=action.format, quality=action.quality
        )
        return {"data": data, "format": action.format}

    async def _evaluate(self, action: proto.Evaluate) -> dict[str, Any]:
        engine = self.document.script_engine
        if engine is None:
            raise ExecutionError("evaluate is not supported: no script engine attached")
        try:
            result = await engine.evaluate(self.document, action.script)
        except Exception as exc:
            raise ExecutionError(f"script error: {exc}") from exc
        return {"result": proto.ensure_json_safe(result)}

    async def _enter_frame(self, action: proto.Frame) -> dict[str, Any]:
        if not (action.selector or action.name or action.url):
            raise ExecutionError("frame requires 'selector', 'name' or 'url'")
        candidates = self._frame_candidates(action.selector)
        for candidate in candidates:
            if candidate.name != "iframe":
                continue
            if action.name and candidate.get("name") != action.name:
                continue
            src = candidate.get("src")
            if action.url and not (isinstance(src, str) and action.url in src):
                continue
            try:
                self._frame = self._main.frame_document(candidate)
            except PageLoadError as exc:
                raise ExecutionError(f"frame is not accessible: {exc}") from exc
            self._focused = None
            return {"frame": describe_node(candidate), "url": self._frame.url}
        raise ExecutionError("frame not found")

    def _frame_candidates(self, selector: str | None) -> list[Tag]:
        if not selector:
            return self._main.soup.find_all("iframe")
        try:
            return self._main.select(selector)
        except (SelectorSyntaxError, ValueError) as exc:
            raise ExecutionError(f"invalid selector: {selector}") from exc

    async def _main_frame(self, _: proto.MainFrame) -> dict[str, Any]:
        self._frame = None
        self._focused = None
        return {"frame": "main", "url": self._main.url}

    async def _console(self, action: proto.Console) -> dict[str, Any]:
        return {"messages": self.document.drain_console(clear=action.clear)}


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------


def _command_id(command: Any) -> str:
    raw = command.id if isinstance(command, Command) else None
    if raw is None and isinstance(command, Mapping):
        raw = command.get("id")
    return raw if isinstance(raw, str) and raw else "unknown"


def _is_radio(node: Tag) -> bool:
    node_type = node.get("type")
    return (isinstance(node_type, str) and node_type.lower() == "radio") or node.get("role") == "radio"


def _is_submit(node: Tag) -> bool:
    node_type = node.get("type")
    node_type = node_type.lower() if isinstance(node_type, str) else None
    if node.name == "button":
        return node_type in (None, "submit")
    return node.name == "input" and node_type in ("submit", "image")


def _option_value(option: Tag) -> str:
    value = option.get("value")
    return value if isinstance(value, str) else node_text(option)


def _read_value(node: Tag) -> str:
    if node.name == "input":
        value = node.get("value")
        return value if isinstance(value, str) else ""
    return node.get_text()


def _write_value(node: Tag, value: str) -> None:
    if node.name == "input":
        node["value"] = value
    else:
        node.string = value
