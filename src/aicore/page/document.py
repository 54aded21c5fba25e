"""Live page document held by a page context.

The document wraps a BeautifulSoup tree that actions mutate in place. It
also keeps the page-level state a browser tab would own: the current URL,
back/forward history, scroll offsets, the console buffer, an event log and
listeners that model page scripts reacting to user actions.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Protocol, Union

import httpx
from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

__all__ = [
    "PageDocument",
    "PageEvent",
    "PageLoader",
    "PageLoadError",
    "StaticPageLoader",
    "HttpPageLoader",
    "Renderer",
    "ScriptEngine",
    "BLANK_URL",
]

LOGGER = logging.getLogger(__name__)

BLANK_URL = "about:blank"
_BLANK_HTML = "<html><head><title></title></head><body></body></html>"
_PARSER = "html.parser"

Listener = Callable[["PageDocument", Tag, "PageEvent"], Union[None, Awaitable[None]]]


class PageLoadError(RuntimeError):
    """Raised when a loader cannot produce markup for a URL."""


class PageLoader(Protocol):
    """Fetches markup for navigation."""

    async def fetch(self, url: str) -> str:
        ...


class Renderer(Protocol):
    """Host-provided screenshot capability."""

    async def capture(
        self, document: "PageDocument", node: Tag | None, *, full_page: bool, fmt: str, quality: int | None
    ) -> str:
        ...


class ScriptEngine(Protocol):
    """Host-provided script evaluation capability."""

    async def evaluate(self, document: "PageDocument", script: str) -> Any:
        ...


class StaticPageLoader:
    """Serves markup from an in-memory URL map."""

    def __init__(self, pages: Mapping[str, str] | None = None) -> None:
        self._pages: dict[str, str] = dict(pages or {})

    def add(self, url: str, html: str) -> None:
        self._pages[url] = html

    async def fetch(self, url: str) -> str:
        try:
            return self._pages[url]
        except KeyError:
            raise PageLoadError(f"No page registered for {url}") from None


class HttpPageLoader:
    """Fetches markup over HTTP with httpx."""

    def __init__(self, *, client: httpx.AsyncClient | None = None, timeout: float = 20.0) -> None:
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    async def fetch(self, url: str) -> str:
        client = self._ensure_client()
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise PageLoadError(f"Failed to load {url}: {exc}") from exc
        return response.text

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self._client


@dataclass(slots=True)
class PageEvent:
    """DOM-style event recorded when an action touches a node."""

    type: str
    target: str
    detail: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type, "target": self.target}
        if self.detail:
            payload["detail"] = dict(self.detail)
        return payload


class PageDocument:
    """Mutable document bound to one page context."""

    def __init__(
        self,
        html: str | None = None,
        *,
        url: str = BLANK_URL,
        loader: PageLoader | None = None,
        renderer: Renderer | None = None,
        script_engine: ScriptEngine | None = None,
    ) -> None:
        self._loader = loader
        self.renderer = renderer
        self.script_engine = script_engine
        self._soup = BeautifulSoup(html if html is not None else _BLANK_HTML, _PARSER)
        self._url = url
        self._history: list[str] = [url]
        self._history_index = 0
        self._listeners: list[tuple[str, str, Listener]] = []
        self._frames: dict[int, PageDocument] = {}
        self.events: list[PageEvent] = []
        self.console: list[dict[str, Any]] = []
        self.scroll_positions: dict[str, tuple[float, float]] = {}
        self.revision = 0

    # ------------------------------------------------------------------
    # Document state
    # ------------------------------------------------------------------
    @property
    def soup(self) -> BeautifulSoup:
        return self._soup

    @property
    def url(self) -> str:
        return self._url

    @property
    def title(self) -> str:
        node = self._soup.find("title")
        return node.get_text(strip=True) if node else ""

    @property
    def root(self) -> Tag:
        return self._soup.body or self._soup

    @property
    def can_go_back(self) -> bool:
        return self._history_index > 0

    @property
    def can_go_forward(self) -> bool:
        return self._history_index < len(self._history) - 1

    def select(self, selector: str, *, scope: Tag | None = None) -> list[Tag]:
        """Return nodes matching a CSS selector.

        Raises:
            SelectorSyntaxError: when the selector is malformed.
        """

        base = scope if scope is not None else self._soup
        return list(base.select(selector))

    def matches(self, node: Tag, selector: str) -> bool:
        try:
            return any(candidate is node for candidate in self._soup.select(selector))
        except SelectorSyntaxError:
            LOGGER.debug("Listener selector %r is malformed", selector)
            return False

    def is_attached(self, node: Any) -> bool:
        """Return True when ``node`` is still part of this document."""

        if not isinstance(node, Tag) or getattr(node, "decomposed", False):
            return False
        current: Any = node
        while current is not None:
            if current is self._soup:
                return True
            current = current.parent
        return False

    def mark_mutated(self) -> None:
        self.revision += 1

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    async def navigate(self, url: str) -> None:
        html = await self._fetch(url)
        del self._history[self._history_index + 1 :]
        self._history.append(url)
        self._history_index = len(self._history) - 1
        self._replace(html, url)

    async def back(self) -> bool:
        if not self.can_go_back:
            return False
        self._history_index -= 1
        await self._load_history_entry()
        return True

    async def forward(self) -> bool:
        if not self.can_go_forward:
            return False
        self._history_index += 1
        await self._load_history_entry()
        return True

    async def reload(self) -> None:
        if self._url == BLANK_URL or self._loader is None:
            self.mark_mutated()
            return
        await self._load_history_entry()

    def set_content(self, html: str) -> None:
        """Replace the whole document without touching history."""

        self._replace(html, self._url)

    async def _load_history_entry(self) -> None:
        url = self._history[self._history_index]
        html = _BLANK_HTML if url == BLANK_URL else await self._fetch(url)
        self._replace(html, url)

    async def _fetch(self, url: str) -> str:
        if url == BLANK_URL:
            return _BLANK_HTML
        if self._loader is None:
            raise PageLoadError(f"No page loader configured; cannot open {url}")
        return await self._loader.fetch(url)

    def _replace(self, html: str, url: str) -> None:
        self._soup = BeautifulSoup(html, _PARSER)
        self._url = url
        self._frames.clear()
        self.scroll_positions.clear()
        self.mark_mutated()
        LOGGER.debug("Document replaced (url=%s, revision=%s)", url, self.revision)

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------
    def frame_document(self, iframe: Tag) -> "PageDocument":
        """Return the nested document for an ``<iframe srcdoc=...>`` node."""

        key = id(iframe)
        frame = self._frames.get(key)
        if frame is None:
            markup = iframe.get("srcdoc")
            if not isinstance(markup, str):
                raise PageLoadError("Frame has no inline document")
            src = iframe.get("src")
            frame = PageDocument(
                markup,
                url=src if isinstance(src, str) else BLANK_URL,
                loader=self._loader,
                renderer=self.renderer,
                script_engine=self.script_engine,
            )
            self._frames[key] = frame
        return frame

    # ------------------------------------------------------------------
    # Events and console
    # ------------------------------------------------------------------
    def add_listener(self, selector: str, event_type: str, callback: Listener) -> None:
        """Run ``callback(document, node, event)`` when ``event_type`` hits ``selector``."""

        self._listeners.append((selector, event_type, callback))

    async def dispatch(self, event_type: str, node: Tag, **detail: Any) -> PageEvent:
        event = PageEvent(type=event_type, target=describe_node(node), detail=dict(detail))
        self.events.append(event)
        for selector, listened, callback in list(self._listeners):
            if listened != event_type or not self.matches(node, selector):
                continue
            try:
                result = callback(self, node, event)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                # Page script errors surface in the console, never in the caller.
                LOGGER.debug("Page listener for %s raised", event_type, exc_info=True)
                self.log("error", f"Uncaught {type(exc).__name__}: {exc}")
        return event

    def log(self, level: str, message: str) -> None:
        self.console.append({"type": level, "text": message})

    def drain_console(self, *, clear: bool) -> list[dict[str, Any]]:
        messages = [dict(entry) for entry in self.console]
        if clear:
            self.console.clear()
        return messages


def describe_node(node: Tag) -> str:
    """Short CSS-like label for logs and events."""

    label = node.name or "node"
    node_id = node.get("id")
    if isinstance(node_id, str) and node_id:
        return f"{label}#{node_id}"
    classes = node.get("class")
    if isinstance(classes, list) and classes:
        return f"{label}." + ".".join(classes)
    return label
