"""Page-side automation: live document, element references and the executor."""

from .agent import ExecutionError, PageAgent
from .describe import describe
from .document import (
    BLANK_URL,
    HttpPageLoader,
    PageDocument,
    PageEvent,
    PageLoader,
    PageLoadError,
    StaticPageLoader,
)
from .refs import ElementRefMap

__all__ = [
    "BLANK_URL",
    "ElementRefMap",
    "ExecutionError",
    "HttpPageLoader",
    "PageAgent",
    "PageDocument",
    "PageEvent",
    "PageLoader",
    "PageLoadError",
    "StaticPageLoader",
    "describe",
]
