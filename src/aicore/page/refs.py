"""Session-scoped element references (``@ref:N``)."""

from __future__ import annotations

import re
from typing import Iterator

from bs4 import BeautifulSoup, Tag

__all__ = ["ElementRefMap", "REF_PREFIX", "is_ref", "parse_ref"]

REF_PREFIX = "@ref:"
_REF_PATTERN = re.compile(r"^@ref:(\d+)$")


def is_ref(selector: str) -> bool:
    return selector.strip().startswith(REF_PREFIX)


def parse_ref(selector: str) -> int | None:
    """Return the numeric part of ``@ref:N`` or ``None`` when malformed."""

    match = _REF_PATTERN.match(selector.strip())
    return int(match.group(1)) if match else None


class ElementRefMap:
    """Mints stable references for nodes and resolves them back.

    Counters only grow, so a reference is never handed to a second node even
    after the first one leaves the document. Nodes are held by reference and
    keyed by identity; a snapshot of an unchanged document therefore hands
    out the same tokens again.
    """

    def __init__(self) -> None:
        self._counter = 0
        self._by_ref: dict[str, Tag] = {}
        self._by_node: dict[int, str] = {}

    def __len__(self) -> int:
        return len(self._by_ref)

    def __contains__(self, ref: object) -> bool:
        return ref in self._by_ref

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_ref)

    @property
    def last_issued(self) -> int:
        return self._counter

    def ref_for(self, node: Tag) -> str:
        """Return the existing reference for ``node`` or mint a new one."""

        existing = self._by_node.get(id(node))
        if existing is not None and self._by_ref.get(existing) is node:
            return existing
        self._counter += 1
        ref = f"{REF_PREFIX}{self._counter}"
        self._by_ref[ref] = node
        self._by_node[id(node)] = ref
        return ref

    def lookup(self, ref: str) -> Tag | None:
        return self._by_ref.get(ref.strip())

    def was_issued(self, ref: str) -> bool:
        number = parse_ref(ref)
        return number is not None and 0 < number <= self._counter

    def prune_detached(self) -> int:
        """Drop handles to nodes removed from their document; return how many."""

        stale = [ref for ref, node in self._by_ref.items() if not _in_document(node)]
        for ref in stale:
            node = self._by_ref.pop(ref)
            if self._by_node.get(id(node)) == ref:
                del self._by_node[id(node)]
        return len(stale)

    def clear(self) -> None:
        """Forget node handles; the counter keeps going."""

        self._by_ref.clear()
        self._by_node.clear()


def _in_document(node: Tag) -> bool:
    if getattr(node, "decomposed", False):
        return False
    current = node
    while current.parent is not None:
        current = current.parent
    return isinstance(current, BeautifulSoup)
