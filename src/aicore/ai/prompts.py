"""Prompt templates injected by the request pipeline."""

from __future__ import annotations

__all__ = ["BROWSER_SYSTEM_PROMPT", "BROWSER_PROMPT_MARKER", "with_browser_prompt"]

# A system prompt mentioning this tool is treated as already browser-aware.
BROWSER_PROMPT_MARKER = "browser_snapshot"

BROWSER_SYSTEM_PROMPT = """
You have access to browser automation tools that act on the page the user is viewing.

## Workflow
1. Call browser_snapshot FIRST to get the page structure with element references (@ref:N)
2. Use @ref:N references for reliable element targeting (more stable than CSS selectors)
3. For forms, prefer semantic locators: browser_get_by_role, browser_get_by_label, browser_get_by_text
4. After actions that change the page, call browser_snapshot again
5. Use browser_describe to get help on any action

## Element References
Snapshots return refs like @ref:5 or @ref:12 that stay valid while the element stays on the page.
After navigation, old references are stale; take a new snapshot.

## Tips
- Use browser_fill for instant input, browser_type for key-by-key input
- Use browser_wait if the page needs time to update after an action
- Failed actions return an error message; read it and adjust the next call
""".strip()


def with_browser_prompt(system: str | None) -> str:
    """Append the browser prompt to ``system`` unless it is already browser-aware."""

    if not system:
        return BROWSER_SYSTEM_PROMPT
    if BROWSER_PROMPT_MARKER in system:
        return system
    return f"{system}\n\n{BROWSER_SYSTEM_PROMPT}"
