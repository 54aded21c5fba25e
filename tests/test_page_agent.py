"""Tests for the page-side executor."""

from __future__ import annotations

import pytest

from aicore.page.agent import ExecutionError, PageAgent
from aicore.page.document import PageDocument, PageEvent
from aicore.services.bridge_types import Command, Response


async def _run(agent: PageAgent, action: str, command_id: str = "c1", **fields) -> Response:
    return await agent.execute({"id": command_id, "action": action, **fields})


def _ref_for(snapshot: dict, role: str, name: str) -> str:
    for ref, info in snapshot["refs"].items():
        if info["role"] == role and info["name"] == name:
            return ref
    raise AssertionError(f"no {role} named {name!r} in snapshot")


# ---------------------------------------------------------------------------
# Tests: command boundary
# ---------------------------------------------------------------------------


class TestCommandBoundary:
    @pytest.mark.asyncio
    async def test_unminted_ref_fails_with_command_id(self, agent: PageAgent) -> None:
        """Clicking a reference no snapshot handed out fails, echoing the id."""
        response = await agent.execute({"id": "1", "action": "click", "selector": "@ref:5"})

        assert response.id == "1"
        assert response.success is False
        assert response.error == "unknown element reference @ref:5"

    @pytest.mark.asyncio
    async def test_unknown_action(self, agent: PageAgent) -> None:
        """Unknown actions are answered, not raised."""
        response = await _run(agent, "teleport")

        assert response.success is False
        assert response.error == "Unknown action 'teleport'"

    @pytest.mark.asyncio
    async def test_missing_required_field(self, agent: PageAgent) -> None:
        """A click without a selector is rejected by the parser."""
        response = await _run(agent, "click")

        assert response.success is False
        assert response.error == "Action 'click' requires 'selector'"

    @pytest.mark.asyncio
    async def test_missing_id_reports_unknown(self, agent: PageAgent) -> None:
        """Commands without an id still get a response addressed to 'unknown'."""
        response = await agent.execute({"action": "url"})

        assert response.id == "unknown"
        assert response.success is False

    @pytest.mark.asyncio
    async def test_action_names_are_case_insensitive(self, agent: PageAgent) -> None:
        """Action matching ignores case and padding."""
        response = await _run(agent, " Title ")

        assert response.success is True
        assert response.data == {"title": "Login"}

    @pytest.mark.asyncio
    async def test_accepts_command_objects(self, agent: PageAgent) -> None:
        """Typed commands are executed as-is."""
        command = Command.create("url")
        response = await agent.execute(command)

        assert response.id == command.id
        assert response.data == {"url": "https://example.test/login"}


# ---------------------------------------------------------------------------
# Tests: snapshot and element references
# ---------------------------------------------------------------------------


class TestSnapshot:
    @pytest.mark.asyncio
    async def test_lists_interactive_elements_with_refs(self, agent: PageAgent) -> None:
        """Snapshot lines carry role, name, markers and a reference."""
        data = await agent.snapshot()
        text = data["snapshot"]

        assert '- heading "Sign in" [level=1] [ref=@ref:' in text
        assert 'button "Sign in"' in text
        assert 'button "Locked" [disabled]' in text
        assert 'textbox "Username"' in text
        assert 'checkbox "Remember me" [unchecked]' in text
        assert 'link "Next page" [url=/next]' in text
        assert data["url"] == "https://example.test/login"
        assert data["title"] == "Login"

    @pytest.mark.asyncio
    async def test_hidden_elements_are_skipped(self, agent: PageAgent) -> None:
        """Elements styled display:none never appear."""
        data = await agent.snapshot()

        assert "Secret" not in data["snapshot"]

    @pytest.mark.asyncio
    async def test_hidden_text_stays_out_of_names(self, agent: PageAgent, document: PageDocument) -> None:
        """Names are built from rendered text; containers use labels only."""
        document.set_content(
            "<form><button>Go</button><span style='display:none'>TOPSECRET</span></form>"
            "<ul><li>Shown <span hidden>gone</span></li></ul>"
            "<nav aria-label='Primary'><a href='/home'>Home</a></nav>"
        )

        text = (await agent.snapshot())["snapshot"]

        assert "TOPSECRET" not in text
        assert "gone" not in text
        assert "- form [ref=@ref:" in text
        assert 'listitem "Shown"' in text
        assert 'navigation "Primary"' in text
        assert 'link "Home"' in text

    @pytest.mark.asyncio
    async def test_removed_nodes_are_pruned_from_refs(self, agent: PageAgent, document: PageDocument) -> None:
        """A later snapshot drops handles to nodes that left the document."""
        first = await agent.snapshot()
        ref = _ref_for(first, "paragraph", "Welcome back.")
        document.select("#intro")[0].extract()

        await agent.snapshot()
        response = await _run(agent, "click", selector=ref)

        assert ref not in agent.refs
        assert response.success is False
        assert response.error.startswith(f"stale element reference {ref}")

    @pytest.mark.asyncio
    async def test_repeat_snapshot_is_identical(self, agent: PageAgent) -> None:
        """An unchanged document yields the same text and references."""
        first = await agent.snapshot()
        second = await agent.snapshot()

        assert first["snapshot"] == second["snapshot"]
        assert first["refs"] == second["refs"]

    @pytest.mark.asyncio
    async def test_interactive_mode_drops_text(self, agent: PageAgent) -> None:
        """interactive=true keeps only actionable nodes."""
        data = await agent.snapshot(interactive=True)

        assert "text:" not in data["snapshot"]
        assert "heading" not in data["snapshot"]
        assert 'button "Sign in"' in data["snapshot"]

    @pytest.mark.asyncio
    async def test_scoped_to_selector(self, agent: PageAgent) -> None:
        """A selector restricts the snapshot to that subtree."""
        data = await agent.snapshot(selector="#intro")

        assert data["snapshot"].startswith('- paragraph "Welcome back."')
        assert "button" not in data["snapshot"]

    @pytest.mark.asyncio
    async def test_ref_targets_snapshot_node(self, agent: PageAgent, document: PageDocument) -> None:
        """Acting on a reference reaches the node it was minted for."""
        data = await agent.snapshot()
        ref = _ref_for(data, "textbox", "Username")

        await agent.fill(ref, "ada")

        assert document.select("#user")[0]["value"] == "ada"

    @pytest.mark.asyncio
    async def test_ref_goes_stale_when_node_is_removed(self, agent: PageAgent, document: PageDocument) -> None:
        """A reference to a detached node reports staleness."""
        data = await agent.snapshot()
        ref = _ref_for(data, "button", "Sign in")
        document.select("#submit")[0].extract()

        response = await _run(agent, "click", selector=ref)

        assert response.success is False
        assert response.error.startswith(f"stale element reference {ref}")

    @pytest.mark.asyncio
    async def test_refs_are_retired_after_navigation(self, agent: PageAgent) -> None:
        """References from a previous page are stale, never reused."""
        before = await agent.snapshot()
        old_ref = _ref_for(before, "link", "Next page")

        await agent.navigate("https://example.test/next")
        after = await agent.snapshot()
        response = await _run(agent, "click", selector=old_ref)

        assert response.success is False
        assert "stale element reference" in response.error
        assert old_ref not in after["refs"]


# ---------------------------------------------------------------------------
# Tests: preconditions and selectors
# ---------------------------------------------------------------------------


class TestPreconditions:
    @pytest.mark.asyncio
    async def test_disabled_element(self, agent: PageAgent) -> None:
        response = await _run(agent, "click", selector="#disabled-btn")

        assert response.error == "element is disabled: #disabled-btn"

    @pytest.mark.asyncio
    async def test_hidden_element(self, agent: PageAgent) -> None:
        response = await _run(agent, "click", selector="#hidden-btn")

        assert response.error == "element is not visible: #hidden-btn"

    @pytest.mark.asyncio
    async def test_fill_requires_editable(self, agent: PageAgent) -> None:
        response = await _run(agent, "fill", selector="#submit", value="x")

        assert response.error == "element is not editable: #submit"

    @pytest.mark.asyncio
    async def test_invalid_selector(self, agent: PageAgent) -> None:
        response = await _run(agent, "gettext", selector="div[")

        assert response.error == "invalid selector: div["

    @pytest.mark.asyncio
    async def test_element_not_found(self, agent: PageAgent) -> None:
        response = await _run(agent, "gettext", selector="#missing")

        assert response.error == "element not found: #missing"

    @pytest.mark.asyncio
    async def test_isvisible_does_not_fail_for_missing(self, agent: PageAgent) -> None:
        """Visibility checks answer False rather than failing."""
        missing = await _run(agent, "isvisible", selector="#missing")
        hidden = await _run(agent, "isvisible", selector="#hidden-btn")
        shown = await _run(agent, "isvisible", selector="#submit")

        assert missing.data == {"visible": False}
        assert hidden.data == {"visible": False}
        assert shown.data == {"visible": True}

    @pytest.mark.asyncio
    async def test_convenience_methods_raise(self, agent: PageAgent) -> None:
        """The convenience API raises ExecutionError for failed commands."""
        with pytest.raises(ExecutionError, match="element not found"):
            await agent.get_text("#missing")


# ---------------------------------------------------------------------------
# Tests: interaction
# ---------------------------------------------------------------------------


class TestInteraction:
    @pytest.mark.asyncio
    async def test_fill_replaces_value_and_fires_events(self, agent: PageAgent, document: PageDocument) -> None:
        data = await agent.fill("#user", "grace")

        assert data == {"value": "grace"}
        assert document.select("#user")[0]["value"] == "grace"
        assert [event.type for event in document.events] == ["input", "change"]

    @pytest.mark.asyncio
    async def test_type_appends_key_by_key(self, agent: PageAgent, document: PageDocument) -> None:
        await agent.fill("#user", "ab")
        data = await agent.type("#user", "cd")

        assert data == {"value": "abcd"}
        keydowns = [event.detail["key"] for event in document.events if event.type == "keydown"]
        assert keydowns == ["c", "d"]

    @pytest.mark.asyncio
    async def test_type_with_clear(self, agent: PageAgent) -> None:
        await agent.fill("#user", "old")

        assert (await agent.type("#user", "new", clear=True)) == {"value": "new"}

    @pytest.mark.asyncio
    async def test_checkbox_toggles(self, agent: PageAgent, document: PageDocument) -> None:
        assert (await _run(agent, "check", selector="#remember")).data == {"checked": True}
        assert document.select("#remember")[0].has_attr("checked")

        assert (await _run(agent, "uncheck", selector="#remember")).data == {"checked": False}
        assert not document.select("#remember")[0].has_attr("checked")

    @pytest.mark.asyncio
    async def test_check_rejects_non_checkbox(self, agent: PageAgent) -> None:
        response = await _run(agent, "check", selector="#user")

        assert response.error == "element is not a checkbox or radio: #user"

    @pytest.mark.asyncio
    async def test_select_option(self, agent: PageAgent, document: PageDocument) -> None:
        response = await _run(agent, "select", selector="#color", values="blue")

        assert response.data == {"selected": ["blue"]}
        selected = [option["value"] for option in document.select("#color option[selected]")]
        assert selected == ["blue"]

    @pytest.mark.asyncio
    async def test_select_unknown_option(self, agent: PageAgent) -> None:
        response = await _run(agent, "select", selector="#color", values=["green"])

        assert response.error == "option not found: green"

    @pytest.mark.asyncio
    async def test_submit_button_fires_submit(self, agent: PageAgent, document: PageDocument) -> None:
        await agent.click("#submit")

        assert [event.type for event in document.events] == ["click", "submit"]
        assert document.events[-1].target == "form#login"

    @pytest.mark.asyncio
    async def test_listener_reacts_to_click(self, agent: PageAgent, document: PageDocument) -> None:
        """Listeners model page scripts reacting to user actions."""

        def on_submit(doc: PageDocument, node, event: PageEvent) -> None:
            doc.select("#intro")[0].string = "Signed in"

        document.add_listener("#login", "submit", on_submit)
        await agent.click("#submit")

        assert await agent.get_text("#intro") == "Signed in"

    @pytest.mark.asyncio
    async def test_listener_errors_go_to_console(self, agent: PageAgent, document: PageDocument) -> None:
        """A failing page script logs to the console and the action still succeeds."""

        def broken(doc, node, event) -> None:
            raise ValueError("boom")

        document.add_listener("#submit", "click", broken)
        result = await agent.click("#submit")
        console = await _run(agent, "console", clear=True)

        assert result == {"clicked": True}
        assert console.data == {"messages": [{"type": "error", "text": "Uncaught ValueError: boom"}]}
        assert document.console == []

    @pytest.mark.asyncio
    async def test_press_enter_submits_form(self, agent: PageAgent, document: PageDocument) -> None:
        data = await agent.press("Enter", "#user")

        assert data == {"key": "Enter", "target": "input#user"}
        assert document.events[-1].type == "submit"

    @pytest.mark.asyncio
    async def test_scroll_accumulates(self, agent: PageAgent) -> None:
        await agent.scroll(direction="down", amount=100)
        data = await agent.scroll(direction="down", amount=50)

        assert data == {"x": 0.0, "y": 150.0}

    @pytest.mark.asyncio
    async def test_evaluate_without_engine(self, agent: PageAgent) -> None:
        response = await _run(agent, "evaluate", script="1 + 1")

        assert response.error == "evaluate is not supported: no script engine attached"

    @pytest.mark.asyncio
    async def test_screenshot_without_renderer(self, agent: PageAgent) -> None:
        response = await _run(agent, "screenshot")

        assert response.error == "screenshot is not supported: no renderer attached"


# ---------------------------------------------------------------------------
# Tests: semantic locators
# ---------------------------------------------------------------------------


class TestLocators:
    @pytest.mark.asyncio
    async def test_getbyrole_lists_matches(self, agent: PageAgent) -> None:
        response = await _run(agent, "getbyrole", role="button")

        names = [element["name"] for element in response.data["elements"]]
        assert response.data["count"] == 2
        assert names == ["Sign in", "Locked"]
        assert all(element["ref"].startswith("@ref:") for element in response.data["elements"])

    @pytest.mark.asyncio
    async def test_getbyrole_with_subaction(self, agent: PageAgent, document: PageDocument) -> None:
        response = await _run(agent, "getbyrole", role="button", name="sign in", subaction="click")

        assert response.success is True
        assert response.data["clicked"] is True
        assert response.data["count"] == 1
        assert document.events[-1].type == "submit"

    @pytest.mark.asyncio
    async def test_getbylabel_fill(self, agent: PageAgent, document: PageDocument) -> None:
        response = await _run(agent, "getbylabel", label="Password", subaction="fill", value="hunter2")

        assert response.data["value"] == "hunter2"
        assert document.select("#pw")[0]["value"] == "hunter2"

    @pytest.mark.asyncio
    async def test_getbyplaceholder(self, agent: PageAgent) -> None:
        response = await _run(agent, "getbyplaceholder", placeholder="your name")

        assert response.data["count"] == 1
        assert response.data["elements"][0]["role"] == "textbox"

    @pytest.mark.asyncio
    async def test_subaction_without_match(self, agent: PageAgent) -> None:
        response = await _run(agent, "getbytext", text="Nowhere", subaction="click")

        assert response.error == "element not found: text=Nowhere"

    @pytest.mark.asyncio
    async def test_locator_refs_are_usable(self, agent: PageAgent) -> None:
        """References minted by a locator resolve like snapshot references."""
        listing = await _run(agent, "getbytext", text="Welcome back.", exact=True)
        ref = listing.data["elements"][0]["ref"]

        assert await agent.get_text(ref) == "Welcome back."


# ---------------------------------------------------------------------------
# Tests: navigation
# ---------------------------------------------------------------------------


class TestNavigation:
    @pytest.mark.asyncio
    async def test_link_click_navigates(self, agent: PageAgent) -> None:
        await agent.click("#next")
        response = await _run(agent, "title")

        assert response.data == {"title": "Next"}
        assert agent.document.url == "https://example.test/next"

    @pytest.mark.asyncio
    async def test_back_and_forward(self, agent: PageAgent) -> None:
        await agent.navigate("https://example.test/next")

        back = await agent.back()
        forward = await agent.forward()
        again = await agent.forward()

        assert back == {"navigated": True, "url": "https://example.test/login", "title": "Login"}
        assert forward["url"] == "https://example.test/next"
        assert again["navigated"] is False

    @pytest.mark.asyncio
    async def test_unknown_url_fails(self, agent: PageAgent) -> None:
        response = await _run(agent, "navigate", url="https://example.test/nowhere")

        assert response.success is False
        assert response.error.startswith("navigation failed:")

    @pytest.mark.asyncio
    async def test_wait_for_selector_times_out(self, agent: PageAgent) -> None:
        response = await _run(agent, "wait", selector="#never", timeout=20)

        assert response.error == "timeout waiting for #never to be visible"

    @pytest.mark.asyncio
    async def test_wait_hidden_is_satisfied(self, agent: PageAgent) -> None:
        response = await _run(agent, "wait", selector="#hidden-btn", state="hidden", timeout=20)

        assert response.data == {"state": "hidden"}
