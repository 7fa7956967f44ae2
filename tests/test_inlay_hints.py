"""Tests for the inlay hints overlay."""

import asyncio

import pytest
from lsprotocol import types as lsp

from arialsp.config import AriaSettings, Configuration, InlayHintSettings
from arialsp.inlay_hints import (
    INLAY_HINT_METHOD,
    SELECT_HINT_COMMAND,
    InlayHintsOverlay,
    activate_inlay_hints,
    parse_raw_hints,
)
from arialsp.utils.events import CancellationToken, CompositeDisposable
from tests.conftest import PENDING

WHOLE_FILE = lsp.Range(start=lsp.Position(line=0, character=0), end=lsp.Position(line=100, character=0))


@pytest.fixture
def configuration():
    return Configuration()


@pytest.fixture
def overlay(manager, workspace, configuration):
    return InlayHintsOverlay(manager, workspace, configuration)


@pytest.fixture
def document(workspace, tmp_path):
    # offset 5 -> (1, 1), offset 10 -> (1, 6)
    return workspace.open_document(str(tmp_path / "main.aria"), "abc\nxyzuvwxyz\n")


@pytest.mark.asyncio
async def test_hint_is_anchored_at_end_offset(overlay, manager, client_factory, location, document):
    client_factory.responses[INLAY_HINT_METHOD] = [[5, 10, "T"]]
    await manager.activate(location)

    hints = await overlay.provide_inlay_hints(document, WHOLE_FILE)

    assert len(hints) == 1
    hint = hints[0]
    assert document.position_at(5) == lsp.Position(line=1, character=1)
    assert hint.position == lsp.Position(line=1, character=6)
    assert hint.padding_left is True
    assert hint.label[0].value == "T"


@pytest.mark.asyncio
async def test_hint_after_astral_character_uses_utf16_column(overlay, manager, client_factory, location, workspace, tmp_path):
    emoji = workspace.open_document(str(tmp_path / "emoji.aria"), "😀x = 1\n")
    client_factory.responses[INLAY_HINT_METHOD] = [[1, 2, ": Int"]]
    await manager.activate(location)

    [hint] = await overlay.provide_inlay_hints(emoji, WHOLE_FILE)

    assert hint.position == lsp.Position(line=0, character=3)
    assert hint.label[0].command.arguments == [emoji.uri, 1, 2]


@pytest.mark.asyncio
async def test_request_carries_document_uri(overlay, manager, client_factory, location, document):
    client_factory.responses[INLAY_HINT_METHOD] = []
    await manager.activate(location)

    assert await overlay.provide_inlay_hints(document, WHOLE_FILE) == []
    assert client_factory.last.requests == [(INLAY_HINT_METHOD, {"path": document.uri})]


@pytest.mark.asyncio
async def test_hint_label_carries_select_command(overlay, manager, client_factory, location, document):
    client_factory.responses[INLAY_HINT_METHOD] = [[0, 3, ": Int"]]
    await manager.activate(location)

    [hint] = await overlay.provide_inlay_hints(document, WHOLE_FILE)

    command = hint.label[0].command
    assert command.command == SELECT_HINT_COMMAND
    assert command.title == ": Int"
    assert command.arguments == [document.uri, 0, 3]


@pytest.mark.asyncio
async def test_failing_request_yields_no_hints(overlay, manager, client_factory, location, document):
    client_factory.responses[INLAY_HINT_METHOD] = RuntimeError("method not found")
    await manager.activate(location)

    assert await overlay.provide_inlay_hints(document, WHOLE_FILE) == []
    outcome = await overlay.request_inlay_hints(document)
    assert outcome.is_empty
    assert "method not found" in outcome.reason


@pytest.mark.asyncio
async def test_malformed_response_yields_no_hints(overlay, manager, client_factory, location, document):
    client_factory.responses[INLAY_HINT_METHOD] = [[1, "x"]]
    await manager.activate(location)

    assert await overlay.provide_inlay_hints(document, WHOLE_FILE) == []


@pytest.mark.asyncio
async def test_no_session_yields_no_hints(overlay, document):
    assert await overlay.provide_inlay_hints(document, WHOLE_FILE) == []


@pytest.mark.asyncio
async def test_timeout_yields_no_hints(manager, workspace, client_factory, location, document):
    configuration = Configuration(AriaSettings(inlay_hints=InlayHintSettings(request_timeout=0.01)))
    overlay = InlayHintsOverlay(manager, workspace, configuration)
    client_factory.responses[INLAY_HINT_METHOD] = PENDING
    await manager.activate(location)

    outcome = await overlay.request_inlay_hints(document)

    assert outcome.is_empty
    assert outcome.reason == "timeout"


@pytest.mark.asyncio
async def test_cancellation_abandons_request(overlay, manager, client_factory, location, document):
    client_factory.responses[INLAY_HINT_METHOD] = PENDING
    await manager.activate(location)
    token = CancellationToken()

    task = asyncio.ensure_future(overlay.provide_inlay_hints(document, WHOLE_FILE, token))
    await asyncio.sleep(0.01)
    token.cancel()

    assert await task == []
    await asyncio.sleep(0.01)
    assert client_factory.last.pending[0].cancelled()


@pytest.mark.asyncio
async def test_response_for_stale_document_is_dropped(overlay, manager, client_factory, location, workspace, document):
    client_factory.responses[INLAY_HINT_METHOD] = PENDING
    await manager.activate(location)

    task = asyncio.ensure_future(overlay.request_inlay_hints(document))
    await asyncio.sleep(0.01)
    workspace.change_document(document.uri, "a\n")
    client_factory.last.pending[0].set_result([[5, 10, "T"]])

    outcome = await task
    assert outcome.is_empty
    assert outcome.reason == "stale"


@pytest.mark.asyncio
async def test_resolve_returns_same_hint(overlay):
    hint = lsp.InlayHint(position=lsp.Position(line=0, character=0), label="x")
    assert await overlay.resolve_inlay_hint(hint) is hint


def test_configuration_change_keeps_single_registration(overlay, workspace):
    overlay.on_configuration_changed()
    overlay.on_configuration_changed()

    assert len(workspace.inlay_hint_providers) == 1
    assert overlay.hints_provider is not None


def test_disabled_hints_are_not_registered(manager, workspace):
    configuration = Configuration(AriaSettings(inlay_hints=InlayHintSettings(enabled=False)))
    overlay = InlayHintsOverlay(manager, workspace, configuration)

    overlay.on_configuration_changed()

    assert overlay.hints_provider is None
    assert workspace.inlay_hint_providers == []


def test_dispose_twice(overlay, workspace):
    overlay.on_configuration_changed()

    overlay.dispose()
    assert overlay.hints_provider is None
    overlay.dispose()
    assert overlay.hints_provider is None
    assert workspace.inlay_hint_providers == []


def test_dispose_without_registration(overlay):
    overlay.dispose()
    assert overlay.hints_provider is None


def test_document_change_fires_notifier_for_aria_documents(overlay, workspace, document, tmp_path):
    fired = []
    overlay.on_did_change_inlay_hints(fired.append)
    text = workspace.open_document(str(tmp_path / "notes.txt"), "")
    subscription = workspace.on_did_change_text_document.event(overlay.on_document_changed)

    workspace.change_document(text.uri, "hello")
    workspace.change_document(document.uri, "abc\n")
    subscription.dispose()

    assert fired == [None]


def test_activate_registers_and_follows_settings(manager, workspace, configuration):
    subscriptions = CompositeDisposable()
    overlay = activate_inlay_hints(manager, workspace, configuration, subscriptions)
    assert workspace.inlay_hint_providers == [(manager.document_selector, overlay)]

    configuration.update(AriaSettings(inlay_hints=InlayHintSettings(enabled=False)))
    assert workspace.inlay_hint_providers == []

    configuration.update(AriaSettings())
    assert len(workspace.inlay_hint_providers) == 1

    subscriptions.dispose()
    assert workspace.inlay_hint_providers == []
    assert overlay.hints_provider is None


def test_registered_provider_is_found_for_aria_documents(overlay, workspace, document, tmp_path):
    overlay.on_configuration_changed()
    text = workspace.open_document(str(tmp_path / "notes.txt"), "")

    assert workspace.inlay_hint_providers_for(document) == [overlay]
    assert workspace.inlay_hint_providers_for(text) == []


@pytest.mark.parametrize(
    "result",
    [
        None,
        {"hints": []},
        [[1, 2]],
        [["a", 2, "x"]],
        [1, 2, "x"],
        [[True, 2, "x"]],
        [[0, False, "x"]],
        [[0, 2, None]],
        [[0, 2, 5]],
    ],
)
def test_parse_raw_hints_rejects_malformed(result):
    with pytest.raises(ValueError):
        parse_raw_hints(result)
