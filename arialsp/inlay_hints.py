"""Inlay hints overlay backed by the server's ``custom/inlay_hint`` request.

The server answers with ``[start, end, label]`` triples whose offsets refer
to the document text it last received. Hints are anchored at the end
offset and mapped using the snapshot the request was issued against; a
response that arrives after the document moved on is dropped, since the
change notification already asked the editor to request fresh hints.
"""

import asyncio
import logging
from typing import Any, List, NamedTuple, Optional

from lsprotocol import types as lsp

from arialsp.config import Configuration, ConfigurationChangeEvent
from arialsp.servers.base import BaseLanguageClientManager
from arialsp.utils.events import CancellationToken, CompositeDisposable, Disposable, EventEmitter
from arialsp.utils.result import Outcome
from arialsp.utils.workspace import DocumentSnapshot, TextDocumentChangeEvent, WorkspaceManager

INLAY_HINT_METHOD = "custom/inlay_hint"

# Command attached to every hint label
SELECT_HINT_COMMAND = "aria.inlayHint.select"

logger = logging.getLogger("arialsp.inlay_hints")


class RawHint(NamedTuple):
    start: int
    end: int
    label: str


def parse_raw_hints(result: Any) -> List[RawHint]:
    """Validate the server's response.

    Raises:
        ValueError: If the result is not a list of ``[int, int, str]`` triples.
    """
    if not isinstance(result, list):
        raise ValueError(f"Expected a list of hints, got {type(result).__name__}")

    hints = []
    for item in result:
        if not isinstance(item, (list, tuple)) or len(item) != 3:
            raise ValueError(f"Malformed hint: {item!r}")
        start, end, label = item
        if any(not isinstance(offset, int) or isinstance(offset, bool) for offset in (start, end)):
            raise ValueError(f"Malformed hint offsets: {item!r}")
        if not isinstance(label, str):
            raise ValueError(f"Malformed hint label: {item!r}")
        hints.append(RawHint(start, end, label))
    return hints


def to_inlay_hint(document: DocumentSnapshot, raw: RawHint) -> lsp.InlayHint:
    """Position a raw hint at its end offset in the given snapshot."""
    return lsp.InlayHint(
        position=document.position_at(raw.end),
        label=[
            lsp.InlayHintLabelPart(
                value=raw.label,
                command=lsp.Command(
                    title=raw.label,
                    command=SELECT_HINT_COMMAND,
                    arguments=[document.uri, raw.start, raw.end],
                ),
            )
        ],
        padding_left=True,
    )


class InlayHintsOverlay:
    """Registers the hints provider and keeps its results fresh."""

    def __init__(
        self,
        client_manager: BaseLanguageClientManager,
        workspace: WorkspaceManager,
        configuration: Configuration,
    ):
        self.client_manager = client_manager
        self.workspace = workspace
        self.configuration = configuration
        self.hints_provider: Optional[Disposable] = None
        self.update_hints_event_emitter: EventEmitter[None] = EventEmitter("onDidChangeInlayHints")

    @property
    def on_did_change_inlay_hints(self) -> Any:
        return self.update_hints_event_emitter.event

    def on_configuration_changed(self, event: Optional[ConfigurationChangeEvent] = None) -> None:
        """Drop the current registration and register again if hints are enabled."""
        self._dispose_provider()

        if not self.configuration.settings.inlay_hints.enabled:
            logger.info("Inlay hints disabled")
            return

        self.hints_provider = self.workspace.register_inlay_hints_provider(
            self.client_manager.document_selector, self
        )
        logger.debug("Registered inlay hints provider")

    def on_document_changed(self, event: TextDocumentChangeEvent) -> None:
        if not self.client_manager.matches_document(event.document):
            return
        self.update_hints_event_emitter.fire(None)

    async def request_inlay_hints(
        self,
        document: DocumentSnapshot,
        token: Optional[CancellationToken] = None,
    ) -> Outcome[List[lsp.InlayHint]]:
        """Fetch hints for a document snapshot.

        Args:
            document: The snapshot the offsets will be mapped against.
            token: Cancellation signal from the editor.

        Returns:
            The mapped hints, or an empty outcome with the failure reason.
        """
        timeout = self.configuration.settings.inlay_hints.request_timeout
        request = asyncio.ensure_future(
            self.client_manager.send_request(INLAY_HINT_METHOD, {"path": document.uri}, timeout)
        )

        try:
            if token is None:
                result = await request
            else:
                cancelled = asyncio.ensure_future(token.wait())
                try:
                    await asyncio.wait({request, cancelled}, return_when=asyncio.FIRST_COMPLETED)
                finally:
                    cancelled.cancel()
                if token.is_cancellation_requested:
                    if request.done() and not request.cancelled():
                        request.exception()
                    request.cancel()
                    return Outcome.empty("cancelled")
                result = request.result()
            raw_hints = parse_raw_hints(result)
        except asyncio.TimeoutError:
            logger.debug(f"{INLAY_HINT_METHOD} timed out for {document.uri}")
            return Outcome.empty("timeout")
        except Exception as e:
            logger.debug(f"{INLAY_HINT_METHOD} failed for {document.uri}: {e}")
            return Outcome.empty(str(e))

        current = self.workspace.get_document(document.uri)
        if current is not None and current.version != document.version:
            logger.debug(f"Dropping hints for {document.uri} computed against version {document.version}")
            return Outcome.empty("stale")

        return Outcome.ok([to_inlay_hint(document, raw) for raw in raw_hints])

    async def provide_inlay_hints(
        self,
        document: DocumentSnapshot,
        range: lsp.Range,
        token: Optional[CancellationToken] = None,
    ) -> List[lsp.InlayHint]:
        outcome = await self.request_inlay_hints(document, token)
        return outcome.value_or([])

    async def resolve_inlay_hint(
        self, hint: lsp.InlayHint, token: Optional[CancellationToken] = None
    ) -> lsp.InlayHint:
        return hint

    def _dispose_provider(self) -> None:
        if self.hints_provider is not None:
            self.hints_provider.dispose()
            self.hints_provider = None

    def dispose(self) -> None:
        self._dispose_provider()
        self.update_hints_event_emitter.dispose()


def activate_inlay_hints(
    client_manager: BaseLanguageClientManager,
    workspace: WorkspaceManager,
    configuration: Configuration,
    subscriptions: CompositeDisposable,
) -> InlayHintsOverlay:
    """Create the overlay, subscribe it to editor events and register it.

    Args:
        client_manager: The session the hint requests go through.
        workspace: The editor surface.
        configuration: Settings store.
        subscriptions: Group that owns the overlay's registrations.

    Returns:
        The overlay.
    """
    overlay = InlayHintsOverlay(client_manager, workspace, configuration)

    def on_configuration_changed(event: ConfigurationChangeEvent) -> None:
        if event.affects_configuration("aria.inlayHints"):
            overlay.on_configuration_changed(event)

    subscriptions.add(configuration.on_did_change_configuration.event(on_configuration_changed))
    subscriptions.add(workspace.on_did_change_text_document.event(overlay.on_document_changed))
    subscriptions.add(overlay)

    overlay.on_configuration_changed()
    return overlay
