"""Base language client manager interface."""

import abc
import asyncio
import enum
import logging
import os
from typing import Any, Callable, Dict, List, Optional, TypeAlias

from lsprotocol import types as lsp
from pygls.lsp.client import LanguageClient

from arialsp import __version__
from arialsp.servers.launch import (
    LaunchDescriptor,
    ResolvedCommand,
    ServerLocation,
    build_server_options,
    resolve_server_command,
)
from arialsp.utils.events import CompositeDisposable
from arialsp.utils.workspace import (
    DocumentFilter,
    DocumentSnapshot,
    FileChangeEvent,
    TextDocumentChangeEvent,
    WorkspaceManager,
    glob_matches,
    path_to_uri,
)

# Builds the protocol client for a session
ClientFactory: TypeAlias = Callable[[str, str], Any]

# window/logMessage type -> logging level
LOG_LEVELS = {
    lsp.MessageType.Error: logging.ERROR,
    lsp.MessageType.Warning: logging.WARNING,
    lsp.MessageType.Info: logging.INFO,
    lsp.MessageType.Log: logging.DEBUG,
}


class ClientState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class ClientNotRunningError(RuntimeError):
    """Raised when a request is sent without a running session."""


class BaseLanguageClientManager(abc.ABC):
    """Abstract base class for language client managers.

    A manager owns at most one protocol session with its server process.
    """

    def __init__(self, workspace: WorkspaceManager, client_factory: Optional[ClientFactory] = None):
        """Initialize the language client manager.

        Args:
            workspace: The workspace whose documents and files are synchronized.
            client_factory: Builds the protocol client from a name and version.
                Defaults to pygls' ``LanguageClient``.
        """
        self.workspace = workspace
        self.workspace_path = workspace.workspace_path
        self.logger = logging.getLogger(f"arialsp.servers.{self.language}")
        self.client_factory = client_factory or LanguageClient

        self.state = ClientState.UNINITIALIZED
        self.client: Optional[Any] = None
        self.command: Optional[ResolvedCommand] = None
        self.diagnostics: Dict[str, List[lsp.Diagnostic]] = {}
        self._sync_subscriptions: Optional[CompositeDisposable] = None

    @property
    @abc.abstractmethod
    def language(self) -> str:
        """Get the language identifier served by this client."""

    @property
    @abc.abstractmethod
    def client_id(self) -> str:
        """Get the identifier of the language client."""

    @property
    @abc.abstractmethod
    def document_selector(self) -> List[DocumentFilter]:
        """Get the filters for documents that participate in the session."""

    @property
    @abc.abstractmethod
    def file_watch_pattern(self) -> str:
        """Get the glob for files whose changes are forwarded to the server."""

    def is_running(self) -> bool:
        return self.state is ClientState.RUNNING and self.client is not None

    def matches_document(self, document: DocumentSnapshot) -> bool:
        return any(f.matches(document) for f in self.document_selector)

    def build_launch_descriptor(self, location: ServerLocation) -> LaunchDescriptor:
        """Resolve the server command and build its launch descriptor."""
        command = resolve_server_command(location)
        return build_server_options(command, cwd=self.workspace_path).run

    async def activate(self, location: ServerLocation) -> None:
        """Start the language server process and the protocol session.

        Args:
            location: Where to look for the server executable.
        """
        if self.state in (ClientState.STARTING, ClientState.RUNNING):
            self.logger.info(f"{self.language} language client is already {self.state.value}")
            return

        self.state = ClientState.STARTING
        descriptor = self.build_launch_descriptor(location)
        self.command = descriptor.command
        client = self.client_factory(self.client_id, __version__)
        self._register_features(client)

        try:
            self.logger.info(f"Starting {self.language} language server with command: {descriptor.command.path}")
            await client.start_io(descriptor.command.path, env=descriptor.environment, cwd=descriptor.cwd)
            self.client = client
            await self._initialize(client)
        except asyncio.CancelledError:
            self.logger.info(f"Start of {self.language} language server was cancelled")
            await self._abort_start(client)
            raise
        except Exception as e:
            self.logger.error(f"Failed to start {self.language} language server: {e}")
            await self._abort_start(client)
            raise

        self.state = ClientState.RUNNING
        self._start_synchronization()
        self.logger.info(f"{self.language} language server started successfully")

    async def deactivate(self) -> None:
        """Stop the protocol session. A no-op when nothing was started."""
        if self.client is None or self.state in (ClientState.UNINITIALIZED, ClientState.STOPPED):
            return None

        self.state = ClientState.STOPPING
        self._stop_synchronization()
        client, self.client = self.client, None

        self.logger.info(f"Stopping {self.language} language server")
        try:
            await client.shutdown_async(None)
            client.exit(None)
        except Exception as e:
            self.logger.warning(f"Error during {self.language} language server shutdown: {e}")
        await self._stop_client(client)

        self.state = ClientState.STOPPED
        self.logger.info(f"{self.language} language server stopped")
        return None

    async def restart(self, location: ServerLocation) -> None:
        await self.deactivate()
        await self.activate(location)

    async def send_request(self, method: str, params: Any, timeout: Optional[float] = None) -> Any:
        """Send a request over the running session and wait for the result.

        Args:
            method: The LSP method to call.
            params: Parameters for the method.
            timeout: Seconds to wait, or None to wait indefinitely.

        Returns:
            The response result.

        Raises:
            ClientNotRunningError: If no session is running.
        """
        if not self.is_running():
            raise ClientNotRunningError(f"{self.language} language client is not running")

        self.logger.debug(f"Sending {method} request")
        future = self.client.protocol.send_request_async(method, params)
        return await asyncio.wait_for(future, timeout)

    async def _abort_start(self, client: Any) -> None:
        self.client = None
        self.state = ClientState.STOPPED
        await self._stop_client(client)

    async def _stop_client(self, client: Any) -> None:
        try:
            await client.stop()
        except Exception as e:
            self.logger.debug(f"Error stopping {self.language} language client: {e}")

    def _register_features(self, client: Any) -> None:
        """Register handlers for notifications sent by the server."""

        @client.feature(lsp.WINDOW_LOG_MESSAGE)
        def on_log_message(params: lsp.LogMessageParams) -> None:
            self._handle_log_message(params)

        @client.feature(lsp.TEXT_DOCUMENT_PUBLISH_DIAGNOSTICS)
        def on_publish_diagnostics(params: lsp.PublishDiagnosticsParams) -> None:
            self.diagnostics[params.uri] = list(params.diagnostics)
            self.logger.debug(f"Received {len(params.diagnostics)} diagnostics for {params.uri}")

    def _handle_log_message(self, params: lsp.LogMessageParams) -> None:
        level = LOG_LEVELS.get(params.type, logging.INFO)
        self.logger.log(level, f"LSP server: {params.message}")

    async def _initialize(self, client: Any) -> None:
        """Run the initialize handshake."""
        workspace_uri = path_to_uri(self.workspace_path)
        params = lsp.InitializeParams(
            process_id=os.getpid(),
            root_uri=workspace_uri,
            workspace_folders=[
                lsp.WorkspaceFolder(uri=workspace_uri, name=os.path.basename(self.workspace_path)),
            ],
            capabilities=lsp.ClientCapabilities(
                text_document=lsp.TextDocumentClientCapabilities(
                    synchronization=lsp.TextDocumentSyncClientCapabilities(did_save=True),
                    definition=lsp.DefinitionClientCapabilities(),
                    publish_diagnostics=lsp.PublishDiagnosticsClientCapabilities(),
                    inlay_hint=lsp.InlayHintClientCapabilities(),
                ),
                workspace=lsp.WorkspaceClientCapabilities(
                    workspace_folders=True,
                    did_change_watched_files=lsp.DidChangeWatchedFilesClientCapabilities(),
                ),
            ),
        )
        result = await client.initialize_async(params)
        client.initialized(lsp.InitializedParams())

        server_info = getattr(result, "server_info", None)
        self.logger.info(f"Successfully initialized {self.language} LSP server: {server_info}")

    def _start_synchronization(self) -> None:
        """Forward document and watched-file events to the server."""
        subscriptions = CompositeDisposable(
            self.workspace.on_did_open_text_document.event(self._did_open),
            self.workspace.on_did_change_text_document.event(self._did_change),
            self.workspace.on_did_close_text_document.event(self._did_close),
            self.workspace.on_did_change_files.event(self._did_change_file),
        )
        self._sync_subscriptions = subscriptions

        for document in list(self.workspace.documents.values()):
            self._did_open(document)

    def _stop_synchronization(self) -> None:
        if self._sync_subscriptions is not None:
            self._sync_subscriptions.dispose()
            self._sync_subscriptions = None

    def _did_open(self, document: DocumentSnapshot) -> None:
        if not self.is_running() or not self.matches_document(document):
            return
        self.client.text_document_did_open(
            lsp.DidOpenTextDocumentParams(
                text_document=lsp.TextDocumentItem(
                    uri=document.uri,
                    language_id=document.language_id,
                    version=document.version,
                    text=document.text,
                )
            )
        )

    def _did_change(self, event: TextDocumentChangeEvent) -> None:
        if not self.is_running() or not self.matches_document(event.document):
            return
        self.client.text_document_did_change(
            lsp.DidChangeTextDocumentParams(
                text_document=lsp.VersionedTextDocumentIdentifier(
                    uri=event.document.uri,
                    version=event.document.version,
                ),
                content_changes=event.content_changes,
            )
        )

    def _did_close(self, document: DocumentSnapshot) -> None:
        if not self.is_running() or not self.matches_document(document):
            return
        self.client.text_document_did_close(
            lsp.DidCloseTextDocumentParams(text_document=lsp.TextDocumentIdentifier(uri=document.uri))
        )

    def _did_change_file(self, event: FileChangeEvent) -> None:
        if not self.is_running():
            return
        if not glob_matches(self.file_watch_pattern, self.workspace.relative_path(event.path)):
            return
        self.logger.debug(f"Forwarding {event.change_type.name} for {event.path}")
        self.client.workspace_did_change_watched_files(
            lsp.DidChangeWatchedFilesParams(
                changes=[lsp.FileEvent(uri=path_to_uri(event.path), type=event.change_type)]
            )
        )
