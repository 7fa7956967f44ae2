"""Shared fixtures: an in-memory stand-in for pygls' LanguageClient."""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest
from lsprotocol import types as lsp

from arialsp.servers.aria_server import AriaLanguageClientManager
from arialsp.servers.launch import ServerLocation
from arialsp.utils.workspace import WorkspaceManager

# Response marker: leave the request future unresolved
PENDING = object()


class FakeProtocol:
    def __init__(self, client: "FakeLanguageClient"):
        self.client = client

    def send_request_async(self, method: str, params: Any) -> "asyncio.Future[Any]":
        self.client.requests.append((method, params))
        future = asyncio.get_running_loop().create_future()
        response = self.client.factory.responses.get(method)
        if response is PENDING:
            self.client.pending.append(future)
        elif isinstance(response, Exception):
            future.set_exception(response)
        else:
            future.set_result(response)
        return future


class FakeLanguageClient:
    def __init__(self, factory: "FakeClientFactory", name: str, version: str):
        self.factory = factory
        self.name = name
        self.version = version
        self.protocol = FakeProtocol(self)
        self.features: Dict[str, Any] = {}
        self.started_with: Optional[Tuple[str, Dict[str, str], Optional[str]]] = None
        self.calls: List[str] = []
        self.notifications: List[Tuple[str, Any]] = []
        self.requests: List[Tuple[str, Any]] = []
        self.pending: List["asyncio.Future[Any]"] = []

    def feature(self, method: str):
        def decorator(func):
            self.features[method] = func
            return func

        return decorator

    async def start_io(self, cmd: str, *args: str, env=None, cwd=None) -> None:
        self.calls.append("start_io")
        self.started_with = (cmd, env, cwd)
        if self.factory.start_error is not None:
            raise self.factory.start_error

    async def initialize_async(self, params: lsp.InitializeParams) -> lsp.InitializeResult:
        self.calls.append("initialize")
        if self.factory.initialize_gate is not None:
            await self.factory.initialize_gate.wait()
        return lsp.InitializeResult(capabilities=lsp.ServerCapabilities())

    def initialized(self, params: lsp.InitializedParams) -> None:
        self.calls.append("initialized")

    async def shutdown_async(self, params: None) -> None:
        self.calls.append("shutdown")

    def exit(self, params: None) -> None:
        self.calls.append("exit")

    async def stop(self) -> None:
        self.calls.append("stop")

    def text_document_did_open(self, params: lsp.DidOpenTextDocumentParams) -> None:
        self.notifications.append((lsp.TEXT_DOCUMENT_DID_OPEN, params))

    def text_document_did_change(self, params: lsp.DidChangeTextDocumentParams) -> None:
        self.notifications.append((lsp.TEXT_DOCUMENT_DID_CHANGE, params))

    def text_document_did_close(self, params: lsp.DidCloseTextDocumentParams) -> None:
        self.notifications.append((lsp.TEXT_DOCUMENT_DID_CLOSE, params))

    def workspace_did_change_watched_files(self, params: lsp.DidChangeWatchedFilesParams) -> None:
        self.notifications.append((lsp.WORKSPACE_DID_CHANGE_WATCHED_FILES, params))


class FakeClientFactory:
    """Creates fake clients and remembers every one it created."""

    def __init__(self) -> None:
        self.clients: List[FakeLanguageClient] = []
        self.responses: Dict[str, Any] = {}
        self.start_error: Optional[Exception] = None
        # When set, initialize blocks until the event is set
        self.initialize_gate: Optional[asyncio.Event] = None

    def __call__(self, name: str, version: str) -> FakeLanguageClient:
        client = FakeLanguageClient(self, name, version)
        self.clients.append(client)
        return client

    @property
    def last(self) -> FakeLanguageClient:
        return self.clients[-1]


@pytest.fixture
def client_factory():
    return FakeClientFactory()


@pytest.fixture
def workspace(tmp_path):
    return WorkspaceManager(str(tmp_path))


@pytest.fixture
def manager(workspace, client_factory):
    return AriaLanguageClientManager(workspace, client_factory)


@pytest.fixture
def location():
    return ServerLocation(configured_path="/opt/aria/bin/lsp", env_path=None, default_path="/x/y")
