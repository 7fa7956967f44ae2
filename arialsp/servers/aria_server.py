"""Aria language client manager implementation."""

from typing import List

from arialsp.servers.base import BaseLanguageClientManager
from arialsp.utils.workspace import DocumentFilter


class AriaLanguageClientManager(BaseLanguageClientManager):
    """Manages the Aria language server session."""

    @property
    def language(self) -> str:
        return "aria"

    @property
    def client_id(self) -> str:
        return "aria-language-server"

    @property
    def document_selector(self) -> List[DocumentFilter]:
        return [DocumentFilter(language="aria", scheme="file")]

    @property
    def file_watch_pattern(self) -> str:
        # Changes to .clientrc files in the workspace are forwarded to the server
        return "**/.clientrc"
