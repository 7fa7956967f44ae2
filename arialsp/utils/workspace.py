"""Workspace management utilities for the Aria language client.

The workspace manager stands in for the editor surface: it tracks open
documents, hands out provider registrations and publishes document and
file-system events.
"""

import bisect
import logging
import os
import re
from dataclasses import dataclass, field, replace
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import pathspec
from lsprotocol import types as lsp
from pygls.workspace import PositionCodec

from arialsp.utils.events import Disposable, EventEmitter

# Positions sent to the editor count UTF-16 code units
POSITION_CODEC = PositionCodec(lsp.PositionEncodingKind.Utf16)


@dataclass(frozen=True)
class DocumentSnapshot:
    """One version of a document's text."""

    uri: str
    language_id: str
    version: int
    text: str
    _line_starts: List[int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        starts = [0]
        for match in re.finditer(r"\r\n|\r|\n", self.text):
            starts.append(match.end())
        object.__setattr__(self, "_line_starts", starts)

    @property
    def scheme(self) -> str:
        return self.uri.split(":", 1)[0] if ":" in self.uri else ""

    @property
    def line_count(self) -> int:
        return len(self._line_starts)

    @property
    def lines(self) -> List[str]:
        """Lines of the text, each with its line ending."""
        ends = self._line_starts[1:] + [len(self.text)]
        return [self.text[start:end] for start, end in zip(self._line_starts, ends)]

    def position_at(self, offset: int) -> lsp.Position:
        """Convert a character offset to a line/character position.

        The offset counts code points; the returned character counts UTF-16
        code units, the protocol's default position encoding. Offsets outside
        the text are clamped to its bounds.
        """
        offset = max(0, min(offset, len(self.text)))
        line = bisect.bisect_right(self._line_starts, offset) - 1
        position = lsp.Position(line=line, character=offset - self._line_starts[line])
        if position.character == 0:
            return position
        return POSITION_CODEC.position_to_client_units(self.lines, position)

    def offset_at(self, position: lsp.Position) -> int:
        """Convert a UTF-16 line/character position to a character offset."""
        if position.line >= len(self._line_starts):
            return len(self.text)
        start = self._line_starts[position.line]
        if position.line + 1 < len(self._line_starts):
            end = self._line_starts[position.line + 1]
        else:
            end = len(self.text)
        if position.character == 0:
            return start
        position = POSITION_CODEC.position_from_client_units(self.lines, position)
        return min(start + position.character, end)

    def with_text(self, text: str) -> "DocumentSnapshot":
        return replace(self, text=text, version=self.version + 1)


@dataclass(frozen=True)
class DocumentFilter:
    """Matches documents by language identifier and URI scheme."""

    language: Optional[str] = None
    scheme: Optional[str] = None

    def matches(self, document: DocumentSnapshot) -> bool:
        if self.language is not None and document.language_id != self.language:
            return False
        if self.scheme is not None and document.scheme != self.scheme:
            return False
        return True


@dataclass
class TextDocumentChangeEvent:
    """A document edit: the new snapshot and the changes that produced it."""

    document: DocumentSnapshot
    content_changes: List[lsp.TextDocumentContentChangeEvent]


@dataclass
class FileChangeEvent:
    """A change to a file on disk."""

    path: str
    change_type: lsp.FileChangeType


@lru_cache(maxsize=None)
def _compile_glob(pattern: str) -> pathspec.PathSpec:
    return pathspec.PathSpec.from_lines(pathspec.patterns.GitWildMatchPattern, [pattern])


def glob_matches(pattern: str, relative_path: str) -> bool:
    """Check a workspace-relative path against a glob pattern.

    Args:
        pattern: Gitignore-style glob such as ``**/.clientrc``.
        relative_path: Path relative to the workspace root.

    Returns:
        True if the path matches.
    """
    return _compile_glob(pattern).match_file(Path(relative_path).as_posix())


def path_to_uri(path: str) -> str:
    """Convert a file path to a file URI."""
    return Path(os.path.abspath(path)).as_uri()


class WorkspaceManager:
    """Manages workspace information, open documents and editor events."""

    def __init__(self, workspace_path: str):
        """Initialize the workspace manager.

        Args:
            workspace_path: Path to the workspace directory.
        """
        self.workspace_path = os.path.abspath(workspace_path)
        self.logger = logging.getLogger("arialsp.workspace")

        if not os.path.isdir(self.workspace_path):
            raise ValueError(f"Workspace path is not a directory: {self.workspace_path}")

        self.logger.info(f"Initialized workspace manager for: {self.workspace_path}")

        self.extension_to_language = {
            ".aria": "aria",
        }
        self.documents: Dict[str, DocumentSnapshot] = {}
        self.inlay_hint_providers: List[Any] = []

        self.on_did_open_text_document: EventEmitter[DocumentSnapshot] = EventEmitter(
            "onDidOpenTextDocument"
        )
        self.on_did_change_text_document: EventEmitter[TextDocumentChangeEvent] = EventEmitter(
            "onDidChangeTextDocument"
        )
        self.on_did_close_text_document: EventEmitter[DocumentSnapshot] = EventEmitter(
            "onDidCloseTextDocument"
        )
        self.on_did_change_files: EventEmitter[FileChangeEvent] = EventEmitter("onDidChangeFiles")

    def get_language_for_file(self, file_path: str) -> Optional[str]:
        """Get the language identifier for a file, or None if not supported."""
        _, ext = os.path.splitext(file_path)
        return self.extension_to_language.get(ext.lower())

    def get_files_by_language(self, language: str) -> List[str]:
        """Scan the workspace for files of a language.

        Args:
            language: The language identifier.

        Returns:
            Sorted list of matching file paths.
        """
        files: Set[str] = set()
        for root, _, names in os.walk(self.workspace_path):
            for name in names:
                file_path = os.path.join(root, name)
                if self.get_language_for_file(file_path) == language:
                    files.add(file_path)
        return sorted(files)

    def is_file_in_workspace(self, file_path: str) -> bool:
        """Check if a file is in the workspace."""
        abs_path = os.path.abspath(file_path)
        return abs_path == self.workspace_path or abs_path.startswith(self.workspace_path + os.sep)

    def relative_path(self, file_path: str) -> str:
        return os.path.relpath(os.path.abspath(file_path), self.workspace_path)

    def open_document(self, file_path: str, text: Optional[str] = None) -> DocumentSnapshot:
        """Open a document and announce it.

        Args:
            file_path: Path to the file.
            text: Document text; read from disk when omitted.

        Returns:
            The opened snapshot.
        """
        if text is None:
            if not os.path.isfile(file_path):
                raise ValueError(f"File not found: {file_path}")
            with open(file_path, encoding="utf-8") as f:
                text = f.read()

        uri = path_to_uri(file_path)
        language_id = self.get_language_for_file(file_path) or "plaintext"
        document = DocumentSnapshot(uri=uri, language_id=language_id, version=1, text=text)
        self.documents[uri] = document
        self.logger.debug(f"Opened document {uri} ({language_id})")
        self.on_did_open_text_document.fire(document)
        return document

    def get_document(self, uri: str) -> Optional[DocumentSnapshot]:
        return self.documents.get(uri)

    def change_document(self, uri: str, text: str) -> DocumentSnapshot:
        """Replace a document's full text, bumping its version.

        Args:
            uri: URI of an open document.
            text: The new text.

        Returns:
            The new snapshot.
        """
        document = self.documents.get(uri)
        if document is None:
            raise ValueError(f"Document is not open: {uri}")

        updated = document.with_text(text)
        self.documents[uri] = updated
        changes = [lsp.TextDocumentContentChangeWholeDocument(text=text)]
        self.on_did_change_text_document.fire(TextDocumentChangeEvent(updated, changes))
        return updated

    def close_document(self, uri: str) -> None:
        document = self.documents.pop(uri, None)
        if document is not None:
            self.on_did_close_text_document.fire(document)

    def notify_file_changed(self, file_path: str, change_type: lsp.FileChangeType) -> None:
        """Publish a file-system change inside the workspace."""
        if not self.is_file_in_workspace(file_path):
            self.logger.debug(f"Ignoring change outside workspace: {file_path}")
            return
        self.on_did_change_files.fire(FileChangeEvent(os.path.abspath(file_path), change_type))

    def register_inlay_hints_provider(self, selector: List[DocumentFilter], provider: Any) -> Disposable:
        """Register an inlay hint provider for matching documents.

        Args:
            selector: Filters a document must match one of.
            provider: Object with ``provide_inlay_hints`` and ``resolve_inlay_hint``.

        Returns:
            A disposable that removes the registration.
        """
        entry = (selector, provider)
        self.inlay_hint_providers.append(entry)

        def unregister() -> None:
            if entry in self.inlay_hint_providers:
                self.inlay_hint_providers.remove(entry)

        return Disposable(unregister)

    def inlay_hint_providers_for(self, document: DocumentSnapshot) -> List[Any]:
        return [
            provider
            for selector, provider in self.inlay_hint_providers
            if any(f.matches(document) for f in selector)
        ]
