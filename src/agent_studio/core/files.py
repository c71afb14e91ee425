"""In-memory project file store.

Records are owned by id; the name-addressed API resolves a name to its id
first. Names are unique within a store. Mutations mark records dirty and
notify subscribers, but the store never persists anything itself.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable
from pathlib import PurePosixPath

from agent_studio.core.tasks import is_valid_file_name
from agent_studio.db.models import FileRecord

logger = logging.getLogger(__name__)

EXTENSION_TO_LANGUAGE = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".html": "html",
    ".htm": "html",
    ".css": "css",
    ".json": "json",
    ".py": "python",
    ".java": "java",
    ".md": "markdown",
    ".sql": "sql",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".h": "cpp",
    ".go": "go",
    ".rs": "rust",
    ".swift": "swift",
    ".lua": "lua",
    ".sh": "shell",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".txt": "plaintext",
}


class FileStoreError(Exception):
    """Base class for file store contract violations."""


class NotFound(FileStoreError):
    """Raised when no file has the requested name."""


class DuplicateName(FileStoreError):
    """Raised when a rename would collide with an existing file."""


class InvalidName(FileStoreError):
    """Raised for empty, absolute or parent-relative file names."""


def detect_language(name: str, content: str = "") -> str:
    """Language tag from the file extension, sniffing content when unknown."""
    suffix = PurePosixPath(name).suffix.lower()
    if suffix in EXTENSION_TO_LANGUAGE:
        return EXTENSION_TO_LANGUAGE[suffix]
    return sniff_language(content)


def sniff_language(content: str) -> str:
    head = content.lstrip()[:200]
    lowered = head.lower()
    if not head:
        return "plaintext"
    if head.startswith("#!"):
        first_line = head.splitlines()[0]
        if "python" in first_line:
            return "python"
        if "node" in first_line:
            return "javascript"
        return "shell"
    if lowered.startswith("<!doctype html") or lowered.startswith("<html"):
        return "html"
    if head[0] in "{[":
        try:
            json.loads(content)
            return "json"
        except ValueError:
            pass
    return "plaintext"


# Tags sniff_language can produce; any other tag on an unknown extension was set explicitly
SNIFFED_LANGUAGES = frozenset({"plaintext", "python", "javascript", "shell", "html", "json"})


def _redetect_language(record: FileRecord) -> str:
    if PurePosixPath(record.name).suffix.lower() in EXTENSION_TO_LANGUAGE:
        return record.language
    if record.language not in SNIFFED_LANGUAGES:
        return record.language
    return sniff_language(record.content)


class ProjectFileStore:
    """Ordered collection of FileRecords for the active project."""

    def __init__(self, files: list[FileRecord] | None = None):
        self._files: dict[str, FileRecord] = {}
        self._subscribers: list[Callable[["ProjectFileStore"], None]] = []
        for record in files or []:
            if self.resolve(record.name) is not None:
                raise DuplicateName(f"Duplicate file name: {record.name}")
            self._files[record.id] = record

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, name: str) -> bool:
        return self.resolve(name) is not None

    # ── Queries ──────────────────────────────────────────────────────────────

    def list(self) -> list[FileRecord]:
        """Snapshot of all records in insertion order."""
        return [_copy(f) for f in self._files.values()]

    def resolve(self, name: str) -> str | None:
        """Return the id of the file with this name, if any."""
        for record in self._files.values():
            if record.name == name:
                return record.id
        return None

    def get(self, name: str) -> FileRecord | None:
        file_id = self.resolve(name)
        if file_id is None:
            return None
        return _copy(self._files[file_id])

    def get_by_id(self, file_id: str) -> FileRecord | None:
        record = self._files.get(file_id)
        return _copy(record) if record else None

    # ── Name-addressed mutations ─────────────────────────────────────────────

    def create(self, name: str, content: str = "", language: str | None = None) -> FileRecord:
        """Create a file, or replace the content of the file with this name."""
        file_id = self.resolve(name)
        if file_id is not None:
            return self.update_by_id(file_id, content)
        if not is_valid_file_name(name):
            raise InvalidName(f"Invalid file name: {name!r}")

        record = FileRecord(
            id=uuid.uuid4().hex[:12],
            name=name,
            language=language or detect_language(name, content),
            content=content,
            dirty=True,
        )
        self._files[record.id] = record
        logger.debug("Created file %s (%s)", name, record.language)
        self._notify()
        return _copy(record)

    def update(self, name: str, content: str) -> FileRecord:
        file_id = self.resolve(name)
        if file_id is None:
            raise NotFound(f"File not found: {name}")
        return self.update_by_id(file_id, content)

    def delete(self, name: str) -> None:
        file_id = self.resolve(name)
        if file_id is None:
            raise NotFound(f"File not found: {name}")
        self.delete_by_id(file_id)

    def rename(self, old_name: str, new_name: str) -> FileRecord:
        file_id = self.resolve(old_name)
        if file_id is None:
            raise NotFound(f"File not found: {old_name}")
        if old_name == new_name:
            return _copy(self._files[file_id])
        if not is_valid_file_name(new_name):
            raise InvalidName(f"Invalid file name: {new_name!r}")
        if self.resolve(new_name) is not None:
            raise DuplicateName(f"A file named '{new_name}' already exists")

        record = self._files[file_id]
        record.name = new_name
        record.language = detect_language(new_name, record.content)
        record.dirty = True
        self._notify()
        return _copy(record)

    # ── Id-addressed mutations ───────────────────────────────────────────────

    def update_by_id(self, file_id: str, content: str) -> FileRecord:
        record = self._files.get(file_id)
        if record is None:
            raise NotFound(f"File not found: {file_id}")
        record.content = content
        record.language = _redetect_language(record)
        record.dirty = True
        self._notify()
        return _copy(record)

    def delete_by_id(self, file_id: str) -> None:
        if self._files.pop(file_id, None) is None:
            raise NotFound(f"File not found: {file_id}")
        self._notify()

    def mark_saved(self, snapshot: list[FileRecord]) -> None:
        """Clear the dirty flag of records unchanged since the snapshot."""
        for saved in snapshot:
            record = self._files.get(saved.id)
            if record and record.name == saved.name and record.content == saved.content:
                record.dirty = False

    # ── Change notification ──────────────────────────────────────────────────

    def subscribe(self, callback: Callable[["ProjectFileStore"], None]) -> Callable[[], None]:
        """Register a change callback. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self):
        for callback in list(self._subscribers):
            try:
                callback(self)
            except Exception:
                logger.exception("File store subscriber failed")


def _copy(record: FileRecord) -> FileRecord:
    return FileRecord(
        id=record.id,
        name=record.name,
        language=record.language,
        content=record.content,
        dirty=record.dirty,
    )
