"""File-level value types exchanged between sources, filters and the indexer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal

FileType = Literal["file", "directory"]


@dataclass
class FileEntry:
    """A file to be indexed."""

    path: str
    """Path relative to the source root, forward slashes."""

    contents: str
    """Decoded UTF-8 text of the file."""


@dataclass
class FileInfo:
    """One entry of a single-level directory listing."""

    path: str
    type: FileType = "file"


@dataclass
class FileChanges:
    """Delta between the previously indexed snapshot and the current one."""

    added: List[FileEntry] = field(default_factory=list)
    modified: List[FileEntry] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.removed)

    @property
    def to_add(self) -> List[FileEntry]:
        """Files the engine must (re)upload: additions followed by modifications."""
        return [*self.added, *self.modified]
