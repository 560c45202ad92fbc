from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from context_connectors.types import FileEntry


class ExportMode(str, Enum):
    """What an engine export contains."""

    FULL = "full"
    """Complete state including the blob manifest; needed for incremental updates."""

    SEARCH_ONLY = "search-only"
    """Checkpoint and blob ids only; enough to answer queries."""


@dataclass
class EngineCredentials:
    api_key: Optional[str] = None
    api_url: Optional[str] = None


@dataclass
class IndexingResult:
    """Per-file upload outcome reported by ``add_to_index``.

    Content-addressed dedup means a file already known to the engine is
    reported in ``already_uploaded`` and costs no upload.
    """

    newly_uploaded: List[str] = field(default_factory=list)
    already_uploaded: List[str] = field(default_factory=list)


class ContextEngine(ABC):
    """
    Opaque semantic index consumed by the indexer and search clients.
    Implementations wrap a concrete search service; this package never looks
    inside the exported state beyond the manifest field check.
    """

    # ============ Indexing ============

    @abstractmethod
    async def add_to_index(self, files: List[FileEntry]) -> IndexingResult:
        """Upload files (or reuse already known blobs) and add them to the index."""
        pass

    @abstractmethod
    async def remove_from_index(self, paths: List[str]) -> None:
        pass

    @abstractmethod
    def export(self, mode: ExportMode) -> Dict[str, Any]:
        """Serialize the current checkpoint. The result must be JSON-compatible."""
        pass

    # ============ Retrieval ============

    @abstractmethod
    async def search(self, query: str, max_output_length: Optional[int] = None) -> str:
        """Return formatted snippets relevant to ``query``."""
        pass

    @abstractmethod
    async def search_and_ask(self, query: str, question: str) -> str:
        pass


class ContextEngineFactory(ABC):
    """Creates fresh engines and restores engines from exported state."""

    @abstractmethod
    async def create(self, credentials: EngineCredentials) -> ContextEngine:
        pass

    @abstractmethod
    async def import_state(
        self, state: Dict[str, Any], credentials: EngineCredentials
    ) -> ContextEngine:
        pass
