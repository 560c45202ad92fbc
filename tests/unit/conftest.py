"""
Minimal conftest for unit tests.

Unit tests exercise individual classes in isolation. The Context Engine and
sources are replaced by the in-memory fakes below; hosting services are
mocked per test.
"""

from typing import Any, Dict, List, Optional

import pytest

from context_connectors.engine import (
    ContextEngine,
    ContextEngineFactory,
    EngineCredentials,
    ExportMode,
    IndexingResult,
)
from context_connectors.sources.base import Source
from context_connectors.types import (
    FileChanges,
    FileEntry,
    FileInfo,
    GitHubSourceConfig,
    GitHubSourceMetadata,
    IndexState,
    IndexStateSearchOnly,
    SourceKind,
)


class FakeEngine(ContextEngine):
    """Keeps indexed files in a dict and records every call."""

    def __init__(self, files: Optional[Dict[str, str]] = None):
        self.files: Dict[str, str] = dict(files or {})
        self.calls: List[str] = []
        self.search_queries: List[str] = []

    async def add_to_index(self, files: List[FileEntry]) -> IndexingResult:
        self.calls.append("add_to_index")
        result = IndexingResult()
        for entry in files:
            if self.files.get(entry.path) == entry.contents:
                result.already_uploaded.append(entry.path)
            else:
                result.newly_uploaded.append(entry.path)
            self.files[entry.path] = entry.contents
        return result

    async def remove_from_index(self, paths: List[str]) -> None:
        self.calls.append("remove_from_index")
        for path in paths:
            self.files.pop(path, None)

    def export(self, mode: ExportMode) -> Dict[str, Any]:
        self.calls.append(f"export:{mode.value}")
        if mode is ExportMode.FULL:
            return {
                "checkpointId": "cp-1",
                "blobs": [[path, contents] for path, contents in sorted(self.files.items())],
            }
        return {"checkpointId": "cp-1", "addedBlobs": sorted(self.files)}

    async def search(self, query: str, max_output_length: Optional[int] = None) -> str:
        self.search_queries.append(query)
        result = f"results for {query}"
        return result[:max_output_length] if max_output_length else result

    async def search_and_ask(self, query: str, question: str) -> str:
        return f"answer to {question} about {query}"


class FakeEngineFactory(ContextEngineFactory):
    def __init__(self):
        self.created: List[FakeEngine] = []
        self.imported: List[Dict[str, Any]] = []
        self.credentials: List[EngineCredentials] = []

    async def create(self, credentials: EngineCredentials) -> FakeEngine:
        self.credentials.append(credentials)
        engine = FakeEngine()
        self.created.append(engine)
        return engine

    async def import_state(
        self, state: Dict[str, Any], credentials: EngineCredentials
    ) -> FakeEngine:
        self.credentials.append(credentials)
        self.imported.append(state)
        engine = FakeEngine({path: contents for path, contents in state.get("blobs", [])})
        self.created.append(engine)
        return engine


class FakeSource(Source):
    """Scripted source: ``files`` for full fetches, ``changes`` for deltas."""

    kind = SourceKind.GITHUB

    def __init__(
        self,
        files: Optional[Dict[str, str]] = None,
        changes: Optional[FileChanges] = None,
        resolved_ref: str = "sha-1",
    ):
        self.files = dict(files or {})
        self.changes = changes
        self.resolved_ref = resolved_ref
        self.fetch_all_calls = 0
        self.fetch_changes_calls = 0
        self.closed = False

    async def fetch_all(self) -> List[FileEntry]:
        self.fetch_all_calls += 1
        return [FileEntry(path, contents) for path, contents in self.files.items()]

    async def fetch_changes(self, previous) -> Optional[FileChanges]:
        self.fetch_changes_calls += 1
        return self.changes

    async def get_metadata(self) -> GitHubSourceMetadata:
        return make_metadata(resolved_ref=self.resolved_ref)

    async def list_files(self, directory: str = "") -> List[FileInfo]:
        prefix = f"{directory}/" if directory else ""
        entries: Dict[str, FileInfo] = {}
        for path in self.files:
            if not path.startswith(prefix):
                continue
            rest = path[len(prefix):]
            head, sep, _ = rest.partition("/")
            child = prefix + head
            entries[child] = FileInfo(child, "directory" if sep else "file")
        return list(entries.values())

    async def read_file(self, path: str) -> Optional[str]:
        return self.files.get(path)

    async def close(self) -> None:
        self.closed = True


def make_metadata(
    owner: str = "acme",
    repo: str = "widgets",
    resolved_ref: Optional[str] = "sha-1",
    synced_at: str = "2024-01-01T00:00:00.000Z",
) -> GitHubSourceMetadata:
    return GitHubSourceMetadata(
        config=GitHubSourceConfig(owner=owner, repo=repo, ref="main"),
        resolved_ref=resolved_ref,
        synced_at=synced_at,
    )


def make_states(
    files: Optional[Dict[str, str]] = None, **metadata_kwargs
) -> "tuple[IndexState, IndexStateSearchOnly]":
    engine = FakeEngine(files)
    metadata = make_metadata(**metadata_kwargs)
    return (
        IndexState(context_state=engine.export(ExportMode.FULL), source=metadata),
        IndexStateSearchOnly(
            context_state=engine.export(ExportMode.SEARCH_ONLY), source=metadata
        ),
    )


@pytest.fixture
def engine_factory():
    return FakeEngineFactory()


@pytest.fixture
def fake_source_cls():
    return FakeSource


@pytest.fixture
def state_pair():
    """Factory for (full, search-only) state pairs."""
    return make_states


@pytest.fixture
def metadata_factory():
    """Factory for GitHub source metadata."""
    return make_metadata
