"""
Unit tests for the Indexer's full, incremental and unchanged runs.
"""

import pytest

from context_connectors.config import ConnectorsConfig
from context_connectors.indexer import Indexer
from context_connectors.stores import MemoryStore
from context_connectors.types import FileChanges, FileEntry, IndexRunType


@pytest.fixture
def indexer(engine_factory):
    return Indexer(engine_factory, ConnectorsConfig(api_key="key", api_url="https://api"))


@pytest.mark.unit
class TestIndexer:
    """Tests for Indexer.index run selection and persistence."""

    @pytest.mark.asyncio
    async def test_first_run_is_full(self, indexer, engine_factory, fake_source_cls):
        store = MemoryStore()
        source = fake_source_cls(files={"a.py": "a", "b.py": "b"})

        result = await indexer.index(source, store, "proj")

        assert result.type == IndexRunType.FULL
        assert result.files_indexed == 2
        assert result.files_new_or_modified == 2
        assert result.files_unchanged == 0
        assert result.duration_ms >= 0
        assert source.fetch_changes_calls == 0

        full = await store.load_state("proj")
        search = await store.load_search("proj")
        assert full.context_state["blobs"] == [["a.py", "a"], ["b.py", "b"]]
        assert "blobs" not in search.context_state
        assert full.source.resolved_ref == "sha-1"
        assert engine_factory.credentials[0].api_key == "key"

    @pytest.mark.asyncio
    async def test_second_run_without_changes_is_unchanged(
        self, indexer, engine_factory, fake_source_cls
    ):
        store = MemoryStore()
        await indexer.index(fake_source_cls(files={"a.py": "a"}), store, "proj")
        engines_before = len(engine_factory.created)

        source = fake_source_cls(files={"a.py": "a"}, changes=FileChanges())
        result = await indexer.index(source, store, "proj")

        assert result.type == IndexRunType.UNCHANGED
        assert result.files_indexed == 0
        assert result.files_removed == 0
        assert len(engine_factory.created) == engines_before
        assert engine_factory.imported == []

    @pytest.mark.asyncio
    async def test_incremental_removes_then_adds(
        self, indexer, engine_factory, fake_source_cls
    ):
        store = MemoryStore()
        await indexer.index(
            fake_source_cls(files={"old/name.py": "x", "keep.py": "k"}), store, "proj"
        )

        changes = FileChanges(
            added=[FileEntry("new/name.py", "x")],
            modified=[FileEntry("keep.py", "k2")],
            removed=["old/name.py"],
        )
        source = fake_source_cls(changes=changes, resolved_ref="sha-2")
        result = await indexer.index(source, store, "proj")

        assert result.type == IndexRunType.INCREMENTAL
        assert result.files_indexed == 2
        assert result.files_removed == 1
        assert result.files_new_or_modified == 2

        engine = engine_factory.created[-1]
        assert engine.calls[:2] == ["remove_from_index", "add_to_index"]
        assert source.fetch_all_calls == 0

        full = await store.load_state("proj")
        assert dict(map(tuple, full.context_state["blobs"])) == {
            "keep.py": "k2",
            "new/name.py": "x",
        }
        assert full.source.resolved_ref == "sha-2"

    @pytest.mark.asyncio
    async def test_unsafe_changes_fall_back_to_fresh_full_index(
        self, indexer, engine_factory, fake_source_cls
    ):
        store = MemoryStore()
        await indexer.index(fake_source_cls(files={"deleted.py": "d"}), store, "proj")

        source = fake_source_cls(files={"a.py": "a"}, changes=None)
        result = await indexer.index(source, store, "proj")

        assert result.type == IndexRunType.FULL
        assert source.fetch_all_calls == 1
        assert engine_factory.imported == []
        full = await store.load_state("proj")
        # a fresh engine, so the deleted file is gone
        assert full.context_state["blobs"] == [["a.py", "a"]]

    @pytest.mark.asyncio
    async def test_full_run_with_no_files_skips_upload(
        self, indexer, engine_factory, fake_source_cls
    ):
        store = MemoryStore()
        result = await indexer.index(fake_source_cls(), store, "empty")

        assert result.type == IndexRunType.FULL
        assert result.files_indexed == 0
        assert "add_to_index" not in engine_factory.created[0].calls
        assert store.has("empty")
