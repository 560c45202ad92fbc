"""
Unit tests for FilesystemStore layout, pair writes and corrupt-state handling.
"""

import json
import os
from unittest.mock import patch

import pytest

from context_connectors.config import ConnectorsConfig
from context_connectors.exceptions import CorruptStateError, StoreError
from context_connectors.stores import FilesystemStore


@pytest.mark.unit
class TestFilesystemStore:
    """Tests for on-disk index persistence."""

    @pytest.mark.asyncio
    async def test_save_and_load(self, tmp_path, state_pair):
        store = FilesystemStore(base_path=str(tmp_path))
        full, search = state_pair({"a.py": "print(1)"})

        await store.save("acme/widgets", full, search)

        key_dir = tmp_path / "indexes" / "acme_widgets"
        assert (key_dir / "state.json").is_file()
        assert (key_dir / "search.json").is_file()

        loaded = await store.load_state("acme/widgets")
        assert loaded.context_state == full.context_state
        assert loaded.source.resolved_ref == "sha-1"
        loaded_search = await store.load_search("acme/widgets")
        assert "blobs" not in loaded_search.context_state

    @pytest.mark.asyncio
    async def test_persisted_json_is_camel_case(self, tmp_path, state_pair):
        store = FilesystemStore(base_path=str(tmp_path))
        full, search = state_pair()
        await store.save("k", full, search)

        data = json.loads((tmp_path / "indexes" / "k" / "state.json").read_text())
        assert data["version"] == 1
        assert "contextState" in data
        assert data["source"]["type"] == "github"
        assert data["source"]["resolvedRef"] == "sha-1"
        assert "syncedAt" in data["source"]

    @pytest.mark.asyncio
    async def test_missing_key_loads_none(self, tmp_path):
        store = FilesystemStore(base_path=str(tmp_path))
        assert await store.load_state("nope") is None
        assert await store.load_search("nope") is None

    @pytest.mark.asyncio
    async def test_dot_key_addresses_base_path(self, tmp_path, state_pair):
        store = FilesystemStore(base_path=str(tmp_path))
        full, search = state_pair()
        await store.save(".", full, search)

        assert (tmp_path / "state.json").is_file()
        assert (await store.load_state(".")) is not None

    @pytest.mark.asyncio
    async def test_full_state_without_manifest_is_corrupt(self, tmp_path, state_pair):
        store = FilesystemStore(base_path=str(tmp_path))
        _, search = state_pair()
        key_dir = tmp_path / "indexes" / "k"
        key_dir.mkdir(parents=True)
        # a search.json copied over state.json
        (key_dir / "state.json").write_text(json.dumps(search.to_dict()))

        with pytest.raises(CorruptStateError, match="missing blobs field"):
            await store.load_state("k")

    @pytest.mark.asyncio
    async def test_invalid_json_is_corrupt(self, tmp_path):
        store = FilesystemStore(base_path=str(tmp_path))
        key_dir = tmp_path / "indexes" / "k"
        key_dir.mkdir(parents=True)
        (key_dir / "search.json").write_text("{not json")

        with pytest.raises(CorruptStateError):
            await store.load_search("k")

    @pytest.mark.asyncio
    async def test_list_only_dirs_with_state(self, tmp_path, state_pair):
        store = FilesystemStore(base_path=str(tmp_path))
        full, search = state_pair()
        await store.save("b", full, search)
        await store.save("a", full, search)
        (tmp_path / "indexes" / "empty").mkdir()

        assert await store.list() == ["a", "b"]

    @pytest.mark.asyncio
    async def test_list_without_indexes_dir(self, tmp_path):
        assert await FilesystemStore(base_path=str(tmp_path / "none")).list() == []

    @pytest.mark.asyncio
    async def test_delete(self, tmp_path, state_pair):
        store = FilesystemStore(base_path=str(tmp_path))
        full, search = state_pair()
        await store.save("k", full, search)

        await store.delete("k")
        assert await store.load_state("k") is None
        # deleting again is a no-op
        await store.delete("k")

    @pytest.mark.asyncio
    async def test_delete_rejects_root_key(self, tmp_path):
        store = FilesystemStore(base_path=str(tmp_path))
        with pytest.raises(StoreError):
            await store.delete(".")

    @pytest.mark.asyncio
    async def test_failed_write_keeps_previous_pair(self, tmp_path, state_pair):
        store = FilesystemStore(base_path=str(tmp_path))
        old_full, old_search = state_pair({"a.py": "old"})
        await store.save("k", old_full, old_search)

        new_full, new_search = state_pair({"a.py": "new"})
        real_fdopen = os.fdopen
        calls = {"n": 0}

        def flaky_fdopen(fd, *args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                os.close(fd)
                raise OSError("disk full")
            return real_fdopen(fd, *args, **kwargs)

        with patch(
            "context_connectors.stores.filesystem_store.os.fdopen", side_effect=flaky_fdopen
        ):
            with pytest.raises(OSError):
                await store.save("k", new_full, new_search)

        assert (await store.load_state("k")).context_state == old_full.context_state
        assert (await store.load_search("k")).context_state == old_search.context_state
        leftovers = [p.name for p in (tmp_path / "indexes" / "k").iterdir()]
        assert sorted(leftovers) == ["search.json", "state.json"]

    def test_default_path_from_settings(self, tmp_path):
        store = FilesystemStore(settings=ConnectorsConfig(store_path=str(tmp_path)))
        assert store.base_path == tmp_path
