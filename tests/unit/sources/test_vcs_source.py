"""
Unit tests for the shared VCS change-detection protocol and ref memoization.
"""

import asyncio
from typing import Dict, List, Optional

import pytest

from context_connectors.exceptions import IncrementalUnsafeError, RefResolutionError
from context_connectors.sources.base import (
    ChangeDetectionPolicy,
    ChangedFile,
    ChangeStatus,
    VcsSource,
)
from context_connectors.types import (
    FileInfo,
    GitHubSourceConfig,
    GitHubSourceMetadata,
    SourceKind,
)


class ScriptedVcsSource(VcsSource):
    kind = SourceKind.GITHUB
    log_tag = "TEST"

    def __init__(
        self,
        head: str = "new",
        files: Optional[Dict[str, bytes]] = None,
        changed: Optional[List[ChangedFile]] = None,
        unsafe: Optional[str] = None,
        policy: Optional[ChangeDetectionPolicy] = None,
    ):
        super().__init__(ref="main", policy=policy)
        self.head = head
        self.files = dict(files or {})
        self.changed = list(changed or [])
        self.unsafe = unsafe
        self.resolve_calls = 0

    async def _resolve_remote_ref(self, ref: str) -> str:
        self.resolve_calls += 1
        await asyncio.sleep(0.01)
        if self.head is None:
            raise RefResolutionError("no such ref")
        return self.head

    async def _download_snapshot(self, ref: str) -> Dict[str, bytes]:
        return dict(self.files)

    async def _list_changed_files(self, base: str, head: str) -> List[ChangedFile]:
        if self.unsafe:
            raise IncrementalUnsafeError(self.unsafe)
        return self.changed

    async def _read_raw(self, path: str, ref: str) -> Optional[bytes]:
        return self.files.get(path)

    async def get_metadata(self) -> GitHubSourceMetadata:
        return GitHubSourceMetadata(
            config=GitHubSourceConfig(owner="o", repo="r", ref=self.ref),
            resolved_ref=await self.resolve_ref(),
            synced_at="2024-01-01T00:00:00.000Z",
        )

    async def list_files(self, directory: str = "") -> List[FileInfo]:
        return []


def previous_metadata(resolved_ref: Optional[str] = "old") -> GitHubSourceMetadata:
    return GitHubSourceMetadata(
        config=GitHubSourceConfig(owner="o", repo="r", ref="main"),
        resolved_ref=resolved_ref,
        synced_at="2024-01-01T00:00:00.000Z",
    )


@pytest.mark.unit
class TestResolveRef:
    @pytest.mark.asyncio
    async def test_resolved_once(self):
        source = ScriptedVcsSource()
        assert await source.resolve_ref() == "new"
        assert await source.resolve_ref() == "new"
        assert source.resolve_calls == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_request(self):
        source = ScriptedVcsSource()
        results = await asyncio.gather(*(source.resolve_ref() for _ in range(10)))
        assert set(results) == {"new"}
        assert source.resolve_calls == 1

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self):
        source = ScriptedVcsSource(head=None)
        with pytest.raises(RefResolutionError):
            await source.resolve_ref()
        source.head = "later"
        assert await source.resolve_ref() == "later"

    @pytest.mark.asyncio
    async def test_read_file_returns_none_when_ref_unresolvable(self):
        source = ScriptedVcsSource(head=None, files={"a.py": b"x"})
        assert await source.read_file("a.py") is None

    @pytest.mark.asyncio
    async def test_read_file_normalizes_path(self):
        source = ScriptedVcsSource(files={"src/a.py": b"x = 1"})
        assert await source.read_file("/src/a.py") == "x = 1"


@pytest.mark.unit
class TestFetchAll:
    @pytest.mark.asyncio
    async def test_applies_snapshot_ignore_files(self):
        source = ScriptedVcsSource(
            files={
                ".gitignore": b"*.log\n",
                ".augmentignore": b"secret/\n",
                "main.py": b"print(1)",
                "debug.log": b"noise",
                "secret/notes.txt": b"hidden",
                "id_rsa": b"key",
                "image.png": b"\x89PNG\xff\xfe",
            }
        )
        files = await source.fetch_all()
        assert sorted(f.path for f in files) == [".augmentignore", ".gitignore", "main.py"]


@pytest.mark.unit
class TestFetchChanges:
    @pytest.mark.asyncio
    async def test_no_previous_ref_requires_full(self):
        source = ScriptedVcsSource()
        assert await source.fetch_changes(previous_metadata(resolved_ref=None)) is None

    @pytest.mark.asyncio
    async def test_same_ref_is_empty(self):
        source = ScriptedVcsSource(head="old")
        changes = await source.fetch_changes(previous_metadata("old"))
        assert changes is not None and changes.is_empty()

    @pytest.mark.asyncio
    async def test_unsafe_comparison_requires_full(self):
        source = ScriptedVcsSource(unsafe="force push detected")
        assert await source.fetch_changes(previous_metadata()) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ignore_file", [".gitignore", ".augmentignore"])
    async def test_ignore_file_change_requires_full(self, ignore_file):
        source = ScriptedVcsSource(
            files={ignore_file: b"*.md\n"},
            changed=[ChangedFile(ignore_file, ChangeStatus.MODIFIED)],
        )
        assert await source.fetch_changes(previous_metadata()) is None

    @pytest.mark.asyncio
    async def test_renamed_away_ignore_file_requires_full(self):
        source = ScriptedVcsSource(
            files={"old.gitignore": b""},
            changed=[ChangedFile("old.gitignore", ChangeStatus.RENAMED, ".gitignore")],
        )
        assert await source.fetch_changes(previous_metadata()) is None

    @pytest.mark.asyncio
    async def test_too_many_changes_requires_full(self):
        changed = [ChangedFile(f"f{i}.py", ChangeStatus.ADDED) for i in range(4)]
        source = ScriptedVcsSource(
            changed=changed, policy=ChangeDetectionPolicy(max_changed_files=3)
        )
        assert await source.fetch_changes(previous_metadata()) is None

    @pytest.mark.asyncio
    async def test_classifies_changes(self):
        source = ScriptedVcsSource(
            files={
                "new.py": b"new",
                "mod.py": b"mod",
                "moved/to.py": b"moved",
            },
            changed=[
                ChangedFile("new.py", ChangeStatus.ADDED),
                ChangedFile("mod.py", ChangeStatus.MODIFIED),
                ChangedFile("gone.py", ChangeStatus.REMOVED),
                ChangedFile("moved/to.py", ChangeStatus.RENAMED, "moved/from.py"),
            ],
        )
        changes = await source.fetch_changes(previous_metadata())

        assert [f.path for f in changes.added] == ["new.py"]
        assert sorted(f.path for f in changes.modified) == ["mod.py", "moved/to.py"]
        assert sorted(changes.removed) == ["gone.py", "moved/from.py"]

    @pytest.mark.asyncio
    async def test_modified_file_now_filtered_is_removed(self):
        source = ScriptedVcsSource(
            files={"data.txt": b"\xff\xfe binary now"},
            changed=[
                ChangedFile("data.txt", ChangeStatus.MODIFIED),
                ChangedFile("blob.bin", ChangeStatus.ADDED),
            ],
        )
        changes = await source.fetch_changes(previous_metadata())

        assert changes.added == []
        assert changes.modified == []
        assert changes.removed == ["data.txt"]

    @pytest.mark.asyncio
    async def test_filters_with_current_ignore_rules(self):
        source = ScriptedVcsSource(
            files={".gitignore": b"*.log\n", "a.log": b"x", "a.py": b"y"},
            changed=[
                ChangedFile("a.log", ChangeStatus.ADDED),
                ChangedFile("a.py", ChangeStatus.ADDED),
            ],
        )
        changes = await source.fetch_changes(previous_metadata())
        assert [f.path for f in changes.added] == ["a.py"]
