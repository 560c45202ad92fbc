import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from context_connectors.exceptions import IncrementalUnsafeError, RefResolutionError
from context_connectors.filters.file_filter import (
    AUGMENTIGNORE_FILE,
    GITIGNORE_FILE,
    IGNORE_FILES,
    FileFilterPipeline,
)
from context_connectors.logger import setup_logger
from context_connectors.types import (
    FileChanges,
    FileEntry,
    FileInfo,
    SourceKind,
    SourceMetadata,
    get_resolved_ref,
)
from context_connectors.utils import decode_content, normalize_path

logger = setup_logger(__name__)

DEFAULT_REF = "HEAD"


class ChangeStatus(str, Enum):
    """Normalized per-file status reported by a VCS comparison."""

    ADDED = "added"
    MODIFIED = "modified"
    RENAMED = "renamed"
    REMOVED = "removed"


@dataclass
class ChangedFile:
    path: str
    status: ChangeStatus
    previous_path: Optional[str] = None
    """Path before a rename; None for other statuses."""


@dataclass
class ChangeDetectionPolicy:
    """Tunable limits for deciding when an incremental update is worth trusting."""

    max_changed_files: int = 100
    """Above this many changed files a single archive download beats per-file fetches."""


class Source(ABC):
    """
    Connector capability set shared by every source kind.
    All operations are coroutines; sync SDK calls run in worker threads.
    """

    kind: SourceKind

    # ============ Indexing ============

    @abstractmethod
    async def fetch_all(self) -> List[FileEntry]:
        """Fetch and filter every file of the current snapshot."""
        pass

    @abstractmethod
    async def fetch_changes(self, previous: SourceMetadata) -> Optional[FileChanges]:
        """
        Compute the delta since ``previous`` was indexed.

        Returns:
            Empty FileChanges when nothing changed, None when an incremental
            update cannot be trusted and the caller must rebuild from scratch.
        """
        pass

    @abstractmethod
    async def get_metadata(self) -> SourceMetadata:
        pass

    # ============ Browsing ============

    @abstractmethod
    async def list_files(self, directory: str = "") -> List[FileInfo]:
        """List one directory level. Unknown directories yield an empty list."""
        pass

    @abstractmethod
    async def read_file(self, path: str) -> Optional[str]:
        """Return file text at the indexed snapshot, or None if it cannot be read."""
        pass

    async def close(self) -> None:
        """Release network clients. Sources without persistent clients have nothing to do."""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class VcsSource(Source):
    """
    Git-hosting source with memoized ref resolution and the shared
    change-detection protocol. Subclasses provide the host-specific calls.

    The resolved ref is fixed for the lifetime of the instance so every call in
    one sync cycle sees the same snapshot; build a new instance to pick up new
    commits.
    """

    log_tag = "VCS"

    def __init__(
        self,
        ref: Optional[str] = None,
        policy: Optional[ChangeDetectionPolicy] = None,
    ):
        self.ref = ref or DEFAULT_REF
        self.policy = policy or ChangeDetectionPolicy()
        self._resolved_ref: Optional[str] = None
        self._resolve_lock = asyncio.Lock()

    # ============ Host-specific operations ============

    @abstractmethod
    async def _resolve_remote_ref(self, ref: str) -> str:
        """Resolve ``ref`` to a commit id. Raises RefResolutionError."""
        pass

    @abstractmethod
    async def _download_snapshot(self, ref: str) -> Dict[str, bytes]:
        """Every regular file at ``ref`` as ``{relative_path: content}``."""
        pass

    @abstractmethod
    async def _list_changed_files(self, base: str, head: str) -> List[ChangedFile]:
        """
        Files changed between two commits.

        Raises IncrementalUnsafeError when the comparison suggests rewritten
        history (divergence, a backward move) or fails outright.
        """
        pass

    @abstractmethod
    async def _read_raw(self, path: str, ref: str) -> Optional[bytes]:
        """Raw file bytes at ``ref``; None when missing."""
        pass

    # ============ Ref resolution ============

    async def resolve_ref(self) -> str:
        """Resolve the configured ref once; concurrent callers share one request."""
        if self._resolved_ref is not None:
            return self._resolved_ref

        async with self._resolve_lock:
            if self._resolved_ref is None:
                self._resolved_ref = await self._resolve_remote_ref(self.ref)
                logger.debug(
                    f"[{self.log_tag}] Resolved ref {self.ref} -> {self._resolved_ref}"
                )
        return self._resolved_ref

    # ============ Filtering ============

    async def _load_filter(self, ref: str) -> FileFilterPipeline:
        gitignore = await self._read_raw(GITIGNORE_FILE, ref)
        augmentignore = await self._read_raw(AUGMENTIGNORE_FILE, ref)
        return self._build_filter(gitignore, augmentignore)

    @staticmethod
    def _build_filter(
        gitignore: Optional[bytes], augmentignore: Optional[bytes]
    ) -> FileFilterPipeline:
        return FileFilterPipeline.from_ignore_files(
            augmentignore=augmentignore.decode("utf-8", errors="replace")
            if augmentignore
            else None,
            gitignore=gitignore.decode("utf-8", errors="replace") if gitignore else None,
        )

    # ============ Indexing ============

    async def fetch_all(self) -> List[FileEntry]:
        ref = await self.resolve_ref()
        snapshot = await self._download_snapshot(ref)
        pipeline = self._build_filter(
            snapshot.get(GITIGNORE_FILE), snapshot.get(AUGMENTIGNORE_FILE)
        )

        files: List[FileEntry] = []
        skipped = 0
        for path, content in snapshot.items():
            decision = pipeline.evaluate(path, content)
            if not decision.included:
                skipped += 1
                logger.debug(f"[{self.log_tag}] Skipping {path}: {decision.reason}")
                continue
            files.append(FileEntry(path=path, contents=content.decode("utf-8")))

        logger.info(
            f"[{self.log_tag}] Fetched {len(files)} files at {ref[:12]} ({skipped} filtered)"
        )
        return files

    async def fetch_changes(self, previous: SourceMetadata) -> Optional[FileChanges]:
        previous_ref = get_resolved_ref(previous)
        if not previous_ref:
            logger.info(f"[{self.log_tag}] No previous resolved ref, full re-index required")
            return None

        current_ref = await self.resolve_ref()
        if current_ref == previous_ref:
            return FileChanges()

        try:
            changed = await self._list_changed_files(previous_ref, current_ref)
            self._check_incremental_safe(changed)
        except IncrementalUnsafeError as e:
            logger.info(f"[{self.log_tag}] Falling back to full re-index: {e}")
            return None

        pipeline = await self._load_filter(current_ref)
        changes = await self._classify_changes(changed, current_ref, pipeline)
        logger.info(
            f"[{self.log_tag}] {previous_ref[:12]}..{current_ref[:12]}: "
            f"{len(changes.added)} added, {len(changes.modified)} modified, "
            f"{len(changes.removed)} removed"
        )
        return changes

    def _check_incremental_safe(self, changed: List[ChangedFile]) -> None:
        for change in changed:
            if change.path in IGNORE_FILES or change.previous_path in IGNORE_FILES:
                raise IncrementalUnsafeError("ignore files changed")

        if len(changed) > self.policy.max_changed_files:
            raise IncrementalUnsafeError(
                f"{len(changed)} changed files exceeds limit of "
                f"{self.policy.max_changed_files}"
            )

    async def _classify_changes(
        self, changed: List[ChangedFile], ref: str, pipeline: FileFilterPipeline
    ) -> FileChanges:
        changes = FileChanges()

        for change in changed:
            if change.status == ChangeStatus.REMOVED:
                changes.removed.append(change.path)
                continue

            if change.status == ChangeStatus.RENAMED and change.previous_path:
                changes.removed.append(change.previous_path)

            content = await self._read_raw(change.path, ref)
            if content is None or not pipeline.includes(change.path, content):
                # a previously indexed version must not linger
                if change.status == ChangeStatus.MODIFIED:
                    changes.removed.append(change.path)
                continue

            entry = FileEntry(path=change.path, contents=content.decode("utf-8"))
            if change.status == ChangeStatus.ADDED:
                changes.added.append(entry)
            else:
                changes.modified.append(entry)

        return changes

    # ============ Browsing ============

    async def read_file(self, path: str) -> Optional[str]:
        try:
            ref = await self.resolve_ref()
        except RefResolutionError as e:
            logger.warning(f"[{self.log_tag}] Cannot read {path}: {e}")
            return None

        content = await self._read_raw(normalize_path(path), ref)
        if content is None:
            return None
        return decode_content(content)
