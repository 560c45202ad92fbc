import asyncio
from typing import Any, Dict, List, Optional

import gitlab
from gitlab.exceptions import GitlabError

from context_connectors.config import ConnectorsConfig
from context_connectors.exceptions import (
    ConfigurationError,
    IncrementalUnsafeError,
    RefResolutionError,
    SourceFetchError,
)
from context_connectors.logger import setup_logger
from context_connectors.sources.base.archive import extract_tarball
from context_connectors.sources.base.source_interface import (
    ChangeDetectionPolicy,
    ChangedFile,
    ChangeStatus,
    VcsSource,
)
from context_connectors.types import (
    FileInfo,
    GitLabSourceConfig,
    GitLabSourceMetadata,
    SourceKind,
)
from context_connectors.utils import iso_timestamp, normalize_path

logger = setup_logger(__name__)

DEFAULT_BASE_URL = "https://gitlab.com"


def classify_diff(diff: Dict[str, Any]) -> ChangedFile:
    """Map one entry of a GitLab compare ``diffs`` list to a ChangedFile."""
    old_path = diff.get("old_path")
    new_path = diff.get("new_path") or old_path

    if diff.get("deleted_file"):
        return ChangedFile(old_path, ChangeStatus.REMOVED)
    if diff.get("new_file"):
        return ChangedFile(new_path, ChangeStatus.ADDED)
    if diff.get("renamed_file") and old_path and old_path != new_path:
        return ChangedFile(new_path, ChangeStatus.RENAMED, old_path)
    return ChangedFile(new_path, ChangeStatus.MODIFIED)


class GitLabSource(VcsSource):
    """GitLab project source (gitlab.com or self-hosted) backed by python-gitlab."""

    kind = SourceKind.GITLAB
    log_tag = "GITLAB"

    def __init__(
        self,
        config: GitLabSourceConfig,
        token: Optional[str] = None,
        settings: Optional[ConnectorsConfig] = None,
        policy: Optional[ChangeDetectionPolicy] = None,
    ):
        super().__init__(ref=config.ref, policy=policy)
        if not config.project_id:
            raise ConfigurationError("GitLab source requires a project id")

        self.project_id = config.project_id
        self.base_url = (config.base_url or DEFAULT_BASE_URL).rstrip("/")
        self.token = token or (settings.gitlab_token if settings else None)
        if not self.token:
            raise ConfigurationError(
                "GitLab token required. Set GITLAB_TOKEN or pass a token explicitly."
            )

        self.client = gitlab.Gitlab(url=self.base_url, private_token=self.token)
        self._project = None

    def _get_project(self):
        if self._project is None:
            self._project = self.client.projects.get(self.project_id, lazy=True)
        return self._project

    # ============ Host operations ============

    async def _resolve_remote_ref(self, ref: str) -> str:
        try:
            commit = await asyncio.to_thread(
                lambda: self._get_project().commits.get(ref)
            )
        except GitlabError as e:
            raise RefResolutionError(
                f'Failed to resolve ref "{ref}" for {self.project_id}: {e}'
            ) from e
        return commit.id

    async def _download_snapshot(self, ref: str) -> Dict[str, bytes]:
        logger.info(f"[GITLAB] Downloading archive for {self.project_id}@{ref}")
        try:
            data = await asyncio.to_thread(
                lambda: self._get_project().repository_archive(sha=ref, format="tar.gz")
            )
        except GitlabError as e:
            raise SourceFetchError(
                f"Failed to download archive for {self.project_id}@{ref}: {e}"
            ) from e
        return await asyncio.to_thread(extract_tarball, data)

    def _compare(self, base: str, head: str) -> Dict[str, Any]:
        return self._get_project().repository_compare(base, head)

    async def _list_changed_files(self, base: str, head: str) -> List[ChangedFile]:
        try:
            comparison = await asyncio.to_thread(self._compare, base, head)
            commits = comparison.get("commits") or []
            diffs = comparison.get("diffs") or []

            if not commits and diffs:
                raise IncrementalUnsafeError("diffs without commits, history was rewritten")

            # commits reachable from base but not head were dropped: a force push
            # (diverged) or a backward move
            reverse = await asyncio.to_thread(self._compare, head, base)
            if reverse.get("commits"):
                raise IncrementalUnsafeError(
                    "previous commit is not an ancestor of the current ref"
                )
        except GitlabError as e:
            raise IncrementalUnsafeError(f"compare {base[:12]}...{head[:12]} failed: {e}") from e

        return [classify_diff(diff) for diff in diffs]

    async def _read_raw(self, path: str, ref: str) -> Optional[bytes]:
        try:
            return await asyncio.to_thread(
                lambda: self._get_project().files.raw(file_path=path, ref=ref)
            )
        except GitlabError as e:
            if e.response_code != 404:
                logger.warning(f"[GITLAB] Failed to read {path}@{ref[:12]}: {e}")
            return None

    # ============ Source API ============

    async def get_metadata(self) -> GitLabSourceMetadata:
        return GitLabSourceMetadata(
            config=GitLabSourceConfig(
                project_id=self.project_id,
                base_url=None if self.base_url == DEFAULT_BASE_URL else self.base_url,
                ref=self.ref,
            ),
            resolved_ref=await self.resolve_ref(),
            synced_at=iso_timestamp(),
        )

    async def list_files(self, directory: str = "") -> List[FileInfo]:
        try:
            ref = await self.resolve_ref()
            items = await asyncio.to_thread(
                lambda: self._get_project().repository_tree(
                    path=normalize_path(directory), ref=ref, get_all=True
                )
            )
        except (GitlabError, RefResolutionError) as e:
            logger.warning(f"[GITLAB] Failed to list '{directory}': {e}")
            return []

        return [
            FileInfo(
                path=item["path"],
                type="directory" if item.get("type") == "tree" else "file",
            )
            for item in items
        ]
