import asyncio
from typing import Dict, List, Optional, Tuple

import httpx
from github import Auth, Github
from github.GithubException import GithubException

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
    GitHubSourceConfig,
    GitHubSourceMetadata,
    SourceKind,
)
from context_connectors.utils import iso_timestamp, normalize_path

logger = setup_logger(__name__)

DEFAULT_API_URL = "https://api.github.com"
ARCHIVE_TIMEOUT = 300.0

# compare API file status -> normalized status
_STATUS_MAP = {
    "added": ChangeStatus.ADDED,
    "removed": ChangeStatus.REMOVED,
    "renamed": ChangeStatus.RENAMED,
    "modified": ChangeStatus.MODIFIED,
    "changed": ChangeStatus.MODIFIED,
    "copied": ChangeStatus.ADDED,
}


class GitHubSource(VcsSource):
    """GitHub repository source backed by PyGithub."""

    kind = SourceKind.GITHUB
    log_tag = "GITHUB"

    def __init__(
        self,
        config: GitHubSourceConfig,
        token: Optional[str] = None,
        settings: Optional[ConnectorsConfig] = None,
        base_url: str = DEFAULT_API_URL,
        policy: Optional[ChangeDetectionPolicy] = None,
    ):
        super().__init__(ref=config.ref, policy=policy)
        if not config.owner or not config.repo:
            raise ConfigurationError("GitHub source requires both owner and repo")

        self.owner = config.owner
        self.repo = config.repo
        self.token = token or (settings.github_token if settings else None)
        if not self.token:
            raise ConfigurationError(
                "GitHub token required. Set GITHUB_TOKEN or pass a token explicitly."
            )

        self.client = Github(auth=Auth.Token(self.token), base_url=base_url)
        self._repository = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def _get_repository(self):
        if self._repository is None:
            self._repository = self.client.get_repo(self.full_name, lazy=True)
        return self._repository

    # ============ Host operations ============

    async def _resolve_remote_ref(self, ref: str) -> str:
        try:
            commit = await asyncio.to_thread(
                lambda: self._get_repository().get_commit(ref)
            )
        except GithubException as e:
            raise RefResolutionError(
                f'Failed to resolve ref "{ref}" for {self.full_name}: {e}'
            ) from e
        return commit.sha

    async def _download_snapshot(self, ref: str) -> Dict[str, bytes]:
        logger.info(f"[GITHUB] Downloading tarball for {self.full_name}@{ref}")
        try:
            url = await asyncio.to_thread(
                lambda: self._get_repository().get_archive_link("tarball", ref)
            )
        except GithubException as e:
            raise SourceFetchError(
                f"Failed to get tarball link for {self.full_name}@{ref}: {e}"
            ) from e

        # the archive link is pre-signed; no auth header needed
        try:
            async with httpx.AsyncClient(
                follow_redirects=True, timeout=ARCHIVE_TIMEOUT
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise SourceFetchError(f"Failed to download tarball: {e}") from e

        return await asyncio.to_thread(extract_tarball, response.content)

    def _compare(self, base: str, head: str) -> Tuple[str, int, list]:
        comparison = self._get_repository().compare(base, head)
        return comparison.status, comparison.behind_by, list(comparison.files)

    async def _list_changed_files(self, base: str, head: str) -> List[ChangedFile]:
        try:
            status, behind_by, files = await asyncio.to_thread(self._compare, base, head)
        except GithubException as e:
            raise IncrementalUnsafeError(f"compare {base[:12]}...{head[:12]} failed: {e}") from e

        if status in ("diverged", "behind") or behind_by > 0:
            raise IncrementalUnsafeError(
                f"force push detected (status={status}, behind_by={behind_by})"
            )

        changed: List[ChangedFile] = []
        for f in files:
            change_status = _STATUS_MAP.get(f.status)
            if change_status is None:
                continue
            previous = f.previous_filename if change_status == ChangeStatus.RENAMED else None
            changed.append(ChangedFile(f.filename, change_status, previous))
        return changed

    def _get_content_bytes(self, path: str, ref: str) -> Optional[bytes]:
        content = self._get_repository().get_contents(path, ref=ref)
        if isinstance(content, list) or content.type != "file":
            return None
        if content.encoding != "base64":
            # contents API does not inline files above 1 MB
            return None
        return content.decoded_content

    async def _read_raw(self, path: str, ref: str) -> Optional[bytes]:
        try:
            return await asyncio.to_thread(self._get_content_bytes, path, ref)
        except GithubException as e:
            if e.status != 404:
                logger.warning(f"[GITHUB] Failed to read {path}@{ref[:12]}: {e}")
            return None

    # ============ Source API ============

    async def get_metadata(self) -> GitHubSourceMetadata:
        return GitHubSourceMetadata(
            config=GitHubSourceConfig(owner=self.owner, repo=self.repo, ref=self.ref),
            resolved_ref=await self.resolve_ref(),
            synced_at=iso_timestamp(),
        )

    async def list_files(self, directory: str = "") -> List[FileInfo]:
        try:
            ref = await self.resolve_ref()
            contents = await asyncio.to_thread(
                lambda: self._get_repository().get_contents(
                    normalize_path(directory), ref=ref
                )
            )
        except (GithubException, RefResolutionError) as e:
            logger.warning(f"[GITHUB] Failed to list '{directory}': {e}")
            return []

        if not isinstance(contents, list):
            return []

        return [
            FileInfo(path=item.path, type="directory" if item.type == "dir" else "file")
            for item in contents
        ]
