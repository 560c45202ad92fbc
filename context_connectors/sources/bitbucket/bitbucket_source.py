import asyncio
import os
import shutil
import tempfile
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urlparse

import httpx
from git import GitCommandError, Repo

from context_connectors.config import ConnectorsConfig
from context_connectors.exceptions import (
    ConfigurationError,
    IncrementalUnsafeError,
    RefResolutionError,
    SourceFetchError,
)
from context_connectors.filters.file_filter import (
    AUGMENTIGNORE_FILE,
    GITIGNORE_FILE,
)
from context_connectors.logger import setup_logger
from context_connectors.sources.base.source_interface import (
    ChangeDetectionPolicy,
    ChangedFile,
    ChangeStatus,
    VcsSource,
)
from context_connectors.types import (
    BitBucketSourceConfig,
    BitBucketSourceMetadata,
    FileInfo,
    SourceKind,
)
from context_connectors.utils import iso_timestamp, normalize_path

logger = setup_logger(__name__)

DEFAULT_BASE_URL = "https://api.bitbucket.org/2.0"
DEFAULT_CLONE_URL = "https://bitbucket.org"
SKIP_DIRS = frozenset({".git", "node_modules", "__pycache__", ".venv", "venv"})


def _encode_path(path: str) -> str:
    """Percent-encode each segment while keeping ``/`` separators."""
    return "/".join(quote(segment, safe="") for segment in path.split("/"))


def clone_base_for(base_url: str) -> str:
    """
    Git host for an API base URL.

    ``https://api.example.com/2.0`` clones from ``https://example.com``; other
    hosts clone from the API host itself.
    """
    if base_url.rstrip("/") == DEFAULT_BASE_URL:
        return DEFAULT_CLONE_URL
    parsed = urlparse(base_url)
    host = parsed.netloc
    if host.startswith("api."):
        host = host[len("api."):]
    return f"{parsed.scheme or 'https'}://{host}"


def _is_directory_listing(response: httpx.Response) -> bool:
    """The ``src`` endpoint answers a directory path with a paginated JSON listing."""
    if not response.headers.get("content-type", "").startswith("application/json"):
        return False
    try:
        data = response.json()
    except ValueError:
        return False
    return isinstance(data, dict) and "values" in data and "pagelen" in data


def classify_diffstat(entry: Dict[str, Any]) -> ChangedFile:
    """Map one ``diffstat`` value to a ChangedFile."""
    status = entry.get("status")
    old_path = (entry.get("old") or {}).get("path")
    new_path = (entry.get("new") or {}).get("path")

    if status == "removed":
        return ChangedFile(old_path, ChangeStatus.REMOVED)
    if status == "added":
        return ChangedFile(new_path, ChangeStatus.ADDED)
    if status == "renamed" and old_path and old_path != new_path:
        return ChangedFile(new_path, ChangeStatus.RENAMED, old_path)
    return ChangedFile(new_path or old_path, ChangeStatus.MODIFIED)


class BitBucketSource(VcsSource):
    """
    BitBucket Cloud repository source.

    REST calls go through an httpx AsyncClient. BitBucket has no tarball
    endpoint usable with access tokens, so full fetches shallow-clone the
    repository with GitPython instead.
    """

    kind = SourceKind.BITBUCKET
    log_tag = "BITBUCKET"

    def __init__(
        self,
        config: BitBucketSourceConfig,
        token: Optional[str] = None,
        settings: Optional[ConnectorsConfig] = None,
        policy: Optional[ChangeDetectionPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(ref=config.ref, policy=policy)
        if not config.workspace or not config.repo:
            raise ConfigurationError("BitBucket source requires both workspace and repo")

        self.workspace = config.workspace
        self.repo = config.repo
        self.base_url = (config.base_url or DEFAULT_BASE_URL).rstrip("/")
        self.token = token or (settings.bitbucket_token if settings else None)
        if not self.token:
            raise ConfigurationError(
                "BitBucket token required. Set BITBUCKET_TOKEN or pass a token explicitly."
            )

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self.token}",
                "Accept": "application/json",
            },
            timeout=30.0,
            transport=transport,
        )

    async def close(self) -> None:
        await self.client.aclose()

    @property
    def repo_path(self) -> str:
        return f"/repositories/{self.workspace}/{self.repo}"

    async def _api_get(self, path: str, **params) -> Dict[str, Any]:
        response = await self.client.get(path, params=params or None)
        response.raise_for_status()
        return response.json()

    # ============ Host operations ============

    async def _resolve_remote_ref(self, ref: str) -> str:
        target = ref
        try:
            if target == "HEAD":
                info = await self._api_get(self.repo_path)
                target = (info.get("mainbranch") or {}).get("name") or "main"

            try:
                branch = await self._api_get(
                    f"{self.repo_path}/refs/branches/{quote(target, safe='')}"
                )
                sha = (branch.get("target") or {}).get("hash")
            except httpx.HTTPStatusError as e:
                if e.response.status_code != 404:
                    raise
                sha = None

            if not sha:
                commit = await self._api_get(
                    f"{self.repo_path}/commit/{quote(target, safe='')}"
                )
                sha = commit.get("hash")
        except httpx.HTTPError as e:
            raise RefResolutionError(
                f'Failed to resolve ref "{target}" for {self.workspace}/{self.repo}: {e}'
            ) from e

        if not sha:
            raise RefResolutionError(
                f'Failed to resolve ref "{target}" for {self.workspace}/{self.repo}'
            )
        return sha

    def _clone(self, ref: str, target_dir: str) -> None:
        clone_base = clone_base_for(self.base_url)
        scheme, host = clone_base.split("://", 1)
        clone_url = (
            f"{scheme}://x-token-auth:{self.token}@{host}/"
            f"{self.workspace}/{self.repo}.git"
        )
        safe_url = f"{clone_base}/{self.workspace}/{self.repo}.git"
        logger.info(f"[BITBUCKET] Cloning {safe_url}@{ref}")

        try:
            # --branch only accepts names, so clone the default branch then
            # fetch the resolved commit explicitly
            repo = Repo.clone_from(clone_url, target_dir, depth=1)
            repo.git.fetch("origin", ref, depth=1)
            repo.git.checkout(ref)
        except GitCommandError as e:
            message = str(e).replace(self.token, "***")
            raise SourceFetchError(f"Failed to clone {safe_url}: {message}") from e

    def _walk(self, root: str) -> Dict[str, bytes]:
        pipeline = self._build_filter(
            self._read_local(root, GITIGNORE_FILE),
            self._read_local(root, AUGMENTIGNORE_FILE),
        )

        files: Dict[str, bytes] = {}
        for current, dirs, filenames in os.walk(root):
            rel_dir = os.path.relpath(current, root)
            rel_dir = "" if rel_dir == "." else rel_dir.replace(os.sep, "/")

            dirs[:] = [
                d
                for d in dirs
                if d not in SKIP_DIRS
                and not pipeline.ignores_directory(f"{rel_dir}/{d}" if rel_dir else d)
            ]

            for filename in filenames:
                full_path = os.path.join(current, filename)
                if not os.path.isfile(full_path) or os.path.islink(full_path):
                    continue
                rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
                try:
                    with open(full_path, "rb") as fh:
                        files[rel_path] = fh.read()
                except OSError as e:
                    logger.warning(f"[BITBUCKET] Skipping unreadable file {rel_path}: {e}")
        return files

    @staticmethod
    def _read_local(root: str, name: str) -> Optional[bytes]:
        path = os.path.join(root, name)
        if not os.path.isfile(path):
            return None
        with open(path, "rb") as fh:
            return fh.read()

    async def _download_snapshot(self, ref: str) -> Dict[str, bytes]:
        temp_dir = tempfile.mkdtemp(prefix=f"bitbucket-{self.workspace}-{self.repo}-")
        try:
            await asyncio.to_thread(self._clone, ref, temp_dir)
            files = await asyncio.to_thread(self._walk, temp_dir)
            logger.info(f"[BITBUCKET] Collected {len(files)} files from clone")
            return files
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

    async def _list_changed_files(self, base: str, head: str) -> List[ChangedFile]:
        try:
            # commits reachable from base but not head were dropped: a force push
            # (diverged) or a backward move
            dropped = await self._api_get(
                f"{self.repo_path}/commits", include=base, exclude=head, pagelen=1
            )
            if dropped.get("values"):
                raise IncrementalUnsafeError(
                    "previous commit is not an ancestor of the current ref"
                )

            data = await self._api_get(
                f"{self.repo_path}/diffstat/{quote(base, safe='')}..{quote(head, safe='')}"
            )
        except httpx.HTTPError as e:
            raise IncrementalUnsafeError(f"compare {base[:12]}..{head[:12]} failed: {e}") from e

        values = data.get("values") or []
        if not values and base != head:
            raise IncrementalUnsafeError("no forward diff between different commits")
        if data.get("next"):
            raise IncrementalUnsafeError("diffstat spans more than one page")

        return [classify_diffstat(entry) for entry in values]

    async def _read_raw(self, path: str, ref: str) -> Optional[bytes]:
        try:
            response = await self.client.get(
                f"{self.repo_path}/src/{quote(ref, safe='')}/{_encode_path(path)}"
            )
        except httpx.HTTPError as e:
            logger.warning(f"[BITBUCKET] Failed to read {path}@{ref[:12]}: {e}")
            return None

        if response.status_code != 200:
            return None
        if _is_directory_listing(response):
            return None
        return response.content

    # ============ Source API ============

    async def get_metadata(self) -> BitBucketSourceMetadata:
        return BitBucketSourceMetadata(
            config=BitBucketSourceConfig(
                workspace=self.workspace,
                repo=self.repo,
                base_url=None if self.base_url == DEFAULT_BASE_URL else self.base_url,
                ref=self.ref,
            ),
            resolved_ref=await self.resolve_ref(),
            synced_at=iso_timestamp(),
        )

    async def list_files(self, directory: str = "") -> List[FileInfo]:
        try:
            ref = await self.resolve_ref()
        except RefResolutionError as e:
            logger.warning(f"[BITBUCKET] Failed to list '{directory}': {e}")
            return []

        directory = normalize_path(directory)
        url: Optional[str] = f"{self.repo_path}/src/{quote(ref, safe='')}/"
        if directory:
            url += _encode_path(directory) + "/"
        params: Optional[Dict[str, Any]] = {"pagelen": 100}

        entries: List[FileInfo] = []
        try:
            while url:
                response = await self.client.get(url, params=params)
                response.raise_for_status()
                data = response.json()
                for item in data.get("values") or []:
                    entries.append(
                        FileInfo(
                            path=item["path"],
                            type="directory"
                            if item.get("type") == "commit_directory"
                            else "file",
                        )
                    )
                # ``next`` is an absolute URL that already carries the query
                url = data.get("next")
                params = None
        except httpx.HTTPError as e:
            logger.warning(f"[BITBUCKET] Failed to list '{directory}': {e}")
            return []

        return entries
