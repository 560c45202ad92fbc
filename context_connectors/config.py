"""Runtime configuration for context-connectors.

Components never read the process environment on their own; they receive a
``ConnectorsConfig`` built once by the caller, usually via ``from_env()``.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

DEFAULT_STORE_PATH = str(Path.home() / ".augment" / "context-connectors")
DEFAULT_S3_PREFIX = "context-connectors/"
DEFAULT_S3_REGION = "us-east-1"


def _env_flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


@dataclass
class S3Config:
    """Object store location used for ``s3://`` specs and the S3 store.

    Attributes:
        bucket: Bucket name. Required before an S3 store can be created.
        prefix: Key prefix all indexes live under.
        region: AWS region.
        endpoint: Custom endpoint for S3-compatible services (MinIO, R2).
        force_path_style: Use path-style addressing, needed by most
            S3-compatible services.
    """

    bucket: Optional[str] = None
    prefix: str = DEFAULT_S3_PREFIX
    region: str = DEFAULT_S3_REGION
    endpoint: Optional[str] = None
    force_path_style: bool = False

    @classmethod
    def from_env(cls) -> "S3Config":
        return cls(
            bucket=os.getenv("CC_S3_BUCKET") or None,
            prefix=os.getenv("CC_S3_PREFIX", DEFAULT_S3_PREFIX),
            region=os.getenv("CC_S3_REGION")
            or os.getenv("AWS_REGION")
            or DEFAULT_S3_REGION,
            endpoint=os.getenv("CC_S3_ENDPOINT") or None,
            force_path_style=_env_flag(os.getenv("CC_S3_FORCE_PATH_STYLE")),
        )


@dataclass
class ConnectorsConfig:
    """Credentials and locations shared by sources, stores and the indexer.

    Attributes:
        store_path: Root directory of the default filesystem store.
        github_token: Token for the GitHub source.
        gitlab_token: Token for the GitLab source.
        bitbucket_token: Token for the BitBucket source.
        api_key: Context Engine API key.
        api_url: Context Engine API URL.
        s3: Object store settings.
    """

    store_path: str = DEFAULT_STORE_PATH
    github_token: Optional[str] = None
    gitlab_token: Optional[str] = None
    bitbucket_token: Optional[str] = None
    api_key: Optional[str] = None
    api_url: Optional[str] = None
    s3: S3Config = field(default_factory=S3Config)

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "ConnectorsConfig":
        """Build a config from environment variables, loading ``.env`` from the cwd first."""
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True), override=False)

        return cls(
            store_path=os.getenv("CONTEXT_CONNECTORS_STORE_PATH") or DEFAULT_STORE_PATH,
            github_token=os.getenv("GITHUB_TOKEN") or None,
            gitlab_token=os.getenv("GITLAB_TOKEN") or None,
            bitbucket_token=os.getenv("BITBUCKET_TOKEN") or None,
            api_key=os.getenv("AUGMENT_API_TOKEN") or None,
            api_url=os.getenv("AUGMENT_API_URL") or None,
            s3=S3Config.from_env(),
        )
