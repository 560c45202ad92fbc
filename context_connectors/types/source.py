"""Persisted source metadata.

``SourceMetadata`` is a closed union discriminated on ``type``. Stored JSON uses
camelCase keys and omits unset optional fields, so the models alias every
field and are dumped with ``by_alias=True, exclude_none=True``.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SourceKind(str, Enum):
    """The four supported connector variants."""

    GITHUB = "github"
    GITLAB = "gitlab"
    BITBUCKET = "bitbucket"
    WEBSITE = "website"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ============ Source configurations ============


class GitHubSourceConfig(CamelModel):
    owner: str
    repo: str
    ref: Optional[str] = None


class GitLabSourceConfig(CamelModel):
    project_id: str
    base_url: Optional[str] = None
    ref: Optional[str] = None


class BitBucketSourceConfig(CamelModel):
    workspace: str
    repo: str
    base_url: Optional[str] = None
    ref: Optional[str] = None


class WebsiteSourceConfig(CamelModel):
    url: str
    max_depth: Optional[int] = None
    max_pages: Optional[int] = None
    include_paths: Optional[List[str]] = None
    exclude_paths: Optional[List[str]] = None
    respect_robots_txt: Optional[bool] = None
    user_agent: Optional[str] = None
    delay_ms: Optional[int] = None


SourceConfig = Union[
    GitHubSourceConfig, GitLabSourceConfig, BitBucketSourceConfig, WebsiteSourceConfig
]


# ============ Source metadata ============


class GitHubSourceMetadata(CamelModel):
    type: Literal["github"] = "github"
    config: GitHubSourceConfig
    resolved_ref: Optional[str] = None
    synced_at: str


class GitLabSourceMetadata(CamelModel):
    type: Literal["gitlab"] = "gitlab"
    config: GitLabSourceConfig
    resolved_ref: Optional[str] = None
    synced_at: str


class BitBucketSourceMetadata(CamelModel):
    type: Literal["bitbucket"] = "bitbucket"
    config: BitBucketSourceConfig
    resolved_ref: Optional[str] = None
    synced_at: str


class WebsiteSourceMetadata(CamelModel):
    type: Literal["website"] = "website"
    config: WebsiteSourceConfig
    synced_at: str


SourceMetadata = Annotated[
    Union[
        GitHubSourceMetadata,
        GitLabSourceMetadata,
        BitBucketSourceMetadata,
        WebsiteSourceMetadata,
    ],
    Field(discriminator="type"),
]


def get_resolved_ref(metadata: SourceMetadata) -> Optional[str]:
    """Return the indexed commit id, or None for sources without one."""
    return getattr(metadata, "resolved_ref", None)


def get_source_identifier(metadata: SourceMetadata) -> str:
    """Human-readable identifier: owner/repo, project id, workspace/repo or hostname."""
    kind = SourceKind(metadata.type)
    if kind is SourceKind.GITHUB:
        return f"{metadata.config.owner}/{metadata.config.repo}"
    if kind is SourceKind.GITLAB:
        return metadata.config.project_id
    if kind is SourceKind.BITBUCKET:
        return f"{metadata.config.workspace}/{metadata.config.repo}"
    if kind is SourceKind.WEBSITE:
        return urlparse(metadata.config.url).hostname or metadata.config.url
    raise ValueError(f"Unknown source type: {metadata.type}")
