# Export all types for easy importing
from .files import FileChanges, FileEntry, FileInfo, FileType
from .index import (
    MANIFEST_FIELD,
    STATE_VERSION,
    IndexInfo,
    IndexResult,
    IndexRunType,
    IndexState,
    IndexStateSearchOnly,
    source_metadata_adapter,
)
from .source import (
    BitBucketSourceConfig,
    BitBucketSourceMetadata,
    GitHubSourceConfig,
    GitHubSourceMetadata,
    GitLabSourceConfig,
    GitLabSourceMetadata,
    SourceConfig,
    SourceKind,
    SourceMetadata,
    WebsiteSourceConfig,
    WebsiteSourceMetadata,
    get_resolved_ref,
    get_source_identifier,
)

__all__ = [
    # Files
    "FileChanges",
    "FileEntry",
    "FileInfo",
    "FileType",
    # Index state
    "MANIFEST_FIELD",
    "STATE_VERSION",
    "IndexInfo",
    "IndexResult",
    "IndexRunType",
    "IndexState",
    "IndexStateSearchOnly",
    "source_metadata_adapter",
    # Sources
    "BitBucketSourceConfig",
    "BitBucketSourceMetadata",
    "GitHubSourceConfig",
    "GitHubSourceMetadata",
    "GitLabSourceConfig",
    "GitLabSourceMetadata",
    "SourceConfig",
    "SourceKind",
    "SourceMetadata",
    "WebsiteSourceConfig",
    "WebsiteSourceMetadata",
    "get_resolved_ref",
    "get_source_identifier",
]
