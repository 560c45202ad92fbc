"""Sync repositories and websites into persisted, incrementally updated search indexes."""

from context_connectors.clients import IndexClientCache, SearchClient
from context_connectors.config import ConnectorsConfig, S3Config
from context_connectors.engine import (
    ContextEngine,
    ContextEngineFactory,
    EngineCredentials,
    ExportMode,
    IndexingResult,
)
from context_connectors.exceptions import (
    ClientNotInitializedError,
    ConfigurationError,
    ConnectorsError,
    CorruptStateError,
    IndexNotFoundError,
    InvalidIndexSpecError,
    RefResolutionError,
    RemoteDeleteForbiddenError,
    SourceFetchError,
    SourceNotConfiguredError,
    StoreError,
)
from context_connectors.filters import FileFilterPipeline
from context_connectors.indexer import Indexer
from context_connectors.sources import (
    Source,
    SourceFactory,
    create_source,
    create_source_from_state,
)
from context_connectors.stores import (
    CompositeStoreReader,
    FilesystemStore,
    IndexStore,
    IndexStoreReader,
    LayeredStore,
    MemoryStore,
    ReadOnlyLayeredStore,
    S3Store,
    parse_index_spec,
    parse_index_specs,
)
from context_connectors.url_parser import parse_source_url

__all__ = [
    "IndexClientCache",
    "SearchClient",
    "ConnectorsConfig",
    "S3Config",
    "ContextEngine",
    "ContextEngineFactory",
    "EngineCredentials",
    "ExportMode",
    "IndexingResult",
    "ClientNotInitializedError",
    "ConfigurationError",
    "ConnectorsError",
    "CorruptStateError",
    "IndexNotFoundError",
    "InvalidIndexSpecError",
    "RefResolutionError",
    "RemoteDeleteForbiddenError",
    "SourceFetchError",
    "SourceNotConfiguredError",
    "StoreError",
    "FileFilterPipeline",
    "Indexer",
    "Source",
    "SourceFactory",
    "create_source",
    "create_source_from_state",
    "CompositeStoreReader",
    "FilesystemStore",
    "IndexStore",
    "IndexStoreReader",
    "LayeredStore",
    "MemoryStore",
    "ReadOnlyLayeredStore",
    "S3Store",
    "parse_index_spec",
    "parse_index_specs",
    "parse_source_url",
]
