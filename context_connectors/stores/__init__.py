from .base import SEARCH_FILE, STATE_FILE, IndexStore, IndexStoreReader
from .composite_store import CompositeStoreReader, StoreEntry
from .filesystem_store import FilesystemStore
from .index_spec import IndexSpec, IndexSpecKind, parse_index_spec, parse_index_specs
from .layered_store import LayeredStore, ReadOnlyLayeredStore
from .memory_store import MemoryStore
from .s3_store import S3Store

__all__ = [
    "SEARCH_FILE",
    "STATE_FILE",
    "IndexStore",
    "IndexStoreReader",
    "CompositeStoreReader",
    "StoreEntry",
    "FilesystemStore",
    "IndexSpec",
    "IndexSpecKind",
    "parse_index_spec",
    "parse_index_specs",
    "LayeredStore",
    "ReadOnlyLayeredStore",
    "MemoryStore",
    "S3Store",
]
