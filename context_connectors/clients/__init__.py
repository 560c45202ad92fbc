from .index_client_cache import IndexClientCache
from .search_client import SearchClient
from .tools import (
    ListFilesResult,
    ReadFileResult,
    SearchResult,
    ToolContext,
    format_list_output,
)

__all__ = [
    "IndexClientCache",
    "SearchClient",
    "ListFilesResult",
    "ReadFileResult",
    "SearchResult",
    "ToolContext",
    "format_list_output",
]
