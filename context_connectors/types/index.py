"""Index state and result types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import TypeAdapter

from .source import CamelModel, SourceMetadata

STATE_VERSION = 1

MANIFEST_FIELD = "blobs"
"""Key of the blob manifest inside a full engine export."""


class IndexState(CamelModel):
    """Full persisted state. ``context_state`` carries the complete blob manifest."""

    version: Literal[1] = STATE_VERSION
    context_state: Dict[str, Any]
    source: SourceMetadata

    def to_dict(self) -> Dict[str, Any]:
        # context_state is opaque engine output and is written back untouched
        return {
            "version": self.version,
            "contextState": self.context_state,
            "source": self.source.to_dict(),
        }


class IndexStateSearchOnly(IndexState):
    """Search-only persisted state: checkpoint and blob ids, no manifest."""


source_metadata_adapter: TypeAdapter = TypeAdapter(SourceMetadata)


class IndexRunType(str, Enum):
    FULL = "full"
    INCREMENTAL = "incremental"
    UNCHANGED = "unchanged"


@dataclass
class IndexResult:
    """Outcome of one ``Indexer.index`` run."""

    type: IndexRunType
    files_indexed: int = 0
    files_removed: int = 0
    files_new_or_modified: int = 0
    files_unchanged: int = 0
    duration_ms: int = 0


@dataclass
class IndexInfo:
    """Summary row for one index known to an IndexClientCache."""

    name: str
    type: str
    identifier: str
    ref: Optional[str]
    synced_at: str
