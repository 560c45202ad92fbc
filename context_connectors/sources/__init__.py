from .base.source_interface import (
    ChangeDetectionPolicy,
    ChangedFile,
    ChangeStatus,
    Source,
    VcsSource,
)
from .source_factory import SourceFactory, create_source, create_source_from_state

__all__ = [
    "ChangeDetectionPolicy",
    "ChangedFile",
    "ChangeStatus",
    "Source",
    "VcsSource",
    "SourceFactory",
    "create_source",
    "create_source_from_state",
]
