from .source_interface import (
    ChangeDetectionPolicy,
    ChangedFile,
    ChangeStatus,
    Source,
    VcsSource,
)

__all__ = [
    "ChangeDetectionPolicy",
    "ChangedFile",
    "ChangeStatus",
    "Source",
    "VcsSource",
]
