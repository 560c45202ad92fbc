from .file_filter import (
    DEFAULT_MAX_FILE_SIZE,
    IGNORE_FILES,
    FileFilterPipeline,
    FilterDecision,
    FilterReason,
    always_ignore_path,
    is_keyish_path,
    is_valid_file_size,
    is_valid_utf8,
    should_filter_file,
)

__all__ = [
    "DEFAULT_MAX_FILE_SIZE",
    "IGNORE_FILES",
    "FileFilterPipeline",
    "FilterDecision",
    "FilterReason",
    "always_ignore_path",
    "is_keyish_path",
    "is_valid_file_size",
    "is_valid_utf8",
    "should_filter_file",
]
