"""
Index specifications: how a user points at an index.

    name:foo              named index in the default filesystem store
    foo                   same as name:foo
    path:/abs/dir         a directory holding state.json and search.json
    s3://bucket/a/b       an index stored under s3://bucket/a/b/
"""

import re
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Dict, List

from context_connectors.exceptions import InvalidIndexSpecError

DEFAULT_PATH_DISPLAY_NAME = "index"

_SCHEME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


class IndexSpecKind(str, Enum):
    NAME = "name"
    PATH = "path"
    S3 = "s3"


@dataclass
class IndexSpec:
    kind: IndexSpecKind
    value: str
    display_name: str


def _path_display_name(path: str) -> str:
    for part in reversed(PurePosixPath(path.rstrip("/") or "/").parts):
        if part not in ("/", ".", ".."):
            return part
    return DEFAULT_PATH_DISPLAY_NAME


def parse_index_spec(spec: str) -> IndexSpec:
    """Parse one spec string.

    Raises:
        InvalidIndexSpecError: empty spec, malformed s3/path/name value, or an
            unsupported ``scheme://``.
    """
    if not spec or not spec.strip():
        raise InvalidIndexSpecError("Index spec cannot be empty")
    spec = spec.strip()

    if spec.startswith("s3://"):
        value = spec[len("s3://"):]
        parts = [part for part in value.split("/") if part]
        if len(parts) < 2:
            raise InvalidIndexSpecError(
                f"Invalid S3 index spec '{spec}': expected s3://bucket/path"
            )
        return IndexSpec(IndexSpecKind.S3, "/".join(parts), parts[-1])

    if spec.startswith("path:"):
        value = spec[len("path:"):]
        if not value:
            raise InvalidIndexSpecError(f"Invalid path index spec '{spec}': path is empty")
        return IndexSpec(IndexSpecKind.PATH, value, _path_display_name(value))

    if spec.startswith("name:"):
        value = spec[len("name:"):]
        if not value:
            raise InvalidIndexSpecError(f"Invalid name index spec '{spec}': name is empty")
        return IndexSpec(IndexSpecKind.NAME, value, value)

    if _SCHEME_PATTERN.match(spec):
        scheme = spec.split("://", 1)[0]
        raise InvalidIndexSpecError(
            f"Unsupported index spec scheme '{scheme}://' in '{spec}'. "
            "Use a name, name:<name>, path:<dir> or s3://<bucket>/<path>."
        )

    return IndexSpec(IndexSpecKind.NAME, spec, spec)


def parse_index_specs(specs: List[str]) -> List[IndexSpec]:
    """Parse several specs; later duplicate display names get ``-2``, ``-3``..."""
    parsed = [parse_index_spec(spec) for spec in specs]

    totals = Counter(spec.display_name for spec in parsed)
    taken = set(totals)
    seen: Dict[str, int] = {}
    for spec in parsed:
        base = spec.display_name
        seen[base] = seen.get(base, 0) + 1
        if seen[base] == 1:
            continue
        suffix = seen[base]
        candidate = f"{base}-{suffix}"
        while candidate in taken:
            suffix += 1
            candidate = f"{base}-{suffix}"
        taken.add(candidate)
        spec.display_name = candidate

    return parsed
