"""
Decide whether a file fetched from a source belongs in the index.

Checks run in a fixed order and the first one that rejects wins:

1. ``.augmentignore`` rules, so users can override everything else
2. structural checks: ``..`` in the path, size cap, key/certificate
   filenames, invalid UTF-8
3. ``.gitignore`` rules, last because its pattern set is usually the largest
"""

import re
from dataclasses import dataclass
from typing import Optional

import pathspec

AUGMENTIGNORE_FILE = ".augmentignore"
GITIGNORE_FILE = ".gitignore"
IGNORE_FILES = (GITIGNORE_FILE, AUGMENTIGNORE_FILE)

DEFAULT_MAX_FILE_SIZE = 1024 * 1024  # 1 MiB

_KEYISH_PATTERN = re.compile(
    r"^(\.git|.*\.pem|.*\.key|.*\.pfx|.*\.p12|.*\.jks|.*\.keystore|.*\.pkcs12"
    r"|.*\.crt|.*\.cer|id_rsa|id_ed25519|id_ecdsa|id_dsa)$"
)


class FilterReason:
    AUGMENTIGNORE = "augmentignore"
    PATH_CONTAINS_DOTDOT = "path_contains_dotdot"
    FILE_TOO_LARGE = "file_too_large"
    KEYISH_PATTERN = "keyish_pattern"
    BINARY_FILE = "binary_file"
    GITIGNORE = "gitignore"


@dataclass(frozen=True)
class FilterDecision:
    included: bool
    reason: Optional[str] = None
    detail: Optional[str] = None


INCLUDED = FilterDecision(included=True)


def always_ignore_path(path: str) -> bool:
    return ".." in path


def is_keyish_path(path: str) -> bool:
    """True when the filename looks like a private key, keystore or certificate."""
    filename = path.rsplit("/", 1)[-1]
    return bool(_KEYISH_PATTERN.match(filename))


def is_valid_file_size(size_bytes: int, max_file_size: int = DEFAULT_MAX_FILE_SIZE) -> bool:
    return size_bytes <= max_file_size


def is_valid_utf8(content: bytes) -> bool:
    try:
        content.decode("utf-8")
    except UnicodeDecodeError:
        return False
    return True


def should_filter_file(
    path: str, content: bytes, max_file_size: int = DEFAULT_MAX_FILE_SIZE
) -> FilterDecision:
    """Structural checks only, without any ignore-file rules."""
    if always_ignore_path(path):
        return FilterDecision(False, FilterReason.PATH_CONTAINS_DOTDOT)

    if not is_valid_file_size(len(content), max_file_size):
        return FilterDecision(
            False, FilterReason.FILE_TOO_LARGE, f"{len(content)} bytes"
        )

    if is_keyish_path(path):
        return FilterDecision(False, FilterReason.KEYISH_PATTERN)

    if not is_valid_utf8(content):
        return FilterDecision(False, FilterReason.BINARY_FILE)

    return INCLUDED


def _compile_ignore(text: Optional[str]) -> Optional[pathspec.PathSpec]:
    if not text:
        return None
    return pathspec.GitIgnoreSpec.from_lines(text.splitlines())


class FileFilterPipeline:
    """Stateless include/exclude decision built from a snapshot's ignore files.

    Build one per snapshot with :meth:`from_ignore_files` and call
    :meth:`evaluate` for each candidate file.
    """

    def __init__(
        self,
        augmentignore: Optional[pathspec.PathSpec] = None,
        gitignore: Optional[pathspec.PathSpec] = None,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    ):
        self.augmentignore = augmentignore
        self.gitignore = gitignore
        self.max_file_size = max_file_size

    @classmethod
    def from_ignore_files(
        cls,
        augmentignore: Optional[str] = None,
        gitignore: Optional[str] = None,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    ) -> "FileFilterPipeline":
        """Build a pipeline from the raw text of the two ignore files (None if absent)."""
        return cls(
            augmentignore=_compile_ignore(augmentignore),
            gitignore=_compile_ignore(gitignore),
            max_file_size=max_file_size,
        )

    def evaluate(self, path: str, content: bytes) -> FilterDecision:
        if self.augmentignore is not None and self.augmentignore.match_file(path):
            return FilterDecision(False, FilterReason.AUGMENTIGNORE)

        decision = should_filter_file(path, content, self.max_file_size)
        if not decision.included:
            return decision

        if self.gitignore is not None and self.gitignore.match_file(path):
            return FilterDecision(False, FilterReason.GITIGNORE)

        return INCLUDED

    def includes(self, path: str, content: bytes) -> bool:
        return self.evaluate(path, content).included

    def ignores_directory(self, directory: str) -> bool:
        """True when either ignore file excludes ``directory`` as a whole.

        Lets tree walkers prune a directory without visiting its files.
        """
        dir_path = directory.rstrip("/") + "/"
        for spec in (self.augmentignore, self.gitignore):
            if spec is not None and spec.match_file(dir_path):
                return True
        return False

