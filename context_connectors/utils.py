import re
from datetime import datetime, timezone

import chardet

_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9_-]")
_REPEATED_UNDERSCORES = re.compile(r"__+")
_REPEATED_SLASHES = re.compile(r"//+")


def sanitize_key(key: str) -> str:
    """Make an index key safe for use as a directory or object-key segment.

    Unsafe characters become ``_``, runs of ``_`` collapse and leading or
    trailing ``_`` are trimmed. Keys such as ``"."`` sanitize to ``""``.
    """
    sanitized = _UNSAFE_KEY_CHARS.sub("_", key)
    sanitized = _REPEATED_UNDERSCORES.sub("_", sanitized)
    return sanitized.strip("_")


def iso_timestamp() -> str:
    """Current UTC time, ISO-8601 with millisecond precision and a ``Z`` suffix."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def normalize_path(path: str) -> str:
    """Strip ``./`` and surrounding slashes and collapse repeated slashes."""
    if path.startswith("./"):
        path = path[2:]
    path = path.lstrip("/").rstrip("/")
    return _REPEATED_SLASHES.sub("/", path)


def decode_content(content: bytes) -> str:
    """Decode file bytes for display, falling back to chardet for non-UTF-8 text."""
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        pass

    detected = chardet.detect(content)
    encoding = detected.get("encoding") or "utf-8"
    try:
        return content.decode(encoding, errors="replace")
    except LookupError:
        return content.decode("utf-8", errors="replace")
