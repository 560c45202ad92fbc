"""
Client tools: the operations search front ends expose over one index.

``search`` needs only the engine. ``list_files`` and ``read_file`` need the
Source the index was built from and raise SourceNotConfiguredError in
search-only mode.
"""

import fnmatch
import re
from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple

from context_connectors.engine import ContextEngine
from context_connectors.exceptions import SourceNotConfiguredError
from context_connectors.sources.base import Source
from context_connectors.types import FileInfo, IndexStateSearchOnly
from context_connectors.utils import normalize_path

DEFAULT_MAX_OUTPUT = 50000
DEFAULT_DEPTH = 2
DEFAULT_CONTEXT_LINES = 5
MAX_SUGGESTIONS = 5

TRUNCATION_MESSAGE = (
    "\n<response clipped><NOTE>To save on context only part of this file "
    "has been shown to you.</NOTE>"
)


@dataclass
class ToolContext:
    engine: ContextEngine
    state: IndexStateSearchOnly
    source: Optional[Source] = None

    def require_source(self, action: str) -> Source:
        if self.source is None:
            raise SourceNotConfiguredError(
                f"Source not configured. Cannot {action} in search-only mode."
            )
        return self.source


# ============ search ============


@dataclass
class SearchResult:
    results: str
    query: str


async def search(
    ctx: ToolContext, query: str, max_output_length: Optional[int] = None
) -> SearchResult:
    results = await ctx.engine.search(query, max_output_length=max_output_length)
    return SearchResult(results=results or "", query=query)


# ============ list_files ============


@dataclass
class ListFilesResult:
    entries: List[FileInfo]
    truncated: bool = False
    omitted_count: int = 0


def _basename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def _matches(path: str, pattern: str) -> bool:
    # patterns without a slash match the basename anywhere in the tree
    if "/" not in pattern:
        return fnmatch.fnmatchcase(_basename(path), pattern)
    return fnmatch.fnmatchcase(path, pattern)


async def _collect_entries(
    source: Source,
    directory: str,
    remaining_depth: int,
    show_hidden: bool,
    results: List[FileInfo],
) -> None:
    if remaining_depth <= 0:
        return

    for entry in await source.list_files(directory):
        if not show_hidden and _basename(entry.path).startswith("."):
            continue
        results.append(entry)
        if entry.type == "directory" and remaining_depth > 1:
            await _collect_entries(
                source, entry.path, remaining_depth - 1, show_hidden, results
            )


async def list_files(
    ctx: ToolContext,
    directory: str = "",
    pattern: Optional[str] = None,
    depth: int = DEFAULT_DEPTH,
    show_hidden: bool = False,
    max_output_length: int = DEFAULT_MAX_OUTPUT,
) -> ListFilesResult:
    """List files up to ``depth`` levels below ``directory``, sorted by path.

    Output is cut once the estimated rendered size would exceed
    ``max_output_length``; the number of dropped entries is reported.
    """
    source = ctx.require_source("list files")

    collected: List[FileInfo] = []
    await _collect_entries(source, normalize_path(directory), depth, show_hidden, collected)

    if pattern:
        collected = [entry for entry in collected if _matches(entry.path, pattern)]
    collected.sort(key=lambda entry: entry.path)

    size = 0
    for i, entry in enumerate(collected):
        # "path [type]\n"
        entry_size = len(entry.path) + len(entry.type) + 5
        if size + entry_size > max_output_length:
            return ListFilesResult(
                entries=collected[:i], truncated=True, omitted_count=len(collected) - i
            )
        size += entry_size

    return ListFilesResult(entries=collected)


def format_list_output(
    result: ListFilesResult,
    directory: str = "",
    depth: int = DEFAULT_DEPTH,
    show_hidden: bool = False,
) -> str:
    if not result.entries:
        return "No files found."

    if depth == 1:
        depth_desc = "immediate children"
    else:
        depth_desc = f"files and directories up to {depth} levels deep"
    hidden_desc = "including" if show_hidden else "excluding"
    header = (
        f"Here are the {depth_desc} in {directory or 'the root directory'}, "
        f"{hidden_desc} hidden items:\n"
    )
    body = "\n".join(f"{entry.path} [{entry.type}]" for entry in result.entries)

    if result.truncated:
        body += (
            f"\n\n... ({result.omitted_count} more entries omitted due to output limit)"
        )
    return header + body


# ============ read_file ============


@dataclass
class ReadFileResult:
    path: str
    contents: Optional[str]
    total_lines: Optional[int] = None
    truncated: bool = False
    error: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)


def format_line(line_number: int, content: str) -> str:
    """``cat -n`` style: number right-aligned to six columns, then a tab."""
    return f"{line_number:6d}\t{content}"


def truncate_output(output: str, max_length: int) -> Tuple[str, bool]:
    if len(output) <= max_length:
        return output, False
    if max_length <= len(TRUNCATION_MESSAGE):
        return output[:max_length], True
    return output[: max_length - len(TRUNCATION_MESSAGE)] + TRUNCATION_MESSAGE, True


def normalize_range(
    start_line: Optional[int], end_line: Optional[int], total_lines: int
) -> Tuple[int, int]:
    """Clamp a 1-based inclusive range; an end of -1 means end of file."""
    start = 1 if start_line is None else start_line
    end = -1 if end_line is None else end_line

    start = min(max(start, 1), total_lines)
    if end == -1:
        end = total_lines
    end = min(max(end, start), total_lines)
    return start, end


def _search_lines(
    lines: List[str], regex: re.Pattern, before: int, after: int
) -> Tuple[Set[int], Set[int]]:
    shown: Set[int] = set()
    matched: Set[int] = set()
    for i, line in enumerate(lines):
        if regex.search(line):
            matched.add(i)
            shown.update(range(max(0, i - before), min(len(lines) - 1, i + after) + 1))
    return shown, matched


async def _find_similar_paths(source: Source, path: str) -> List[str]:
    parent, _, filename = path.rpartition("/")
    filename = filename.lower()

    suggestions = []
    for entry in await source.list_files(parent):
        if entry.type != "file":
            continue
        name = _basename(entry.path).lower()
        if filename in name or name in filename:
            suggestions.append(entry.path)
    return suggestions[:MAX_SUGGESTIONS]


async def read_file(
    ctx: ToolContext,
    path: str,
    start_line: Optional[int] = None,
    end_line: Optional[int] = None,
    include_line_numbers: bool = True,
    search_pattern: Optional[str] = None,
    case_sensitive: bool = False,
    context_lines_before: int = DEFAULT_CONTEXT_LINES,
    context_lines_after: int = DEFAULT_CONTEXT_LINES,
    max_output_length: int = DEFAULT_MAX_OUTPUT,
) -> ReadFileResult:
    """
    Read one file from the source.

    Without ``search_pattern`` the selected line range is rendered like
    ``cat -n``. With it, only matching lines and their context are shown,
    matches marked with ``>`` and gaps with ``...``.
    """
    source = ctx.require_source("read files")

    raw = await source.read_file(path)
    if raw is None:
        return ReadFileResult(
            path=path,
            contents=None,
            error="File not found or not readable",
            suggestions=await _find_similar_paths(source, path),
        )

    lines = raw.split("\n")
    total_lines = len(lines)
    start, end = normalize_range(start_line, end_line, total_lines)

    if search_pattern:
        try:
            regex = re.compile(search_pattern, 0 if case_sensitive else re.IGNORECASE)
        except re.error as e:
            return ReadFileResult(
                path=path,
                contents=None,
                total_lines=total_lines,
                error=f"Invalid regex pattern: {e}",
            )

        shown, matched = _search_lines(
            lines, regex, context_lines_before, context_lines_after
        )
        if not shown:
            return ReadFileResult(
                path=path,
                contents=f"No matches found for pattern: {search_pattern}",
                total_lines=total_lines,
            )

        output_lines: List[str] = []
        last = -1
        for index in sorted(shown):
            line_number = index + 1
            if line_number < start or line_number > end:
                continue
            if index > last + 1:
                output_lines.append("...")
            prefix = ">" if index in matched else " "
            if include_line_numbers:
                output_lines.append(prefix + format_line(line_number, lines[index]))
            else:
                output_lines.append(f"{prefix} {lines[index]}")
            last = index

        output = (
            f"Here's the result of searching for '{search_pattern}' in {path}:\n"
            + "\n".join(output_lines)
            + f"\nTotal lines in file: {total_lines}"
        )
    else:
        selected = lines[start - 1 : end]
        if include_line_numbers:
            output = (
                f"Here's the result of running `cat -n` on {path}:\n"
                + "\n".join(format_line(start + i, line) for i, line in enumerate(selected))
                + f"\nTotal lines in file: {total_lines}"
            )
        else:
            output = "\n".join(selected)

    text, truncated = truncate_output(output, max_output_length)
    return ReadFileResult(
        path=path, contents=text, total_lines=total_lines, truncated=truncated
    )
