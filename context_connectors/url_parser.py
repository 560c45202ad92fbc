"""Turn a repository or website URL into a source kind and config."""

from dataclasses import dataclass
from typing import List
from urllib.parse import urlparse

from context_connectors.exceptions import ConfigurationError
from context_connectors.types import (
    BitBucketSourceConfig,
    GitHubSourceConfig,
    GitLabSourceConfig,
    SourceConfig,
    SourceKind,
    WebsiteSourceConfig,
)

GITLAB_ORIGIN = "https://gitlab.com"
BITBUCKET_ORIGIN = "https://bitbucket.org"


@dataclass
class ParsedSourceUrl:
    kind: SourceKind
    config: SourceConfig
    default_index_name: str


def _strip_git_suffix(name: str) -> str:
    return name[:-4] if name.endswith(".git") else name


def _path_parts(path: str) -> List[str]:
    return [part for part in path.split("/") if part]


def parse_source_url(url: str) -> ParsedSourceUrl:
    """
    Recognize github.com, gitlab.com or ``gitlab.*`` hosts, bitbucket.org or
    ``bitbucket.*`` hosts; anything else is crawled as a website.

    Raises:
        ConfigurationError: URL is malformed or lacks the owner/repo path.
    """
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ConfigurationError(f"Invalid URL: {url}")

    hostname = (parsed.hostname or "").lower()
    origin = f"{parsed.scheme}://{parsed.netloc}"
    parts = _path_parts(parsed.path)

    if hostname == "github.com":
        return _parse_github(url, parts)
    if hostname == "gitlab.com" or hostname.startswith("gitlab."):
        return _parse_gitlab(url, parts, origin)
    if hostname == "bitbucket.org" or hostname.startswith("bitbucket."):
        return _parse_bitbucket(url, parts, origin)

    return ParsedSourceUrl(
        kind=SourceKind.WEBSITE,
        config=WebsiteSourceConfig(url=url),
        default_index_name=hostname,
    )


def _parse_github(url: str, parts: List[str]) -> ParsedSourceUrl:
    if len(parts) < 2:
        raise ConfigurationError(
            f"Invalid GitHub URL: {url} - expected owner and repo in path"
        )

    owner, repo = parts[0], _strip_git_suffix(parts[1])
    ref = "HEAD"
    # branch names may contain slashes
    if len(parts) >= 4 and parts[2] in ("tree", "commit"):
        ref = "/".join(parts[3:])

    return ParsedSourceUrl(
        kind=SourceKind.GITHUB,
        config=GitHubSourceConfig(owner=owner, repo=repo, ref=ref),
        default_index_name=repo,
    )


def _parse_gitlab(url: str, parts: List[str], origin: str) -> ParsedSourceUrl:
    if len(parts) < 2:
        raise ConfigurationError(f"Invalid GitLab URL: {url} - expected project path")

    ref = "HEAD"
    project_parts = list(parts)
    if "-" in parts:
        dash = parts.index("-")
        project_parts = parts[:dash]
        if len(parts) > dash + 2 and parts[dash + 1] in ("tree", "commits"):
            ref = "/".join(parts[dash + 2:])

    if not project_parts:
        raise ConfigurationError(f"Invalid GitLab URL: {url} - expected project path")
    project_parts[-1] = _strip_git_suffix(project_parts[-1])

    return ParsedSourceUrl(
        kind=SourceKind.GITLAB,
        config=GitLabSourceConfig(
            project_id="/".join(project_parts),
            ref=ref,
            base_url=origin if origin != GITLAB_ORIGIN else None,
        ),
        default_index_name=project_parts[-1],
    )


def _parse_bitbucket(url: str, parts: List[str], origin: str) -> ParsedSourceUrl:
    if len(parts) < 2:
        raise ConfigurationError(
            f"Invalid Bitbucket URL: {url} - expected workspace and repo in path"
        )

    workspace, repo = parts[0], _strip_git_suffix(parts[1])
    ref = "HEAD"
    if len(parts) >= 4 and parts[2] in ("src", "branch"):
        ref = "/".join(parts[3:])

    return ParsedSourceUrl(
        kind=SourceKind.BITBUCKET,
        config=BitBucketSourceConfig(
            workspace=workspace,
            repo=repo,
            ref=ref,
            base_url=origin if origin != BITBUCKET_ORIGIN else None,
        ),
        default_index_name=repo,
    )
