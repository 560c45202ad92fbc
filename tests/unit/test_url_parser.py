"""
Unit tests for turning repository and website URLs into source configs.
"""

import pytest

from context_connectors.exceptions import ConfigurationError
from context_connectors.types import SourceKind
from context_connectors.url_parser import parse_source_url


@pytest.mark.unit
class TestGitHubUrls:
    def test_repo_root(self):
        parsed = parse_source_url("https://github.com/acme/widgets")
        assert parsed.kind == SourceKind.GITHUB
        assert parsed.config.owner == "acme"
        assert parsed.config.repo == "widgets"
        assert parsed.config.ref == "HEAD"
        assert parsed.default_index_name == "widgets"

    def test_branch_with_slash(self):
        parsed = parse_source_url("https://github.com/acme/widgets/tree/feature/login")
        assert parsed.config.ref == "feature/login"

    def test_commit_and_git_suffix(self):
        parsed = parse_source_url("https://github.com/acme/widgets.git/commit/abc123")
        assert parsed.config.repo == "widgets"
        assert parsed.config.ref == "abc123"

    def test_missing_repo(self):
        with pytest.raises(ConfigurationError):
            parse_source_url("https://github.com/acme")


@pytest.mark.unit
class TestGitLabUrls:
    def test_nested_group_with_ref(self):
        parsed = parse_source_url("https://gitlab.com/group/sub/project/-/tree/develop")
        assert parsed.kind == SourceKind.GITLAB
        assert parsed.config.project_id == "group/sub/project"
        assert parsed.config.ref == "develop"
        assert parsed.config.base_url is None
        assert parsed.default_index_name == "project"

    def test_self_hosted_keeps_base_url(self):
        parsed = parse_source_url("https://gitlab.example.com/team/tool")
        assert parsed.config.base_url == "https://gitlab.example.com"
        assert parsed.config.ref == "HEAD"


@pytest.mark.unit
class TestBitBucketUrls:
    def test_branch(self):
        parsed = parse_source_url("https://bitbucket.org/ws/repo/branch/release/1.0")
        assert parsed.kind == SourceKind.BITBUCKET
        assert parsed.config.workspace == "ws"
        assert parsed.config.repo == "repo"
        assert parsed.config.ref == "release/1.0"
        assert parsed.config.base_url is None

    def test_self_hosted(self):
        parsed = parse_source_url("https://bitbucket.corp.net/ws/repo/src/main")
        assert parsed.config.base_url == "https://bitbucket.corp.net"
        assert parsed.config.ref == "main"


@pytest.mark.unit
class TestWebsiteUrls:
    def test_other_hosts_are_websites(self):
        parsed = parse_source_url("https://docs.example.com/guide/")
        assert parsed.kind == SourceKind.WEBSITE
        assert parsed.config.url == "https://docs.example.com/guide/"
        assert parsed.default_index_name == "docs.example.com"

    def test_malformed(self):
        with pytest.raises(ConfigurationError):
            parse_source_url("not a url")
