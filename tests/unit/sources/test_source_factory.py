"""
Unit tests for building sources from a kind and config or from stored metadata.
"""

from unittest.mock import patch

import pytest

from context_connectors.config import ConnectorsConfig
from context_connectors.sources import create_source, create_source_from_state
from context_connectors.sources.github import GitHubSource
from context_connectors.sources.website import WebsiteSource
from context_connectors.types import (
    GitHubSourceConfig,
    GitHubSourceMetadata,
    SourceKind,
    WebsiteSourceConfig,
    WebsiteSourceMetadata,
)


@pytest.mark.unit
class TestSourceFactory:
    def test_creates_github_with_settings_token(self):
        with patch("context_connectors.sources.github.github_source.Github"):
            source = create_source(
                SourceKind.GITHUB,
                GitHubSourceConfig(owner="acme", repo="widgets"),
                ConnectorsConfig(github_token="t"),
            )
        assert isinstance(source, GitHubSource)
        assert source.token == "t"

    def test_accepts_kind_string(self):
        source = create_source("website", WebsiteSourceConfig(url="https://a.example"))
        assert isinstance(source, WebsiteSource)

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            create_source("svn", WebsiteSourceConfig(url="https://a.example"))

    def test_from_state_pins_resolved_ref(self):
        metadata = GitHubSourceMetadata(
            config=GitHubSourceConfig(owner="acme", repo="widgets", ref="main"),
            resolved_ref="abc123",
            synced_at="2024-01-01T00:00:00.000Z",
        )
        with patch("context_connectors.sources.github.github_source.Github"):
            source = create_source_from_state(metadata, ConnectorsConfig(github_token="t"))

        assert source.ref == "abc123"
        # stored metadata is left untouched
        assert metadata.config.ref == "main"

    def test_from_state_without_resolved_ref_keeps_configured_ref(self):
        metadata = GitHubSourceMetadata(
            config=GitHubSourceConfig(owner="acme", repo="widgets", ref="main"),
            synced_at="2024-01-01T00:00:00.000Z",
        )
        with patch("context_connectors.sources.github.github_source.Github"):
            source = create_source_from_state(metadata, ConnectorsConfig(github_token="t"))
        assert source.ref == "main"

    def test_from_state_website(self):
        metadata = WebsiteSourceMetadata(
            config=WebsiteSourceConfig(url="https://docs.example.com", max_pages=5),
            synced_at="2024-01-01T00:00:00.000Z",
        )
        source = create_source_from_state(metadata)
        assert isinstance(source, WebsiteSource)
        assert source.max_pages == 5
