from .github_source import GitHubSource

__all__ = ["GitHubSource"]
