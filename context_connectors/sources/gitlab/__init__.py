from .gitlab_source import GitLabSource

__all__ = ["GitLabSource"]
