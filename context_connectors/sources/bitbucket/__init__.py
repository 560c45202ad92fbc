from .bitbucket_source import BitBucketSource

__all__ = ["BitBucketSource"]
