from .website_source import WebsiteSource

__all__ = ["WebsiteSource"]
