from typing import Optional

from context_connectors.config import ConnectorsConfig
from context_connectors.logger import setup_logger
from context_connectors.sources.base.source_interface import Source
from context_connectors.types import (
    SourceConfig,
    SourceKind,
    SourceMetadata,
    get_resolved_ref,
)

logger = setup_logger(__name__)


class SourceFactory:
    """
    Builds Source instances for each supported SourceKind.

    Credentials come from the ConnectorsConfig passed in; nothing is read from
    the environment here.
    """

    @staticmethod
    def create_source(
        kind: SourceKind,
        config: SourceConfig,
        settings: Optional[ConnectorsConfig] = None,
    ) -> Source:
        kind = SourceKind(kind)
        settings = settings or ConnectorsConfig()

        match kind:
            case SourceKind.GITHUB:
                from context_connectors.sources.github.github_source import GitHubSource

                return GitHubSource(config, settings=settings)
            case SourceKind.GITLAB:
                from context_connectors.sources.gitlab.gitlab_source import GitLabSource

                return GitLabSource(config, settings=settings)
            case SourceKind.BITBUCKET:
                from context_connectors.sources.bitbucket.bitbucket_source import (
                    BitBucketSource,
                )

                return BitBucketSource(config, settings=settings)
            case SourceKind.WEBSITE:
                from context_connectors.sources.website.website_source import (
                    WebsiteSource,
                )

                return WebsiteSource(config)

        raise ValueError(f"Unsupported source type: {kind}")

    @staticmethod
    def create_source_from_state(
        metadata: SourceMetadata, settings: Optional[ConnectorsConfig] = None
    ) -> Source:
        """
        Rebuild the source an index was built from.

        VCS sources are pinned to the indexed commit (``resolved_ref``) so file
        listings and reads match what search returns; older states without one
        fall back to the configured ref.
        """
        kind = SourceKind(metadata.type)
        config = metadata.config
        resolved_ref = get_resolved_ref(metadata)
        if kind is not SourceKind.WEBSITE and resolved_ref:
            config = config.model_copy(update={"ref": resolved_ref})

        logger.debug(f"Creating {kind.value} source from stored state (ref={resolved_ref})")
        return SourceFactory.create_source(kind, config, settings)


create_source = SourceFactory.create_source
create_source_from_state = SourceFactory.create_source_from_state
