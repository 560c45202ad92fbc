from typing import Optional

from context_connectors.clients import tools
from context_connectors.config import ConnectorsConfig
from context_connectors.engine import ContextEngine, ContextEngineFactory, EngineCredentials
from context_connectors.exceptions import (
    ClientNotInitializedError,
    ConfigurationError,
    IndexNotFoundError,
)
from context_connectors.logger import setup_logger
from context_connectors.sources.base import Source
from context_connectors.stores.base import IndexStoreReader
from context_connectors.types import IndexStateSearchOnly, SourceMetadata

logger = setup_logger(__name__)


class SearchClient:
    """
    Query one stored index.

    ``initialize()`` loads the search-only state and imports the engine. When
    a Source is attached, file listing and reading are available too;
    without one the client is search-only.
    """

    def __init__(
        self,
        store: IndexStoreReader,
        index_name: str,
        engine_factory: ContextEngineFactory,
        source: Optional[Source] = None,
        settings: Optional[ConnectorsConfig] = None,
    ):
        self.store = store
        self.index_name = index_name
        self.engine_factory = engine_factory
        self.source = source
        settings = settings or ConnectorsConfig()
        self.credentials = EngineCredentials(
            api_key=settings.api_key, api_url=settings.api_url
        )

        self._engine: Optional[ContextEngine] = None
        self._state: Optional[IndexStateSearchOnly] = None

    async def initialize(self) -> None:
        state = await self.store.load_search(self.index_name)
        if state is None:
            raise IndexNotFoundError(f'Index "{self.index_name}" not found')

        if self.source is not None:
            source_metadata = await self.source.get_metadata()
            if source_metadata.type != state.source.type:
                raise ConfigurationError(
                    f"Source type mismatch: expected {state.source.type}, "
                    f"got {source_metadata.type}"
                )

        self._engine = await self.engine_factory.import_state(
            state.context_state, self.credentials
        )
        self._state = state
        logger.debug(f"Initialized search client for '{self.index_name}'")

    @property
    def initialized(self) -> bool:
        return self._engine is not None and self._state is not None

    def _tool_context(self) -> tools.ToolContext:
        if not self.initialized:
            raise ClientNotInitializedError("Client not initialized. Call initialize() first.")
        return tools.ToolContext(engine=self._engine, state=self._state, source=self.source)

    async def search(
        self, query: str, max_output_length: Optional[int] = None
    ) -> tools.SearchResult:
        return await tools.search(self._tool_context(), query, max_output_length)

    async def search_and_ask(self, query: str, question: str) -> str:
        ctx = self._tool_context()
        return await ctx.engine.search_and_ask(query, question)

    async def list_files(self, **options) -> tools.ListFilesResult:
        return await tools.list_files(self._tool_context(), **options)

    async def read_file(self, path: str, **options) -> tools.ReadFileResult:
        return await tools.read_file(self._tool_context(), path, **options)

    def get_metadata(self) -> SourceMetadata:
        if self._state is None:
            raise ClientNotInitializedError("Client not initialized")
        return self._state.source

    def has_source(self) -> bool:
        return self.source is not None

    async def close(self) -> None:
        """Close the attached source and drop the imported engine."""
        if self.source is not None:
            await self.source.close()
        self._engine = None
        self._state = None
