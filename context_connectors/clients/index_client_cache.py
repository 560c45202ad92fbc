"""
IndexClientCache: lazily created, initialized SearchClients for many indexes.

Two modes:
    fixed      an allowlist of index names given at creation; refreshes never
               add names outside it
    discovery  every index the store lists, re-enumerated on refresh
"""

from typing import Dict, List, Optional, Tuple

from context_connectors.clients.search_client import SearchClient
from context_connectors.config import ConnectorsConfig
from context_connectors.engine import ContextEngineFactory
from context_connectors.exceptions import ConnectorsError, IndexNotFoundError
from context_connectors.logger import setup_logger
from context_connectors.sources.source_factory import create_source_from_state
from context_connectors.stores.base import IndexStoreReader
from context_connectors.types import IndexInfo, get_resolved_ref, get_source_identifier

logger = setup_logger(__name__)


class IndexClientCache:
    def __init__(
        self,
        store: IndexStoreReader,
        index_names: List[str],
        indexes: List[IndexInfo],
        engine_factory: ContextEngineFactory,
        search_only: bool = False,
        allowlist: Optional[List[str]] = None,
        settings: Optional[ConnectorsConfig] = None,
    ):
        """Use ``IndexClientCache.create`` instead; it validates and loads metadata."""
        self.store = store
        self.index_names = index_names
        self.indexes = indexes
        self.engine_factory = engine_factory
        self.search_only = search_only
        self.settings = settings or ConnectorsConfig()
        self._allowlist = list(allowlist) if allowlist is not None else None
        self._clients: Dict[str, SearchClient] = {}

    @classmethod
    async def create(
        cls,
        store: IndexStoreReader,
        engine_factory: ContextEngineFactory,
        index_names: Optional[List[str]] = None,
        search_only: bool = False,
        settings: Optional[ConnectorsConfig] = None,
    ) -> "IndexClientCache":
        """
        Raises:
            IndexNotFoundError: in fixed mode, a requested index is not in the store.
        """
        available = await store.list()
        requested = index_names if index_names is not None else available

        missing = [name for name in requested if name not in available]
        if missing:
            raise IndexNotFoundError(f"Indexes not found: {', '.join(missing)}")

        names, indexes = await cls._load_index_info(store, requested)
        # an empty cache is valid; indexes can be added later and picked up on refresh
        return cls(
            store,
            names,
            indexes,
            engine_factory,
            search_only=search_only,
            allowlist=index_names,
            settings=settings,
        )

    @staticmethod
    async def _load_index_info(
        store: IndexStoreReader, names: List[str]
    ) -> Tuple[List[str], List[IndexInfo]]:
        loaded_names: List[str] = []
        indexes: List[IndexInfo] = []
        for name in names:
            try:
                state = await store.load_search(name)
            except ConnectorsError as e:
                logger.warning(f"Skipping index '{name}': {e}")
                continue
            if state is None:
                continue

            loaded_names.append(name)
            indexes.append(
                IndexInfo(
                    name=name,
                    type=state.source.type,
                    identifier=get_source_identifier(state.source),
                    ref=get_resolved_ref(state.source),
                    synced_at=state.source.synced_at,
                )
            )
        return loaded_names, indexes

    async def get_client(self, index_name: str) -> SearchClient:
        if index_name not in self.index_names:
            raise IndexNotFoundError(
                f'Invalid index_name "{index_name}". '
                f"Available: {', '.join(self.index_names)}"
            )

        client = self._clients.get(index_name)
        if client is not None:
            return client

        state = await self.store.load_search(index_name)
        if state is None:
            raise IndexNotFoundError(f'Index "{index_name}" not found')

        source = None
        if not self.search_only:
            source = create_source_from_state(state.source, self.settings)

        client = SearchClient(
            store=self.store,
            index_name=index_name,
            engine_factory=self.engine_factory,
            source=source,
            settings=self.settings,
        )
        try:
            await client.initialize()
        except Exception:
            await client.close()
            raise
        self._clients[index_name] = client
        return client

    async def refresh_index_list(self) -> None:
        available = await self.store.list()
        if self._allowlist is not None:
            available = [name for name in available if name in self._allowlist]

        self.index_names, self.indexes = await self._load_index_info(self.store, available)
        logger.debug(f"Refreshed index list: {self.index_names}")

    async def invalidate_client(self, index_name: str) -> None:
        """Drop and close the cached client so the next get_client rebuilds it."""
        client = self._clients.pop(index_name, None)
        if client is not None:
            await client.close()

    async def close(self) -> None:
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.close()

    def has_file_operations(self) -> bool:
        return not self.search_only

    def get_index_list_string(self) -> str:
        return "\n".join(
            f"- {info.name} ({info.type}://{info.identifier})" for info in self.indexes
        )
