"""
Indexer: connects a Source to an IndexStore through a Context Engine.

Each run is one of:
    full         no usable previous state, or the source cannot diff safely
    incremental  previous full state imported, removals then additions applied
    unchanged    the source reports no changes; the engine is never touched
"""

import time
from typing import List, Optional

from context_connectors.config import ConnectorsConfig
from context_connectors.engine import (
    ContextEngine,
    ContextEngineFactory,
    EngineCredentials,
    ExportMode,
    IndexingResult,
)
from context_connectors.logger import log_context, setup_logger
from context_connectors.sources.base import Source
from context_connectors.stores.base import IndexStore
from context_connectors.types import (
    FileChanges,
    FileEntry,
    IndexResult,
    IndexRunType,
    IndexState,
    IndexStateSearchOnly,
)

logger = setup_logger(__name__)


class Indexer:
    def __init__(
        self,
        engine_factory: ContextEngineFactory,
        settings: Optional[ConnectorsConfig] = None,
    ):
        self.engine_factory = engine_factory
        settings = settings or ConnectorsConfig()
        self.credentials = EngineCredentials(
            api_key=settings.api_key, api_url=settings.api_url
        )

    async def index(self, source: Source, store: IndexStore, key: str) -> IndexResult:
        """Bring the index stored under ``key`` up to date with ``source``."""
        start = time.monotonic()

        with log_context(index_key=key, source_type=source.kind.value):
            previous = await store.load_state(key)
            if previous is None:
                logger.info(f"[INDEXER] No previous state for '{key}', running full index")
                return await self._full_index(source, store, key, start)

            changes = await source.fetch_changes(previous.source)
            if changes is None:
                # a fresh engine, so files deleted upstream do not survive
                logger.info(f"[INDEXER] Incremental update not possible for '{key}', re-indexing")
                return await self._full_index(source, store, key, start)

            if changes.is_empty():
                logger.info(f"[INDEXER] '{key}' is up to date")
                return IndexResult(
                    type=IndexRunType.UNCHANGED, duration_ms=self._elapsed_ms(start)
                )

            return await self._incremental_index(source, store, key, previous, changes, start)

    async def _full_index(
        self, source: Source, store: IndexStore, key: str, start: float
    ) -> IndexResult:
        engine = await self.engine_factory.create(self.credentials)
        files = await source.fetch_all()

        result = await self._add_files(engine, files)
        await self._save(engine, source, store, key)

        logger.info(
            f"[INDEXER] Full index of '{key}' complete: {len(files)} files "
            f"({len(result.newly_uploaded)} uploaded, {len(result.already_uploaded)} cached)"
        )
        return IndexResult(
            type=IndexRunType.FULL,
            files_indexed=len(files),
            files_new_or_modified=len(result.newly_uploaded),
            files_unchanged=len(result.already_uploaded),
            duration_ms=self._elapsed_ms(start),
        )

    async def _incremental_index(
        self,
        source: Source,
        store: IndexStore,
        key: str,
        previous: IndexState,
        changes: FileChanges,
        start: float,
    ) -> IndexResult:
        engine = await self.engine_factory.import_state(
            previous.context_state, self.credentials
        )

        if changes.removed:
            logger.info(f"[INDEXER] Removing {len(changes.removed)} files from '{key}'")
            await engine.remove_from_index(changes.removed)

        to_add = changes.to_add
        result = await self._add_files(engine, to_add)
        await self._save(engine, source, store, key)

        logger.info(
            f"[INDEXER] Incremental update of '{key}' complete: "
            f"{len(to_add)} added or modified, {len(changes.removed)} removed"
        )
        return IndexResult(
            type=IndexRunType.INCREMENTAL,
            files_indexed=len(to_add),
            files_removed=len(changes.removed),
            files_new_or_modified=len(result.newly_uploaded),
            files_unchanged=len(result.already_uploaded),
            duration_ms=self._elapsed_ms(start),
        )

    @staticmethod
    async def _add_files(engine: ContextEngine, files: List[FileEntry]) -> IndexingResult:
        if not files:
            return IndexingResult()
        logger.info(f"[INDEXER] Indexing {len(files)} files")
        return await engine.add_to_index(files)

    @staticmethod
    async def _save(
        engine: ContextEngine, source: Source, store: IndexStore, key: str
    ) -> None:
        metadata = await source.get_metadata()
        full_state = IndexState(
            context_state=engine.export(ExportMode.FULL), source=metadata
        )
        search_state = IndexStateSearchOnly(
            context_state=engine.export(ExportMode.SEARCH_ONLY), source=metadata
        )
        await store.save(key, full_state, search_state)

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)
