from dataclasses import dataclass
from typing import Dict, List, Optional

from context_connectors.config import ConnectorsConfig, S3Config
from context_connectors.logger import setup_logger
from context_connectors.stores.base import IndexStoreReader
from context_connectors.stores.filesystem_store import FilesystemStore
from context_connectors.stores.index_spec import IndexSpec, IndexSpecKind
from context_connectors.stores.s3_store import S3Store
from context_connectors.types import IndexState, IndexStateSearchOnly

logger = setup_logger(__name__)

PATH_SPEC_KEY = "."


@dataclass
class StoreEntry:
    store: IndexStoreReader
    key: str


class CompositeStoreReader(IndexStoreReader):
    """
    Flat, read-only namespace over indexes that live in different places.

    Each display name maps to one (store, key) pair. Names that were not part
    of the original specs resolve to nothing.
    """

    def __init__(self, entries: Dict[str, StoreEntry]):
        self._entries = entries

    @classmethod
    def from_specs(
        cls,
        specs: List[IndexSpec],
        settings: Optional[ConnectorsConfig] = None,
    ) -> "CompositeStoreReader":
        settings = settings or ConnectorsConfig()
        default_store: Optional[FilesystemStore] = None
        entries: Dict[str, StoreEntry] = {}

        for spec in specs:
            match spec.kind:
                case IndexSpecKind.NAME:
                    if default_store is None:
                        default_store = FilesystemStore(settings=settings)
                    entries[spec.display_name] = StoreEntry(default_store, spec.value)
                case IndexSpecKind.PATH:
                    entries[spec.display_name] = StoreEntry(
                        FilesystemStore(base_path=spec.value), PATH_SPEC_KEY
                    )
                case IndexSpecKind.S3:
                    entries[spec.display_name] = cls._s3_entry(spec.value, settings.s3)

        logger.debug(f"Composite store over {len(entries)} indexes: {list(entries)}")
        return cls(entries)

    @staticmethod
    def _s3_entry(value: str, s3_config: S3Config) -> StoreEntry:
        parts = [part for part in value.split("/") if part]
        bucket, key = parts[0], parts[-1]
        middle = parts[1:-1]
        prefix = "/".join(middle) + "/" if middle else ""
        store = S3Store.from_config(s3_config, bucket=bucket, prefix=prefix)
        return StoreEntry(store, key)

    async def load_state(self, key: str) -> Optional[IndexState]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        return await entry.store.load_state(entry.key)

    async def load_search(self, key: str) -> Optional[IndexStateSearchOnly]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        return await entry.store.load_search(entry.key)

    async def list(self) -> List[str]:
        return list(self._entries.keys())
