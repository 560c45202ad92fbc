from typing import List, Optional

from context_connectors.exceptions import RemoteDeleteForbiddenError
from context_connectors.logger import setup_logger
from context_connectors.stores.base import IndexStore, IndexStoreReader
from context_connectors.types import IndexState, IndexStateSearchOnly
from context_connectors.utils import sanitize_key

logger = setup_logger(__name__)


class ReadOnlyLayeredStore(IndexStoreReader):
    """Reads from the local store first, then the remote one. Never writes."""

    def __init__(self, local: IndexStoreReader, remote: IndexStoreReader):
        self.local = local
        self.remote = remote

    async def load_state(self, key: str) -> Optional[IndexState]:
        state = await self.local.load_state(key)
        if state is not None:
            return state
        return await self.remote.load_state(key)

    async def load_search(self, key: str) -> Optional[IndexStateSearchOnly]:
        state = await self.local.load_search(key)
        if state is not None:
            return state
        return await self.remote.load_search(key)

    async def list(self) -> List[str]:
        local_keys = await self.local.list()
        remote_keys = await self.remote.list()
        return sorted(set(local_keys) | set(remote_keys))


class LayeredStore(ReadOnlyLayeredStore, IndexStore):
    """
    Writable local store layered over a read-only remote one.

    Saves go to the local store only. Deleting a key that exists only in the
    remote store is refused.
    """

    def __init__(self, local: IndexStore, remote: IndexStoreReader):
        super().__init__(local, remote)
        self.local: IndexStore = local

    async def save(
        self, key: str, full_state: IndexState, search_state: IndexStateSearchOnly
    ) -> None:
        await self.local.save(key, full_state, search_state)

    async def delete(self, key: str) -> None:
        # file and object stores list sanitized keys, so compare in that form
        target = sanitize_key(key)
        local_keys = {sanitize_key(k) for k in await self.local.list()}
        if target not in local_keys:
            remote_keys = {sanitize_key(k) for k in await self.remote.list()}
            if target in remote_keys:
                raise RemoteDeleteForbiddenError(
                    f"Cannot delete remote index '{key}'. Remote indexes are read-only."
                )
        await self.local.delete(key)
        logger.debug(f"Deleted local index '{key}'")
