from typing import Dict, List, Optional, Tuple

from context_connectors.stores.base import IndexStore
from context_connectors.types import IndexState, IndexStateSearchOnly

_Pair = Tuple[IndexState, IndexStateSearchOnly]


class MemoryStore(IndexStore):
    """
    In-process store, mostly for tests.

    States are deep-copied on the way in and out so callers cannot mutate
    what is stored.
    """

    def __init__(self, initial_data: Optional[Dict[str, _Pair]] = None):
        self._data: Dict[str, _Pair] = {}
        for key, (full_state, search_state) in (initial_data or {}).items():
            self._data[key] = (
                full_state.model_copy(deep=True),
                search_state.model_copy(deep=True),
            )

    async def load_state(self, key: str) -> Optional[IndexState]:
        pair = self._data.get(key)
        return pair[0].model_copy(deep=True) if pair else None

    async def load_search(self, key: str) -> Optional[IndexStateSearchOnly]:
        pair = self._data.get(key)
        return pair[1].model_copy(deep=True) if pair else None

    async def list(self) -> List[str]:
        return list(self._data.keys())

    async def save(
        self, key: str, full_state: IndexState, search_state: IndexStateSearchOnly
    ) -> None:
        self._data[key] = (
            full_state.model_copy(deep=True),
            search_state.model_copy(deep=True),
        )

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    # ============ Test helpers ============

    @property
    def size(self) -> int:
        return len(self._data)

    def clear(self) -> None:
        self._data.clear()

    def has(self, key: str) -> bool:
        return key in self._data
