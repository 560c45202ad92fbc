import json
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Type, TypeVar

from pydantic import ValidationError

from context_connectors.exceptions import CorruptStateError
from context_connectors.types import MANIFEST_FIELD, IndexState, IndexStateSearchOnly

STATE_FILE = "state.json"
SEARCH_FILE = "search.json"

StateT = TypeVar("StateT", bound=IndexState)


class IndexStoreReader(ABC):
    """Read access to persisted index states. Missing keys load as None."""

    @abstractmethod
    async def load_state(self, key: str) -> Optional[IndexState]:
        """Full state, needed for incremental re-indexing."""
        pass

    @abstractmethod
    async def load_search(self, key: str) -> Optional[IndexStateSearchOnly]:
        """Search-only state, enough to serve queries."""
        pass

    @abstractmethod
    async def list(self) -> List[str]:
        pass


class IndexStore(IndexStoreReader):
    """Writable store. ``save`` replaces both states of a key together."""

    @abstractmethod
    async def save(
        self, key: str, full_state: IndexState, search_state: IndexStateSearchOnly
    ) -> None:
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass


def serialize_state(state: IndexState) -> str:
    return json.dumps(state.to_dict(), indent=2)


def parse_state(
    raw: Any, model: Type[StateT], location: str, require_manifest: bool = False
) -> StateT:
    """Validate a loaded JSON document (text or already-decoded dict) as ``model``.

    Raises:
        CorruptStateError: not JSON, wrong shape, or a full state lacking its
            blob manifest (usually a search.json loaded in its place).
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptStateError(f"Invalid JSON in {location}: {e}") from e

    if not isinstance(raw, dict):
        raise CorruptStateError(f"Invalid state in {location}: expected an object")

    if require_manifest:
        context_state = raw.get("contextState")
        if not isinstance(context_state, dict) or MANIFEST_FIELD not in context_state:
            raise CorruptStateError(
                f"Invalid state in {location}: missing {MANIFEST_FIELD} field. "
                "This file appears to be a search.json, not a full state."
            )

    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise CorruptStateError(f"Invalid state in {location}: {e}") from e
