import asyncio
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional

from context_connectors.config import DEFAULT_STORE_PATH, ConnectorsConfig
from context_connectors.exceptions import StoreError
from context_connectors.logger import setup_logger
from context_connectors.stores.base import (
    SEARCH_FILE,
    STATE_FILE,
    IndexStore,
    parse_state,
    serialize_state,
)
from context_connectors.types import IndexState, IndexStateSearchOnly
from context_connectors.utils import sanitize_key

logger = setup_logger(__name__)

INDEXES_DIR = "indexes"


class FilesystemStore(IndexStore):
    """
    Index states on local disk.

    Layout::

        {base_path}/indexes/{sanitized_key}/state.json
        {base_path}/indexes/{sanitized_key}/search.json

    A key that sanitizes to an empty string (``"."``) addresses ``base_path``
    itself, which is how a ``path:`` index spec points straight at a directory
    holding the two files.
    """

    def __init__(
        self,
        base_path: Optional[str] = None,
        settings: Optional[ConnectorsConfig] = None,
    ):
        if base_path is None:
            base_path = settings.store_path if settings else DEFAULT_STORE_PATH
        self.base_path = Path(base_path).expanduser()

    def _key_dir(self, key: str) -> Path:
        sanitized = sanitize_key(key)
        if not sanitized:
            return self.base_path
        return self.base_path / INDEXES_DIR / sanitized

    # ============ Reads ============

    @staticmethod
    def _read_text(path: Path) -> Optional[str]:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    async def load_state(self, key: str) -> Optional[IndexState]:
        path = self._key_dir(key) / STATE_FILE
        text = await asyncio.to_thread(self._read_text, path)
        if text is None:
            return None
        return parse_state(text, IndexState, str(path), require_manifest=True)

    async def load_search(self, key: str) -> Optional[IndexStateSearchOnly]:
        path = self._key_dir(key) / SEARCH_FILE
        text = await asyncio.to_thread(self._read_text, path)
        if text is None:
            return None
        return parse_state(text, IndexStateSearchOnly, str(path))

    def _list_sync(self) -> List[str]:
        indexes_dir = self.base_path / INDEXES_DIR
        if not indexes_dir.is_dir():
            return []
        return sorted(
            entry.name
            for entry in indexes_dir.iterdir()
            if entry.is_dir() and (entry / STATE_FILE).is_file()
        )

    async def list(self) -> List[str]:
        return await asyncio.to_thread(self._list_sync)

    # ============ Writes ============

    @staticmethod
    def _write_pair(key_dir: Path, full_text: str, search_text: str) -> None:
        """Stage both files next to their targets, then rename them into place.

        A failure while staging leaves the previous pair untouched.
        """
        key_dir.mkdir(parents=True, exist_ok=True)

        staged = []
        try:
            for name, text in ((SEARCH_FILE, search_text), (STATE_FILE, full_text)):
                fd, tmp_path = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=key_dir)
                staged.append((tmp_path, key_dir / name))
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(text)
                    fh.flush()
                    os.fsync(fh.fileno())
        except OSError:
            for tmp_path, _ in staged:
                Path(tmp_path).unlink(missing_ok=True)
            raise

        for tmp_path, target in staged:
            os.replace(tmp_path, target)

    async def save(
        self, key: str, full_state: IndexState, search_state: IndexStateSearchOnly
    ) -> None:
        key_dir = self._key_dir(key)
        await asyncio.to_thread(
            self._write_pair,
            key_dir,
            serialize_state(full_state),
            serialize_state(search_state),
        )
        logger.debug(f"Saved index '{key}' to {key_dir}")

    async def delete(self, key: str) -> None:
        if not sanitize_key(key):
            raise StoreError(
                f"Refusing to delete index with key '{key}': it resolves to the store root"
            )

        key_dir = self._key_dir(key)
        if not key_dir.exists():
            return
        await asyncio.to_thread(shutil.rmtree, key_dir)
        logger.debug(f"Deleted index '{key}' from {key_dir}")
