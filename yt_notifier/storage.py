"""
JSON-backed storage for per-channel notification state.

Persists the id of the last announced video for every channel so that
restarts do not re-announce items. The whole mapping lives in a single
JSON document that is re-read on every lookup and atomically rewritten
on every update.
"""

import asyncio
import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any

from yt_notifier.errors import StoreCorruptionError, StoreInitError, StoreWriteError

logger = logging.getLogger(__name__)

KEY_PREFIX = "lastVideoId_"
VALUE_FIELD = "videoId"


def channel_key(channel_id: str) -> str:
    """
    Build the state key for a channel.

    Parameters
    ----------
    channel_id : str
        YouTube channel identifier.

    Returns
    -------
    str
        Namespaced key under which the channel's record is stored.
    """
    return f"{KEY_PREFIX}{channel_id}"


def _parse_document(raw: str) -> dict[str, Any]:
    """Parse the state document, raising StoreCorruptionError if invalid."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise StoreCorruptionError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise StoreCorruptionError(
            f"Expected a JSON object, got {type(data).__name__}"
        )
    return data


class StateStore:
    """
    Durable mapping of state key to last seen video id.

    The backing file is the source of truth: ``get`` always reloads it,
    so external edits are observed. Writes go through a temporary file in
    the same directory followed by ``os.replace``, so the document on disk
    is never partially written.
    """

    def __init__(self, path: str | Path):
        """
        Initialize storage with the state file path.

        Parameters
        ----------
        path : str | Path
            Path to the JSON state document.
        """
        self.path = Path(path)
        self._data: dict[str, Any] = {}

    async def initialize(self) -> None:
        """
        Create the state document if needed and load it.

        Raises
        ------
        StoreInitError
            If the state directory or file cannot be created.
        """
        await asyncio.to_thread(self._initialize_sync)

    def _initialize_sync(self) -> None:
        logger.info("Initializing state store at %s", self.path)

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if not self.path.exists():
                self._write_document({})
                logger.debug("Created empty state document")
        except (OSError, StoreWriteError) as e:
            raise StoreInitError(f"Cannot create state store at {self.path}: {e}") from e

        try:
            raw = self.path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise StoreInitError(f"Cannot read state store at {self.path}: {e}") from e

        try:
            self._data = _parse_document(raw)
        except StoreCorruptionError as e:
            backup = self.path.with_name(self.path.name + ".corrupt")
            logger.warning(
                "State file %s is unreadable (%s); starting with empty state, copy kept at %s",
                self.path,
                e,
                backup,
            )
            try:
                shutil.copyfile(self.path, backup)
            except OSError:
                logger.exception("Failed to back up corrupt state file %s", self.path)
            self._data = {}

        logger.debug("Loaded %d state record(s)", len(self._data))

    def _load(self) -> dict[str, Any]:
        """Reload the document from disk, falling back to an empty mapping."""
        try:
            raw = self.path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            self._data = {}
            return self._data

        try:
            self._data = _parse_document(raw)
        except StoreCorruptionError as e:
            logger.warning("State file %s is unreadable, treating as empty: %s", self.path, e)
            self._data = {}
        return self._data

    def _write_document(self, data: dict[str, Any]) -> None:
        """Serialize ``data`` to a temp file and atomically move it into place."""
        payload = json.dumps(data, indent=2, ensure_ascii=False)
        tmp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_path = Path(tmp.name)
                tmp.write(payload)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise StoreWriteError(f"Failed to write state to {self.path}: {e}") from e

    def _get_sync(self, key: str) -> str | None:
        record = self._load().get(key)
        if not isinstance(record, dict):
            return None
        value = record.get(VALUE_FIELD)
        return value if isinstance(value, str) else None

    def _set_sync(self, key: str, item_id: str | None) -> None:
        updated = {**self._load(), key: {VALUE_FIELD: item_id}}
        self._write_document(updated)
        self._data = updated
        logger.debug("Stored %s = %s", key, item_id)

    def _delete_sync(self, key: str) -> bool:
        current = self._load()
        if key not in current:
            return False
        updated = {k: v for k, v in current.items() if k != key}
        self._write_document(updated)
        self._data = updated
        return True

    async def get(self, key: str) -> str | None:
        """
        Get the last seen video id stored under ``key``.

        Parameters
        ----------
        key : str
            State key, see :func:`channel_key`.

        Returns
        -------
        str | None
            The stored id, or None if nothing was ever stored for the key.
            An empty string is a valid stored id.
        """
        return await asyncio.to_thread(self._get_sync, key)

    async def set(self, key: str, item_id: str | None) -> None:
        """
        Durably store ``item_id`` under ``key``.

        Parameters
        ----------
        key : str
            State key, see :func:`channel_key`.
        item_id : str | None
            Video id to store.

        Raises
        ------
        StoreWriteError
            If the document could not be written. The previous document
            stays in place.
        """
        await asyncio.to_thread(self._set_sync, key, item_id)

    async def delete(self, key: str) -> bool:
        """
        Remove the record stored under ``key``.

        Returns
        -------
        bool
            True if a record was removed.
        """
        return await asyncio.to_thread(self._delete_sync, key)

    async def keys(self) -> list[str]:
        """Return all state keys currently persisted."""
        data = await asyncio.to_thread(self._load)
        return list(data)

    async def close(self) -> None:
        """Release resources. The JSON store holds no open handles."""
        logger.debug("State store closed")

    async def __aenter__(self) -> "StateStore":
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
