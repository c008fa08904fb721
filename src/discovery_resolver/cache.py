"""
Cache stores for discovery records.

The resolver consumes any store implementing ``CacheStore``: a batched
multi-key read and a single-key write with an absolute expiry instant.
Two implementations are provided: an in-process dictionary and a JSON
file store for the command-line tool.
"""

import json
import time
from pathlib import Path
from typing import Callable, Iterable, Optional, Protocol, runtime_checkable

from .exceptions import PersistenceError
from .models import CacheEntry


@runtime_checkable
class CacheStore(Protocol):
    """Key-value store with per-key expiry."""

    async def get_many(self, keys: Iterable[str]) -> dict[str, Optional[dict]]:
        """Return a mapping with every requested key; missing or expired keys map to None."""
        ...

    async def put(self, key: str, value: dict, expires_at: float) -> None:
        """Store ``value`` until the absolute instant ``expires_at`` (epoch seconds)."""
        ...


class CacheSnapshot:
    """
    Result of the batched read taken at the start of a lookup.

    Redirects written during the lookup are marked here so a later,
    less specific redirect seen in the same run does not overwrite them.
    """

    def __init__(self, values: dict[str, Optional[dict]]) -> None:
        self._values = dict(values)

    def get(self, key: str) -> Optional[dict]:
        return self._values.get(key)

    def contains(self, key: str) -> bool:
        return self._values.get(key) is not None

    def mark(self, key: str, value: dict) -> None:
        self._values[key] = value


class InMemoryCache:
    """Dictionary-backed cache store. Expired entries read as absent."""

    def __init__(self, clock: Optional[Callable[[], float]] = None) -> None:
        self._clock = clock or time.time
        self._entries: dict[str, CacheEntry] = {}

    async def get_many(self, keys: Iterable[str]) -> dict[str, Optional[dict]]:
        now = self._clock()
        result: dict[str, Optional[dict]] = {}
        for key in keys:
            entry = self._entries.get(key)
            result[key] = None if entry is None or entry.is_expired(now) else entry.value
        return result

    async def put(self, key: str, value: dict, expires_at: float) -> None:
        self._entries[key] = CacheEntry(value=dict(value), expires_at=expires_at)

    def purge_expired(self) -> int:
        """
        Drop expired entries.

        Returns:
            Number of removed entries
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def entry(self, key: str) -> Optional[CacheEntry]:
        """Raw entry lookup, ignoring expiry."""
        return self._entries.get(key)

    def __len__(self) -> int:
        return len(self._entries)


class JSONFileCache:
    """
    Cache store persisted to a JSON file.

    The file maps keys to ``{"value": ..., "expires_at": ...}``. It is
    loaded on first access, expired entries are dropped on load, and the
    whole file is rewritten on every put.
    """

    VERSION = 1

    def __init__(
        self,
        file_path: Path,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """
        Initialize the file cache.

        Args:
            file_path: Path to the cache file (JSON format)
            clock: Returns the current time as epoch seconds
        """
        self._file_path = file_path
        self._clock = clock or time.time
        self._entries: Optional[dict[str, CacheEntry]] = None

    def load(self) -> dict[str, CacheEntry]:
        """
        Load entries from disk.

        Returns:
            The live (unexpired) entries; empty if the file does not exist

        Raises:
            PersistenceError: If the file cannot be read or parsed
        """
        if not self._file_path.exists():
            self._entries = {}
            return self._entries

        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                raw_data = json.load(f)
        except (json.JSONDecodeError, RecursionError) as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Failed to parse cache file: {e}",
                details={"file_path": str(self._file_path)},
            )
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to read cache file: {e}",
                details={"file_path": str(self._file_path)},
            )

        if not isinstance(raw_data, dict) or not isinstance(raw_data.get("entries"), dict):
            raise PersistenceError(
                code="parse_error",
                message="Cache file has no entries mapping",
                details={"file_path": str(self._file_path)},
            )

        now = self._clock()
        entries: dict[str, CacheEntry] = {}
        for key, item in raw_data["entries"].items():
            try:
                entry = CacheEntry(value=item["value"], expires_at=float(item["expires_at"]))
            except (KeyError, TypeError, ValueError):
                continue
            if not isinstance(entry.value, dict):
                continue
            if not entry.is_expired(now):
                entries[key] = entry

        self._entries = entries
        return entries

    def save(self) -> None:
        """
        Write all entries to disk.

        Raises:
            PersistenceError: If the file cannot be written
        """
        entries = self._entries or {}
        output_data = {
            "version": self.VERSION,
            "entries": {
                key: {"value": entry.value, "expires_at": entry.expires_at}
                for key, entry in entries.items()
            },
        }

        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._file_path, "w", encoding="utf-8") as f:
                json.dump(output_data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to write cache file: {e}",
                details={"file_path": str(self._file_path)},
            )

    def _ensure_loaded(self) -> dict[str, CacheEntry]:
        if self._entries is None:
            return self.load()
        return self._entries

    async def get_many(self, keys: Iterable[str]) -> dict[str, Optional[dict]]:
        entries = self._ensure_loaded()
        now = self._clock()
        result: dict[str, Optional[dict]] = {}
        for key in keys:
            entry = entries.get(key)
            result[key] = None if entry is None or entry.is_expired(now) else entry.value
        return result

    async def put(self, key: str, value: dict, expires_at: float) -> None:
        entries = self._ensure_loaded()
        entries[key] = CacheEntry(value=dict(value), expires_at=expires_at)
        self.save()

    @property
    def file_path(self) -> Path:
        """Get the cache file path."""
        return self._file_path
