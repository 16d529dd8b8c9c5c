from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional, Sequence

from core.logs import get_child_logger
from core.settings import CACHE, STORAGE
from models.cache_entry import CacheEntry
from services.errors import StorageError
from storage.store import CollectionStore


logger = get_child_logger("cache")


def make_key(
    entity_type: str,
    method: str,
    args: Sequence[Any] = (),
    kwargs: Optional[Mapping[str, Any]] = None,
) -> str:
    """Composite signature of an entity read: type, method and call arguments."""

    signature = json.dumps(
        [list(args), dict(kwargs or {})],
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return f"{entity_type}:{method}:{signature}"


def _decode(items: Any) -> Dict[str, CacheEntry]:
    if not isinstance(items, dict):
        raise TypeError(f"expected a map of cache entries, got {type(items).__name__}")
    return {key: CacheEntry.from_dict(key, value) for key, value in items.items()}


class SnapshotCache:
    """Best-effort cache of last-known responses, keyed by query signature.

    Entries are kept in write order; once ``max_entries`` is exceeded the
    least-recently-written ones are evicted. ``max_entries=0`` keeps all.
    """

    def __init__(
        self,
        store: CollectionStore,
        key: str = STORAGE.cache_key,
        *,
        max_entries: int = CACHE.max_entries,
    ) -> None:
        self.store = store
        self.key = key
        self.max_entries = max_entries

    def _load(self) -> Dict[str, CacheEntry]:
        return self.store.read(self.key, _decode, dict)

    def put(self, key: str, value: Any) -> CacheEntry:
        entries = self._load()
        entries.pop(key, None)
        entry = CacheEntry(key=key, value=value)
        entries[key] = entry
        if self.max_entries and len(entries) > self.max_entries:
            overflow = len(entries) - self.max_entries
            for stale_key in list(entries)[:overflow]:
                del entries[stale_key]
            logger.debug("Evicted %d cache entries", overflow)
        self.store.write(self.key, {k: e.to_dict() for k, e in entries.items()})
        return entry

    def get(self, key: str) -> Optional[CacheEntry]:
        try:
            return self._load().get(key)
        except StorageError as exc:
            logger.error("Cache read failed for %s: %s", key, exc)
            return None

    def keys(self):
        try:
            return list(self._load())
        except StorageError as exc:
            logger.error("Cache read failed: %s", exc)
            return []

    def __len__(self) -> int:
        return len(self.keys())

    def clear(self) -> None:
        self.store.delete(self.key)


__all__ = ["SnapshotCache", "make_key"]
