"""Exceptions raised by the offline sync engine."""

from __future__ import annotations


class OfflineSyncError(Exception):
    """Base exception for the offline sync engine."""


class StorageError(OfflineSyncError):
    """A persisted collection could not be read or written."""


class StoreCorruptedError(StorageError):
    """A persisted collection exists but cannot be decoded."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Stored collection {key!r} is corrupt: {reason}")
        self.key = key
        self.reason = reason


class TransportBindingError(OfflineSyncError):
    """A transport binding is missing or does not expose the required methods."""


class OfflineDataUnavailable(OfflineSyncError):
    """A read was attempted offline and nothing is cached for it."""

    def __init__(self, key: str):
        super().__init__(f"No cached data available offline for {key}")
        self.key = key


__all__ = [
    "OfflineSyncError",
    "StorageError",
    "StoreCorruptedError",
    "TransportBindingError",
    "OfflineDataUnavailable",
]
