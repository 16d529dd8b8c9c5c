"""Persisted collections backing the operation log and the snapshot cache.

Each collection lives under a fixed key as one JSON document wrapped in a
version envelope::

    {"version": 1, "items": [...]}

Documents written before the envelope existed (a bare list or map) are read
as version 0 and rewritten with the envelope on the next save.
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from core.logs import get_child_logger
from core.settings import STORAGE
from datetime import datetime
from enum import Enum

from datetime_utils import to_rfc3339_utc, utc_now
from models.store_record import StoreRecord
from services.errors import StorageError, StoreCorruptedError
from storage.db import get_session


T = TypeVar("T")

CORRUPT_SUFFIX = ".corrupt"

logger = get_child_logger("store")


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_rfc3339_utc(value)
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _encode(items: Any, version: int) -> str:
    return json.dumps(
        {"version": version, "items": items}, ensure_ascii=False, default=_json_default
    )


def decode_document(key: str, text: str, current_version: int) -> Any:
    try:
        doc = json.loads(text)
    except json.JSONDecodeError as exc:
        raise StoreCorruptedError(key, f"invalid JSON ({exc.msg})") from exc
    if isinstance(doc, dict) and set(doc) == {"version", "items"}:
        version = doc["version"]
        if not isinstance(version, int) or version < 0:
            raise StoreCorruptedError(key, f"invalid schema version {version!r}")
        if version > current_version:
            raise StoreCorruptedError(
                key, f"schema version {version} is newer than supported {current_version}"
            )
        return doc["items"]
    return doc


class CollectionStore:
    """Versioned JSON documents keyed by collection name."""

    def __init__(self, *, schema_version: int = STORAGE.schema_version, strict_reads: bool = STORAGE.strict_reads):
        self.schema_version = schema_version
        self.strict_reads = strict_reads

    # ----- backend hooks -----
    def _read_raw(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def _write_raw(self, key: str, text: str) -> None:
        raise NotImplementedError

    def _delete_raw(self, key: str) -> None:
        raise NotImplementedError

    # ----- public API -----
    def read(self, key: str, decode: Callable[[Any], T], default: Callable[[], T]) -> T:
        """Return the decoded collection under ``key``.

        A missing collection yields ``default()``. A malformed one raises
        :class:`StoreCorruptedError` when ``strict_reads`` is set; otherwise the
        raw text is moved aside under ``<key>.corrupt`` and ``default()`` is
        returned.
        """

        text = self._read_raw(key)
        if text is None:
            return default()
        try:
            return decode(decode_document(key, text, self.schema_version))
        except StoreCorruptedError as exc:
            return self._recover(key, text, exc, default)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            return self._recover(key, text, StoreCorruptedError(key, repr(exc)), default)

    def write(self, key: str, items: Any) -> None:
        try:
            text = _encode(items, self.schema_version)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Cannot serialise collection {key!r}: {exc}") from exc
        self._write_raw(key, text)

    def delete(self, key: str) -> None:
        self._delete_raw(key)

    def _recover(self, key: str, text: str, exc: StoreCorruptedError, default: Callable[[], T]) -> T:
        if self.strict_reads:
            raise exc
        logger.error("%s; quarantined as %s%s and reset", exc, key, CORRUPT_SUFFIX)
        try:
            self._write_raw(f"{key}{CORRUPT_SUFFIX}", text)
        except StorageError as quarantine_exc:
            logger.error("Quarantine of %s failed: %s", key, quarantine_exc)
        return default()


class SqlCollectionStore(CollectionStore):
    """Collections stored as rows of the ``offline_store`` table."""

    def __init__(self, session_factory: Callable[[], Session] = get_session, **kwargs):
        super().__init__(**kwargs)
        self._session_factory = session_factory

    def _read_raw(self, key: str) -> Optional[str]:
        try:
            with self._session_factory() as session:
                row = session.get(StoreRecord, key)
                return row.payload if row else None
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to read {key!r}: {exc}") from exc

    def _write_raw(self, key: str, text: str) -> None:
        try:
            with self._session_factory() as session:
                row = session.get(StoreRecord, key)
                if row is None:
                    row = StoreRecord(key=key, payload=text)
                else:
                    row.payload = text
                    row.updated_at = utc_now()
                session.add(row)
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to write {key!r}: {exc}") from exc

    def _delete_raw(self, key: str) -> None:
        try:
            with self._session_factory() as session:
                row = session.get(StoreRecord, key)
                if row is not None:
                    session.delete(row)
                    session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to delete {key!r}: {exc}") from exc


class JsonFileStore(CollectionStore):
    """Collections stored as ``<directory>/<key>.json`` files."""

    def __init__(self, directory: Path | str, **kwargs):
        super().__init__(**kwargs)
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        safe = key.replace("/", "-").replace("\\", "-")
        return self.directory / f"{safe}.json"

    def _read_raw(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc

    def _write_raw(self, key: str, text: str) -> None:
        target = self.path_for(key)
        tmp = target.with_suffix(".tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(text, encoding="utf-8")
            os.replace(tmp, target)
        except OSError as exc:
            raise StorageError(f"Failed to write {target}: {exc}") from exc
        finally:
            if tmp.exists():
                try:
                    tmp.unlink()
                except OSError:
                    logger.warning("Could not remove temporary file %s", tmp)

    def _delete_raw(self, key: str) -> None:
        path = self.path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to delete {path}: {exc}") from exc


__all__ = [
    "CollectionStore",
    "JsonFileStore",
    "SqlCollectionStore",
    "CORRUPT_SUFFIX",
    "decode_document",
]
