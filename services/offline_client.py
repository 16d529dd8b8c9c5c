"""Offline-aware wrapper around one entity's transport.

Mutations (``create``/``update``/``delete``) made while offline are queued and
answered with a :class:`QueuedAck`; made online, they go straight to the
transport and, when the transport raises, are queued *and* the error is
re-raised so the caller's own error handling still runs. If the operation
cannot be queued either, the queue failure is chained as ``__cause__`` of
the re-raised error.

Reads (``get``/``get_all``/``list``/``find``) are cached on success. When the
transport fails, or the device is offline, the cached value is returned
wrapped in :class:`Stale`; with nothing cached the failure is raised
(:class:`~services.errors.OfflineDataUnavailable` when offline).

Any other attribute is handed through from the transport untouched.
"""
from __future__ import annotations

import functools
import inspect
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

from core.logs import get_child_logger
from models.pending_op import OperationType, PendingOperation
from services.connectivity import ConnectivityMonitor
from services.errors import OfflineDataUnavailable, StorageError
from services.operation_log import OperationLog
from services.snapshot_cache import SnapshotCache, make_key
from services.transport_registry import MUTATION_METHODS, READ_METHODS, build_payload


@dataclass(frozen=True)
class QueuedAck:
    """Synthetic answer to a mutation that was queued instead of applied."""

    operation_id: str
    entity_type: str
    operation_type: OperationType
    queued: bool = True


@dataclass(frozen=True)
class Stale:
    """A cached read served in place of a live response."""

    value: Any
    cached_at: datetime
    stale: bool = True


async def _call(method: Callable[..., Any], args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> Any:
    result = method(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


class OfflineClient:
    def __init__(
        self,
        entity_type: str,
        transport: Any,
        *,
        log: OperationLog,
        cache: SnapshotCache,
        connectivity: ConnectivityMonitor,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._entity_type = entity_type
        self._transport = transport
        self._log = log
        self._cache = cache
        self._connectivity = connectivity
        self._logger = logger or get_child_logger("client")

    @property
    def entity_type(self) -> str:
        return self._entity_type

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        attr = getattr(self._transport, name)
        if not callable(attr):
            return attr
        if name in MUTATION_METHODS:
            return self._wrap(attr, self._mutate, OperationType(name))
        if name in READ_METHODS:
            return self._wrap(attr, self._read, name)
        return attr

    def __repr__(self) -> str:
        return f"OfflineClient({self._entity_type!r}, {self._transport!r})"

    def _wrap(self, method, handler, tag):
        @functools.wraps(method)
        async def wrapper(*args, **kwargs):
            return await handler(tag, method, args, kwargs)

        return wrapper

    # ------------------------------------------------------------------
    # Mutations
    def _queue(self, operation_type: OperationType, args, kwargs) -> PendingOperation:
        operation = PendingOperation(
            entity_type=self._entity_type,
            operation_type=operation_type,
            payload=build_payload(operation_type, args, kwargs),
        )
        self._log.append(operation)
        return operation

    async def _mutate(self, operation_type: OperationType, method, args, kwargs) -> Any:
        if not self._connectivity.is_online:
            operation = self._queue(operation_type, args, kwargs)
            self._logger.info(
                "Offline: queued %s %s (%s)", operation_type.value, self._entity_type, operation.id
            )
            return QueuedAck(
                operation_id=operation.id,
                entity_type=self._entity_type,
                operation_type=operation_type,
            )

        try:
            result = await _call(method, args, kwargs)
        except Exception as exc:
            try:
                operation = self._queue(operation_type, args, kwargs)
            except (StorageError, TypeError) as queue_exc:
                self._logger.error(
                    "%s %s failed (%s) and could not be queued: %s",
                    operation_type.value,
                    self._entity_type,
                    exc,
                    queue_exc,
                )
                raise exc from queue_exc
            else:
                self._logger.warning(
                    "%s %s failed, queued as %s: %s",
                    operation_type.value,
                    self._entity_type,
                    operation.id,
                    exc,
                )
            raise

        self._remember(make_key(self._entity_type, operation_type.value, args, kwargs), result)
        return result

    # ------------------------------------------------------------------
    # Reads
    async def _read(self, name: str, method, args, kwargs) -> Any:
        key = make_key(self._entity_type, name, args, kwargs)
        if not self._connectivity.is_online:
            entry = self._cache.get(key)
            if entry is None:
                raise OfflineDataUnavailable(key)
            return Stale(value=entry.value, cached_at=entry.cached_at)

        try:
            result = await _call(method, args, kwargs)
        except Exception as exc:
            entry = self._cache.get(key)
            if entry is None:
                raise
            self._logger.warning("%s failed, serving cached %s: %s", key, entry.cached_at, exc)
            return Stale(value=entry.value, cached_at=entry.cached_at)

        self._remember(key, result)
        return result

    def _remember(self, key: str, value: Any) -> None:
        try:
            self._cache.put(key, value)
        except StorageError as exc:
            self._logger.error("Could not cache %s: %s", key, exc)


__all__ = ["OfflineClient", "QueuedAck", "Stale"]
