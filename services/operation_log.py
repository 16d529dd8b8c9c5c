from __future__ import annotations

from typing import Any, Iterable, List

from core.logs import get_child_logger
from core.settings import STORAGE
from models.pending_op import PendingOperation
from storage.store import CollectionStore


logger = get_child_logger("operation_log")


def _decode(items: Any) -> List[PendingOperation]:
    if not isinstance(items, list):
        raise TypeError(f"expected a list of operations, got {type(items).__name__}")
    return [PendingOperation.from_dict(item) for item in items]


class OperationLog:
    """Durable FIFO collection of pending operations.

    Every mutation rewrites the whole collection under a single key; write
    failures raise :class:`~services.errors.StorageError`.
    """

    def __init__(self, store: CollectionStore, key: str = STORAGE.operations_key) -> None:
        self.store = store
        self.key = key

    def _save(self, operations: Iterable[PendingOperation]) -> None:
        self.store.write(self.key, [op.to_dict() for op in operations])

    def list(self) -> List[PendingOperation]:
        return self.store.read(self.key, _decode, list)

    def append(self, operation: PendingOperation) -> None:
        operations = self.list()
        operations.append(operation)
        self._save(operations)
        logger.debug(
            "Queued %s %s (%s); %d pending",
            operation.operation_type.value,
            operation.entity_type,
            operation.id,
            len(operations),
        )

    def remove(self, ids: Iterable[str]) -> int:
        drop = set(ids)
        if not drop:
            return 0
        operations = self.list()
        remaining = [op for op in operations if op.id not in drop]
        removed = len(operations) - len(remaining)
        if removed:
            self._save(remaining)
        return removed

    def save_retries(self, updated: Iterable[PendingOperation]) -> None:
        """Write back retry bookkeeping for entries still in the log."""

        by_id = {op.id: op for op in updated}
        if not by_id:
            return
        operations = self.list()
        merged = [by_id.get(op.id, op) for op in operations]
        self._save(merged)

    def count(self) -> int:
        return len(self.list())

    def clear(self) -> None:
        self.store.delete(self.key)


__all__ = ["OperationLog"]
