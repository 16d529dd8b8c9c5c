"""Pending operation: the unit of deferred work in the operation log."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from datetime_utils import UTC, parse_rfc3339, to_rfc3339_utc, utc_now


class OperationType(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    @classmethod
    def parse(cls, value: "OperationType | str") -> "OperationType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unsupported operation type: {value!r}") from None


def new_operation_id() -> str:
    return uuid.uuid4().hex


@dataclass
class PendingOperation:
    entity_type: str
    operation_type: OperationType
    payload: Any
    id: str = field(default_factory=new_operation_id)
    created_at: datetime = field(default_factory=utc_now)
    retry_count: int = 0
    last_error: Optional[str] = None

    def record_failure(self, error: BaseException, max_retries: int) -> bool:
        """Count a failed replay; return ``True`` while the entry may be retried."""

        self.retry_count = min(self.retry_count + 1, max_retries)
        self.last_error = (str(error) or type(error).__name__)[:1000]
        return self.retry_count < max_retries

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "entityType": self.entity_type,
            "operationType": self.operation_type.value,
            "payload": self.payload,
            "createdAt": to_rfc3339_utc(self.created_at),
            "retryCount": self.retry_count,
            "lastError": self.last_error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PendingOperation":
        # Legacy documents carried ``data`` and a millisecond ``timestamp``.
        created = data.get("createdAt")
        created_at = parse_rfc3339(created) if isinstance(created, str) else None
        if created_at is None and isinstance(data.get("timestamp"), (int, float)):
            created_at = datetime.fromtimestamp(data["timestamp"] / 1000, tz=UTC)
        return cls(
            id=str(data["id"]),
            entity_type=str(data["entityType"]),
            operation_type=OperationType.parse(data["operationType"]),
            payload=data.get("payload", data.get("data")),
            created_at=created_at or utc_now(),
            retry_count=int(data.get("retryCount") or 0),
            last_error=data.get("lastError"),
        )


__all__ = ["OperationType", "PendingOperation", "new_operation_id"]
