from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

from datetime_utils import parse_rfc3339, to_rfc3339_utc, utc_now


@dataclass
class CacheEntry:
    """Last successful response stored under one query signature."""

    key: str
    value: Any
    cached_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {"data": self.value, "timestamp": to_rfc3339_utc(self.cached_at)}

    @classmethod
    def from_dict(cls, key: str, data: Dict[str, Any]) -> "CacheEntry":
        stamp = data.get("timestamp")
        cached_at = parse_rfc3339(stamp) if isinstance(stamp, str) else None
        return cls(key=key, value=data.get("data"), cached_at=cached_at or utc_now())


__all__ = ["CacheEntry"]
