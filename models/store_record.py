"""SQLModel table holding persisted engine collections."""

from __future__ import annotations

from datetime import datetime

from sqlmodel import Field, SQLModel

from datetime_utils import utc_now


class StoreRecord(SQLModel, table=True):
    __tablename__ = "offline_store"

    key: str = Field(primary_key=True)
    payload: str
    updated_at: datetime = Field(default_factory=utc_now)


__all__ = ["StoreRecord"]
