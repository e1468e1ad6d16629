"""SQLModel table for cached reference data."""

from __future__ import annotations

from datetime import datetime

from sqlmodel import Field, SQLModel

from utils.datetime_utils import utc_now


class CacheEntry(SQLModel, table=True):
    __tablename__ = "cached_data"

    key: str = Field(primary_key=True)
    payload: str
    updated_at: datetime = Field(default_factory=utc_now)


__all__ = ["CacheEntry"]
