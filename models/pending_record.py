"""Pending field operations queued while the device is offline."""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlmodel import Field, SQLModel

from core.errors import InvalidType
from utils.datetime_utils import to_iso, utc_now


class RecordType(str, Enum):
    FUEL_RECORD = "fuel_record"
    HORIMETER_READING = "horimeter_reading"
    SERVICE_ORDER = "service_order"

    @classmethod
    def coerce(cls, value: Any) -> "RecordType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            raise InvalidType(f"Unsupported pending record type: {value!r}") from None


class PendingRecordRow(SQLModel, table=True):
    __tablename__ = "pending_records"

    id: str = Field(primary_key=True)
    type: str = Field(index=True)
    user_id: str = Field(index=True)
    payload: str
    created_at: datetime = Field(default_factory=utc_now, index=True)
    sync_attempts: int = Field(default=0)
    last_sync_attempt: Optional[datetime] = None
    last_error: Optional[str] = None
    next_try_at: datetime = Field(default_factory=utc_now, index=True)


_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_record_id(now: Optional[datetime] = None) -> str:
    """``offline_<epoch ms>_<9 base36 chars>``, unique per device in practice."""

    millis = int((now.timestamp() if now else time.time()) * 1000)
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"offline_{millis}_{suffix}"


@dataclass
class OfflineRecord:
    id: str
    type: RecordType
    data: Dict[str, Any]
    user_id: str
    created_at: datetime
    sync_attempts: int = 0
    last_sync_attempt: Optional[datetime] = None
    last_error: Optional[str] = None
    next_try_at: Optional[datetime] = field(default=None)

    def register_failed_attempt(
        self,
        now: datetime,
        next_try_at: Optional[datetime] = None,
        error: Optional[str] = None,
    ) -> None:
        self.sync_attempts += 1
        self.last_sync_attempt = now
        self.next_try_at = next_try_at or now
        if error:
            self.last_error = error[:1000]

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "data": dict(self.data),
            "userId": self.user_id,
            "createdAt": to_iso(self.created_at),
            "syncAttempts": self.sync_attempts,
        }
        if self.last_sync_attempt is not None:
            payload["lastSyncAttempt"] = to_iso(self.last_sync_attempt)
        return payload


def new_offline_record(data: Dict[str, Any], type: Any, user_id: str) -> OfflineRecord:
    """Build a fresh record; the type is checked before anything is stored."""

    record_type = RecordType.coerce(type)
    now = utc_now()
    return OfflineRecord(
        id=generate_record_id(now),
        type=record_type,
        data=dict(data or {}),
        user_id=user_id,
        created_at=now,
        sync_attempts=0,
        next_try_at=now,
    )


__all__ = [
    "OfflineRecord",
    "PendingRecordRow",
    "RecordType",
    "generate_record_id",
    "new_offline_record",
]
