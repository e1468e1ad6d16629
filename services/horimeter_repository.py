from __future__ import annotations

from typing import Any, Dict, Optional

from core.errors import RecordNotFound
from models.mirror import HorimeterReading, Vehicle
from services.mirror import SupabaseMirror
from services.sheet_push import SheetPusher
from services.sync_log import get_sync_logger

Row = Dict[str, Any]


class HorimeterRepository:
    """CRUD over ``horimeter_readings`` that mirrors each change to the sheet.

    The relational write comes first and its errors propagate to the caller.
    The sheet push runs afterwards and only logs when it fails.
    """

    def __init__(self, mirror: SupabaseMirror, pusher: SheetPusher) -> None:
        self.mirror = mirror
        self.pusher = pusher
        self.logger = get_sync_logger()

    def _vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        row = self.mirror.get_vehicle(vehicle_id)
        return Vehicle.from_row(row) if row else None

    def _existing(self, reading_id: str) -> Row:
        row = self.mirror.get_reading(reading_id)
        if not row:
            raise RecordNotFound(reading_id)
        return row

    def create_reading(self, payload: Row) -> Row:
        saved = self.mirror.insert_reading(dict(payload)) or dict(payload)
        vehicle = self._vehicle(str(saved.get("vehicle_id")))
        if vehicle is None:
            self.logger.warning("Reading %s saved without a known vehicle, sheet not updated", saved.get("id"))
            return saved
        self.pusher.push_reading_created(HorimeterReading.from_row(saved), vehicle)
        return saved

    def update_reading(self, reading_id: str, changes: Row) -> Row:
        existing = self._existing(reading_id)
        saved = self.mirror.update_reading(reading_id, dict(changes)) or {**existing, **changes}
        vehicle = self._vehicle(str(saved.get("vehicle_id")))
        if vehicle is None:
            return saved
        self.pusher.push_reading_updated(
            HorimeterReading.from_row(saved),
            vehicle,
            previous_date=existing.get("reading_date"),
        )
        return saved

    def delete_reading(self, reading_id: str) -> None:
        existing = self._existing(reading_id)
        self.mirror.delete_reading(reading_id)
        vehicle = self._vehicle(str(existing.get("vehicle_id")))
        if vehicle is None:
            return
        self.pusher.push_reading_deleted(HorimeterReading.from_row(existing), vehicle)


__all__ = ["HorimeterRepository"]
