"""Drain the offline queue into the relational mirror and the spreadsheet."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from core.settings import REFERENCE_TABLES
from models.mirror import HorimeterReading, Vehicle
from models.pending_record import OfflineRecord, RecordType
from services.mirror import SupabaseMirror
from services.offline_storage import OfflineStorage
from services.sheet_push import SheetPusher
from services.sync_log import get_sync_logger

Row = Dict[str, Any]

_FUEL_OPTIONAL = (
    "vehicle_description",
    "fuel_type",
    "arla_quantity",
    "horimeter_current",
    "horimeter_previous",
    "km_current",
    "km_previous",
    "operator_name",
    "location",
    "observations",
    "category",
    "company",
    "oil_type",
    "oil_quantity",
    "lubricant",
    "filter_blow_quantity",
    "supplier",
    "unit_price",
    "invoice_number",
    "work_site",
    "entry_location",
)

_READING_OPTIONAL = ("previous_value", "current_km", "previous_km", "operator", "observations")

_SERVICE_ORDER_OPTIONAL = (
    "vehicle_description",
    "problem_description",
    "solution_description",
    "mechanic_id",
    "mechanic_name",
    "estimated_hours",
    "actual_hours",
    "parts_used",
    "parts_cost",
    "labor_cost",
    "total_cost",
    "notes",
    "created_by",
    "start_date",
    "end_date",
    "horimeter_current",
    "km_current",
    "entry_date",
    "entry_time",
    "interval_days",
)


def _optional(data: Row, names) -> Row:
    return {name: data.get(name) or None for name in names}


def fuel_record_payload(data: Row, user_id: str) -> Row:
    payload = {
        "vehicle_code": data.get("vehicle_code"),
        "record_date": data.get("record_date"),
        "record_time": data.get("record_time"),
        "fuel_quantity": data.get("fuel_quantity"),
        "user_id": user_id,
        "synced_to_sheet": False,
        "filter_blow": bool(data.get("filter_blow")),
        "record_type": data.get("record_type") or "abastecimento",
    }
    payload.update(_optional(data, _FUEL_OPTIONAL))
    return payload


def horimeter_payload(data: Row) -> Row:
    payload = {
        "vehicle_id": data.get("vehicle_id"),
        "reading_date": data.get("reading_date"),
        "current_value": data.get("current_value") or 0,
        "source": "field",
    }
    payload.update(_optional(data, _READING_OPTIONAL))
    return payload


def service_order_payload(data: Row) -> Row:
    payload = {
        "order_number": data.get("order_number"),
        "order_date": data.get("order_date"),
        "vehicle_code": data.get("vehicle_code"),
        "order_type": data.get("order_type") or "Corretiva",
        "priority": data.get("priority") or "Média",
        "status": data.get("status") or "Aberta",
    }
    payload.update(_optional(data, _SERVICE_ORDER_OPTIONAL))
    return payload


@dataclass
class SyncResult:
    synced: int = 0
    failed: int = 0
    exhausted: int = 0


class OfflineSyncWorker:
    def __init__(self, storage: OfflineStorage, mirror: SupabaseMirror, pusher: SheetPusher) -> None:
        self.storage = storage
        self.mirror = mirror
        self.pusher = pusher
        self.logger = get_sync_logger()
        self._handlers: Dict[RecordType, Callable[[OfflineRecord], None]] = {
            RecordType.FUEL_RECORD: self._sync_fuel_record,
            RecordType.HORIMETER_READING: self._sync_horimeter_reading,
            RecordType.SERVICE_ORDER: self._sync_service_order,
        }

    def sync_all(self, limit: Optional[int] = None) -> SyncResult:
        """Send every due record once; failures are rescheduled with backoff."""

        result = SyncResult()
        for record in self.storage.due_records(limit):
            try:
                self._handlers[record.type](record)
            except Exception as exc:
                self.logger.error("Failed to sync pending record %s: %s", record.id, exc)
                self.storage.mark_sync_failed(record.id, str(exc))
                result.failed += 1
                continue
            self.storage.mark_record_synced(record.id)
            result.synced += 1

        result.exhausted = len(self.storage.exhausted_records())
        if result.synced or result.failed:
            self.logger.info(
                "Offline sync: %s synced, %s failed, %s exhausted",
                result.synced,
                result.failed,
                result.exhausted,
            )
        return result

    # ----- handlers -----
    def _sync_fuel_record(self, record: OfflineRecord) -> None:
        payload = fuel_record_payload(record.data, record.user_id)
        saved = self.mirror.insert_fuel_record(payload)
        if self.pusher.push_fuel_record(payload) and saved and saved.get("id"):
            self._flag_fuel_synced(str(saved["id"]))

    def _flag_fuel_synced(self, record_id: str) -> bool:
        # The mirror row and the sheet row already exist; only the flag is missing.
        try:
            self.mirror.mark_fuel_record_synced(record_id)
        except Exception as exc:
            self.logger.warning("Could not flag fuel record %s as in the sheet: %s", record_id, exc)
            return False
        return True

    def _sync_horimeter_reading(self, record: OfflineRecord) -> None:
        data = record.data
        payload = horimeter_payload(data)
        saved = self.mirror.insert_reading(payload) or payload
        reading = HorimeterReading.from_row({"id": saved.get("id"), **payload})
        vehicle = Vehicle(
            id=str(payload.get("vehicle_id")),
            code=str(data.get("vehicle_code") or ""),
            name=data.get("vehicle_name") or "",
            category=data.get("vehicle_category"),
            company=data.get("vehicle_company"),
        )
        self.pusher.push_reading_created(reading, vehicle)

    def _sync_service_order(self, record: OfflineRecord) -> None:
        payload = service_order_payload(record.data)
        saved = self.mirror.insert_service_order(payload)
        self.pusher.push_service_order(saved or payload)

    # ----- mirror side jobs -----
    def push_unsynced_fuel_records(self, limit: int = 100) -> Dict[str, int]:
        """Append mirror fuel rows still flagged ``synced_to_sheet = false``."""

        stats = {"synced": 0, "failed": 0}
        for row in self.mirror.list_unsynced_fuel_records(limit=limit):
            if not self.pusher.push_fuel_record(row):
                stats["failed"] += 1
                continue
            if not self._flag_fuel_synced(str(row["id"])):
                stats["failed"] += 1
                continue
            stats["synced"] += 1
        self.logger.info(
            "Pending fuel rows pushed: %s synced, %s failed", stats["synced"], stats["failed"]
        )
        return stats

    def sync_service_orders_to_sheet(self) -> Dict[str, int]:
        """Rewrite the maintenance-order tab from every mirror service order."""

        orders = self.mirror.list_service_orders()
        written = self.pusher.rewrite_service_orders(orders)
        return {"orders": len(orders), "written": written}

    def cache_reference_data(self) -> bool:
        try:
            for table in REFERENCE_TABLES:
                self.storage.cache_data(table, self.mirror.list_reference(table))
        except Exception as exc:
            self.logger.error("Failed to cache reference data: %s", exc)
            return False
        self.logger.info("Reference data cached")
        return True


__all__ = [
    "OfflineSyncWorker",
    "SyncResult",
    "fuel_record_payload",
    "horimeter_payload",
    "service_order_payload",
]
