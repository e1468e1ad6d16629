"""Import of vehicles and horimeter readings from the spreadsheet.

The spreadsheet is the authority: after an import the mirror holds exactly the
readings the sheet has, keyed by (vehicle code, reading date).
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from typing import Callable, Dict, Optional, Set, Tuple

from core.settings import IMPORT, SHEETS, ImportSettings, SheetsSettings
from models.mirror import HorimeterReading, Vehicle
from services.google_sheets import GoogleSheets, SheetRow
from services.mirror import SupabaseMirror
from services.sheet_columns import (
    HORIMETER_COLUMNS,
    HORIMETER_VALUE_FIELDS,
    VEHICLE_COLUMNS,
    map_to_headers,
    resolve_column,
    resolve_text,
)
from services.sheet_push import build_horimeter_row
from services.sync_log import get_sync_logger
from utils.datetime_utils import parse_sheet_date
from utils.ptbr_number import parse_ptbr_number

ProgressCallback = Callable[[int, int], None]
NaturalKey = Tuple[str, date]

_NUMERIC_FIELDS = ("hor_previous", "hor_current", "km_previous", "km_current")


@dataclass
class ImportStats:
    vehicles_imported: int = 0
    imported: int = 0
    updated: int = 0
    deleted: int = 0
    errors: int = 0
    orphan_check_skipped: bool = False

    def as_dict(self) -> Dict[str, object]:
        return asdict(self)


def vehicle_unit(category: Optional[str], settings: ImportSettings = IMPORT) -> str:
    lowered = (category or "").lower()
    return "km" if any(word in lowered for word in settings.km_categories) else "h"


def reading_key(row: SheetRow) -> Optional[NaturalKey]:
    code = resolve_text(row, HORIMETER_COLUMNS["vehicle"])
    reading_date = parse_sheet_date(resolve_text(row, HORIMETER_COLUMNS["date"]))
    if not code or reading_date is None:
        return None
    return code, reading_date


class SheetImporter:
    def __init__(
        self,
        sheets: GoogleSheets,
        mirror: SupabaseMirror,
        *,
        settings: ImportSettings = IMPORT,
        sheet_names: SheetsSettings = SHEETS,
    ) -> None:
        self.sheets = sheets
        self.mirror = mirror
        self.settings = settings
        self.sheet_names = sheet_names
        self.logger = get_sync_logger()

    # ------------------------------------------------------------------
    def sync_from_sheet(self, on_progress: Optional[ProgressCallback] = None) -> ImportStats:
        stats = ImportStats()
        self.logger.info("Sheet import started")

        vehicle_ids = self._import_vehicles(stats)

        rows = self.sheets.get_data(self.sheet_names.horimeters_sheet).rows
        total = len(rows)
        source_keys: Set[NaturalKey] = set()
        for position, row in enumerate(rows, start=1):
            key = reading_key(row)
            if key is not None:
                source_keys.add(key)
            self._import_reading(row, position, vehicle_ids, stats)
            if on_progress is not None:
                on_progress(position, total)

        self._delete_orphans(vehicle_ids, source_keys, stats)

        self.logger.info(
            "Sheet import finished: %s vehicles, %s new, %s updated, %s removed, %s errors",
            stats.vehicles_imported,
            stats.imported,
            stats.updated,
            stats.deleted,
            stats.errors,
        )
        return stats

    # ------------------------------------------------------------------
    def _import_vehicles(self, stats: ImportStats) -> Dict[str, str]:
        rows = self.sheets.get_data(self.sheet_names.vehicles_sheet).rows
        vehicle_ids: Dict[str, str] = {}

        for row in rows:
            code = resolve_text(row, VEHICLE_COLUMNS["code"])
            if not code:
                continue
            description = resolve_text(row, VEHICLE_COLUMNS["description"])
            category = resolve_text(row, VEHICLE_COLUMNS["category"]) or None
            payload = {
                "code": code,
                "name": description or code,
                "description": description or None,
                "category": category,
                "company": resolve_text(row, VEHICLE_COLUMNS["company"]) or None,
                "unit": vehicle_unit(category, self.settings),
            }
            try:
                saved = self.mirror.upsert_vehicle(payload)
            except Exception as exc:
                self.logger.error("Vehicle %s import failed: %s", code, exc)
                stats.errors += 1
                continue
            if saved:
                vehicle_ids[str(saved.get("code") or code)] = str(saved["id"])
                stats.vehicles_imported += 1

        for vehicle in self.mirror.list_vehicles():
            vehicle_ids[str(vehicle["code"]).strip()] = str(vehicle["id"])
        return vehicle_ids

    def _import_reading(
        self,
        row: SheetRow,
        position: int,
        vehicle_ids: Dict[str, str],
        stats: ImportStats,
    ) -> None:
        code = resolve_text(row, HORIMETER_COLUMNS["vehicle"])
        vehicle_id = vehicle_ids.get(code)
        if not vehicle_id:
            self.logger.warning("Row %s: unknown vehicle %r", position, code)
            stats.errors += 1
            return

        reading_date = parse_sheet_date(resolve_text(row, HORIMETER_COLUMNS["date"]))
        if reading_date is None:
            self.logger.warning("Row %s: unparsable date for %s", position, code)
            stats.errors += 1
            return

        values = {
            name: parse_ptbr_number(resolve_column(row, HORIMETER_COLUMNS[name]))
            for name in _NUMERIC_FIELDS
        }
        if all(values[name] == 0 for name in HORIMETER_VALUE_FIELDS):
            self.logger.warning("Row %s: no horimeter or km value for %s", position, code)
            stats.errors += 1
            return

        payload = {
            "current_value": values["hor_current"],
            "previous_value": values["hor_previous"],
            "current_km": values["km_current"] if values["km_current"] > 0 else None,
            "previous_km": values["km_previous"] if values["km_previous"] > 0 else None,
            "operator": resolve_text(row, HORIMETER_COLUMNS["operator"]) or None,
            "observations": resolve_text(row, HORIMETER_COLUMNS["observations"]) or None,
            "synced_from_sheet": True,
        }
        iso_date = reading_date.isoformat()
        try:
            existing = self.mirror.find_reading(vehicle_id, iso_date)
            if existing:
                self.mirror.update_reading(str(existing["id"]), payload)
                stats.updated += 1
            else:
                payload.update(vehicle_id=vehicle_id, reading_date=iso_date, source="sheet_sync")
                self.mirror.insert_reading(payload)
                stats.imported += 1
        except Exception as exc:
            self.logger.error("Row %s: reading %s %s import failed: %s", position, code, iso_date, exc)
            stats.errors += 1

    def _delete_orphans(
        self,
        vehicle_ids: Dict[str, str],
        source_keys: Set[NaturalKey],
        stats: ImportStats,
    ) -> None:
        codes_by_id = {vehicle_id: code for code, vehicle_id in vehicle_ids.items()}
        readings = self.mirror.list_readings()

        if not self._snapshot_trusted(len(source_keys), len(readings)):
            self.logger.warning(
                "Skipping orphan deletion: sheet has %s readings against %s in the mirror",
                len(source_keys),
                len(readings),
            )
            stats.orphan_check_skipped = True
            return

        for row in readings:
            code = codes_by_id.get(str(row.get("vehicle_id")))
            reading_date = parse_sheet_date(row.get("reading_date"))
            if not code or reading_date is None:
                continue
            if (code, reading_date) in source_keys:
                continue
            try:
                self.mirror.delete_reading(str(row["id"]))
            except Exception as exc:
                self.logger.error("Orphan reading %s %s delete failed: %s", code, reading_date, exc)
                stats.errors += 1
                continue
            stats.deleted += 1
            self.logger.info("Removed reading missing from sheet: %s %s", code, reading_date)

    def _snapshot_trusted(self, source_count: int, mirror_count: int) -> bool:
        if mirror_count == 0:
            return True
        if source_count < self.settings.orphan_guard_min_rows:
            return False
        return source_count >= self.settings.orphan_guard_ratio * mirror_count

    # ------------------------------------------------------------------
    def export_to_sheet(self) -> Dict[str, int]:
        """Append every mirror reading to the readings sheet."""

        stats = {"exported": 0, "errors": 0}
        vehicles = {str(row["id"]): Vehicle.from_row(row) for row in self.mirror.list_vehicles()}
        sheet = self.sheet_names.horimeters_sheet
        headers = self.sheets.get_headers(sheet)
        for row in self.mirror.list_readings():
            reading = HorimeterReading.from_row(row)
            vehicle = vehicles.get(reading.vehicle_id)
            if vehicle is None:
                continue
            try:
                self.sheets.create_row(sheet, map_to_headers(build_horimeter_row(reading, vehicle), headers))
            except Exception as exc:
                self.logger.error("Export of %s %s failed: %s", vehicle.code, reading.reading_date, exc)
                stats["errors"] += 1
                continue
            stats["exported"] += 1
        self.logger.info("Exported %s readings to %s", stats["exported"], sheet)
        return stats


__all__ = ["ImportStats", "SheetImporter", "reading_key", "vehicle_unit"]
