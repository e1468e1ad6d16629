"""Best-effort copy of local mirror changes into the spreadsheet.

The mirror write is what the user sees acknowledged. Everything here runs after
it; failures are logged and reported as ``False``, never raised.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from core.settings import SHEETS, SheetsSettings
from models.mirror import HorimeterReading, Vehicle
from services.google_sheets import GoogleSheets, SheetRow
from services.sheet_columns import HORIMETER_COLUMNS, VEHICLE_COLUMNS, map_to_headers, resolve_text
from services.sync_log import get_sync_logger
from utils.datetime_utils import format_sheet_date, parse_iso, parse_sheet_date, utc_now
from utils.ptbr_number import format_sheet_number, parse_ptbr_number


def _span(current: Optional[float], previous: Optional[float]) -> str:
    """Difference of two readings, blank unless both are positive."""

    if (current or 0) > 0 and (previous or 0) > 0:
        return format_sheet_number(current - previous)
    return ""


def build_horimeter_row(reading: HorimeterReading, vehicle: Vehicle) -> Dict[str, str]:
    return {
        "Data": format_sheet_date(reading.reading_date),
        "Veiculo": vehicle.code,
        "Categoria": vehicle.category or "",
        "Descricao": vehicle.name or "",
        "Empresa": vehicle.company or "",
        "Operador": reading.operator or "",
        "Hor_Anterior": format_sheet_number(reading.previous_value),
        "Hor_Atual": format_sheet_number(reading.current_value),
        "Intervalo H": _span(reading.current_value, reading.previous_value),
        "Km_Anterior": format_sheet_number(reading.previous_km),
        "Km_Atual": format_sheet_number(reading.current_km),
        "Total Km": _span(reading.current_km, reading.previous_km),
        "Observacao": reading.observations or "",
    }


def _flag(value: Any) -> str:
    return "TRUE" if value else "FALSE"


def build_fuel_row(data: Mapping[str, Any]) -> Dict[str, str]:
    """Row for the field fuel sheet from a ``field_fuel_records`` payload."""

    record_type = str(data.get("record_type") or "")
    arla = parse_ptbr_number(data.get("arla_quantity"))
    return {
        "DATA": format_sheet_date(data.get("record_date")),
        "HORA": str(data.get("record_time") or "")[:5],
        "TIPO": "Entrada" if record_type.lower() == "entrada" else "Saida",
        "VEICULO": data.get("vehicle_code") or "",
        "DESCRICAO": data.get("vehicle_description") or "",
        "CATEGORIA": data.get("category") or "",
        "MOTORISTA": data.get("operator_name") or "",
        "EMPRESA": data.get("company") or "",
        "OBRA": data.get("work_site") or "",
        "HORIMETRO ANTERIOR": format_sheet_number(data.get("horimeter_previous")),
        "HORIMETRO ATUAL": format_sheet_number(data.get("horimeter_current")),
        "KM ANTERIOR": format_sheet_number(data.get("km_previous")),
        "KM ATUAL": format_sheet_number(data.get("km_current")),
        "QUANTIDADE": format_sheet_number(data.get("fuel_quantity")),
        "TIPO DE COMBUSTIVEL": data.get("fuel_type") or "",
        "LOCAL": data.get("location") or "",
        "ARLA": _flag(arla > 0),
        "QUANTIDADE DE ARLA": format_sheet_number(arla),
        "OBSERVAÇÃO": data.get("observations") or "",
        "LUBRIFICAR": _flag(data.get("lubricant")),
        "LUBRIFICANTE": data.get("lubricant") or "",
        "COMPLETAR ÓLEO": _flag(data.get("oil_type")),
        "TIPO ÓLEO": data.get("oil_type") or "",
        "QUANTIDADE ÓLEO": format_sheet_number(data.get("oil_quantity")),
        "SOPRA FILTRO": format_sheet_number(data.get("filter_blow_quantity")),
        "FORNECEDOR": data.get("supplier") or "",
        "NOTA FISCAL": data.get("invoice_number") or "",
        "VALOR UNITÁRIO": format_sheet_number(data.get("unit_price")),
        "LOCAL DE ENTRADA": data.get("entry_location") or "",
    }


def normalize_vehicle_code(code: Any) -> str:
    return "".join(str(code or "").split()).upper()


def vehicle_contacts(rows: Iterable[SheetRow]) -> Dict[str, Dict[str, str]]:
    """Driver and company per normalised vehicle code, from the vehicles tab."""

    contacts: Dict[str, Dict[str, str]] = {}
    for row in rows:
        code = normalize_vehicle_code(resolve_text(row, VEHICLE_COLUMNS["code"]))
        if code:
            contacts[code] = {
                "driver": resolve_text(row, VEHICLE_COLUMNS["driver"]),
                "company": resolve_text(row, VEHICLE_COLUMNS["company"]),
            }
    return contacts


def _entry_moment(order: Mapping[str, Any]) -> Optional[datetime]:
    entry_date = parse_sheet_date(order.get("entry_date"))
    entry_time = str(order.get("entry_time") or "").strip()
    if entry_date is None or not entry_time:
        return None
    try:
        parsed = datetime.strptime(entry_time[:5], "%H:%M").time()
    except ValueError:
        return None
    return datetime.combine(entry_date, parsed)


def _naive_utc(value: Any) -> Optional[datetime]:
    parsed = parse_iso(value)
    return parsed.replace(tzinfo=None) if parsed else None


def format_downtime(order: Mapping[str, Any], now: Optional[datetime] = None) -> str:
    """Time a vehicle stood still, ``"2d 5h"`` or ``"7h"``; blank when unknown."""

    start = _entry_moment(order)
    if start is None:
        return ""
    end = _naive_utc(order.get("end_date")) or (now or utc_now()).replace(tzinfo=None)
    if end <= start:
        return ""
    total_hours = int((end - start).total_seconds() // 3600)
    days, hours = divmod(total_hours, 24)
    return f"{days}d {hours}h" if days else f"{hours}h"


def build_service_order_row(
    order: Mapping[str, Any],
    contacts: Optional[Mapping[str, Mapping[str, str]]] = None,
) -> Dict[str, str]:
    """Row for the maintenance-order tab from a ``service_orders`` row."""

    contact = (contacts or {}).get(normalize_vehicle_code(order.get("vehicle_code")), {})
    finalized = "Finalizada" in str(order.get("status") or "")
    end = _naive_utc(order.get("end_date")) if finalized else None
    return {
        "Data": format_sheet_date(order.get("entry_date") or order.get("order_date")),
        "Veiculo": order.get("vehicle_code") or "",
        "Empresa": contact.get("company") or "",
        "Motorista": contact.get("driver") or order.get("created_by") or "",
        "Potencia": order.get("vehicle_description") or "",
        "Problema": order.get("problem_description") or "",
        "Servico": order.get("solution_description") or "",
        "Mecanico": order.get("mechanic_name") or "",
        "Data_Entrada": format_sheet_date(order.get("entry_date")),
        "Data_Saida": format_sheet_date(end.date()) if end else "",
        "Hora_Entrada": str(order.get("entry_time") or "")[:5],
        "Hora_Saida": end.strftime("%H:%M") if end else "",
        "Horas_Parado": format_downtime(order) if finalized else "",
        "Observacao": order.get("notes") or "",
        "Status": order.get("status") or "",
    }


def find_reading_row(rows: Iterable[SheetRow], vehicle_code: str, reading_date: Any) -> Optional[int]:
    """``_rowIndex`` of the first sheet row matching (vehicle code, date)."""

    target = parse_sheet_date(reading_date)
    if target is None:
        return None
    for row in rows:
        if resolve_text(row, HORIMETER_COLUMNS["vehicle"]) != vehicle_code:
            continue
        row_date = parse_sheet_date(resolve_text(row, HORIMETER_COLUMNS["date"]))
        if row_date == target:
            return row.get("_rowIndex")
    return None


class SheetPusher:
    def __init__(self, sheets: GoogleSheets, settings: SheetsSettings = SHEETS) -> None:
        self.sheets = sheets
        self.settings = settings
        self.logger = get_sync_logger()

    # ----- horimeter readings -----
    def push_reading_created(self, reading: HorimeterReading, vehicle: Vehicle) -> bool:
        sheet = self.settings.horimeters_sheet
        try:
            self._append(sheet, build_horimeter_row(reading, vehicle))
        except Exception as exc:
            self.logger.warning("Sheet append failed for %s %s: %s", vehicle.code, reading.reading_date, exc)
            return False
        self.logger.info("Reading %s %s appended to %s", vehicle.code, reading.reading_date, sheet)
        return True

    def push_reading_updated(
        self,
        reading: HorimeterReading,
        vehicle: Vehicle,
        previous_date: str | date | None = None,
    ) -> bool:
        """Overwrite the row found under the reading's old date, else append."""

        sheet = self.settings.horimeters_sheet
        lookup_date = previous_date or reading.reading_date
        try:
            data = self.sheets.get_data(sheet)
            row_index = find_reading_row(data.rows, vehicle.code, lookup_date)
            row = build_horimeter_row(reading, vehicle)
            if row_index is None:
                self.logger.info(
                    "No sheet row for %s %s, appending instead", vehicle.code, lookup_date
                )
                self.sheets.create_row(sheet, map_to_headers(row, data.headers))
            else:
                self.sheets.update_row(sheet, row_index, map_to_headers(row, data.headers))
        except Exception as exc:
            self.logger.warning("Sheet update failed for %s %s: %s", vehicle.code, lookup_date, exc)
            return False
        return True

    def push_reading_deleted(self, reading: HorimeterReading, vehicle: Vehicle) -> bool:
        sheet = self.settings.horimeters_sheet
        try:
            data = self.sheets.get_data(sheet)
            row_index = find_reading_row(data.rows, vehicle.code, reading.reading_date)
            if row_index is None:
                self.logger.info("Sheet row for %s %s already gone", vehicle.code, reading.reading_date)
                return True
            self.sheets.delete_row(sheet, row_index)
        except Exception as exc:
            self.logger.warning("Sheet delete failed for %s %s: %s", vehicle.code, reading.reading_date, exc)
            return False
        return True

    # ----- fuel records -----
    def push_fuel_record(self, data: Mapping[str, Any]) -> bool:
        sheet = self.settings.fuel_sheet
        try:
            self._append(sheet, build_fuel_row(data))
        except Exception as exc:
            self.logger.warning(
                "Sheet append failed for fuel record %s %s: %s",
                data.get("vehicle_code"),
                data.get("record_date"),
                exc,
            )
            return False
        return True

    # ----- maintenance orders -----
    def _vehicle_contacts(self) -> Dict[str, Dict[str, str]]:
        return vehicle_contacts(self.sheets.get_data(self.settings.vehicles_sheet).rows)

    def push_service_order(self, order: Mapping[str, Any]) -> bool:
        sheet = self.settings.service_orders_sheet
        try:
            self._append(sheet, build_service_order_row(order, self._vehicle_contacts()))
        except Exception as exc:
            self.logger.warning(
                "Sheet append failed for service order %s: %s", order.get("order_number"), exc
            )
            return False
        return True

    def rewrite_service_orders(self, orders: List[Mapping[str, Any]]) -> int:
        """Replace every data row of the maintenance-order tab with ``orders``.

        Unlike the single-record pushes this is a batch job: errors propagate.
        """

        sheet = self.settings.service_orders_sheet
        contacts = self._vehicle_contacts()
        headers = self.sheets.get_headers(sheet)
        rows = [map_to_headers(build_service_order_row(order, contacts), headers) for order in orders]
        self.sheets.ensure_rows(sheet, len(rows) + 2)
        self.sheets.clear_data_rows(sheet)
        written = self.sheets.write_rows(sheet, rows)
        self.logger.info("Rewrote %s with %s service orders", sheet, written)
        return written

    def _append(self, sheet: str, row: Dict[str, Any]) -> None:
        headers = self.sheets.get_headers(sheet)
        self.sheets.create_row(sheet, map_to_headers(row, headers))


__all__ = [
    "SheetPusher",
    "build_fuel_row",
    "build_horimeter_row",
    "build_service_order_row",
    "find_reading_row",
    "format_downtime",
    "vehicle_contacts",
]
