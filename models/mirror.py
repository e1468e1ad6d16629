"""Rows of the hosted relational mirror consumed by the sync services.

The tables themselves are owned by the backend; these dataclasses only describe
the columns the reconciler reads and writes.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from utils.datetime_utils import parse_sheet_date


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class Vehicle:
    id: str
    code: str
    name: str = ""
    description: Optional[str] = None
    category: Optional[str] = None
    company: Optional[str] = None
    unit: str = "h"

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Vehicle":
        return cls(
            id=str(row.get("id")),
            code=str(row.get("code") or "").strip(),
            name=row.get("name") or "",
            description=row.get("description"),
            category=row.get("category"),
            company=row.get("company"),
            unit=row.get("unit") or "h",
        )


@dataclass
class HorimeterReading:
    id: str
    vehicle_id: str
    reading_date: str
    current_value: float = 0.0
    previous_value: Optional[float] = None
    current_km: Optional[float] = None
    previous_km: Optional[float] = None
    operator: Optional[str] = None
    observations: Optional[str] = None
    source: str = "system"
    synced_from_sheet: bool = False

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "HorimeterReading":
        parsed = parse_sheet_date(row.get("reading_date"))
        return cls(
            id=str(row.get("id")),
            vehicle_id=str(row.get("vehicle_id")),
            reading_date=parsed.isoformat() if parsed else str(row.get("reading_date") or ""),
            current_value=_optional_float(row.get("current_value")) or 0.0,
            previous_value=_optional_float(row.get("previous_value")),
            current_km=_optional_float(row.get("current_km")),
            previous_km=_optional_float(row.get("previous_km")),
            operator=row.get("operator"),
            observations=row.get("observations"),
            source=row.get("source") or "system",
            synced_from_sheet=bool(row.get("synced_from_sheet")),
        )


__all__ = ["HorimeterReading", "Vehicle"]
