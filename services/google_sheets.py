"""Minimal Google Sheets client used by the import and push services."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from googleapiclient.discovery import build

from core.errors import SheetError
from core.settings import SHEETS


SheetRow = Dict[str, Any]

_PLAIN_SHEET_NAME = re.compile(r"^[A-Za-z0-9_]+$")


def a1_range(sheet_name: str, cells: str) -> str:
    """A1 notation for ``cells`` of ``sheet_name``, quoting names with spaces or symbols."""

    if _PLAIN_SHEET_NAME.match(sheet_name):
        return f"{sheet_name}!{cells}"
    escaped = sheet_name.replace("'", "''")
    return f"'{escaped}'!{cells}"


@dataclass
class SheetData:
    headers: List[str] = field(default_factory=list)
    rows: List[SheetRow] = field(default_factory=list)


class GoogleSheets:
    """Rows are dictionaries keyed by the header row.

    Each row returned by :meth:`get_data` carries ``_rowIndex``: its 1-based
    position in the sheet (the header is row 1, so the first data row is 2).
    """

    def __init__(self, auth=None, spreadsheet_id: Optional[str] = None, *, service=None) -> None:
        self.auth = auth
        self.spreadsheet_id = spreadsheet_id or SHEETS.spreadsheet_id
        self.service = service
        self._sheet_ids: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # Initialisation helpers
    def connect(self) -> None:
        if not self.spreadsheet_id:
            raise SheetError("GOOGLE_SHEET_ID is not configured")
        self._ensure_service(strict=True)

    def _ensure_service(self, strict: bool = False) -> None:
        if self.service is not None:
            return

        creds = None
        if self.auth is not None:
            if hasattr(self.auth, "ensure_credentials"):
                self.auth.ensure_credentials()
            creds = self.auth.get_credentials()

        if not creds and strict:
            raise RuntimeError("Google credentials are not available")
        if not creds:
            return

        self.service = build("sheets", "v4", credentials=creds, cache_discovery=False)

    def _spreadsheets(self):
        self.connect()
        return self.service.spreadsheets()

    # ------------------------------------------------------------------
    # Reads
    def get_sheet_names(self) -> List[str]:
        metadata = self._spreadsheets().get(spreadsheetId=self.spreadsheet_id).execute()
        names: List[str] = []
        for sheet in metadata.get("sheets", []):
            props = sheet.get("properties", {})
            title = props.get("title")
            if title:
                names.append(title)
                self._sheet_ids[title] = props.get("sheetId")
        return names

    def _values(self, cell_range: str) -> List[List[Any]]:
        response = (
            self._spreadsheets()
            .values()
            .get(spreadsheetId=self.spreadsheet_id, range=cell_range)
            .execute()
        )
        return response.get("values", [])

    def get_headers(self, sheet_name: str) -> List[str]:
        values = self._values(a1_range(sheet_name, "1:1"))
        if not values:
            raise SheetError(f"No headers found in sheet {sheet_name!r}")
        return [str(header) for header in values[0]]

    def get_data(self, sheet_name: str) -> SheetData:
        values = self._values(a1_range(sheet_name, SHEETS.columns))
        if not values:
            return SheetData()

        headers = [str(header) for header in values[0]]
        rows: List[SheetRow] = []
        for offset, raw in enumerate(values[1:]):
            row: SheetRow = {"_rowIndex": offset + 2}
            for col, header in enumerate(headers):
                row[header] = raw[col] if col < len(raw) else ""
            rows.append(row)
        return SheetData(headers=headers, rows=rows)

    # ------------------------------------------------------------------
    # Writes
    def create_row(self, sheet_name: str, data: Mapping[str, Any]) -> None:
        values = _ordered_values(self.get_headers(sheet_name), data)
        (
            self._spreadsheets()
            .values()
            .append(
                spreadsheetId=self.spreadsheet_id,
                range=a1_range(sheet_name, SHEETS.columns),
                valueInputOption="USER_ENTERED",
                insertDataOption="INSERT_ROWS",
                body={"values": [values]},
            )
            .execute()
        )

    def update_row(self, sheet_name: str, row_index: int, data: Mapping[str, Any]) -> None:
        if row_index < 2:
            raise SheetError(f"Refusing to overwrite header row of {sheet_name!r}")
        values = _ordered_values(self.get_headers(sheet_name), data)
        (
            self._spreadsheets()
            .values()
            .update(
                spreadsheetId=self.spreadsheet_id,
                range=a1_range(sheet_name, f"A{row_index}"),
                valueInputOption="USER_ENTERED",
                body={"values": [values]},
            )
            .execute()
        )

    def delete_row(self, sheet_name: str, row_index: int) -> None:
        if row_index < 2:
            raise SheetError(f"Refusing to delete header row of {sheet_name!r}")
        sheet_id = self._sheet_id(sheet_name)
        body = {
            "requests": [
                {
                    "deleteDimension": {
                        "range": {
                            "sheetId": sheet_id,
                            "dimension": "ROWS",
                            "startIndex": row_index - 1,
                            "endIndex": row_index,
                        }
                    }
                }
            ]
        }
        self._spreadsheets().batchUpdate(spreadsheetId=self.spreadsheet_id, body=body).execute()

    # ------------------------------------------------------------------
    # Bulk rewrite of a whole tab
    def ensure_rows(self, sheet_name: str, needed_rows: int) -> None:
        """Grow the grid of ``sheet_name`` so it holds at least ``needed_rows`` rows."""

        metadata = self._spreadsheets().get(spreadsheetId=self.spreadsheet_id).execute()
        for sheet in metadata.get("sheets", []):
            props = sheet.get("properties", {})
            if props.get("title") != sheet_name:
                continue
            current = props.get("gridProperties", {}).get("rowCount", 0)
            if current >= needed_rows:
                return
            body = {
                "requests": [
                    {
                        "appendDimension": {
                            "sheetId": props.get("sheetId"),
                            "dimension": "ROWS",
                            "length": needed_rows - current + 100,
                        }
                    }
                ]
            }
            self._spreadsheets().batchUpdate(spreadsheetId=self.spreadsheet_id, body=body).execute()
            return
        raise SheetError(f"Sheet {sheet_name!r} not found")

    def clear_data_rows(self, sheet_name: str) -> None:
        """Blank every row below the header."""

        (
            self._spreadsheets()
            .values()
            .clear(spreadsheetId=self.spreadsheet_id, range=a1_range(sheet_name, "A2:ZZ"), body={})
            .execute()
        )

    def write_rows(
        self,
        sheet_name: str,
        rows: List[Mapping[str, Any]],
        *,
        start_row: int = 2,
        chunk_size: int = 500,
    ) -> int:
        """Write ``rows`` in header order from ``start_row`` down; returns rows written."""

        if start_row < 2:
            raise SheetError(f"Refusing to overwrite header row of {sheet_name!r}")
        headers = self.get_headers(sheet_name)
        written = 0
        for offset in range(0, len(rows), chunk_size):
            chunk = [_ordered_values(headers, row) for row in rows[offset : offset + chunk_size]]
            first = start_row + offset
            (
                self._spreadsheets()
                .values()
                .update(
                    spreadsheetId=self.spreadsheet_id,
                    range=a1_range(sheet_name, f"A{first}"),
                    valueInputOption="USER_ENTERED",
                    body={"values": chunk},
                )
                .execute()
            )
            written += len(chunk)
        return written

    def _sheet_id(self, sheet_name: str) -> int:
        if sheet_name not in self._sheet_ids:
            self.get_sheet_names()
        sheet_id = self._sheet_ids.get(sheet_name)
        if sheet_id is None:
            raise SheetError(f"Sheet {sheet_name!r} not found")
        return sheet_id


def _ordered_values(headers: List[str], data: Mapping[str, Any]) -> List[Any]:
    values = []
    for header in headers:
        value = data.get(header)
        values.append("" if value is None else value)
    return values


__all__ = ["GoogleSheets", "SheetData", "SheetRow", "a1_range"]
