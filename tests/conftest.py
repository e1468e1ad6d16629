import os
import tempfile
from copy import deepcopy
from itertools import count

import pytest

os.environ.setdefault("ABASTECH_DATA_DIR", tempfile.mkdtemp(prefix="abastech-tests-"))

from services.google_sheets import GoogleSheets  # noqa: E402
from storage.offline_store import OfflineStore  # noqa: E402


HORIMETER_HEADERS = [
    "Data",
    "Veiculo",
    "Categoria",
    "Descricao",
    "Empresa",
    "Operador",
    "Hor_Anterior",
    "Hor_Atual",
    "Intervalo_H",
    "Km_Anterior",
    "Km_Atual",
    "Total_Km",
    "Observacao",
]

VEHICLE_HEADERS = ["CODIGO", "DESCRICAO", "TIPO", "EMPRESA"]

FUEL_HEADERS = [
    "DATA",
    "HORA",
    "TIPO",
    "VEICULO",
    "DESCRICAO",
    "CATEGORIA",
    "MOTORISTA",
    "EMPRESA",
    "OBRA",
    "HORIMETRO ANTERIOR",
    "HORIMETRO ATUAL",
    "KM ANTERIOR",
    "KM ATUAL",
    "QUANTIDADE",
    "TIPO DE COMBUSTIVEL",
    "LOCAL",
    "ARLA",
    "QUANTIDADE DE ARLA",
    "OBSERVAÇÃO",
]

SERVICE_ORDER_HEADERS = [
    "Data",
    "Veiculo",
    "Empresa",
    "Motorista",
    "Problema",
    "Servico",
    "Data_Entrada",
    "Hora_Entrada",
    "Data_Saida",
    "Hora_Saida",
    "Horas_Parado",
    "Status",
]


class _Request:
    def __init__(self, fn):
        self._fn = fn

    def execute(self):
        return self._fn()


def _split_range(range):
    sheet, _, cells = range.partition("!")
    if sheet.startswith("'") and sheet.endswith("'"):
        sheet = sheet[1:-1].replace("''", "'")
    return sheet, cells


class _FakeValues:
    def __init__(self, service):
        self.service = service

    def get(self, spreadsheetId, range):
        sheet, cells = _split_range(range)
        grid = self.service.grids.get(sheet, [])
        if cells == "1:1":
            return _Request(lambda: {"values": deepcopy(grid[:1])} if grid else {})
        return _Request(lambda: {"values": deepcopy(grid)} if grid else {})

    def append(self, spreadsheetId, range, valueInputOption, insertDataOption, body):
        sheet, _ = _split_range(range)

        def run():
            self.service.grids.setdefault(sheet, []).extend(deepcopy(body["values"]))
            self.service.calls.append(("append", sheet, deepcopy(body["values"][0])))
            return {}

        return _Request(run)

    def update(self, spreadsheetId, range, valueInputOption, body):
        sheet, cells = _split_range(range)
        row_number = int(cells.lstrip("A"))

        def run():
            grid = self.service.grids[sheet]
            for offset, values in enumerate(deepcopy(body["values"])):
                index = row_number - 1 + offset
                if index < len(grid):
                    grid[index] = values
                else:
                    grid.append(values)
            self.service.calls.append(("update", sheet, row_number))
            return {}

        return _Request(run)

    def clear(self, spreadsheetId, range, body):
        sheet, cells = _split_range(range)

        def run():
            del self.service.grids[sheet][1:]
            self.service.calls.append(("clear", sheet, cells))
            return {}

        return _Request(run)


class _FakeSpreadsheets:
    def __init__(self, service):
        self.service = service

    def values(self):
        return _FakeValues(self.service)

    def get(self, spreadsheetId):
        sheets = [
            {
                "properties": {
                    "title": title,
                    "sheetId": index,
                    "gridProperties": {"rowCount": self.service.row_counts.get(title, 1000)},
                }
            }
            for index, title in enumerate(self.service.grids)
        ]
        return _Request(lambda: {"sheets": sheets})

    def batchUpdate(self, spreadsheetId, body):
        def run():
            titles = list(self.service.grids)
            for request in body["requests"]:
                if "appendDimension" in request:
                    grow = request["appendDimension"]
                    sheet = titles[grow["sheetId"]]
                    self.service.row_counts[sheet] = self.service.row_counts.get(sheet, 1000) + grow["length"]
                    self.service.calls.append(("grow", sheet, grow["length"]))
                    continue
                span = request["deleteDimension"]["range"]
                sheet = titles[span["sheetId"]]
                del self.service.grids[sheet][span["startIndex"] : span["endIndex"]]
                self.service.calls.append(("delete", sheet, span["startIndex"]))
            return {}

        return _Request(run)


class FakeSheetsService:
    """In-memory stand-in for the discovery-built Sheets v4 resource."""

    def __init__(self, grids=None):
        self.grids = grids or {}
        self.calls = []
        self.offline = False
        self.row_counts = {}

    def spreadsheets(self):
        if self.offline:
            raise ConnectionError("sheets unreachable")
        return _FakeSpreadsheets(self)

    def rows(self, sheet):
        """Data rows of ``sheet`` as dictionaries keyed by header."""

        grid = self.grids.get(sheet, [])
        if not grid:
            return []
        headers = grid[0]
        return [dict(zip(headers, row)) for row in grid[1:]]


class FakeMirror:
    """In-memory stub of :class:`SupabaseMirror` for unit tests."""

    def __init__(self):
        self.vehicles = {}
        self.readings = {}
        self.fuel_records = {}
        self.service_orders = []
        self.reference = {}
        self.failing = set()
        self._ids = count(1)

    def _check(self, operation):
        if operation in self.failing:
            raise RuntimeError(f"{operation} failed")

    def _next_id(self, prefix):
        return f"{prefix}-{next(self._ids)}"

    # ----- vehicles -----
    def add_vehicle(self, code, **extra):
        row = {"id": self._next_id("veh"), "code": code, "name": extra.pop("name", code), **extra}
        self.vehicles[row["id"]] = row
        return row

    def upsert_vehicle(self, payload):
        self._check("upsert_vehicle")
        for row in self.vehicles.values():
            if row["code"] == payload["code"]:
                row.update(payload)
                return dict(row)
        row = {"id": self._next_id("veh"), **payload}
        self.vehicles[row["id"]] = row
        return dict(row)

    def list_vehicles(self):
        return [dict(row) for row in sorted(self.vehicles.values(), key=lambda r: r["code"])]

    def get_vehicle(self, vehicle_id):
        row = self.vehicles.get(vehicle_id)
        return dict(row) if row else None

    # ----- readings -----
    def add_reading(self, vehicle_id, reading_date, current_value, **extra):
        row = {
            "id": self._next_id("rd"),
            "vehicle_id": vehicle_id,
            "reading_date": reading_date,
            "current_value": current_value,
            **extra,
        }
        self.readings[row["id"]] = row
        return row

    def list_readings(self):
        return [dict(row) for row in self.readings.values()]

    def get_reading(self, reading_id):
        row = self.readings.get(reading_id)
        return dict(row) if row else None

    def find_reading(self, vehicle_id, reading_date):
        for row in self.readings.values():
            if row["vehicle_id"] == vehicle_id and row["reading_date"] == reading_date:
                return {"id": row["id"]}
        return None

    def insert_reading(self, payload):
        self._check("insert_reading")
        row = {"id": self._next_id("rd"), **payload}
        self.readings[row["id"]] = row
        return dict(row)

    def update_reading(self, reading_id, payload):
        self._check("update_reading")
        self.readings[reading_id].update(payload)
        return dict(self.readings[reading_id])

    def delete_reading(self, reading_id):
        self._check("delete_reading")
        self.readings.pop(reading_id, None)

    # ----- fuel records / service orders -----
    def insert_fuel_record(self, payload):
        self._check("insert_fuel_record")
        row = {"id": self._next_id("fuel"), **payload}
        self.fuel_records[row["id"]] = row
        return dict(row)

    def mark_fuel_record_synced(self, record_id):
        self._check("mark_fuel_record_synced")
        self.fuel_records[record_id]["synced_to_sheet"] = True

    def list_unsynced_fuel_records(self, limit=100):
        rows = [dict(r) for r in self.fuel_records.values() if not r.get("synced_to_sheet")]
        return rows[:limit]

    def insert_service_order(self, payload):
        self._check("insert_service_order")
        row = {"id": self._next_id("os"), **payload}
        self.service_orders.append(row)
        return dict(row)

    def list_service_orders(self):
        self._check("list_service_orders")
        return [dict(row) for row in self.service_orders]

    def list_reference(self, table):
        self._check("list_reference")
        if table == "vehicles":
            return self.list_vehicles()
        return list(self.reference.get(table, []))


@pytest.fixture
def store(tmp_path):
    offline_store = OfflineStore(tmp_path / "offline.db").open()
    yield offline_store
    offline_store.close()


@pytest.fixture
def sheets_service():
    return FakeSheetsService(
        {
            "Veiculo": [list(VEHICLE_HEADERS)],
            "Horimetros": [list(HORIMETER_HEADERS)],
            "AbastecimentoCanteiro01": [list(FUEL_HEADERS)],
            "Ordem_Servico": [list(SERVICE_ORDER_HEADERS)],
        }
    )


@pytest.fixture
def sheets(sheets_service):
    return GoogleSheets(spreadsheet_id="sheet-test", service=sheets_service)


@pytest.fixture
def mirror():
    return FakeMirror()
