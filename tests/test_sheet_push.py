from datetime import datetime

import pytest

from models.mirror import HorimeterReading, Vehicle
from services.horimeter_repository import HorimeterRepository
from services.sheet_push import (
    SheetPusher,
    build_fuel_row,
    build_horimeter_row,
    build_service_order_row,
    find_reading_row,
    format_downtime,
)


VEHICLE = Vehicle(id="veh-1", code="V1", name="Escavadeira", category="Equipamento", company="Acme")


def _reading(reading_date="2024-03-01", value=120.5, **extra):
    return HorimeterReading(id="rd-1", vehicle_id="veh-1", reading_date=reading_date, current_value=value, **extra)


def _seed_row(sheets_service, date_text, code="V1", value="100,00"):
    headers = sheets_service.grids["Horimetros"][0]
    row = {"Data": date_text, "Veiculo": code, "Hor_Atual": value}
    sheets_service.grids["Horimetros"].append([row.get(h, "") for h in headers])


def test_created_reading_is_appended(sheets, sheets_service):
    assert SheetPusher(sheets).push_reading_created(_reading(current_km=1500.0), VEHICLE) is True

    [row] = sheets_service.rows("Horimetros")
    assert row["Data"] == "01/03/2024"
    assert row["Veiculo"] == "V1"
    assert row["Descricao"] == "Escavadeira"
    assert row["Hor_Atual"] == "120,50"
    assert row["Km_Atual"] == "1.500,00"
    assert row["Km_Anterior"] == ""


def test_update_overwrites_row_found_under_previous_date(sheets, sheets_service):
    _seed_row(sheets_service, "28/02/2024", code="V2")
    _seed_row(sheets_service, "01/03/2024")

    ok = SheetPusher(sheets).push_reading_updated(
        _reading("2024-03-02", 130.0), VEHICLE, previous_date="2024-03-01"
    )

    assert ok is True
    rows = sheets_service.rows("Horimetros")
    assert len(rows) == 2
    assert rows[1]["Data"] == "02/03/2024"
    assert rows[1]["Hor_Atual"] == "130,00"
    assert ("update", "Horimetros", 3) in sheets_service.calls


def test_update_without_matching_row_appends(sheets, sheets_service):
    _seed_row(sheets_service, "28/02/2024", code="V2")

    assert SheetPusher(sheets).push_reading_updated(_reading(), VEHICLE) is True

    rows = sheets_service.rows("Horimetros")
    assert [r["Veiculo"] for r in rows] == ["V2", "V1"]


def test_delete_removes_matching_row(sheets, sheets_service):
    _seed_row(sheets_service, "01/03/2024")
    _seed_row(sheets_service, "02/03/2024")

    assert SheetPusher(sheets).push_reading_deleted(_reading(), VEHICLE) is True

    assert [r["Data"] for r in sheets_service.rows("Horimetros")] == ["02/03/2024"]


def test_delete_without_matching_row_is_noop(sheets, sheets_service):
    _seed_row(sheets_service, "02/03/2024")

    assert SheetPusher(sheets).push_reading_deleted(_reading(), VEHICLE) is True

    assert len(sheets_service.rows("Horimetros")) == 1
    assert not any(call[0] == "delete" for call in sheets_service.calls)


def test_push_failures_are_reported_not_raised(sheets, sheets_service):
    sheets_service.offline = True
    pusher = SheetPusher(sheets)

    assert pusher.push_reading_created(_reading(), VEHICLE) is False
    assert pusher.push_reading_updated(_reading(), VEHICLE) is False
    assert pusher.push_reading_deleted(_reading(), VEHICLE) is False
    assert pusher.push_fuel_record({"vehicle_code": "V1"}) is False


def test_find_reading_row_compares_dates_not_text():
    rows = [
        {"_rowIndex": 2, "Veiculo": "V1", "Data": "1/3/2024"},
        {"_rowIndex": 3, "Veiculo": "V1", "Data": "02/03/2024"},
    ]
    assert find_reading_row(rows, "V1", "2024-03-01") == 2
    assert find_reading_row(rows, "V1", "2024-03-05") is None
    assert find_reading_row(rows, "V2", "2024-03-01") is None


def test_fuel_row_uses_sheet_conventions():
    row = build_fuel_row(
        {
            "record_date": "2024-03-01",
            "record_time": "07:45:00",
            "record_type": "abastecimento",
            "vehicle_code": "V1",
            "fuel_quantity": 50,
            "arla_quantity": "2,5",
            "oil_type": None,
        }
    )
    assert row["DATA"] == "01/03/2024"
    assert row["HORA"] == "07:45"
    assert row["TIPO"] == "Saida"
    assert row["QUANTIDADE"] == "50,00"
    assert row["ARLA"] == "TRUE"
    assert row["QUANTIDADE DE ARLA"] == "2,50"
    assert row["COMPLETAR ÓLEO"] == "FALSE"
    assert row["HORIMETRO ATUAL"] == ""


def test_fuel_record_is_appended_with_sheet_headers(sheets, sheets_service):
    assert SheetPusher(sheets).push_fuel_record({"record_date": "2024-03-01", "vehicle_code": "V1"}) is True

    [row] = sheets_service.rows("AbastecimentoCanteiro01")
    assert row["VEICULO"] == "V1"
    assert row["DATA"] == "01/03/2024"


def test_horimeter_row_carries_spans_when_both_readings_exist():
    row = build_horimeter_row(
        _reading(previous_value=100.0, current_km=1500.0, previous_km=1200.0), VEHICLE
    )
    assert row["Intervalo H"] == "20,50"
    assert row["Total Km"] == "300,00"

    first = build_horimeter_row(_reading(current_km=1500.0), VEHICLE)
    assert first["Intervalo H"] == ""
    assert first["Total Km"] == ""


def test_created_reading_fills_span_columns(sheets, sheets_service):
    SheetPusher(sheets).push_reading_created(_reading(previous_value=100.0), VEHICLE)

    [row] = sheets_service.rows("Horimetros")
    assert row["Intervalo_H"] == "20,50"
    assert row["Total_Km"] == ""


ORDER = {
    "order_number": "OS-7",
    "vehicle_code": " v1 ",
    "vehicle_description": "150 cv",
    "problem_description": "Vazamento",
    "mechanic_name": "Carlos",
    "entry_date": "2024-03-01",
    "entry_time": "08:30:00",
    "created_by": "Ana",
    "status": "Finalizada",
    "end_date": "2024-03-03T13:40:00Z",
}


def test_downtime_in_days_and_hours():
    assert format_downtime(ORDER) == "2d 5h"
    assert format_downtime({**ORDER, "end_date": "2024-03-01T15:45:00Z"}) == "7h"
    assert format_downtime({**ORDER, "end_date": None}, now=datetime(2024, 3, 1, 10, 0)) == "1h"
    assert format_downtime({**ORDER, "entry_time": None}) == ""
    assert format_downtime({**ORDER, "end_date": "2024-02-28T00:00:00Z"}) == ""


def test_finalized_service_order_row():
    contacts = {"V1": {"driver": "João", "company": "Acme"}}

    row = build_service_order_row(ORDER, contacts)

    assert row["Data"] == "01/03/2024"
    assert row["Empresa"] == "Acme"
    assert row["Motorista"] == "João"
    assert row["Potencia"] == "150 cv"
    assert row["Hora_Entrada"] == "08:30"
    assert row["Data_Saida"] == "03/03/2024"
    assert row["Hora_Saida"] == "13:40"
    assert row["Horas_Parado"] == "2d 5h"


def test_open_service_order_row_leaves_exit_blank():
    row = build_service_order_row({**ORDER, "status": "Em Andamento"})

    assert row["Motorista"] == "Ana"
    assert row["Empresa"] == ""
    assert row["Data_Saida"] == ""
    assert row["Hora_Saida"] == ""
    assert row["Horas_Parado"] == ""


def test_service_order_push_looks_up_vehicle_contacts(sheets, sheets_service):
    sheets_service.grids["Veiculo"][0].append("MOTORISTA")
    sheets_service.grids["Veiculo"].append(["V1", "Trator", "Equipamento", "Acme", "João"])

    assert SheetPusher(sheets).push_service_order(ORDER) is True

    [row] = sheets_service.rows("Ordem_Servico")
    assert row["Motorista"] == "João"
    assert row["Empresa"] == "Acme"
    assert row["Status"] == "Finalizada"


def test_service_order_push_failure_is_reported(sheets, sheets_service):
    sheets_service.offline = True
    assert SheetPusher(sheets).push_service_order(ORDER) is False


def test_rewrite_service_orders_replaces_data_rows(sheets, sheets_service):
    sheets_service.grids["Ordem_Servico"].append(["old"] * 12)
    sheets_service.row_counts["Ordem_Servico"] = 2
    orders = [ORDER, {**ORDER, "vehicle_code": "V2", "status": "Aberta"}]

    assert SheetPusher(sheets).rewrite_service_orders(orders) == 2

    rows = sheets_service.rows("Ordem_Servico")
    assert [r["Veiculo"] for r in rows] == [" v1 ", "V2"]
    assert rows[1]["Horas_Parado"] == ""
    assert ("grow", "Ordem_Servico", 102) in sheets_service.calls
    assert ("update", "Ordem_Servico", 2) in sheets_service.calls


def test_rewrite_service_orders_raises_when_sheet_is_down(sheets, sheets_service):
    sheets_service.offline = True
    with pytest.raises(ConnectionError):
        SheetPusher(sheets).rewrite_service_orders([ORDER])


# ----- repository -----


@pytest.fixture
def repository(sheets, mirror):
    return HorimeterRepository(mirror, SheetPusher(sheets))


def test_repository_create_writes_mirror_then_sheet(repository, mirror, sheets_service):
    vehicle = mirror.add_vehicle("V1")

    saved = repository.create_reading({"vehicle_id": vehicle["id"], "reading_date": "2024-03-01", "current_value": 10})

    assert saved["id"] in mirror.readings
    [row] = sheets_service.rows("Horimetros")
    assert row["Veiculo"] == "V1"


def test_repository_mirror_error_propagates_without_push(repository, mirror, sheets_service):
    vehicle = mirror.add_vehicle("V1")
    mirror.failing.add("insert_reading")

    with pytest.raises(RuntimeError):
        repository.create_reading({"vehicle_id": vehicle["id"], "reading_date": "2024-03-01", "current_value": 10})

    assert sheets_service.rows("Horimetros") == []


def test_repository_survives_sheet_outage(repository, mirror, sheets_service):
    vehicle = mirror.add_vehicle("V1")
    sheets_service.offline = True

    saved = repository.create_reading({"vehicle_id": vehicle["id"], "reading_date": "2024-03-01", "current_value": 10})

    assert saved["id"] in mirror.readings


def test_repository_update_moves_row_to_new_date(repository, mirror, sheets_service):
    vehicle = mirror.add_vehicle("V1")
    reading = mirror.add_reading(vehicle["id"], "2024-03-01", 10.0)
    _seed_row(sheets_service, "01/03/2024", value="10,00")

    repository.update_reading(reading["id"], {"reading_date": "2024-03-04", "current_value": 12.0})

    assert mirror.readings[reading["id"]]["reading_date"] == "2024-03-04"
    [row] = sheets_service.rows("Horimetros")
    assert row["Data"] == "04/03/2024"
    assert row["Hor_Atual"] == "12,00"


def test_repository_delete_removes_both(repository, mirror, sheets_service):
    vehicle = mirror.add_vehicle("V1")
    reading = mirror.add_reading(vehicle["id"], "2024-03-01", 10.0)
    _seed_row(sheets_service, "01/03/2024", value="10,00")

    repository.delete_reading(reading["id"])

    assert reading["id"] not in mirror.readings
    assert sheets_service.rows("Horimetros") == []
