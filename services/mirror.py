"""Thin wrapper around the Supabase tables the sync services touch."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple, Union

from supabase import Client, create_client

from core.settings import SUPABASE, SupabaseSettings


Row = Dict[str, Any]


def create_mirror_client(settings: SupabaseSettings = SUPABASE) -> Client:
    if not settings.url or not settings.key:
        raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be configured")
    return create_client(settings.url, settings.key)


def _first(response) -> Optional[Row]:
    data = getattr(response, "data", None) or []
    if isinstance(data, dict):
        return data
    return data[0] if data else None


class SupabaseMirror:
    def __init__(self, client: Optional[Client] = None, *, page_size: int = SUPABASE.page_size) -> None:
        self.client = client or create_mirror_client()
        self.page_size = page_size

    def _select_all(
        self,
        table: str,
        columns: str = "*",
        order: Union[str, Tuple[str, ...], None] = None,
        **filters,
    ) -> List[Row]:
        orders = (order,) if isinstance(order, str) else tuple(order or ())
        rows: List[Row] = []
        start = 0
        while True:
            query = self.client.table(table).select(columns)
            for column, value in filters.items():
                query = query.eq(column, value)
            for column in orders:
                query = query.order(column)
            response = query.range(start, start + self.page_size - 1).execute()
            batch = response.data or []
            rows.extend(batch)
            if len(batch) < self.page_size:
                break
            start += self.page_size
        return rows

    # ----- vehicles -----
    def upsert_vehicle(self, payload: Row) -> Optional[Row]:
        response = self.client.table("vehicles").upsert(payload, on_conflict="code").execute()
        return _first(response)

    def list_vehicles(self) -> List[Row]:
        return self._select_all("vehicles", "id, code, name, description, category, company, unit", order="code")

    def get_vehicle(self, vehicle_id: str) -> Optional[Row]:
        response = self.client.table("vehicles").select("*").eq("id", vehicle_id).limit(1).execute()
        return _first(response)

    # ----- horimeter readings -----
    def list_readings(self) -> List[Row]:
        return self._select_all("horimeter_readings", order="reading_date")

    def get_reading(self, reading_id: str) -> Optional[Row]:
        response = (
            self.client.table("horimeter_readings").select("*").eq("id", reading_id).limit(1).execute()
        )
        return _first(response)

    def find_reading(self, vehicle_id: str, reading_date: str) -> Optional[Row]:
        response = (
            self.client.table("horimeter_readings")
            .select("id")
            .eq("vehicle_id", vehicle_id)
            .eq("reading_date", reading_date)
            .limit(1)
            .execute()
        )
        return _first(response)

    def insert_reading(self, payload: Row) -> Optional[Row]:
        response = self.client.table("horimeter_readings").insert(payload).execute()
        return _first(response)

    def update_reading(self, reading_id: str, payload: Row) -> Optional[Row]:
        response = self.client.table("horimeter_readings").update(payload).eq("id", reading_id).execute()
        return _first(response)

    def delete_reading(self, reading_id: str) -> None:
        self.client.table("horimeter_readings").delete().eq("id", reading_id).execute()

    # ----- field fuel records / service orders -----
    def insert_fuel_record(self, payload: Row) -> Optional[Row]:
        response = self.client.table("field_fuel_records").insert(payload).execute()
        return _first(response)

    def mark_fuel_record_synced(self, record_id: str) -> None:
        self.client.table("field_fuel_records").update({"synced_to_sheet": True}).eq("id", record_id).execute()

    def list_unsynced_fuel_records(self, limit: int = 100) -> List[Row]:
        response = (
            self.client.table("field_fuel_records")
            .select("*")
            .eq("synced_to_sheet", False)
            .order("record_date")
            .order("record_time")
            .limit(limit)
            .execute()
        )
        return response.data or []

    def insert_service_order(self, payload: Row) -> Optional[Row]:
        response = self.client.table("service_orders").insert(payload).execute()
        return _first(response)

    def list_service_orders(self) -> List[Row]:
        return self._select_all("service_orders", order=("entry_date", "order_date"))

    # ----- reference data -----
    def list_reference(self, table: str) -> List[Row]:
        if table == "vehicles":
            return self._select_all(table, order="code")
        return self._select_all(table, order="name", active=True)


__all__ = ["SupabaseMirror", "create_mirror_client"]
