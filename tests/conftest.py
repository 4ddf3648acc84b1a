"""Shared fixtures: an in-memory CatalogStore and spec builders."""

import asyncio
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from commercialx.models.equipment import EquipmentSpec
from commercialx.models.vehicle import VehicleSpec

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class InMemoryCatalogStore:
    """CatalogStore over plain lists.

    Every call yields to the event loop once so concurrent callers interleave
    the way they would against a real database. ``fail_on`` and ``delays``
    are keyed by (operation, table).
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.calls: list[tuple[str, str]] = []
        self.fail_on: dict[tuple[str, str], Exception] = {}
        self.delays: dict[tuple[str, str], float] = {}
        self._ids: dict[str, int] = defaultdict(int)
        self._ticks = 0

    async def _enter(self, operation: str, table: str) -> None:
        self.calls.append((operation, table))
        await asyncio.sleep(self.delays.get((operation, table), 0))
        error = self.fail_on.get((operation, table))
        if error is not None:
            raise error

    def seed(self, table: str, **row: Any) -> dict[str, Any]:
        """Insert a row synchronously, bypassing call tracking."""
        self._ids[table] += 1
        self._ticks += 1
        stored = {
            "id": self._ids[table],
            "created_at": _EPOCH + timedelta(seconds=self._ticks),
            **row,
        }
        self.tables[table].append(stored)
        return dict(stored)

    async def select(
        self,
        table: str,
        where: dict[str, Any] | None = None,
        order_by=(),
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        await self._enter("select", table)
        rows = [
            dict(row)
            for row in self.tables[table]
            if all(row.get(k) == v for k, v in (where or {}).items())
        ]
        if order_by:
            rows.sort(key=lambda r: tuple(r.get(c) for c in order_by), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        await self._enter("insert", table)
        return self.seed(table, **row)

    async def update(
        self, table: str, row_id: int, changes: dict[str, Any]
    ) -> dict[str, Any] | None:
        await self._enter("update", table)
        for row in self.tables[table]:
            if row["id"] == row_id:
                row.update(changes)
                return dict(row)
        return None

    def rows(self, table: str) -> list[dict[str, Any]]:
        return self.tables[table]


@pytest.fixture
def store() -> InMemoryCatalogStore:
    return InMemoryCatalogStore()


def make_vehicle_spec(**overrides: Any) -> VehicleSpec:
    """A Ford Transit cab-chassis; override any field."""
    fields: dict[str, Any] = {
        "year": 2023,
        "make": "Ford",
        "model": "Transit",
        "body_style": "Cab Chassis",
        "wheelbase_inches": 148.0,
        "gvwr": 10360.0,
        "drive_type": "RWD",
        "base_curb_weight_lbs": 5200.0,
    }
    fields.update(overrides)
    return VehicleSpec(**fields)


def make_equipment_spec(**overrides: Any) -> EquipmentSpec:
    """A 12 ft aluminum box body; override any field."""
    fields: dict[str, Any] = {
        "manufacturer": "Morgan",
        "product_line": "Gold Star",
        "equipment_type": "Box Truck",
        "length_inches": 144.0,
        "width_inches": 96.0,
        "height_inches": 84.0,
        "weight_lbs": 2400.0,
        "material": "Aluminum",
    }
    fields.update(overrides)
    return EquipmentSpec(**fields)
