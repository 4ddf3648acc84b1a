"""Async client for the EPA fuel economy web service (fueleconomy.gov).

A missing vehicle is a normal outcome here, not an error: ``get_for_vehicle``
returns None for "not found" and raises UpstreamUnavailable only when the
service itself could not be reached.
"""

import logging
import time
from typing import Any

import httpx

from commercialx.core.exceptions import UpstreamUnavailable
from commercialx.core.logging import log_external_call
from commercialx.models.enrichment import FuelEconomyData
from commercialx.utils.converters import clean_text, safe_float, safe_int

logger = logging.getLogger(__name__)

SERVICE = "epa"


def parse_vehicle_record(data: dict[str, Any], epa_id: int | None = None) -> FuelEconomyData:
    """Map an EPA ``/vehicle/{id}`` record onto FuelEconomyData.

    EPA reports unknown numeric values as 0, so zeros are treated as absent.
    """

    def number(*keys: str) -> float | None:
        for key in keys:
            value = safe_float(data.get(key))
            if value:
                return value
        return None

    def text(*keys: str) -> str | None:
        for key in keys:
            value = clean_text(data.get(key))
            if value:
                return value
        return None

    cylinders = safe_int(data.get("cylinders"))
    return FuelEconomyData(
        epa_id=safe_int(data.get("id")) or epa_id,
        mpg_city=number("city08"),
        mpg_highway=number("highway08"),
        mpg_combined=number("comb08"),
        mpge=number("cityE", "city08"),
        electric_range=number("rangeElectric", "range"),
        battery_capacity_kwh=number("batteryA"),
        charge_time_240v=number("charge240"),
        annual_fuel_cost=number("fuelCostA08", "fuelCost08"),
        co2_emissions=number("co2", "co2TailpipeGpm"),
        fuel_type=text("fuelType", "fuelType1"),
        engine_description=text("evMotor", "eng_dscr"),
        transmission_description=text("trany"),
        drive_type=text("drive"),
        cylinders=cylinders or None,
        displacement_l=number("displ"),
        atv_type=text("atvType"),
    )


class EPAClient:
    """Async client for the EPA fuel economy REST API (JSON)."""

    def __init__(
        self,
        base_url: str = "https://www.fueleconomy.gov/ws/rest",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(
            timeout=timeout, headers={"Accept": "application/json"}
        )

    async def _get_json(self, operation: str, path: str, params: dict | None = None) -> Any:
        start = time.time()
        try:
            resp = await self.client.get(f"{self.base_url}{path}", params=params)
            if resp.status_code == 404:
                log_external_call(SERVICE, operation, True, (time.time() - start) * 1000, 404)
                return None
            resp.raise_for_status()
            if not resp.content:
                return None
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            log_external_call(SERVICE, operation, False, (time.time() - start) * 1000)
            raise UpstreamUnavailable(SERVICE, f"{operation} failed: {e}") from e
        log_external_call(SERVICE, operation, True, (time.time() - start) * 1000)
        return data

    async def find_vehicle_id(self, year: int, make: str, model: str) -> int | None:
        """Return the EPA id of the first (most common) configuration, if any."""
        data = await self._get_json(
            "find_vehicle_id",
            "/vehicle/menu/options",
            {"year": year, "make": make, "model": model},
        )
        if not data:
            return None
        if not isinstance(data, dict):
            raise UpstreamUnavailable(
                SERVICE, f"Unexpected menu options payload: {type(data).__name__}"
            )

        items = data.get("menuItem")
        # A single option comes back as an object instead of a list
        if isinstance(items, dict):
            items = [items]
        if not items:
            logger.info("No EPA data found for %s %s %s", year, make, model)
            return None
        if not isinstance(items, list) or not isinstance(items[0], dict):
            raise UpstreamUnavailable(SERVICE, "Unexpected menu options payload")

        return safe_int(items[0].get("value"))

    async def get_vehicle(self, epa_id: int) -> FuelEconomyData | None:
        data = await self._get_json("get_vehicle", f"/vehicle/{epa_id}")
        if not data or not isinstance(data, dict):
            return None
        return parse_vehicle_record(data, epa_id)

    async def get_for_vehicle(
        self, year: int, make: str, model: str
    ) -> FuelEconomyData | None:
        """ID lookup + record fetch. None means the vehicle is not in EPA data."""
        epa_id = await self.find_vehicle_id(year, make, model)
        if not epa_id:
            return None
        return await self.get_vehicle(epa_id)

    async def close(self) -> None:
        await self.client.aclose()
