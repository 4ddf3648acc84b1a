"""Async client for the NHTSA vPIC VIN decoder (registry decode service).

No authentication required. Uses the flattened ``DecodeVinValues`` endpoint,
whose keys are not fully consistent across model years, so every field is
looked up under its primary name, case-insensitively, and under known
alternates.
"""

import logging
import re
import time
from typing import Any

import httpx

from commercialx.core.exceptions import UpstreamUnavailable, ValidationFailure
from commercialx.core.logging import log_external_call
from commercialx.models.enrichment import RegistryDecode
from commercialx.utils.converters import clean_text, parse_float, parse_leading_int

logger = logging.getLogger(__name__)

SERVICE = "nhtsa"

# 17 characters, no I, O or Q
VIN_PATTERN = re.compile(r"^[A-HJ-NPR-Z0-9]{17}$")

# Error codes beginning with these digits mean the VIN could not be decoded
_FATAL_ERROR_PREFIXES = ("1", "2")

# "Class 2E: 6,001 - 7,000 lb (2,722 - 3,175 kg)"
_GVWR_CLASS_RANGE = re.compile(r"([\d,]+)\s*-\s*([\d,]+)\s*lb", re.IGNORECASE)


def validate_vin(vin: str | None) -> str:
    """Normalize and validate a VIN, raising ValidationFailure if malformed."""
    normalized = (vin or "").strip().upper()
    if len(normalized) != 17:
        raise ValidationFailure("VIN must be exactly 17 characters", ["vin"])
    if not VIN_PATTERN.match(normalized):
        raise ValidationFailure(
            "Invalid VIN format. VINs cannot contain I, O, or Q", ["vin"]
        )
    return normalized


def gvwr_class_upper_bound(value: str | None) -> int | None:
    """Upper bound of a GVWR weight class string, in lbs."""
    if not value:
        return None
    match = _GVWR_CLASS_RANGE.search(value)
    if not match:
        return None
    return int(match.group(2).replace(",", ""))


def _lookup(results: dict[str, Any], key: str, alternates: tuple[str, ...] = ()) -> str | None:
    for candidate in (key, *alternates):
        value = clean_text(results.get(candidate))
        if value is not None:
            return value
        lowered = candidate.lower()
        for prop, raw in results.items():
            if prop.lower() == lowered:
                value = clean_text(raw)
                if value is not None:
                    return value
    return None


def parse_decode_results(results: dict[str, Any]) -> RegistryDecode:
    """Map a vPIC ``Results[0]`` record onto a RegistryDecode."""

    def text(key: str, *alternates: str) -> str | None:
        return _lookup(results, key, alternates)

    def integer(key: str, *alternates: str) -> int | None:
        return parse_leading_int(_lookup(results, key, alternates))

    def number(key: str, *alternates: str) -> float | None:
        return parse_float(_lookup(results, key, alternates))

    decode = RegistryDecode(
        vin=text("VIN"),
        year=integer("ModelYear", "Model_Year"),
        make=text("Make"),
        model=text("Model"),
        trim=text("Trim"),
        series=text("Series"),
        vehicle_type=text("VehicleType", "Vehicle_Type"),
        body_class=text("BodyClass", "Body_Class"),
        body_style=text("BodyType", "Body_Type"),
        cab_type=text("BodyCabType", "CabType", "Cab_Type"),
        doors=integer("Doors"),
        wheelbase=number("WheelBaseShort", "WheelBase", "Wheelbase"),
        wheelbase_type=text("WheelBaseType", "Wheelbase_Type"),
        bed_length=number("BedLengthIN", "BedLength"),
        bed_type=text("BedType", "Bed_Type"),
        overall_length=number("OverallLength", "Overall_Length"),
        overall_width=number("OverallWidth", "Overall_Width"),
        overall_height=number("OverallHeight", "Overall_Height"),
        curb_weight=integer("CurbWeightLB", "CurbWeight", "Curb_Weight"),
        gvwr=integer("GVWR", "Gross_Vehicle_Weight_Rating_GVWR")
        or gvwr_class_upper_bound(text("GVWR")),
        gvwr_range=text("GVWR"),
        gawr_front=integer("GAWR_Front", "GAWRFront"),
        gawr_rear=integer("GAWR_Rear", "GAWRRear"),
        towing_capacity=integer("TowingCapacity", "Towing_Capacity"),
        fuel_tank_capacity_gallons=number("FuelTankCapacity"),
        seating_capacity=integer("Seats", "SeatingCapacity"),
        seating_rows=integer("SeatRows"),
        engine_model=text("EngineModel", "Engine_Model"),
        engine_configuration=text("EngineConfiguration"),
        engine_cylinders=integer("EngineCylinders"),
        displacement_l=number("DisplacementL", "Displacement_L"),
        fuel_type_primary=text("FuelTypePrimary", "Fuel_Type_Primary"),
        fuel_type_secondary=text("FuelTypeSecondary"),
        electrification_level=text("ElectrificationLevel"),
        battery_type=text("BatteryType"),
        battery_kwh=number("BatteryKWh", "BatteryEnergy"),
        battery_voltage=number("BatteryV", "BatteryVoltage"),
        charging_time_l2_hours=number("ChargingTimeLevel2"),
        turbo=text("Turbo"),
        engine_hp=integer("EngineHP", "Engine_Brake_hp_From"),
        transmission=text("Transmission", "TransmissionStyle"),
        transmission_style=text("TransmissionStyle", "Transmission_Style"),
        transmission_speeds=integer("TransmissionSpeeds"),
        drive_type=text("DriveType", "Drive_Type"),
        axle_configuration=text("AxleConfiguration"),
        axles=integer("Axles"),
        wheels=text("RearAxle", "Wheels"),
        abs=text("ABS"),
        esc=text("ESC"),
        traction_control=text("TractionControl"),
        backup_camera=text("RearVisibilitySystem", "BackupCamera"),
        bluetooth_capable=text("BluetoothCapable", "Bluetooth"),
        tpms=text("TPMS"),
        manufacturer=text("Manufacturer", "ManufacturerName"),
        plant_city=text("PlantCity"),
        plant_state=text("PlantState"),
        plant_country=text("PlantCountry"),
        error_code=text("ErrorCode"),
        error_text=text("ErrorText"),
    )

    if decode.gvwr and decode.curb_weight:
        decode.payload_capacity = decode.gvwr - decode.curb_weight

    return decode


class NHTSAClient:
    """Async client for the NHTSA vPIC API."""

    def __init__(
        self,
        base_url: str = "https://vpic.nhtsa.dot.gov/api",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(
            timeout=timeout, headers={"Accept": "application/json"}
        )

    async def decode_vin(self, vin: str) -> RegistryDecode:
        """Decode a VIN. Raises UpstreamUnavailable if it cannot be decoded."""
        vin = validate_vin(vin)
        url = f"{self.base_url}/vehicles/DecodeVinValues/{vin}"
        start = time.time()
        try:
            resp = await self.client.get(url, params={"format": "json"})
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as e:
            log_external_call(SERVICE, "decode_vin", False, (time.time() - start) * 1000)
            raise UpstreamUnavailable(
                SERVICE, "Request to NHTSA service timed out. Please try again."
            ) from e
        except httpx.HTTPStatusError as e:
            log_external_call(
                SERVICE,
                "decode_vin",
                False,
                (time.time() - start) * 1000,
                status_code=e.response.status_code,
            )
            raise UpstreamUnavailable(SERVICE, _status_message(e.response.status_code)) from e
        except (httpx.HTTPError, ValueError) as e:
            log_external_call(SERVICE, "decode_vin", False, (time.time() - start) * 1000)
            raise UpstreamUnavailable(SERVICE, f"Failed to decode VIN: {e}") from e

        log_external_call(SERVICE, "decode_vin", True, (time.time() - start) * 1000)

        results = (data.get("Results") or [None])[0]
        if not results:
            raise UpstreamUnavailable(
                SERVICE,
                "No data returned from VIN decoder. The VIN may be invalid "
                "or not found in the database.",
            )

        decode = parse_decode_results(results)
        error_code = decode.error_code or "0"
        if error_code != "0" and not error_code.startswith("0"):
            logger.warning(
                "NHTSA decode warning for %s: %s %s", vin, error_code, decode.error_text
            )
            if error_code.startswith(_FATAL_ERROR_PREFIXES):
                raise UpstreamUnavailable(
                    SERVICE,
                    f"NHTSA decode error: {decode.error_text or 'Invalid VIN or data not available'}",
                )

        decode.vin = vin
        logger.info(
            "Decoded VIN %s: %s %s %s (gvwr=%s)",
            vin,
            decode.year,
            decode.make,
            decode.model,
            decode.gvwr,
        )
        return decode

    async def close(self) -> None:
        await self.client.aclose()


def _status_message(status: int) -> str:
    if status == 404:
        return "VIN not found in NHTSA database. Please verify the VIN is correct."
    if status == 429:
        return "Too many requests to NHTSA API. Please try again in a moment."
    if status >= 500:
        return f"NHTSA service error ({status}). Please try again later."
    return f"NHTSA API error: {status}"
