"""Vehicle data enrichment: merges NHTSA registry decodes with EPA fuel data.

Conflict resolution by field group:

- identity, classification, dimensions, weights, GAWR, towing, fuel tank,
  safety/technology, axles: NHTSA is authoritative (EPA does not supply them)
- engine description, cylinders, displacement, transmission, fuel type,
  drive type, battery capacity, L2 charge time: EPA preferred when present
- fuel economy figures, CO2, annual cost, electric range: EPA only

A registry decode is required; without it there is no vehicle identity. EPA
data is optional and its absence is recorded in ``data_sources``.
"""

import logging

from commercialx.core.enums import DataSource, RegistryConfidence
from commercialx.core.exceptions import UpstreamUnavailable
from commercialx.core.logging import log_error
from commercialx.models.enrichment import (
    EnrichedVehicleSpec,
    FuelEconomyData,
    RegistryDecode,
)
from commercialx.models.vehicle import VehicleSpec
from commercialx.services.cache import ExpiringCache
from commercialx.services.epa import EPAClient
from commercialx.services.nhtsa import NHTSAClient, validate_vin

logger = logging.getLogger(__name__)

DRIVE_TYPE_MAP: dict[str, str] = {
    "Rear-Wheel Drive": "RWD",
    "Front-Wheel Drive": "FWD",
    "All-Wheel Drive": "AWD",
    "Four-Wheel Drive": "4WD",
    "4-Wheel Drive": "4WD",
    "4-Wheel or All-Wheel Drive": "AWD",
    "Part-time 4-Wheel Drive": "4WD",
    "2-Wheel Drive": "RWD",
}

_DRIVE_CODES = {"RWD", "FWD", "AWD", "4WD"}

FUEL_TYPE_MAP: dict[str, str] = {
    "Regular Gasoline": "gasoline",
    "Premium Gasoline": "gasoline",
    "Midgrade Gasoline": "gasoline",
    "Gasoline": "gasoline",
    "Diesel": "diesel",
    "Electricity": "electric",
    "Electric": "electric",
    "Compressed Natural Gas": "cng",
    "Compressed Natural Gas (CNG)": "cng",
    "E85": "flex_fuel",
    "Hybrid": "hybrid",
}

# Seven registry fields that decide how much to trust a decode
_CRITICAL_REGISTRY_FIELDS = (
    "year",
    "make",
    "model",
    "body_class",
    "gvwr",
    "engine_model",
    "transmission",
)

_AFFIRMATIVE = {"yes", "standard", "direct", "indirect"}


def normalize_drive_type(value: str | None) -> str | None:
    """Map provider drive-type labels onto RWD/FWD/AWD/4WD.

    Examples:
        >>> normalize_drive_type("Rear-Wheel Drive")
        'RWD'
        >>> normalize_drive_type("4WD/4-Wheel Drive/4x4")
        '4WD'
    """
    if not value:
        return None
    value = value.strip()
    if value in DRIVE_TYPE_MAP:
        return DRIVE_TYPE_MAP[value]
    head = value.split("/", 1)[0].strip().upper()
    if head in _DRIVE_CODES:
        return head
    if head == "4X4":
        return "4WD"
    return value


def normalize_fuel_type(value: str | None) -> str | None:
    if not value:
        return None
    value = value.strip()
    return FUEL_TYPE_MAP.get(value, value.lower())


def registry_confidence(decode: RegistryDecode) -> RegistryConfidence:
    filled = sum(
        1 for f in _CRITICAL_REGISTRY_FIELDS if getattr(decode, f) is not None
    )
    ratio = filled / len(_CRITICAL_REGISTRY_FIELDS)
    if ratio >= 0.8:
        return RegistryConfidence.HIGH
    if ratio >= 0.5:
        return RegistryConfidence.MEDIUM
    return RegistryConfidence.LOW


def _flag(value: str | None) -> bool | None:
    if not value:
        return None
    return True if value.strip().lower() in _AFFIRMATIVE else None


def _rear_wheels(wheels: str | None) -> str | None:
    if not wheels:
        return None
    lowered = wheels.lower()
    if "dual" in lowered or "drw" in lowered:
        return "DRW"
    if "single" in lowered or "srw" in lowered:
        return "SRW"
    return None


def merge(
    registry: RegistryDecode, fuel_economy: FuelEconomyData | None
) -> EnrichedVehicleSpec:
    """Merge a registry decode with optional fuel-economy data.

    Raises UpstreamUnavailable if the decode lacks year, make or model.
    """
    if not registry.year or not registry.make or not registry.model:
        raise UpstreamUnavailable(
            "nhtsa", "NHTSA data missing required fields (year, make, model)"
        )

    epa = fuel_economy
    data_sources = ["nhtsa"]
    if epa is not None:
        data_sources.append("epa")

    return EnrichedVehicleSpec(
        data_sources=data_sources,
        registry_confidence=registry_confidence(registry),
        fuel_economy_available=epa is not None,
        vin=registry.vin,
        # Identity (registry)
        year=registry.year,
        make=registry.make,
        model=registry.model,
        trim=registry.trim,
        series=registry.series,
        # Classification (registry)
        vehicle_type=registry.vehicle_type,
        body_class=registry.body_class,
        body_style=registry.body_style,
        cab_type=registry.cab_type,
        doors=registry.doors,
        # Dimensions (registry)
        wheelbase=registry.wheelbase,
        wheelbase_type=registry.wheelbase_type,
        bed_length=registry.bed_length,
        bed_type=registry.bed_type,
        overall_length=registry.overall_length,
        overall_width=registry.overall_width,
        overall_height=registry.overall_height,
        # Weight & capacity (registry)
        curb_weight=registry.curb_weight,
        gvwr=registry.gvwr,
        gvwr_range=registry.gvwr_range,
        payload_capacity=registry.payload_capacity,
        seating_capacity=registry.seating_capacity,
        seating_rows=registry.seating_rows,
        gawr_front=registry.gawr_front,
        gawr_rear=registry.gawr_rear,
        towing_capacity=registry.towing_capacity,
        fuel_tank_capacity=registry.fuel_tank_capacity_gallons,
        # Technology & safety (registry)
        backup_camera=_flag(registry.backup_camera),
        bluetooth_capable=_flag(registry.bluetooth_capable),
        tpms=_flag(registry.tpms),
        abs=registry.abs,
        esc=registry.esc,
        traction_control=registry.traction_control,
        # Engine: EPA description, registry specs as fallback
        engine_model=registry.engine_model,
        engine_description=(epa and epa.engine_description) or registry.engine_model,
        engine_configuration=registry.engine_configuration,
        engine_cylinders=(epa and epa.cylinders) or registry.engine_cylinders,
        displacement_l=(epa and epa.displacement_l) or registry.displacement_l,
        fuel_type_primary=normalize_fuel_type(
            (epa and epa.fuel_type) or registry.fuel_type_primary
        )
        or "gasoline",
        fuel_type_secondary=registry.fuel_type_secondary,
        electrification_level=registry.electrification_level,
        # Electric
        battery_type=registry.battery_type,
        battery_kwh=(epa and epa.battery_capacity_kwh) or registry.battery_kwh,
        battery_voltage=registry.battery_voltage,
        charging_time_l2_hours=(epa and epa.charge_time_240v)
        or registry.charging_time_l2_hours,
        electric_range=epa.electric_range if epa else None,
        # Performance (registry)
        turbo=registry.turbo,
        horsepower=registry.engine_hp,
        # Fuel economy (EPA only)
        mpg_city=epa.mpg_city if epa else None,
        mpg_highway=epa.mpg_highway if epa else None,
        mpg_combined=epa.mpg_combined if epa else None,
        mpge=epa.mpge if epa else None,
        annual_fuel_cost=epa.annual_fuel_cost if epa else None,
        co2_emissions=epa.co2_emissions if epa else None,
        # Transmission: EPA description preferred
        transmission=(epa and epa.transmission_description) or registry.transmission,
        transmission_style=registry.transmission_style,
        transmission_speeds=registry.transmission_speeds,
        # Drive type: EPA preferred, both normalized
        drive_type=normalize_drive_type(epa.drive_type if epa else None)
        or normalize_drive_type(registry.drive_type),
        # Axles & wheels (registry)
        axle_description=registry.axle_configuration,
        axles=registry.axles,
        rear_wheels=_rear_wheels(registry.wheels),
        wheels=registry.wheels,
        # Manufacturing (registry)
        manufacturer=registry.manufacturer,
        plant_city=registry.plant_city,
        plant_state=registry.plant_state,
        plant_country=registry.plant_country,
        epa_id=epa.epa_id if epa else None,
    )


def to_vehicle_spec(enriched: EnrichedVehicleSpec) -> VehicleSpec:
    """Convert a merged record into a catalog VehicleSpec with provenance."""
    source = (
        DataSource.VIN_DECODE_BOTH
        if enriched.has_source("epa")
        else DataSource.VIN_DECODE_NHTSA
    )
    return VehicleSpec(
        year=enriched.year,
        make=enriched.make,
        model=enriched.model,
        series=enriched.series,
        vin=enriched.vin,
        body_style=enriched.body_class or enriched.body_style,
        cab_type=enriched.cab_type,
        wheelbase_inches=enriched.wheelbase,
        gvwr=enriched.gvwr,
        payload_capacity=enriched.payload_capacity,
        engine=enriched.engine_description,
        transmission=enriched.transmission,
        drive_type=enriched.drive_type,
        fuel_type=enriched.fuel_type_primary,
        seating_capacity=enriched.seating_capacity,
        base_curb_weight_lbs=enriched.curb_weight,
        gawr_front_lbs=enriched.gawr_front,
        gawr_rear_lbs=enriched.gawr_rear,
        towing_capacity_lbs=enriched.towing_capacity,
        length_inches=enriched.overall_length,
        width_inches=enriched.overall_width,
        height_inches=enriched.overall_height,
        horsepower=enriched.horsepower,
        mpg_city=enriched.mpg_city,
        mpg_highway=enriched.mpg_highway,
        mpge=enriched.mpge,
        battery_voltage=enriched.battery_voltage,
        axle_description=enriched.axle_description,
        rear_wheels=enriched.rear_wheels,
        data_source=source,
    )


class VehicleEnrichmentService:
    """Decode a VIN and enrich it with fuel-economy data, with caching."""

    def __init__(
        self,
        registry: NHTSAClient,
        fuel_economy: EPAClient | None = None,
        cache: ExpiringCache | None = None,
        cache_ttl: float | None = None,
    ) -> None:
        self.registry = registry
        self.fuel_economy = fuel_economy
        self.cache = cache
        self.cache_ttl = cache_ttl

    async def _fuel_economy_for(self, decode: RegistryDecode) -> FuelEconomyData | None:
        if self.fuel_economy is None:
            return None

        key = ExpiringCache.fuel_economy_key(decode.year, decode.make, decode.model)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        try:
            data = await self.fuel_economy.get_for_vehicle(
                decode.year, decode.make, decode.model
            )
        except UpstreamUnavailable as e:
            logger.warning("EPA data fetch failed (non-critical): %s", e)
            return None
        except Exception as e:
            log_error(
                "EPA data could not be read (non-critical)",
                e,
                year=decode.year,
                make=decode.make,
                model=decode.model,
            )
            return None

        if data is not None and self.cache is not None:
            self.cache.set(key, data, self.cache_ttl)
        return data

    async def enrich(self, vin: str) -> EnrichedVehicleSpec:
        """Decode ``vin`` and merge in EPA data when available.

        Raises ValidationFailure for a malformed VIN and UpstreamUnavailable
        when the registry decode fails.
        """
        vin = validate_vin(vin)
        key = ExpiringCache.registry_key(vin)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Enrichment cache hit: %s", vin)
                return cached

        decode = await self.registry.decode_vin(vin)
        if not decode.year or not decode.make or not decode.model:
            raise UpstreamUnavailable(
                "nhtsa", "NHTSA data missing required fields (year, make, model)"
            )

        fuel_economy = await self._fuel_economy_for(decode)
        enriched = merge(decode, fuel_economy)
        logger.info(
            "Enriched VIN %s sources=%s registry_confidence=%s",
            vin,
            ",".join(enriched.data_sources),
            enriched.registry_confidence.value,
        )

        if self.cache is not None:
            self.cache.set(key, enriched, self.cache_ttl)
        return enriched
