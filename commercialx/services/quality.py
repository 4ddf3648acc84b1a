"""Data quality scoring for catalog entries.

Scores combine three components:

- completeness: weighted share of populated fields (70% critical, 30% optional)
- accuracy: registry decode, fuel-economy data, verification and source
  reliability each add to the score independently (not normalised to 1)
- consistency: a small penalty when two providers both contributed, since
  their overlapping fields may disagree

The overall score is clamped to [0, 1] and is what gets written to an
entity's ``confidence_score``.
"""

from pydantic import BaseModel

from commercialx.core.enums import DataSource, source_reliability
from commercialx.models.compatibility import QualityFactors, QualityScore
from commercialx.models.equipment import Equipment, EquipmentConfig
from commercialx.models.vehicle import Vehicle, VehicleConfig
from commercialx.utils.converters import is_populated

VEHICLE_CRITICAL_FIELDS = (
    "body_style",
    "wheelbase_inches",
    "gvwr",
    "payload_capacity",
    "engine",
    "transmission",
    "drive_type",
    "seating_capacity",
)

VEHICLE_OPTIONAL_FIELDS = (
    "horsepower",
    "torque_ftlbs",
    "mpg_city",
    "mpg_highway",
    "length_inches",
    "width_inches",
    "height_inches",
    "gawr_front_lbs",
    "gawr_rear_lbs",
    "towing_capacity_lbs",
)

EQUIPMENT_CRITICAL_FIELDS = (
    "length_inches",
    "width_inches",
    "height_inches",
    "weight_lbs",
)

EQUIPMENT_OPTIONAL_FIELDS = (
    "material",
    "door_configuration",
    "compartment_count",
)

CRITICAL_WEIGHT = 0.7
OPTIONAL_WEIGHT = 0.3

# Penalty applied when registry and fuel-economy data were merged
MULTI_SOURCE_CONSISTENCY = 0.9


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def field_population(
    record: BaseModel, critical: tuple[str, ...], optional: tuple[str, ...]
) -> float:
    """Weighted share of populated critical and optional fields."""
    critical_populated = sum(1 for f in critical if is_populated(getattr(record, f)))
    optional_populated = sum(1 for f in optional if is_populated(getattr(record, f)))
    return (critical_populated / len(critical)) * CRITICAL_WEIGHT + (
        optional_populated / len(optional)
    ) * OPTIONAL_WEIGHT


def score_vehicle(vehicle: Vehicle, config: VehicleConfig) -> QualityScore:
    source = DataSource.from_string(config.data_source)
    factors = QualityFactors(
        has_registry_decode=source.has_registry_decode,
        has_fuel_economy_data=source.has_fuel_economy_data,
        has_verification=vehicle.is_verified,
        field_population=field_population(
            config, VEHICLE_CRITICAL_FIELDS, VEHICLE_OPTIONAL_FIELDS
        ),
        data_source_reliability=source_reliability(source),
    )

    completeness = factors.field_population
    accuracy = (
        (0.4 if factors.has_registry_decode else 0.0)
        + (0.3 if factors.has_fuel_economy_data else 0.0)
        + (0.3 if factors.has_verification else 0.15)  # partial credit unverified
        + factors.data_source_reliability * 0.3
    )
    consistency = (
        MULTI_SOURCE_CONSISTENCY
        if factors.has_registry_decode and factors.has_fuel_economy_data
        else 1.0
    )

    overall = completeness * 0.3 + accuracy * 0.5 + consistency * 0.2
    return QualityScore(
        overall=_clamp(overall),
        completeness=completeness,
        accuracy=accuracy,
        consistency=consistency,
        factors=factors,
    )


def score_equipment(equipment: Equipment, config: EquipmentConfig) -> QualityScore:
    """Equipment has a single source, so consistency is fixed at 1.0."""
    source = DataSource.from_string(equipment.data_source)
    factors = QualityFactors(
        has_registry_decode=False,
        has_fuel_economy_data=False,
        has_verification=equipment.is_verified,
        field_population=field_population(
            config, EQUIPMENT_CRITICAL_FIELDS, EQUIPMENT_OPTIONAL_FIELDS
        ),
        data_source_reliability=source_reliability(source),
    )

    completeness = factors.field_population
    accuracy = (0.5 if factors.has_verification else 0.3) + (
        factors.data_source_reliability * 0.5
    )
    consistency = 1.0

    overall = completeness * 0.4 + accuracy * 0.6
    return QualityScore(
        overall=_clamp(overall),
        completeness=completeness,
        accuracy=accuracy,
        consistency=consistency,
        factors=factors,
    )


def vehicle_confidence(vehicle: Vehicle, config: VehicleConfig) -> float:
    return score_vehicle(vehicle, config).overall


def equipment_confidence(equipment: Equipment, config: EquipmentConfig) -> float:
    return score_equipment(equipment, config).overall
