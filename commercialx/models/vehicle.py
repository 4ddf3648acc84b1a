from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from commercialx.core.enums import DataSource


class VehicleConfigFields(BaseModel):
    """Trim/spec-level fields shared by incoming specs and catalog configs."""

    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    body_style: Optional[str] = None
    cab_type: Optional[str] = None
    wheelbase_inches: Optional[float] = None
    gvwr: Optional[float] = None
    payload_capacity: Optional[float] = None
    engine: Optional[str] = None
    transmission: Optional[str] = None
    drive_type: Optional[str] = None
    fuel_type: Optional[str] = None
    seating_capacity: Optional[int] = None

    # Weights (lbs)
    base_curb_weight_lbs: Optional[float] = None
    gawr_front_lbs: Optional[float] = None
    gawr_rear_lbs: Optional[float] = None
    towing_capacity_lbs: Optional[float] = None

    # Dimensions (inches)
    length_inches: Optional[float] = None
    width_inches: Optional[float] = None
    height_inches: Optional[float] = None

    # Powertrain / economy
    horsepower: Optional[float] = None
    torque_ftlbs: Optional[float] = None
    mpg_city: Optional[float] = None
    mpg_highway: Optional[float] = None
    mpge: Optional[float] = None
    battery_voltage: Optional[float] = None

    # Axle & wheels
    axle_description: Optional[str] = None
    rear_wheels: Optional[str] = None  # "SRW" or "DRW"

    @field_validator(
        "body_style",
        "cab_type",
        "engine",
        "transmission",
        "drive_type",
        "fuel_type",
        "axle_description",
        "rear_wheels",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value


class VehicleSpec(VehicleConfigFields):
    """An incoming vehicle description from a dealer or the enrichment merger."""

    year: Optional[int] = None
    make: Optional[str] = None
    model: Optional[str] = None
    series: Optional[str] = None
    vin: Optional[str] = None
    data_source: DataSource = DataSource.DEALER_INPUT

    @field_validator("make", "model", "series", "vin", mode="before")
    @classmethod
    def strip_identity(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    def missing_identity_fields(self) -> list[str]:
        return [f for f in ("year", "make", "model") if not getattr(self, f)]

    def config_fields(self) -> dict[str, Any]:
        """The subset of this spec stored on a vehicle_config row."""
        return self.model_dump(
            mode="json", include=set(VehicleConfigFields.model_fields)
        )


class Vehicle(BaseModel):
    """Catalog vehicle identity row (year, make, model[, series])."""

    model_config = ConfigDict(extra="ignore", protected_namespaces=())

    id: int
    year: int
    make_name: str
    model_name: str
    series: Optional[str] = None
    data_source: Optional[str] = None
    needs_verification: bool = True
    confidence_score: Optional[float] = None
    created_by_dealer_id: Optional[int] = None
    created_at: Optional[datetime] = None

    @property
    def is_verified(self) -> bool:
        return not self.needs_verification


class VehicleConfig(VehicleConfigFields):
    """A trim/spec variant of a catalog vehicle."""

    id: int
    vehicle_id: int
    data_source: Optional[str] = None
    enrichment_metadata: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None
