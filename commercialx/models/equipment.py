from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from commercialx.core.enums import DataSource


class EquipmentConfigFields(BaseModel):
    """Body/upfit dimensions and mounting requirements."""

    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    length_inches: Optional[float] = None
    width_inches: Optional[float] = None
    height_inches: Optional[float] = None
    weight_lbs: Optional[float] = None

    material: Optional[str] = None
    door_configuration: Optional[str] = None
    compartment_count: Optional[int] = None
    has_interior_lighting: bool = False
    has_exterior_lighting: bool = False

    # Chassis requirements
    compatible_gvwr_min: Optional[float] = None
    compatible_gvwr_max: Optional[float] = None
    compatible_chassis_classes: Optional[list[str]] = None
    compatible_cab_types: Optional[list[str]] = None
    minimum_cab_to_axle_inches: Optional[float] = None
    minimum_wheelbase_inches: Optional[float] = None
    maximum_wheelbase_inches: Optional[float] = None

    # Share of equipment weight carried by each axle (0-1)
    front_axle_weight_distribution_percentage: Optional[float] = None
    rear_axle_weight_distribution_percentage: Optional[float] = None

    @field_validator("material", "door_configuration", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @property
    def has_weight_distribution(self) -> bool:
        return bool(self.front_axle_weight_distribution_percentage)


class EquipmentSpec(EquipmentConfigFields):
    """An incoming body/equipment description from a dealer."""

    manufacturer: Optional[str] = None
    product_line: Optional[str] = None
    equipment_type: Optional[str] = None
    data_source: DataSource = DataSource.DEALER_INPUT

    @field_validator("manufacturer", "product_line", "equipment_type", mode="before")
    @classmethod
    def strip_identity(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    def missing_identity_fields(self) -> list[str]:
        return [f for f in ("manufacturer", "equipment_type") if not getattr(self, f)]

    def config_fields(self) -> dict[str, Any]:
        """The subset of this spec stored on an equipment_config row."""
        return self.model_dump(
            mode="json", include=set(EquipmentConfigFields.model_fields)
        )


class Equipment(BaseModel):
    """Catalog equipment identity row (manufacturer, product line, type)."""

    model_config = ConfigDict(extra="ignore")

    id: int
    manufacturer: str
    product_line: Optional[str] = None
    equipment_type: str
    data_source: Optional[str] = None
    needs_verification: bool = True
    confidence_score: Optional[float] = None
    created_by_dealer_id: Optional[int] = None
    created_at: Optional[datetime] = None

    @property
    def is_verified(self) -> bool:
        return not self.needs_verification


class EquipmentConfig(EquipmentConfigFields):
    """A dimensional variant of a catalog equipment product."""

    id: int
    equipment_id: int
    created_at: Optional[datetime] = None
