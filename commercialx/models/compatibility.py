from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from commercialx.core.enums import CompatibilityConfidence, CompatibilityStatus


class CompatibilityCalculation(BaseModel):
    """Weight distribution, compliance and fit verdict for a chassis + body."""

    # Weight distribution (lbs)
    chassis_base_weight: float
    equipment_weight: float
    total_combined_weight: float
    front_axle_weight: float
    rear_axle_weight: float

    # Compliance
    gvwr_compliant: bool
    gawr_front_compliant: bool
    gawr_rear_compliant: bool
    payload_remaining: float

    # Physical fit
    cab_to_axle_compatible: bool
    wheelbase_compatible: bool

    status: CompatibilityStatus
    confidence: CompatibilityConfidence
    warnings: list[str] = Field(default_factory=list)

    @property
    def gawr_compliant(self) -> bool:
        return self.gawr_front_compliant and self.gawr_rear_compliant

    @property
    def is_compatible(self) -> bool:
        return self.status == CompatibilityStatus.COMPATIBLE


class QualityFactors(BaseModel):
    has_registry_decode: bool
    has_fuel_economy_data: bool
    has_verification: bool
    field_population: float
    data_source_reliability: float


class QualityScore(BaseModel):
    """Confidence in a catalog entry (0-1) with its sub-scores."""

    overall: float
    completeness: float
    accuracy: float
    consistency: float
    factors: QualityFactors


class ChassisEquipmentCompatibility(BaseModel):
    """Persisted compatibility record for a (vehicle_config, equipment_config) pair."""

    model_config = ConfigDict(extra="ignore")

    id: int
    vehicle_config_id: int
    equipment_config_id: int
    is_compatible: bool
    compatibility_status: str
    compatibility_confidence: Optional[str] = None
    payload_remaining_lbs: Optional[float] = None
    gvwr_compliant: bool = True
    gawr_compliant: bool = True
    compatibility_notes: Optional[str] = None
    is_verified: bool = False
    created_at: Optional[datetime] = None


class CompleteConfiguration(BaseModel):
    """A chassis + body unit ready to be listed."""

    model_config = ConfigDict(extra="ignore")

    id: int
    vehicle_config_id: int
    equipment_config_id: Optional[int] = None
    vin: Optional[str] = None
    configuration_type: str = "stock_unit"
    total_combined_weight_lbs: Optional[float] = None
    payload_capacity_remaining_lbs: Optional[float] = None
    gvwr_compliant: bool = True
    front_gawr_compliant: bool = True
    rear_gawr_compliant: bool = True
    asking_price: Optional[float] = None
    created_by_dealer_id: Optional[int] = None
    created_at: Optional[datetime] = None
