from typing import Optional

from pydantic import BaseModel, Field, model_validator

from commercialx.core.enums import (
    ConfigurationType,
    ListingCondition,
    ListingStatus,
    ListingStep,
)
from commercialx.models.compatibility import CompatibilityCalculation
from commercialx.models.equipment import EquipmentSpec
from commercialx.models.vehicle import VehicleSpec


class ListingInput(BaseModel):
    """Dealer-submitted chassis (+ optional body) and listing details."""

    vehicle: VehicleSpec
    equipment: Optional[EquipmentSpec] = None

    asking_price: float = Field(..., gt=0)
    condition: ListingCondition = ListingCondition.NEW
    mileage: Optional[int] = Field(default=None, ge=0)
    stock_number: Optional[str] = None
    location_city: Optional[str] = None
    location_state: Optional[str] = None
    description: Optional[str] = None
    status: ListingStatus = ListingStatus.DRAFT
    configuration_type: ConfigurationType = ConfigurationType.STOCK_UNIT

    @model_validator(mode="after")
    def mileage_required_when_used(self) -> "ListingInput":
        if (
            self.condition
            in (ListingCondition.USED, ListingCondition.CERTIFIED_PRE_OWNED)
            and self.mileage is None
        ):
            raise ValueError("Mileage is required for used vehicles")
        return self


class CreateListingResult(BaseModel):
    """Outcome of listing creation.

    ``steps_completed`` records progress even on failure so a caller can tell
    "nothing happened" apart from "catalog updated but listing not created".
    """

    success: bool
    listing_id: Optional[int] = None
    vehicle_config_id: Optional[int] = None
    equipment_config_id: Optional[int] = None
    complete_configuration_id: Optional[int] = None
    vehicle_created: bool = False
    equipment_created: bool = False
    compatibility: Optional[CompatibilityCalculation] = None
    steps_completed: list[ListingStep] = Field(default_factory=list)
    failed_step: Optional[ListingStep] = None
    errors: list[str] = Field(default_factory=list)
