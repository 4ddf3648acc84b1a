"""Listing creation: catalog resolution through to the dealer listing row.

Steps run strictly in order and each is bounded by ``step_timeout``:

    resolve_vehicle -> resolve_equipment (if a body is listed)
    -> ensure_compatibility_record -> create_complete_configuration
    -> create_listing_record

A failing step stops the sequence. Nothing already written is rolled back;
catalog rows left behind are found again by the next attempt.
"""

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from commercialx.core.enums import CompatibilityStatus, ConfigurationType, ListingStep
from commercialx.core.exceptions import CatalogError
from commercialx.core.logging import log_error
from commercialx.models.compatibility import (
    ChassisEquipmentCompatibility,
    CompatibilityCalculation,
    CompleteConfiguration,
)
from commercialx.models.equipment import EquipmentConfig
from commercialx.models.listing import CreateListingResult, ListingInput
from commercialx.models.vehicle import VehicleConfig
from commercialx.services.catalog import CatalogResolver
from commercialx.services.catalog_store import (
    COMPATIBILITY,
    COMPLETE_CONFIGURATION,
    DEALER,
    EQUIPMENT_CONFIG,
    VEHICLE_CONFIG,
    VEHICLE_LISTING,
    CatalogStore,
    fetch_by_id,
)
from commercialx.services.compatibility import CompatibilityCalculator

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ListingAuthorizer(Protocol):
    async def can_create_listings(self, dealer_id: int) -> bool: ...


class StoreListingAuthorizer:
    """Dealer must exist, belong to an organization and not be a viewer."""

    def __init__(self, store: CatalogStore) -> None:
        self.store = store

    async def can_create_listings(self, dealer_id: int) -> bool:
        rows = await self.store.select(DEALER, {"id": dealer_id}, limit=1)
        if not rows:
            return False
        dealer = rows[0]
        return bool(dealer.get("organization_id")) and dealer.get("role") != "viewer"


@dataclass
class CompatibilityCheck:
    calculation: CompatibilityCalculation
    # None for chassis-only listings
    record: ChassisEquipmentCompatibility | None = None


class ListingStepFailed(Exception):
    def __init__(self, step: ListingStep, message: str) -> None:
        self.step = step
        super().__init__(message)


class ListingOrchestrator:
    """Sequences catalog resolution, compatibility and listing inserts."""

    def __init__(
        self,
        store: CatalogStore,
        resolver: CatalogResolver,
        calculator: CompatibilityCalculator,
        authorizer: ListingAuthorizer | None = None,
        step_timeout: float | None = 30.0,
    ) -> None:
        self.store = store
        self.resolver = resolver
        self.calculator = calculator
        self.authorizer = authorizer
        self.step_timeout = step_timeout

    async def _run_step(self, step: ListingStep, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.step_timeout)
        except asyncio.TimeoutError as e:
            raise ListingStepFailed(
                step, f"{step.value} timed out after {self.step_timeout}s"
            ) from e
        except CatalogError as e:
            raise ListingStepFailed(step, str(e)) from e
        except Exception as e:
            log_error("Listing step failed", e, step=step.value)
            raise ListingStepFailed(step, f"{step.value} failed: {e}") from e

    async def create_listing(
        self, listing: ListingInput, dealer_id: int
    ) -> CreateListingResult:
        """Run the full listing workflow for one dealer submission.

        Never raises for step failures: the result records which steps
        completed, the failed step and the error message.
        """
        result = CreateListingResult(success=False)

        if self.authorizer is not None:
            try:
                allowed = await self.authorizer.can_create_listings(dealer_id)
            except Exception as e:
                log_error("Authorization check failed", e, dealer_id=dealer_id)
                allowed = False
            if not allowed:
                logger.warning("Dealer %s may not create listings", dealer_id)
                result.errors.append("Dealer is not authorized to create listings")
                return result

        try:
            vehicle = await self._run_step(
                ListingStep.RESOLVE_VEHICLE,
                self.resolver.find_or_create_vehicle(listing.vehicle, dealer_id),
            )
            result.vehicle_config_id = vehicle.config_id
            result.vehicle_created = vehicle.created
            result.steps_completed.append(ListingStep.RESOLVE_VEHICLE)

            if listing.equipment is not None:
                equipment = await self._run_step(
                    ListingStep.RESOLVE_EQUIPMENT,
                    self.resolver.find_or_create_equipment(listing.equipment, dealer_id),
                )
                result.equipment_config_id = equipment.config_id
                result.equipment_created = equipment.created
                result.steps_completed.append(ListingStep.RESOLVE_EQUIPMENT)

            check = await self._run_step(
                ListingStep.ENSURE_COMPATIBILITY_RECORD,
                self.ensure_compatibility_record(
                    result.vehicle_config_id, result.equipment_config_id
                ),
            )
            result.compatibility = check.calculation
            if check.calculation.status == CompatibilityStatus.NOT_COMPATIBLE:
                raise ListingStepFailed(
                    ListingStep.ENSURE_COMPATIBILITY_RECORD,
                    "Vehicle and equipment are not compatible: "
                    + "; ".join(check.calculation.warnings),
                )
            result.steps_completed.append(ListingStep.ENSURE_COMPATIBILITY_RECORD)

            complete = await self._run_step(
                ListingStep.CREATE_COMPLETE_CONFIGURATION,
                self.create_complete_configuration(
                    result.vehicle_config_id,
                    result.equipment_config_id,
                    dealer_id=dealer_id,
                    vin=listing.vehicle.vin,
                    configuration_type=listing.configuration_type,
                    asking_price=listing.asking_price,
                ),
            )
            result.complete_configuration_id = complete.id
            result.steps_completed.append(ListingStep.CREATE_COMPLETE_CONFIGURATION)

            result.listing_id = await self._run_step(
                ListingStep.CREATE_LISTING_RECORD,
                self.create_listing_record(complete.id, listing, dealer_id),
            )
            result.steps_completed.append(ListingStep.CREATE_LISTING_RECORD)
        except ListingStepFailed as e:
            logger.warning(
                "Listing creation for dealer %s failed at %s: %s",
                dealer_id,
                e.step.value,
                e,
            )
            result.failed_step = e.step
            result.errors.append(str(e))
            return result

        result.success = True
        logger.info(
            "Created listing %s for dealer %s (vehicle config %s, equipment config %s)",
            result.listing_id,
            dealer_id,
            result.vehicle_config_id,
            result.equipment_config_id,
        )
        return result

    async def _load_configs(
        self, vehicle_config_id: int, equipment_config_id: int | None
    ) -> tuple[VehicleConfig, EquipmentConfig | None]:
        vehicle = VehicleConfig(
            **await fetch_by_id(self.store, VEHICLE_CONFIG, vehicle_config_id)
        )
        equipment = None
        if equipment_config_id is not None:
            equipment = EquipmentConfig(
                **await fetch_by_id(self.store, EQUIPMENT_CONFIG, equipment_config_id)
            )
        return vehicle, equipment

    async def ensure_compatibility_record(
        self, vehicle_config_id: int, equipment_config_id: int | None
    ) -> CompatibilityCheck:
        """Compute the pairing's compatibility and persist it once.

        An existing record for the pair is reused. Chassis-only listings get
        a calculation but no record. Raises NotFoundError for unknown configs.
        """
        vehicle, equipment = await self._load_configs(
            vehicle_config_id, equipment_config_id
        )
        calculation = self.calculator.calculate(vehicle, equipment)
        if equipment_config_id is None:
            return CompatibilityCheck(calculation)

        existing = await self.store.select(
            COMPATIBILITY,
            {
                "vehicle_config_id": vehicle_config_id,
                "equipment_config_id": equipment_config_id,
            },
            limit=1,
        )
        if existing:
            return CompatibilityCheck(
                calculation, ChassisEquipmentCompatibility(**existing[0])
            )

        row = await self.store.insert(
            COMPATIBILITY,
            {
                "vehicle_config_id": vehicle_config_id,
                "equipment_config_id": equipment_config_id,
                "is_compatible": calculation.is_compatible,
                "compatibility_status": calculation.status.value,
                "compatibility_confidence": calculation.confidence.value,
                "payload_remaining_lbs": calculation.payload_remaining,
                "gvwr_compliant": calculation.gvwr_compliant,
                "gawr_compliant": calculation.gawr_compliant,
                "compatibility_notes": "; ".join(calculation.warnings) or None,
                "is_verified": False,
            },
        )
        logger.info(
            "Recorded compatibility %s for vehicle config %s + equipment config %s: %s",
            row["id"],
            vehicle_config_id,
            equipment_config_id,
            calculation.status.value,
        )
        return CompatibilityCheck(calculation, ChassisEquipmentCompatibility(**row))

    async def create_complete_configuration(
        self,
        vehicle_config_id: int,
        equipment_config_id: int | None,
        dealer_id: int | None = None,
        vin: str | None = None,
        configuration_type: ConfigurationType = ConfigurationType.STOCK_UNIT,
        asking_price: float | None = None,
    ) -> CompleteConfiguration:
        vehicle, equipment = await self._load_configs(
            vehicle_config_id, equipment_config_id
        )
        calculation = self.calculator.calculate(vehicle, equipment)

        row = await self.store.insert(
            COMPLETE_CONFIGURATION,
            {
                "vehicle_config_id": vehicle_config_id,
                "equipment_config_id": equipment_config_id,
                "vin": vin,
                "configuration_type": configuration_type.value,
                "total_combined_weight_lbs": calculation.total_combined_weight,
                # Unknown rather than zero when there is no GVWR to measure against
                "payload_capacity_remaining_lbs": (
                    calculation.payload_remaining if vehicle.gvwr else None
                ),
                "gvwr_compliant": calculation.gvwr_compliant,
                "front_gawr_compliant": calculation.gawr_front_compliant,
                "rear_gawr_compliant": calculation.gawr_rear_compliant,
                "asking_price": asking_price,
                "created_by_dealer_id": dealer_id,
            },
        )
        return CompleteConfiguration(**row)

    async def create_listing_record(
        self, complete_configuration_id: int, listing: ListingInput, dealer_id: int
    ) -> int:
        row: dict[str, Any] = {
            "dealer_id": dealer_id,
            "complete_configuration_id": complete_configuration_id,
            "asking_price": listing.asking_price,
            "condition": listing.condition.value,
            "mileage": listing.mileage,
            "stock_number": listing.stock_number,
            "location_city": listing.location_city,
            "location_state": listing.location_state,
            "description": listing.description,
            "status": listing.status.value,
            "view_count": 0,
        }
        created = await self.store.insert(VEHICLE_LISTING, row)
        return created["id"]
