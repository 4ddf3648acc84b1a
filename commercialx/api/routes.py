"""FastAPI route definitions for listing creation and vehicle data."""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel

from commercialx.api.deps import (
    get_calculator,
    get_enrichment_service,
    get_orchestrator,
)
from commercialx.models.compatibility import CompatibilityCalculation
from commercialx.models.enrichment import EnrichedVehicleSpec
from commercialx.models.equipment import EquipmentConfigFields
from commercialx.models.listing import CreateListingResult, ListingInput
from commercialx.models.vehicle import VehicleConfigFields, VehicleSpec
from commercialx.services.compatibility import CompatibilityCalculator
from commercialx.services.enrichment import VehicleEnrichmentService, to_vehicle_spec
from commercialx.services.listing import ListingOrchestrator

router = APIRouter()


# ---------------------------------------------------------------------------
# Request / Response Models
# ---------------------------------------------------------------------------


class CompatibilityRequest(BaseModel):
    vehicle: VehicleConfigFields
    equipment: Optional[EquipmentConfigFields] = None


class VinDecodeRequest(BaseModel):
    vin: str


class VinDecodeResponse(BaseModel):
    enriched: EnrichedVehicleSpec
    vehicle_spec: VehicleSpec


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/listings", response_model=CreateListingResult)
async def create_listing(
    listing: ListingInput,
    x_dealer_id: Annotated[int, Header()],
    orchestrator: Annotated[ListingOrchestrator, Depends(get_orchestrator)],
):
    """Resolve the chassis and body against the catalog and create a listing.

    Step failures are reported in the body (``success=false``); only an
    authorization denial is turned into an HTTP error.
    """
    result = await orchestrator.create_listing(listing, x_dealer_id)
    if not result.success and result.failed_step is None:
        raise HTTPException(status_code=403, detail="; ".join(result.errors))
    return result


@router.post("/compatibility", response_model=CompatibilityCalculation)
async def check_compatibility(
    request: CompatibilityRequest,
    calculator: Annotated[CompatibilityCalculator, Depends(get_calculator)],
):
    """Preview weight distribution and compliance without touching the catalog."""
    return calculator.calculate(request.vehicle, request.equipment)


@router.post("/vin/decode", response_model=VinDecodeResponse)
async def decode_vin(
    request: VinDecodeRequest,
    service: Annotated[VehicleEnrichmentService, Depends(get_enrichment_service)],
):
    enriched = await service.enrich(request.vin)
    return VinDecodeResponse(enriched=enriched, vehicle_spec=to_vehicle_spec(enriched))
