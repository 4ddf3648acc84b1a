"""Tests for the listing creation workflow."""

import asyncio

import pytest
from conftest import make_equipment_spec, make_vehicle_spec
from pydantic import ValidationError

from commercialx.core.enums import (
    CompatibilityStatus,
    ListingCondition,
    ListingStep,
)
from commercialx.core.exceptions import NotFoundError
from commercialx.models.listing import ListingInput
from commercialx.services.catalog import CatalogResolver
from commercialx.services.compatibility import CompatibilityCalculator
from commercialx.services.listing import ListingOrchestrator, StoreListingAuthorizer

DEALER_ID = 1


def _listing(**overrides) -> ListingInput:
    fields = {
        "vehicle": make_vehicle_spec(vin="1FTBR1C82MKA12345"),
        "equipment": make_equipment_spec(),
        "asking_price": 68500,
        "stock_number": "T-1042",
        "location_city": "Fresno",
        "location_state": "CA",
    }
    fields.update(overrides)
    return ListingInput(**fields)


def _orchestrator(store, **kwargs) -> ListingOrchestrator:
    return ListingOrchestrator(
        store, CatalogResolver(store), CompatibilityCalculator(), **kwargs
    )


class DenyAll:
    async def can_create_listings(self, dealer_id: int) -> bool:
        return False


class BrokenAuthorizer:
    async def can_create_listings(self, dealer_id: int) -> bool:
        raise RuntimeError("dealer lookup failed")


class TestCreateListing:
    def test_full_listing(self, store):
        result = asyncio.run(_orchestrator(store).create_listing(_listing(), DEALER_ID))

        assert result.success is True
        assert result.errors == []
        assert result.failed_step is None
        assert result.steps_completed == list(ListingStep)
        assert result.vehicle_created and result.equipment_created
        assert result.compatibility.status == CompatibilityStatus.COMPATIBLE

        listing = store.rows("vehicle_listing")[0]
        assert listing["id"] == result.listing_id
        assert listing["dealer_id"] == DEALER_ID
        assert listing["view_count"] == 0
        assert listing["status"] == "draft"
        assert listing["complete_configuration_id"] == result.complete_configuration_id

        complete = store.rows("complete_configuration")[0]
        assert complete["vin"] == "1FTBR1C82MKA12345"
        assert complete["total_combined_weight_lbs"] == 5200 + 2400
        assert complete["payload_capacity_remaining_lbs"] == 10360 - 7600
        assert complete["configuration_type"] == "stock_unit"

        record = store.rows("chassis_equipment_compatibility")[0]
        assert record["is_compatible"] is True
        assert record["is_verified"] is False
        assert record["compatibility_status"] == "compatible"

    def test_chassis_only_skips_equipment(self, store):
        result = asyncio.run(
            _orchestrator(store).create_listing(_listing(equipment=None), DEALER_ID)
        )
        assert result.success is True
        assert ListingStep.RESOLVE_EQUIPMENT not in result.steps_completed
        assert result.equipment_config_id is None
        assert store.rows("chassis_equipment_compatibility") == []
        assert store.rows("complete_configuration")[0]["equipment_config_id"] is None

    def test_second_listing_reuses_catalog(self, store):
        orchestrator = _orchestrator(store)

        async def _twice():
            first = await orchestrator.create_listing(_listing(), DEALER_ID)
            second = await orchestrator.create_listing(_listing(), DEALER_ID)
            return first, second

        first, second = asyncio.run(_twice())
        assert second.success is True
        assert second.vehicle_created is False
        assert second.equipment_created is False
        assert second.vehicle_config_id == first.vehicle_config_id
        assert len(store.rows("chassis_equipment_compatibility")) == 1
        assert len(store.rows("vehicle_listing")) == 2

    def test_not_compatible_stops_before_configuration(self, store):
        listing = _listing(equipment=make_equipment_spec(weight_lbs=6000))
        result = asyncio.run(_orchestrator(store).create_listing(listing, DEALER_ID))

        assert result.success is False
        assert result.failed_step == ListingStep.ENSURE_COMPATIBILITY_RECORD
        assert result.steps_completed == [
            ListingStep.RESOLVE_VEHICLE,
            ListingStep.RESOLVE_EQUIPMENT,
        ]
        assert result.compatibility.status == CompatibilityStatus.NOT_COMPATIBLE
        assert result.errors[0].startswith("Vehicle and equipment are not compatible")
        assert "exceeds GVWR" in result.errors[0]
        # The verdict itself is still recorded
        assert store.rows("chassis_equipment_compatibility")[0]["is_compatible"] is False
        assert store.rows("complete_configuration") == []
        assert store.rows("vehicle_listing") == []

    def test_store_failure_reports_step(self, store):
        store.fail_on[("insert", "complete_configuration")] = RuntimeError("connection reset")
        result = asyncio.run(_orchestrator(store).create_listing(_listing(), DEALER_ID))

        assert result.success is False
        assert result.failed_step == ListingStep.CREATE_COMPLETE_CONFIGURATION
        assert result.errors == ["create_complete_configuration failed: connection reset"]
        assert ListingStep.ENSURE_COMPATIBILITY_RECORD in result.steps_completed
        # Catalog rows are left in place
        assert len(store.rows("vehicle_config")) == 1

    def test_validation_failure_reports_message(self, store):
        listing = _listing(vehicle=make_vehicle_spec(model=None))
        result = asyncio.run(_orchestrator(store).create_listing(listing, DEALER_ID))

        assert result.failed_step == ListingStep.RESOLVE_VEHICLE
        assert result.steps_completed == []
        assert "model" in result.errors[0]
        assert store.calls == []

    def test_step_timeout(self, store):
        store.delays[("insert", "vehicle_listing")] = 0.5
        orchestrator = _orchestrator(store, step_timeout=0.05)
        result = asyncio.run(orchestrator.create_listing(_listing(), DEALER_ID))

        assert result.success is False
        assert result.failed_step == ListingStep.CREATE_LISTING_RECORD
        assert result.errors == ["create_listing_record timed out after 0.05s"]
        assert result.complete_configuration_id is not None


class TestAuthorization:
    def test_denied_before_any_write(self, store):
        result = asyncio.run(
            _orchestrator(store, authorizer=DenyAll()).create_listing(_listing(), DEALER_ID)
        )
        assert result.success is False
        assert result.failed_step is None
        assert result.steps_completed == []
        assert result.errors == ["Dealer is not authorized to create listings"]
        assert store.calls == []

    def test_authorizer_error_is_a_denial(self, store):
        orchestrator = _orchestrator(store, authorizer=BrokenAuthorizer())
        result = asyncio.run(orchestrator.create_listing(_listing(), DEALER_ID))
        assert result.success is False
        assert result.errors == ["Dealer is not authorized to create listings"]

    @pytest.mark.parametrize(
        "dealer,allowed",
        [
            ({"organization_id": 3, "role": "manager"}, True),
            ({"organization_id": 3, "role": "viewer"}, False),
            ({"organization_id": None, "role": "admin"}, False),
        ],
    )
    def test_store_authorizer(self, store, dealer, allowed):
        row = store.seed("dealer", **dealer)
        authorizer = StoreListingAuthorizer(store)
        assert asyncio.run(authorizer.can_create_listings(row["id"])) is allowed

    def test_unknown_dealer(self, store):
        authorizer = StoreListingAuthorizer(store)
        assert asyncio.run(authorizer.can_create_listings(404)) is False

    def test_authorized_dealer_creates_listing(self, store):
        dealer = store.seed("dealer", organization_id=3, role="sales")
        orchestrator = _orchestrator(store, authorizer=StoreListingAuthorizer(store))
        result = asyncio.run(orchestrator.create_listing(_listing(), dealer["id"]))
        assert result.success is True
        assert store.rows("vehicle")[0]["created_by_dealer_id"] == dealer["id"]


class TestEnsureCompatibilityRecord:
    def _configs(self, store):
        vehicle = store.seed("vehicle_config", vehicle_id=1, gvwr=10000, base_curb_weight_lbs=6000)
        equipment = store.seed("equipment_config", equipment_id=1, weight_lbs=3500)
        return vehicle["id"], equipment["id"]

    def test_existing_record_reused(self, store):
        vehicle_id, equipment_id = self._configs(store)
        orchestrator = _orchestrator(store)

        async def _twice():
            first = await orchestrator.ensure_compatibility_record(vehicle_id, equipment_id)
            second = await orchestrator.ensure_compatibility_record(vehicle_id, equipment_id)
            return first, second

        first, second = asyncio.run(_twice())
        assert first.record.id == second.record.id
        assert first.record.payload_remaining_lbs == 500
        assert len(store.rows("chassis_equipment_compatibility")) == 1

    def test_chassis_only_has_no_record(self, store):
        vehicle_id, _ = self._configs(store)
        check = asyncio.run(_orchestrator(store).ensure_compatibility_record(vehicle_id, None))
        assert check.record is None
        assert check.calculation.equipment_weight == 0

    def test_unknown_config(self, store):
        with pytest.raises(NotFoundError):
            asyncio.run(_orchestrator(store).ensure_compatibility_record(99, None))


class TestCompleteConfiguration:
    def test_payload_unknown_without_gvwr(self, store):
        vehicle = store.seed("vehicle_config", vehicle_id=1, base_curb_weight_lbs=6000)
        complete = asyncio.run(
            _orchestrator(store).create_complete_configuration(vehicle["id"], None)
        )
        assert complete.payload_capacity_remaining_lbs is None
        assert complete.total_combined_weight_lbs == 6000


class TestListingInput:
    def test_used_requires_mileage(self):
        with pytest.raises(ValidationError, match="Mileage is required"):
            _listing(condition=ListingCondition.USED)

    def test_used_with_mileage(self):
        listing = _listing(condition=ListingCondition.USED, mileage=42000)
        assert listing.mileage == 42000

    def test_price_must_be_positive(self):
        with pytest.raises(ValidationError):
            _listing(asking_price=0)
