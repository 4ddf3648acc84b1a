"""HTTP contract tests; services are swapped via dependency overrides."""

import httpx
import pytest
from conftest import InMemoryCatalogStore
from fastapi.testclient import TestClient

from commercialx.api.deps import get_enrichment_service, get_orchestrator
from commercialx.main import app
from commercialx.services.catalog import CatalogResolver
from commercialx.services.compatibility import CompatibilityCalculator
from commercialx.services.enrichment import VehicleEnrichmentService
from commercialx.services.listing import ListingOrchestrator
from commercialx.services.nhtsa import NHTSAClient

client = TestClient(app)

LISTING = {
    "vehicle": {
        "year": 2023,
        "make": "Ford",
        "model": "Transit",
        "wheelbase_inches": 148,
        "gvwr": 10360,
        "base_curb_weight_lbs": 5200,
    },
    "equipment": {
        "manufacturer": "Morgan",
        "equipment_type": "Box Truck",
        "length_inches": 144,
        "weight_lbs": 2400,
    },
    "asking_price": 68500,
}


class DenyAll:
    async def can_create_listings(self, dealer_id: int) -> bool:
        return False


@pytest.fixture
def override():
    def _override(dependency, factory):
        app.dependency_overrides[dependency] = factory

    yield _override
    app.dependency_overrides.clear()


def _orchestrator(authorizer=None) -> ListingOrchestrator:
    store = InMemoryCatalogStore()
    return ListingOrchestrator(
        store, CatalogResolver(store), CompatibilityCalculator(), authorizer=authorizer
    )


def _registry_only(handler) -> VehicleEnrichmentService:
    transport = httpx.MockTransport(handler)
    return VehicleEnrichmentService(
        registry=NHTSAClient(client=httpx.AsyncClient(transport=transport))
    )


def test_health_endpoint():
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "service": "commercialx-catalog"}


def test_compatibility_preview():
    resp = client.post(
        "/api/compatibility",
        json={
            "vehicle": {"base_curb_weight_lbs": 6000, "gvwr": 10000},
            "equipment": {"weight_lbs": 4500},
        },
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "not_compatible"
    assert data["total_combined_weight"] == 10500
    assert data["gvwr_compliant"] is False


def test_create_listing(override):
    orchestrator = _orchestrator()
    override(get_orchestrator, lambda: orchestrator)

    resp = client.post("/api/listings", json=LISTING, headers={"X-Dealer-Id": "7"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["listing_id"] == 1
    assert data["steps_completed"][-1] == "create_listing_record"


def test_listing_requires_dealer_header(override):
    override(get_orchestrator, _orchestrator)
    resp = client.post("/api/listings", json=LISTING)
    assert resp.status_code == 422


def test_listing_step_failure_is_reported_in_body(override):
    override(get_orchestrator, _orchestrator)
    body = {**LISTING, "equipment": {**LISTING["equipment"], "weight_lbs": 6000}}
    resp = client.post("/api/listings", json=body, headers={"X-Dealer-Id": "7"})
    assert resp.status_code == 200
    assert resp.json()["failed_step"] == "ensure_compatibility_record"


def test_unauthorized_dealer_is_forbidden(override):
    override(get_orchestrator, lambda: _orchestrator(DenyAll()))
    resp = client.post("/api/listings", json=LISTING, headers={"X-Dealer-Id": "7"})
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Dealer is not authorized to create listings"


def test_used_listing_without_mileage_rejected(override):
    override(get_orchestrator, _orchestrator)
    body = {**LISTING, "condition": "used"}
    resp = client.post("/api/listings", json=body, headers={"X-Dealer-Id": "7"})
    assert resp.status_code == 422


def test_invalid_vin(override):
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no upstream call expected")

    override(get_enrichment_service, lambda: _registry_only(handler))
    resp = client.post("/api/vin/decode", json={"vin": "NOT-A-VIN"})
    assert resp.status_code == 422
    assert resp.json()["fields"] == ["vin"]


def test_registry_outage_is_bad_gateway(override):
    override(get_enrichment_service, lambda: _registry_only(lambda r: httpx.Response(503)))
    resp = client.post("/api/vin/decode", json={"vin": "1FTBR1C82MKA12345"})
    assert resp.status_code == 502
    assert resp.json()["service"] == "nhtsa"


def test_vin_decode(override):
    results = {
        "VIN": "1FTBR1C82MKA12345",
        "ModelYear": "2023",
        "Make": "FORD",
        "Model": "Transit",
        "DriveType": "RWD/Rear-Wheel Drive",
        "ErrorCode": "0",
    }
    override(
        get_enrichment_service,
        lambda: _registry_only(lambda r: httpx.Response(200, json={"Results": [results]})),
    )
    resp = client.post("/api/vin/decode", json={"vin": "1FTBR1C82MKA12345"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["enriched"]["data_sources"] == ["nhtsa"]
    assert data["vehicle_spec"]["data_source"] == "vin_decode_nhtsa"
    assert data["vehicle_spec"]["drive_type"] == "RWD"


def test_non_finite_weight_is_unprocessable():
    resp = client.post(
        "/api/compatibility",
        json={"vehicle": {"base_curb_weight_lbs": "nan", "gvwr": 10000}},
    )
    assert resp.status_code == 422
