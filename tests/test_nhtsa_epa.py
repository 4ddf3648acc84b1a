"""Tests for the NHTSA and EPA upstream clients (httpx.MockTransport)."""

import asyncio

import httpx
import pytest

from commercialx.core.exceptions import UpstreamUnavailable, ValidationFailure
from commercialx.services.epa import EPAClient, parse_vehicle_record
from commercialx.services.nhtsa import (
    NHTSAClient,
    gvwr_class_upper_bound,
    parse_decode_results,
    validate_vin,
)

VIN = "1FTBR1C82MKA12345"

TRANSIT_RESULTS = {
    "VIN": VIN,
    "ModelYear": "2023",
    "Make": "FORD",
    "Model": "Transit",
    "Series": "T-350 HD",
    "BodyClass": "Incomplete - Cutaway",
    "BodyCabType": "",
    "GVWR": "Class 3: 10,001 - 14,000 lb (4,536 - 6,350 kg)",
    "CurbWeightLB": "5200",
    "WheelBaseShort": "156",
    "EngineModel": "3.5L PFDi V6",
    "EngineCylinders": "6",
    "DisplacementL": "3.5",
    "FuelTypePrimary": "Gasoline",
    "TransmissionStyle": "Automatic",
    "DriveType": "RWD/Rear-Wheel Drive",
    "RearAxle": "Dual Rear Wheels",
    "Seats": "Not Applicable",
    "ErrorCode": "0",
    "ErrorText": "0 - VIN decoded clean.",
}


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# VIN validation & parsing
# ---------------------------------------------------------------------------


class TestValidateVin:
    def test_normalizes_case_and_whitespace(self):
        assert validate_vin(" 1ftbr1c82mka12345 ") == VIN

    def test_wrong_length(self):
        with pytest.raises(ValidationFailure) as exc:
            validate_vin("1FTBR1C82")
        assert exc.value.fields == ["vin"]

    @pytest.mark.parametrize("letter", ["I", "O", "Q"])
    def test_rejects_ambiguous_letters(self, letter):
        with pytest.raises(ValidationFailure):
            validate_vin(VIN[:-1] + letter)

    def test_none(self):
        with pytest.raises(ValidationFailure):
            validate_vin(None)


class TestParseDecodeResults:
    def test_gvwr_from_class_string(self):
        assert gvwr_class_upper_bound(TRANSIT_RESULTS["GVWR"]) == 14000
        decode = parse_decode_results(TRANSIT_RESULTS)
        assert decode.gvwr == 14000
        assert decode.gvwr_range.startswith("Class 3")

    def test_numeric_gvwr_takes_first_number_of_range(self):
        decode = parse_decode_results({**TRANSIT_RESULTS, "GVWR": "6001 - 7000"})
        assert decode.gvwr == 6001

    def test_payload_derived_from_gvwr_and_curb(self):
        decode = parse_decode_results(TRANSIT_RESULTS)
        assert decode.payload_capacity == 14000 - 5200

    def test_not_applicable_becomes_none(self):
        decode = parse_decode_results(TRANSIT_RESULTS)
        assert decode.seating_capacity is None
        assert decode.cab_type is None

    def test_case_insensitive_and_alternate_keys(self):
        decode = parse_decode_results(
            {"modelyear": "2022", "Make": "RAM", "Model": "ProMaster", "Body_Class": "Van"}
        )
        assert decode.year == 2022
        assert decode.body_class == "Van"

    def test_wheelbase_with_units(self):
        decode = parse_decode_results({**TRANSIT_RESULTS, "WheelBaseShort": "156.0 in"})
        assert decode.wheelbase == 156.0


# ---------------------------------------------------------------------------
# NHTSA client
# ---------------------------------------------------------------------------


class TestNHTSAClient:
    def _decode(self, handler, vin: str = VIN):
        async def _run():
            client = NHTSAClient(client=_client(handler))
            try:
                return await client.decode_vin(vin)
            finally:
                await client.close()

        return asyncio.run(_run())

    def test_decodes_vin(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"Count": 1, "Results": [TRANSIT_RESULTS]})

        decode = self._decode(handler)
        assert decode.year == 2023
        assert decode.make == "FORD"
        assert decode.vin == VIN
        assert seen[0].url.path == f"/api/vehicles/DecodeVinValues/{VIN}"
        assert seen[0].url.params["format"] == "json"

    def test_invalid_vin_makes_no_request(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("should not be called")

        with pytest.raises(ValidationFailure):
            self._decode(handler, vin="TOO-SHORT")

    def test_not_found(self):
        with pytest.raises(UpstreamUnavailable, match="not found"):
            self._decode(lambda request: httpx.Response(404))

    def test_rate_limited(self):
        with pytest.raises(UpstreamUnavailable, match="Too many requests"):
            self._decode(lambda request: httpx.Response(429))

    def test_server_error(self):
        with pytest.raises(UpstreamUnavailable, match="service error \\(503\\)"):
            self._decode(lambda request: httpx.Response(503))

    def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(UpstreamUnavailable, match="timed out") as exc:
            self._decode(handler)
        assert exc.value.service == "nhtsa"

    def test_empty_results(self):
        with pytest.raises(UpstreamUnavailable, match="No data returned"):
            self._decode(lambda request: httpx.Response(200, json={"Results": []}))

    def test_fatal_error_code(self):
        results = {**TRANSIT_RESULTS, "ErrorCode": "11", "ErrorText": "Incorrect Model Year"}
        with pytest.raises(UpstreamUnavailable, match="Incorrect Model Year"):
            self._decode(lambda request: httpx.Response(200, json={"Results": [results]}))

    def test_non_fatal_error_code_still_decodes(self):
        results = {**TRANSIT_RESULTS, "ErrorCode": "6", "ErrorText": "Incomplete VIN"}
        decode = self._decode(
            lambda request: httpx.Response(200, json={"Results": [results]})
        )
        assert decode.model == "Transit"


# ---------------------------------------------------------------------------
# EPA client
# ---------------------------------------------------------------------------

EPA_RECORD = {
    "id": 45123,
    "city08": 15,
    "highway08": 18,
    "comb08": 16,
    "fuelType": "Regular Gasoline",
    "trany": "Automatic (S10)",
    "drive": "Rear-Wheel Drive",
    "cylinders": 6,
    "displ": 3.5,
    "co2TailpipeGpm": "555.4",
    "fuelCostA08": 0,
    "fuelCost08": 3450,
    "rangeElectric": 0,
}


def _epa_handler(menu: dict | None, record: dict | None = EPA_RECORD):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/vehicle/menu/options"):
            return httpx.Response(200, json=menu) if menu is not None else httpx.Response(404)
        if request.url.path.endswith("/vehicle/45123"):
            return httpx.Response(200, json=record) if record else httpx.Response(404)
        return httpx.Response(404)

    return handler


def _epa_lookup(handler):
    async def _run():
        client = EPAClient(client=_client(handler))
        try:
            return await client.get_for_vehicle(2023, "Ford", "Transit")
        finally:
            await client.close()

    return asyncio.run(_run())


class TestEPAClient:
    def test_single_option_object(self):
        data = _epa_lookup(_epa_handler({"menuItem": {"text": "Auto 10-spd", "value": "45123"}}))
        assert data is not None
        assert data.epa_id == 45123
        assert data.mpg_city == 15
        assert data.transmission_description == "Automatic (S10)"

    def test_first_option_wins(self):
        menu = {
            "menuItem": [
                {"text": "Auto 10-spd, 6 cyl", "value": "45123"},
                {"text": "Auto 10-spd, 8 cyl", "value": "45999"},
            ]
        }
        data = _epa_lookup(_epa_handler(menu))
        assert data.epa_id == 45123

    def test_not_found_is_none(self):
        assert _epa_lookup(_epa_handler(None)) is None
        assert _epa_lookup(_epa_handler({"menuItem": []})) is None

    def test_server_error_raises(self):
        with pytest.raises(UpstreamUnavailable):
            _epa_lookup(lambda request: httpx.Response(500))

    def test_zero_values_are_absent(self):
        data = parse_vehicle_record(EPA_RECORD)
        assert data.electric_range is None
        assert data.annual_fuel_cost == 3450
        assert data.co2_emissions == pytest.approx(555.4)

    def test_menu_options_list_is_rejected(self):
        with pytest.raises(UpstreamUnavailable, match="Unexpected menu options payload"):
            _epa_lookup(_epa_handler([{"text": "Auto", "value": "45123"}]))

    def test_menu_items_must_be_objects(self):
        with pytest.raises(UpstreamUnavailable, match="Unexpected menu options payload"):
            _epa_lookup(_epa_handler({"menuItem": ["45123"]}))
