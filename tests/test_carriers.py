"""
Tests for carrier adapters and the carrier registry.
"""
import json
import httpx
import pytest

from storefront.core.exceptions import (
    CarrierAuthError,
    CarrierError,
    CarrierNotRegisteredError,
    CarrierResponseError,
    CarrierTimeoutError,
)
from storefront.modules.shipping.carriers import CarrierFactory
from storefront.modules.shipping.carriers.base import AddressInput
from storefront.modules.shipping.carriers.canada_post import CanadaPostCarrier
from storefront.modules.shipping.carriers.simulated import DEFAULT_SIMULATED_RATE, SimulatedCarrier
from storefront.modules.shipping.carriers.ups import UPSCarrier
from storefront.schemas.shipping_settings import CarrierConfig, DEFAULT_BOX_TIERS

MONTREAL = AddressInput(address="123 Main St", city="Montreal", postal_code="H2X 1Y1", country="CA", province="QC")
TORONTO = AddressInput(address="500 King St W", city="Toronto", postal_code="M5V 1L9", country="ca", province="ON")
MEDIUM = DEFAULT_BOX_TIERS[1]


def _attach_transport(carrier, handler):
    carrier._http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return carrier


class TestCarrierFactory:

    def test_registered_adapters(self):
        assert CarrierFactory.get_registered_adapters() == ["canada_post", "simulated", "ups"]

    def test_create_by_adapter_key(self):
        assert isinstance(CarrierFactory.create(CarrierConfig(name="UPS", adapter="ups")), UPSCarrier)
        assert isinstance(CarrierFactory.create(CarrierConfig(name="X", adapter="Simulated")), SimulatedCarrier)
        assert isinstance(
            CarrierFactory.create(CarrierConfig(name="CP", adapter="canada_post")), CanadaPostCarrier
        )

    def test_unknown_adapter(self):
        with pytest.raises(CarrierNotRegisteredError) as exc_info:
            CarrierFactory.create(CarrierConfig(name="Pigeon", adapter="pigeon"))
        assert exc_info.value.carrier == "Pigeon"


class TestSimulatedCarrier:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name,amount", [
        ("Canada Post", 12.99),
        ("UPS", 18.99),
        ("Purolator", 15.99),
        ("FedEx", 22.99),
        ("Somebody Else", DEFAULT_SIMULATED_RATE),
    ])
    async def test_base_rates(self, name, amount):
        carrier = SimulatedCarrier(CarrierConfig(name=name), latency_seconds=0)

        rate = await carrier.get_rate(MONTREAL, TORONTO, MEDIUM, 0.6)

        assert rate.amount == amount
        assert rate.weight_adjusted is False

    @pytest.mark.asyncio
    async def test_connection_needs_nothing(self):
        carrier = SimulatedCarrier(CarrierConfig(name="UPS"), latency_seconds=0)
        assert "simulated" in await carrier.test_connection()


class TestCanadaPostCarrier:

    def _carrier(self, credentials=None, account_number="0001234567"):
        if credentials is None:
            credentials = {"api_key": "key", "api_secret": "secret"}
        return CanadaPostCarrier(CarrierConfig(
            name="Canada Post",
            adapter="canada_post",
            credentials=credentials,
            account_number=account_number,
        ))

    @pytest.mark.asyncio
    async def test_successful_rate(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"price": "14.25", "currency": "CAD", "serviceName": "Regular Parcel"})

        carrier = _attach_transport(self._carrier(), handler)
        rate = await carrier.get_rate(MONTREAL, TORONTO, MEDIUM, 0.6)
        await carrier.close()

        assert rate.amount == 14.25
        assert rate.weight_adjusted is True
        assert rate.service_name == "Regular Parcel"
        assert seen["auth"].startswith("Basic ")
        assert seen["body"]["originPostalCode"] == "H2X1Y1"
        assert seen["body"]["destination"] == {"postalCode": "M5V1L9", "countryCode": "CA"}
        assert seen["body"]["customerNumber"] == "0001234567"

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        carrier = self._carrier(credentials={"api_key": "key"})

        with pytest.raises(CarrierAuthError) as exc_info:
            await carrier.get_rate(MONTREAL, TORONTO, MEDIUM, 0.6)

        assert "api_secret" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_rejected_credentials(self):
        carrier = _attach_transport(self._carrier(), lambda request: httpx.Response(401))

        with pytest.raises(CarrierAuthError):
            await carrier.get_rate(MONTREAL, TORONTO, MEDIUM, 0.6)

    @pytest.mark.asyncio
    async def test_server_error(self):
        carrier = _attach_transport(self._carrier(), lambda request: httpx.Response(503, text="down"))

        with pytest.raises(CarrierResponseError) as exc_info:
            await carrier.get_rate(MONTREAL, TORONTO, MEDIUM, 0.6)

        assert exc_info.value.details["status"] == 503

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"cost": 10}, {"price": "free"}, {"price": -5}, {"price": "nan"}])
    async def test_malformed_body(self, body):
        carrier = _attach_transport(self._carrier(), lambda request: httpx.Response(200, json=body))

        with pytest.raises(CarrierResponseError):
            await carrier.get_rate(MONTREAL, TORONTO, MEDIUM, 0.6)

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        carrier = _attach_transport(self._carrier(), handler)

        with pytest.raises(CarrierTimeoutError):
            await carrier.get_rate(MONTREAL, TORONTO, MEDIUM, 0.6)

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        carrier = _attach_transport(self._carrier(), handler)

        with pytest.raises(CarrierError) as exc_info:
            await carrier.get_rate(MONTREAL, TORONTO, MEDIUM, 0.6)

        assert exc_info.value.code == "NETWORK_ERROR"


class TestUPSCarrier:

    def _carrier(self, credentials=None):
        if credentials is None:
            credentials = {"client_id": "cid", "client_secret": "csecret"}
        return UPSCarrier(CarrierConfig(
            name="UPS",
            adapter="ups",
            credentials=credentials,
            account_number="A1B2C3",
        ))

    @staticmethod
    def _handler(calls, rate_status=200, rate_body=None, token_status=200):
        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            if request.url.path.endswith("/oauth/token"):
                if token_status != 200:
                    return httpx.Response(token_status, text="nope")
                return httpx.Response(200, json={"access_token": "tok", "expires_in": "3600"})
            assert request.headers["Authorization"] == "Bearer tok"
            return httpx.Response(rate_status, json=rate_body)
        return handler

    @pytest.mark.asyncio
    async def test_successful_rate(self):
        calls = []
        body = {
            "RateResponse": {
                "RatedShipment": {"TotalCharges": {"CurrencyCode": "CAD", "MonetaryValue": "21.40"}},
            },
        }
        carrier = _attach_transport(self._carrier(), self._handler(calls, rate_body=body))

        rate = await carrier.get_rate(MONTREAL, TORONTO, MEDIUM, 0.6)

        assert rate.amount == 21.40
        assert rate.currency == "CAD"
        assert rate.weight_adjusted is True
        assert calls == ["/security/v1/oauth/token", "/api/rating/v2403/Rate"]

    @pytest.mark.asyncio
    async def test_token_reused(self):
        calls = []
        body = {"RateResponse": {"RatedShipment": [{"TotalCharges": {"MonetaryValue": "10.00"}}]}}
        carrier = _attach_transport(self._carrier(), self._handler(calls, rate_body=body))

        await carrier.get_rate(MONTREAL, TORONTO, MEDIUM, 0.6)
        await carrier.get_rate(MONTREAL, TORONTO, MEDIUM, 0.6)

        assert calls.count("/security/v1/oauth/token") == 1

    @pytest.mark.asyncio
    async def test_auth_failure(self):
        calls = []
        carrier = _attach_transport(self._carrier(), self._handler(calls, token_status=401))

        with pytest.raises(CarrierAuthError):
            await carrier.get_rate(MONTREAL, TORONTO, MEDIUM, 0.6)

    @pytest.mark.asyncio
    async def test_rejected_token_cleared(self):
        calls = []
        carrier = _attach_transport(self._carrier(), self._handler(calls, rate_status=401, rate_body={}))

        with pytest.raises(CarrierAuthError):
            await carrier.get_rate(MONTREAL, TORONTO, MEDIUM, 0.6)

        assert carrier._access_token is None

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        carrier = self._carrier(credentials={})

        with pytest.raises(CarrierAuthError):
            await carrier.get_rate(MONTREAL, TORONTO, MEDIUM, 0.6)

    @pytest.mark.asyncio
    async def test_api_error_message(self):
        calls = []
        body = {"response": {"errors": [{"code": "111", "message": "Bad postal code"}]}}
        carrier = _attach_transport(self._carrier(), self._handler(calls, rate_status=400, rate_body=body))

        with pytest.raises(CarrierResponseError) as exc_info:
            await carrier.get_rate(MONTREAL, TORONTO, MEDIUM, 0.6)

        assert exc_info.value.message == "Bad postal code"

    @pytest.mark.asyncio
    async def test_api_error_with_list_body(self):
        calls = []
        carrier = _attach_transport(self._carrier(), self._handler(calls, rate_status=500, rate_body=["oops"]))

        with pytest.raises(CarrierResponseError) as exc_info:
            await carrier.get_rate(MONTREAL, TORONTO, MEDIUM, 0.6)

        assert exc_info.value.message == "UPS API error"

    @pytest.mark.asyncio
    async def test_malformed_rate_response(self):
        calls = []
        carrier = _attach_transport(self._carrier(), self._handler(calls, rate_body={"RateResponse": {}}))

        with pytest.raises(CarrierResponseError):
            await carrier.get_rate(MONTREAL, TORONTO, MEDIUM, 0.6)

    @pytest.mark.asyncio
    async def test_connection_only_fetches_token(self):
        calls = []
        carrier = _attach_transport(self._carrier(), self._handler(calls))

        message = await carrier.test_connection()

        assert "succeeded" in message
        assert calls == ["/security/v1/oauth/token"]
