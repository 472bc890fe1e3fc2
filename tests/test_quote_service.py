"""
End-to-end tests for the shipping quote service.
"""
import pytest
from datetime import date
from unittest.mock import AsyncMock

from storefront.core.exceptions import ShippingConfigurationError, ShippingValidationError
from storefront.core.monitoring import FALLBACK_TOTAL, QUOTES_TOTAL, metrics
from storefront.modules.shipping.fallback import FALLBACK_CARRIER_NAME
from storefront.schemas.shipping import AddressIn, OrderItemIn, RateQuoteRequest
from storefront.schemas.shipping_settings import CarrierConfig
from storefront.services.quote_service import ShippingQuoteService
from storefront.services.rate_aggregator import AggregationResult, CarrierRateAggregator


def _service(store, factory, timeout=1.0):
    aggregator = CarrierRateAggregator(timeout=timeout, max_concurrency=4, factory=factory)
    return ShippingQuoteService(store, aggregator)


class TestQuoteScenarios:

    @pytest.mark.asyncio
    async def test_single_carrier_domestic(self, stub_factory, make_store, single_carrier_settings,
                                           sample_items, sample_origin, sample_destination):
        service = _service(make_store(single_carrier_settings), stub_factory({"Test Post": {"amount": 10.0}}))
        request = RateQuoteRequest(order_items=sample_items, origin=sample_origin, destination=sample_destination)

        result = await service.quote(request, today=date(2024, 6, 3))

        assert len(result.options) == 1
        option = result.options[0]
        assert option.carrier_name == "Test Post"
        assert option.rate == 11.0
        assert option.estimated_days == 4
        assert option.delivery_date == date(2024, 6, 7)
        assert result.used_fallback is False
        assert result.total_items == 3
        assert result.total_weight == 0.6
        assert result.packaging_tier.name == "Medium"
        assert metrics.get_counter(QUOTES_TOTAL) == 1
        assert metrics.get_counter(FALLBACK_TOTAL) == 0

    @pytest.mark.asyncio
    async def test_no_enabled_carriers_uses_fallback(self, stub_factory, make_store, make_settings,
                                                     sample_items, sample_origin, sample_destination):
        snapshot = make_settings(carriers=[CarrierConfig(name="Off", enabled=False)])
        service = _service(make_store(snapshot), stub_factory())
        request = RateQuoteRequest(order_items=sample_items, origin=sample_origin, destination=sample_destination)

        result = await service.quote(request)

        assert len(result.options) == 1
        option = result.options[0]
        assert option.carrier_name == FALLBACK_CARRIER_NAME
        assert option.rate == 12.99
        assert option.estimated_days == 3
        assert option.tracking_supported is False
        assert result.used_fallback is True
        assert metrics.get_counter(FALLBACK_TOTAL) == 1

    @pytest.mark.asyncio
    async def test_international_one_carrier_times_out(self, stub_factory, make_store, make_settings,
                                                       sample_items, sample_origin, international_destination):
        snapshot = make_settings(carriers=[
            CarrierConfig(name="Slow", priority=1),
            CarrierConfig(name="Fast", priority=2, markup_percentage=15),
        ])
        service = _service(
            make_store(snapshot),
            stub_factory({"Slow": {"delay": 5.0}, "Fast": {"amount": 18.99}}),
            timeout=0.05,
        )
        request = RateQuoteRequest(
            order_items=sample_items, origin=sample_origin, destination=international_destination
        )

        result = await service.quote(request)

        assert [o.carrier_name for o in result.options] == ["Fast"]
        assert result.options[0].estimated_days == 7
        assert result.is_domestic is False
        assert result.used_fallback is False
        assert [f.carrier for f in result.failures] == ["Slow"]

    @pytest.mark.asyncio
    async def test_all_carriers_fail_uses_fallback(self, stub_factory, make_store, make_settings,
                                                   sample_items, sample_origin, international_destination):
        snapshot = make_settings(carriers=[CarrierConfig(name="Broken")])
        service = _service(make_store(snapshot), stub_factory({"Broken": {"error": RuntimeError("down")}}))
        request = RateQuoteRequest(
            order_items=sample_items, origin=sample_origin, destination=international_destination
        )

        result = await service.quote(request)

        assert result.used_fallback is True
        assert result.options[0].rate == 29.99
        assert result.options[0].estimated_days == 7
        assert len(result.failures) == 1

    @pytest.mark.asyncio
    async def test_zero_items_rejected_before_computation(self, make_store, single_carrier_settings,
                                                          sample_destination):
        store = make_store(single_carrier_settings)
        store.get = AsyncMock()
        aggregator = AsyncMock()
        service = ShippingQuoteService(store, aggregator)
        request = RateQuoteRequest(
            order_items=[OrderItemIn(product_ref="SKU-1", quantity=0)],
            destination=sample_destination,
        )

        with pytest.raises(ShippingValidationError) as exc_info:
            await service.quote(request)

        assert exc_info.value.fields == ["orderItems"]
        store.get.assert_not_called()
        aggregator.aggregate.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_items_rejected(self, stub_factory, settings_store, sample_destination):
        service = _service(settings_store, stub_factory())

        with pytest.raises(ShippingValidationError):
            await service.quote(RateQuoteRequest(order_items=[], destination=sample_destination))

    @pytest.mark.asyncio
    async def test_empty_tiers_is_configuration_error(self, stub_factory, make_store, make_settings,
                                                      sample_items, sample_destination):
        service = _service(make_store(make_settings(box_tiers=[], carriers=[])), stub_factory())
        request = RateQuoteRequest(order_items=sample_items, destination=sample_destination)

        with pytest.raises(ShippingConfigurationError):
            await service.quote(request)

    @pytest.mark.asyncio
    async def test_saturday_landing_shifts_two_days(self, stub_factory, make_store, make_settings,
                                                    sample_items, sample_origin, sample_destination):
        snapshot = make_settings(carriers=[CarrierConfig(name="Two Day", delay_days=2)])
        service = _service(make_store(snapshot), stub_factory({"Two Day": {"amount": 10.0}}))
        request = RateQuoteRequest(order_items=sample_items, origin=sample_origin, destination=sample_destination)

        # Monday + 3 + 2 = Saturday -> Monday
        result = await service.quote(request, today=date(2024, 6, 3))

        assert result.options[0].estimated_days == 5
        assert result.options[0].delivery_date == date(2024, 6, 10)


class TestQuoteValidation:

    @pytest.mark.asyncio
    async def test_missing_destination_fields_listed(self, stub_factory, settings_store, sample_items):
        service = _service(settings_store, stub_factory())
        request = RateQuoteRequest(
            order_items=sample_items,
            destination=AddressIn(address="1 Road", city="  ", country="CA"),
        )

        with pytest.raises(ShippingValidationError) as exc_info:
            await service.quote(request)

        assert exc_info.value.fields == ["destination.city", "destination.postalCode"]

    @pytest.mark.asyncio
    async def test_missing_destination(self, stub_factory, settings_store, sample_items):
        service = _service(settings_store, stub_factory())

        with pytest.raises(ShippingValidationError) as exc_info:
            await service.quote(RateQuoteRequest(order_items=sample_items))

        assert exc_info.value.fields == ["destination"]

    @pytest.mark.asyncio
    async def test_incomplete_origin_rejected(self, stub_factory, settings_store, sample_items, sample_destination):
        service = _service(settings_store, stub_factory())
        request = RateQuoteRequest(
            order_items=sample_items,
            origin=AddressIn(city="Montreal"),
            destination=sample_destination,
        )

        with pytest.raises(ShippingValidationError) as exc_info:
            await service.quote(request)

        assert "origin.address" in exc_info.value.fields

    @pytest.mark.asyncio
    async def test_origin_defaults_to_store(self, make_store, single_carrier_settings,
                                            sample_items, sample_destination):
        aggregator = AsyncMock()
        aggregator.aggregate = AsyncMock(return_value=AggregationResult())
        service = ShippingQuoteService(make_store(single_carrier_settings), aggregator)

        result = await service.quote(RateQuoteRequest(order_items=sample_items, destination=sample_destination))

        origin = aggregator.aggregate.call_args.args[1]
        assert origin.country == "CA"
        assert origin.city == "Montreal"
        assert result.is_domestic is True

    @pytest.mark.asyncio
    async def test_express_fallback(self, stub_factory, make_store, make_settings, sample_items, sample_destination):
        service = _service(make_store(make_settings(carriers=[])), stub_factory())
        request = RateQuoteRequest(order_items=sample_items, destination=sample_destination, express=True)

        result = await service.quote(request)

        assert result.options[0].rate == 24.99
        assert result.options[0].method == "Express"
