"""
Unit tests for margin resolution (no database).
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from orderdesk.services.margin_resolver import (
    PriceCategory, RateSource, SystemPricingDefaults, SAFETY_DEFAULTS, resolve_rate, resolve_all
)


def make_item(product=None, shipping=None, clothing_fee=None):
    return SimpleNamespace(
        product_margin_override=product,
        shipping_margin_override=shipping,
        clothing_fee_override=clothing_fee
    )


def make_order_margin(product=None, shipping=None):
    return SimpleNamespace(margin_percentage=product, shipping_margin_percentage=shipping)


def make_client_override(product=None, shipping=None, sample=None):
    return SimpleNamespace(
        custom_margin_percentage=product,
        custom_shipping_margin_percentage=shipping,
        custom_sample_margin_percentage=sample
    )


@pytest.fixture
def defaults():
    return SystemPricingDefaults(
        product_margin_pct=Decimal('70'),
        shipping_margin_pct=Decimal('8'),
        sample_margin_pct=Decimal('60'),
        accessory_margin_pct=Decimal('90'),
        clothing_flat_fee=Decimal('4.50')
    )


class TestSystemLayer:
    """Resolution without any override."""

    @pytest.mark.parametrize('category', list(PriceCategory))
    def test_no_overrides_returns_system_default(self, defaults, category):
        rate = resolve_rate(category, make_item(), make_order_margin(), make_client_override(), defaults)

        assert rate.value == defaults.for_category(category)
        assert rate.source == RateSource.SYSTEM

    @pytest.mark.parametrize('category', list(PriceCategory))
    def test_missing_config_uses_safety_default(self, category):
        rate = resolve_rate(category)

        assert rate.value == SAFETY_DEFAULTS[category]
        assert rate.source == RateSource.SYSTEM

    def test_safety_defaults(self):
        assert SAFETY_DEFAULTS[PriceCategory.PRODUCT] == Decimal('80')
        assert SAFETY_DEFAULTS[PriceCategory.SHIPPING] == Decimal('5')
        assert SAFETY_DEFAULTS[PriceCategory.SAMPLE] == Decimal('80')
        assert SAFETY_DEFAULTS[PriceCategory.ACCESSORY] == Decimal('100')
        assert SAFETY_DEFAULTS[PriceCategory.CLOTHING] == Decimal('0')

    def test_partial_config_falls_back_per_category(self):
        defaults = SystemPricingDefaults(product_margin_pct=Decimal('65'))

        assert resolve_rate(PriceCategory.PRODUCT, defaults=defaults).value == Decimal('65')
        assert resolve_rate(PriceCategory.SHIPPING, defaults=defaults).value == Decimal('5')

    def test_zero_system_value_is_respected(self):
        defaults = SystemPricingDefaults(shipping_margin_pct=Decimal('0'))

        rate = resolve_rate(PriceCategory.SHIPPING, defaults=defaults)

        assert rate.value == Decimal('0')
        assert rate.source == RateSource.SYSTEM

    def test_category_accepts_string_value(self, defaults):
        assert resolve_rate('shipping', defaults=defaults).value == Decimal('8')


class TestPrecedence:
    """item -> order -> client -> system."""

    def test_item_override_wins_for_product(self, defaults):
        rate = resolve_rate(
            PriceCategory.PRODUCT,
            make_item(product=Decimal('120')),
            make_order_margin(product=Decimal('90')),
            make_client_override(product=Decimal('60')),
            defaults
        )

        assert rate.value == Decimal('120')
        assert rate.source == RateSource.ITEM

    def test_item_override_wins_for_shipping(self, defaults):
        rate = resolve_rate(
            PriceCategory.SHIPPING,
            make_item(shipping=Decimal('12')),
            make_order_margin(shipping=Decimal('7')),
            make_client_override(shipping=Decimal('3')),
            defaults
        )

        assert rate.value == Decimal('12')
        assert rate.source == RateSource.ITEM

    def test_order_layer_beats_client(self, defaults):
        rate = resolve_rate(
            PriceCategory.PRODUCT,
            make_item(),
            make_order_margin(product=Decimal('90')),
            make_client_override(product=Decimal('60')),
            defaults
        )

        assert rate.value == Decimal('90')
        assert rate.source == RateSource.ORDER

    def test_client_layer_beats_system(self, defaults):
        rate = resolve_rate(
            PriceCategory.PRODUCT, make_item(), None, make_client_override(product=Decimal('60')), defaults
        )

        assert rate.value == Decimal('60')
        assert rate.source == RateSource.CLIENT

    def test_clearing_overrides_falls_through_layer_by_layer(self, defaults):
        item = make_item(product=Decimal('120'))
        order_margin = make_order_margin(product=Decimal('90'))
        client_override = make_client_override(product=Decimal('60'))

        item.product_margin_override = None
        assert resolve_rate(PriceCategory.PRODUCT, item, order_margin, client_override, defaults).source == RateSource.ORDER

        order_margin.margin_percentage = None
        assert resolve_rate(PriceCategory.PRODUCT, item, order_margin, client_override, defaults).source == RateSource.CLIENT

        client_override.custom_margin_percentage = None
        rate = resolve_rate(PriceCategory.PRODUCT, item, order_margin, client_override, defaults)
        assert rate.source == RateSource.SYSTEM
        assert rate.value == Decimal('70')

    def test_categories_resolve_independently(self, defaults):
        rates = resolve_all(
            make_item(product=Decimal('120')),
            make_order_margin(shipping=Decimal('7')),
            make_client_override(sample=Decimal('40')),
            defaults
        )

        assert rates[PriceCategory.PRODUCT].source == RateSource.ITEM
        assert rates[PriceCategory.SHIPPING].source == RateSource.ORDER
        assert rates[PriceCategory.SAMPLE].source == RateSource.CLIENT
        assert rates[PriceCategory.ACCESSORY].source == RateSource.SYSTEM
        assert rates[PriceCategory.CLOTHING].source == RateSource.SYSTEM


class TestRestrictedChains:
    """Categories that skip some layers."""

    def test_sample_ignores_item_and_order_values(self, defaults):
        item = make_item(product=Decimal('120'), shipping=Decimal('12'))
        item.sample_margin_override = Decimal('10')
        order_margin = make_order_margin(product=Decimal('90'), shipping=Decimal('7'))

        rate = resolve_rate(PriceCategory.SAMPLE, item, order_margin, None, defaults)

        assert rate.value == Decimal('60')
        assert rate.source == RateSource.SYSTEM

    def test_sample_uses_client_override(self, defaults):
        rate = resolve_rate(PriceCategory.SAMPLE, make_item(), None, make_client_override(sample=Decimal('40')), defaults)

        assert rate.value == Decimal('40')
        assert rate.source == RateSource.CLIENT

    def test_accessory_ignores_every_override(self, defaults):
        rate = resolve_rate(
            PriceCategory.ACCESSORY,
            make_item(product=Decimal('120')),
            make_order_margin(product=Decimal('90')),
            make_client_override(product=Decimal('60')),
            defaults
        )

        assert rate.value == Decimal('90')
        assert rate.source == RateSource.SYSTEM

    def test_clothing_fee_item_override(self, defaults):
        rate = resolve_rate(PriceCategory.CLOTHING, make_item(clothing_fee=Decimal('7.25')), None, None, defaults)

        assert rate.value == Decimal('7.25')
        assert rate.source == RateSource.ITEM

    def test_clothing_fee_skips_margin_layers(self, defaults):
        rate = resolve_rate(
            PriceCategory.CLOTHING,
            make_item(),
            make_order_margin(product=Decimal('90')),
            make_client_override(product=Decimal('60')),
            defaults
        )

        assert rate.value == Decimal('4.50')
        assert rate.source == RateSource.SYSTEM

    def test_resolved_rate_to_dict(self, defaults):
        rate = resolve_rate(PriceCategory.CLOTHING, defaults=defaults)

        assert rate.to_dict() == {'value': '4.50', 'source': 'system'}
