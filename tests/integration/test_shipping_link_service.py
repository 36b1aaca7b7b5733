"""
Integration tests for shipping coverage between line items.
"""

from decimal import Decimal

import pytest

from orderdesk.exceptions import NotFoundError, ValidationError
from orderdesk.services import order_service, pricing_service
from orderdesk.services.shipping_link_service import link_shipping, covered_item_ids


@pytest.fixture
def crate(session, items, order):
    """A fourth item with its own shipping costs."""
    crate = order_service.add_line_item(session, order.id, 'Wooden crate', quantity=10, selected_shipping_method='boat')
    pricing_service.submit_manufacturer_costs(
        session, crate.id, product_price='8', shipping_air_price='30', shipping_boat_price='12'
    )
    return crate


class TestLinkShipping:
    """link_shipping(primary, covered)."""

    def test_covered_items_zeroed_primary_untouched(self, session, items, crate):
        mug, bottle = items['mug'], items['bottle']

        result = link_shipping(session, mug.id, [bottle.id, crate.id])

        assert result.covered_item_ids == [bottle.id, crate.id]
        assert result.released is None
        for covered in (bottle, crate):
            assert covered.shipping_air_price == Decimal('0.00')
            assert covered.shipping_boat_price == Decimal('0.00')
            assert covered.client_shipping_air_price == Decimal('0.00')
            assert covered.client_shipping_boat_price == Decimal('0.00')
            assert covered.shipping_link_note == f'Shipping covered by item {mug.product_order_number}'
        assert mug.shipping_air_price == Decimal('50.00')
        assert mug.client_shipping_air_price == Decimal('52.50')
        assert mug.covers_shipping_for == [bottle.id, crate.id]
        assert bottle.product_order_number in mug.shipping_link_note

    def test_link_is_idempotent(self, session, items, crate):
        mug, bottle = items['mug'], items['bottle']

        link_shipping(session, mug.id, [bottle.id, crate.id])
        result = link_shipping(session, mug.id, [bottle.id, crate.id])

        assert result.released is None
        assert bottle.client_shipping_air_price == Decimal('0.00')
        assert crate.client_shipping_boat_price == Decimal('0.00')
        assert mug.client_shipping_air_price == Decimal('52.50')
        assert mug.covers_shipping_for == [bottle.id, crate.id]

    def test_duplicate_ids_collapsed(self, session, items):
        result = link_shipping(session, items['mug'].id, [items['bottle'].id, str(items['bottle'].id)])

        assert result.covered_item_ids == [items['bottle'].id]

    def test_unlink_is_one_way(self, session, items, crate):
        mug, bottle = items['mug'], items['bottle']
        link_shipping(session, mug.id, [bottle.id, crate.id])

        result = link_shipping(session, mug.id, [])

        assert result.released is not None
        assert set(result.released.released_item_ids) == {bottle.id, crate.id}
        assert 'stays at 0' in result.released.message
        assert mug.covers_shipping_for == []
        assert mug.shipping_link_note is None
        assert bottle.shipping_link_note is None
        assert bottle.shipping_air_price == Decimal('0.00')
        assert bottle.client_shipping_air_price == Decimal('0.00')

    def test_dropping_one_item_releases_only_that_item(self, session, items, crate):
        mug, bottle = items['mug'], items['bottle']
        link_shipping(session, mug.id, [bottle.id, crate.id])

        result = link_shipping(session, mug.id, [crate.id])

        assert result.released.released_item_ids == (bottle.id,)
        assert crate.shipping_link_note is not None

    def test_covered_item_accepts_shipping_cost_after_release(self, session, items):
        mug, bottle = items['mug'], items['bottle']
        link_shipping(session, mug.id, [bottle.id])
        link_shipping(session, mug.id, [])

        pricing_service.submit_manufacturer_costs(session, bottle.id, shipping_air_price='40')

        assert bottle.client_shipping_air_price == Decimal('42.00')


class TestLinkValidation:

    def test_self_reference_rejected(self, session, items):
        with pytest.raises(ValidationError):
            link_shipping(session, items['mug'].id, [items['mug'].id])

    def test_item_from_other_order_rejected(self, session, items, customer):
        other_order = order_service.create_order(session, customer.id, order_number='ORD-TEST-0002')
        stranger = order_service.add_line_item(session, other_order.id, 'Other order item')

        with pytest.raises(ValidationError):
            link_shipping(session, items['mug'].id, [stranger.id])

    def test_second_primary_rejected(self, session, items, crate):
        link_shipping(session, items['mug'].id, [items['bottle'].id])

        with pytest.raises(ValidationError):
            link_shipping(session, crate.id, [items['bottle'].id])

    def test_covered_item_cannot_become_primary(self, session, items, crate):
        link_shipping(session, items['mug'].id, [items['bottle'].id])

        with pytest.raises(ValidationError):
            link_shipping(session, items['bottle'].id, [crate.id])

    def test_primary_cannot_be_covered(self, session, items, crate):
        link_shipping(session, items['mug'].id, [items['bottle'].id])

        with pytest.raises(ValidationError):
            link_shipping(session, crate.id, [items['mug'].id])

    def test_unknown_ids(self, session, items):
        with pytest.raises(NotFoundError):
            link_shipping(session, 999, [items['mug'].id])
        with pytest.raises(NotFoundError):
            link_shipping(session, items['mug'].id, [999])

    def test_failed_validation_writes_nothing(self, session, items, crate):
        with pytest.raises(ValidationError):
            link_shipping(session, items['mug'].id, [crate.id, items['mug'].id])

        session.expire_all()
        assert crate.shipping_boat_price == Decimal('12.00')
        assert items['mug'].covers_shipping_for == []


class TestCoveredItemPricing:
    """Covered items keep zero shipping through every reprice path."""

    def test_shipping_cost_on_covered_item_rejected(self, session, items):
        link_shipping(session, items['mug'].id, [items['bottle'].id])

        with pytest.raises(ValidationError):
            pricing_service.submit_manufacturer_costs(session, items['bottle'].id, shipping_air_price='40')

    def test_product_cost_change_keeps_zero_shipping(self, session, items):
        link_shipping(session, items['mug'].id, [items['bottle'].id])

        pricing_service.submit_manufacturer_costs(session, items['bottle'].id, product_price='25')

        assert items['bottle'].client_product_price == Decimal('45.00')
        assert items['bottle'].client_shipping_air_price == Decimal('0.00')

    def test_order_margin_keeps_zero_shipping(self, session, items, order):
        link_shipping(session, items['mug'].id, [items['bottle'].id])

        pricing_service.save_order_margin(session, order.id, shipping_margin_pct='20')

        assert items['bottle'].client_shipping_air_price == Decimal('0.00')
        assert items['mug'].client_shipping_air_price == Decimal('60.00')
        assert covered_item_ids(order.line_items) == {items['bottle'].id}

    def test_totals_count_primary_shipping_once(self, session, items, order):
        link_shipping(session, items['mug'].id, [items['bottle'].id])

        totals = pricing_service.compute_order_totals(order)

        assert totals.shipping_total == Decimal('52.50')
