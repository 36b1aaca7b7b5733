"""
Bulk recalculation of client prices for one order.

Staff pick which categories to reprice and may type a custom margin or fee
per category for this run only. Each affected record is written with its own
commit: a failing record is rolled back, logged and counted, and the loop
carries on. The run is not atomic and takes no locks; two concurrent runs on
the same order resolve per record, last writer wins.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from orderdesk.models import AccessoryInventory, LineItem
from orderdesk.exceptions import BusinessLogicError
from orderdesk.blueprints.metrics import record_pricing_write
from orderdesk.services import config_service, pricing_service
from orderdesk.services.margin_resolver import PriceCategory, SystemPricingDefaults
from orderdesk.services.order_service import get_order
from orderdesk.services.price_calculator import compute_client_price, validate_for_category
from orderdesk.services.pricing_service import RecalculationResult, SHIPPING_FIELDS, has_cost
from orderdesk.utils.number_format import parse_decimal

logger = logging.getLogger(__name__)


@dataclass
class RecalculationOptions:
    """Which categories a recalculation run touches."""
    regular_products: bool = False
    clothing_products: bool = False
    samples: bool = False
    shipping: bool = False
    accessories: bool = False
    
    @property
    def any_selected(self) -> bool:
        return any((self.regular_products, self.clothing_products, self.samples,
                    self.shipping, self.accessories))


@dataclass
class RecalculationValues:
    """Raw custom values typed for a run; blank, invalid or 0 means "system default"."""
    product_margin: Any = None
    clothing_fee: Any = None
    sample_margin: Any = None
    shipping_margin: Any = None
    accessory_margin: Any = None


def parse_custom_value(raw: Any, category, defaults: SystemPricingDefaults) -> Decimal:
    """
    Turn a typed custom value into the rate or fee to apply.
    
    Blank, non-numeric and zero values fall back to the category's system
    default. A number outside the category's valid range is rejected.
    """
    fallback = defaults.effective(category)
    try:
        value = parse_decimal(raw)
    except ValueError:
        return fallback
    value = validate_for_category(category, value)
    return value if value != 0 else fallback


def _override_or_none(value: Decimal, system_default: Decimal) -> Optional[Decimal]:
    return value if value != system_default else None


def _line_item_updates(item: LineItem, options: RecalculationOptions, rates: Dict[PriceCategory, Decimal],
                       defaults: SystemPricingDefaults) -> Dict[str, Any]:
    updates = {}
    
    if options.regular_products and not item.is_clothing and has_cost(item.product_price):
        rate = rates[PriceCategory.PRODUCT]
        updates['client_product_price'] = compute_client_price(item.product_price, rate, PriceCategory.PRODUCT)
        updates['margin_applied'] = rate
        updates['product_margin_override'] = _override_or_none(rate, defaults.effective(PriceCategory.PRODUCT))
    
    if options.clothing_products and item.is_clothing and has_cost(item.product_price):
        fee = rates[PriceCategory.CLOTHING]
        updates['client_product_price'] = compute_client_price(item.product_price, fee, PriceCategory.CLOTHING)
        updates['clothing_fee_override'] = _override_or_none(fee, defaults.effective(PriceCategory.CLOTHING))
    
    if options.samples and has_cost(item.sample_fee):
        updates['client_sample_fee'] = compute_client_price(
            item.sample_fee, rates[PriceCategory.SAMPLE], PriceCategory.SAMPLE
        )
    
    if options.shipping:
        rate = rates[PriceCategory.SHIPPING]
        priced = False
        for cost_field, price_field in SHIPPING_FIELDS:
            cost = getattr(item, cost_field)
            if has_cost(cost):
                updates[price_field] = compute_client_price(cost, rate, PriceCategory.SHIPPING)
                priced = True
        if priced:
            updates['shipping_margin_override'] = _override_or_none(rate, defaults.effective(PriceCategory.SHIPPING))
    
    return updates


def recalculate_order(
    session: Session,
    order_id: int,
    options: RecalculationOptions,
    values: Optional[RecalculationValues] = None
) -> RecalculationResult:
    """
    Reprice the selected categories of an order.
    
    regular_products  non-clothing items: cost * (1 + margin), override kept only if != system default
    clothing_products clothing items: cost + fee, override kept only if != system default
    samples           items with a sample fee; no override column exists
    shipping          items with a shipping cost (air and boat)
    accessories       the client's accessory inventory (and manufacturer's, if the order has one)
    
    Returns:
        RecalculationResult; ``updated`` counts records written successfully
    
    Raises:
        NotFoundError: unknown order
        BusinessLogicError: no category selected
        ValidationError: a custom value outside its valid range (nothing written)
    """
    if not options.any_selected:
        raise BusinessLogicError('Select at least one category to recalculate')
    
    order = get_order(session, order_id)
    values = values or RecalculationValues()
    defaults = config_service.load_system_defaults(session)
    
    rates = {
        PriceCategory.PRODUCT: parse_custom_value(values.product_margin, PriceCategory.PRODUCT, defaults),
        PriceCategory.CLOTHING: parse_custom_value(values.clothing_fee, PriceCategory.CLOTHING, defaults),
        PriceCategory.SAMPLE: parse_custom_value(values.sample_margin, PriceCategory.SAMPLE, defaults),
        PriceCategory.SHIPPING: parse_custom_value(values.shipping_margin, PriceCategory.SHIPPING, defaults),
        PriceCategory.ACCESSORY: parse_custom_value(values.accessory_margin, PriceCategory.ACCESSORY, defaults),
    }
    client_id, manufacturer_id = order.client_id, order.manufacturer_id
    result = RecalculationResult()
    
    for item in list(order.line_items):
        try:
            updates = _line_item_updates(item, options, rates, defaults)
            if not updates:
                continue
            pricing_service.write_record(session, item, updates)
            result.updated += 1
            record_pricing_write('line_item')
        except Exception:
            session.rollback()
            logger.exception(f"[RECALC] Order {order_id}: failed to update line item {item.id}")
            result.failed.append(('line_item', item.id))
            record_pricing_write('line_item', failed=True)
    
    if options.accessories:
        rate = rates[PriceCategory.ACCESSORY]
        query = session.query(AccessoryInventory).filter(
            AccessoryInventory.client_id == client_id,
            AccessoryInventory.unit_cost.isnot(None)
        )
        if manufacturer_id:
            query = query.filter(AccessoryInventory.manufacturer_id == manufacturer_id)
        
        for accessory in query.order_by(AccessoryInventory.id).all():
            if not has_cost(accessory.unit_cost):
                continue
            try:
                client_unit_cost = compute_client_price(accessory.unit_cost, rate, PriceCategory.ACCESSORY)
                pricing_service.write_record(session, accessory, {'client_unit_cost': client_unit_cost})
                result.updated += 1
                record_pricing_write('accessory')
            except Exception:
                session.rollback()
                logger.exception(f"[RECALC] Order {order_id}: failed to update accessory {accessory.id}")
                result.failed.append(('accessory', accessory.id))
                record_pricing_write('accessory', failed=True)
    
    logger.info(f"[RECALC] Recalculated {result.updated} records for order {order_id} ({result.failed_count} failed)")
    return result


def backfill_missing_client_prices(session: Session) -> RecalculationResult:
    """
    Price every item that has a manufacturer cost but no client price yet,
    using the normal resolution chain of its order.
    """
    items = session.query(LineItem).filter(
        LineItem.product_price.isnot(None),
        LineItem.client_product_price.is_(None)
    ).order_by(LineItem.order_id, LineItem.id).all()
    
    result = RecalculationResult()
    contexts = {}
    for item in items:
        try:
            if item.order_id not in contexts:
                contexts[item.order_id] = pricing_service.load_pricing_context(session, item.order)
            updates = pricing_service.price_line_item(item, contexts[item.order_id])
            if not updates:
                continue
            pricing_service.write_record(session, item, updates)
            result.updated += 1
            record_pricing_write('line_item')
        except Exception:
            session.rollback()
            logger.exception(f"[RECALC] Backfill: failed to update line item {item.id}")
            result.failed.append(('line_item', item.id))
            record_pricing_write('line_item', failed=True)
    
    logger.info(f"[RECALC] Backfill priced {result.updated} items ({result.failed_count} failed)")
    return result
