"""
Pricing service - write paths that turn manufacturer costs into client prices.

All client prices are produced by price_line_item, which combines the
margin resolver with the price calculator. Entry points:

- submit_manufacturer_costs: manufacturer enters or changes costs of one item
- save_order_margin: order-level margins edited, every item recomputed
- save_item_override: one item's override set or cleared, that item recomputed
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy.orm import Session

from orderdesk.models import Order, OrderMargin, LineItem, ShippingMethod
from orderdesk.exceptions import BusinessLogicError, ValidationError
from orderdesk.services import config_service
from orderdesk.services.margin_resolver import (
    UNCHANGED, PriceCategory, ResolvedRate, SystemPricingDefaults, resolve_rate, resolve_all
)
from orderdesk.services.order_service import get_order, get_line_item
from orderdesk.services.price_calculator import (
    compute_client_price, round_currency, validate_rate, validate_fee, validate_cost
)
from orderdesk.services.shipping_link_service import covered_item_ids, find_covering_item, item_label

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')

# (manufacturer cost column, client price column)
SHIPPING_FIELDS = (
    ('shipping_air_price', 'client_shipping_air_price'),
    ('shipping_boat_price', 'client_shipping_boat_price'),
)
COST_TO_PRICE = {
    'product_price': 'client_product_price',
    'shipping_air_price': 'client_shipping_air_price',
    'shipping_boat_price': 'client_shipping_boat_price',
    'sample_fee': 'client_sample_fee',
}


@dataclass
class PricingContext:
    """Everything above the item layer that resolution needs for one order."""
    defaults: SystemPricingDefaults
    order_margin: Optional[OrderMargin] = None
    client_override: Any = None
    covered_ids: Set[int] = field(default_factory=set)
    
    def resolve(self, category, item=None) -> ResolvedRate:
        return resolve_rate(category, item, self.order_margin, self.client_override, self.defaults)
    
    def resolve_all(self, item=None) -> Dict[PriceCategory, ResolvedRate]:
        return resolve_all(item, self.order_margin, self.client_override, self.defaults)


@dataclass
class RecalculationResult:
    """Outcome of a loop of independent record writes."""
    updated: int = 0
    failed: List[Tuple[str, int]] = field(default_factory=list)
    
    @property
    def failed_count(self) -> int:
        return len(self.failed)
    
    def to_dict(self):
        return {
            'updated': self.updated,
            'failed': [{'record': kind, 'id': record_id} for kind, record_id in self.failed],
        }


def load_pricing_context(session: Session, order: Order) -> PricingContext:
    return PricingContext(
        defaults=config_service.load_system_defaults(session),
        order_margin=order.margin,
        client_override=config_service.get_client_override(session, order.client_id),
        covered_ids=covered_item_ids(order.line_items)
    )


def has_cost(value) -> bool:
    return value is not None and Decimal(value) > 0


def price_line_item(item: LineItem, context: PricingContext) -> Dict[str, Any]:
    """
    Compute every client-facing price of one item from its current costs.
    
    Returns the column updates; nothing is written. Costs that are missing or
    zero are skipped. Items whose shipping is covered by a sibling get zero
    client shipping.
    """
    updates = {}
    
    if has_cost(item.product_price):
        if item.is_clothing:
            fee = context.resolve(PriceCategory.CLOTHING, item)
            updates['client_product_price'] = compute_client_price(
                item.product_price, fee.value, PriceCategory.CLOTHING
            )
        else:
            margin = context.resolve(PriceCategory.PRODUCT, item)
            updates['client_product_price'] = compute_client_price(
                item.product_price, margin.value, PriceCategory.PRODUCT
            )
            updates['margin_applied'] = margin.value
    
    if item.id in context.covered_ids:
        for _, price_field in SHIPPING_FIELDS:
            updates[price_field] = ZERO
    else:
        shipping = context.resolve(PriceCategory.SHIPPING, item)
        for cost_field, price_field in SHIPPING_FIELDS:
            cost = getattr(item, cost_field)
            if has_cost(cost):
                updates[price_field] = compute_client_price(cost, shipping.value, PriceCategory.SHIPPING)
    
    if has_cost(item.sample_fee):
        sample = context.resolve(PriceCategory.SAMPLE, item)
        updates['client_sample_fee'] = compute_client_price(item.sample_fee, sample.value, PriceCategory.SAMPLE)
    
    return updates


def write_record(session: Session, record, updates: Dict[str, Any]) -> None:
    """Write one record's updates as its own commit."""
    for column, value in updates.items():
        setattr(record, column, value)
    session.commit()


def submit_manufacturer_costs(
    session: Session,
    item_id: int,
    product_price=UNCHANGED,
    shipping_air_price=UNCHANGED,
    shipping_boat_price=UNCHANGED,
    sample_fee=UNCHANGED
) -> LineItem:
    """
    Store manufacturer costs for one item and derive its client prices.
    
    Arguments left as UNCHANGED keep their stored value; None clears a cost
    and its client price.
    
    Raises:
        ValidationError: negative cost, or a shipping cost on an item whose
            shipping is covered by a sibling
    """
    item = get_line_item(session, item_id)
    submitted = {
        'product_price': product_price,
        'shipping_air_price': shipping_air_price,
        'shipping_boat_price': shipping_boat_price,
        'sample_fee': sample_fee,
    }
    costs = {
        column: (validate_cost(value, column) if value is not None else None)
        for column, value in submitted.items()
        if value is not UNCHANGED
    }
    
    covering = find_covering_item(item.order.line_items, item.id)
    if covering and any(has_cost(costs.get(column)) for column, _ in SHIPPING_FIELDS):
        raise ValidationError(
            f'Shipping of item {item_label(item)} is covered by item {item_label(covering)}',
            field='shipping'
        )
    
    try:
        for column, value in costs.items():
            setattr(item, column, value)
        
        context = load_pricing_context(session, item.order)
        updates = price_line_item(item, context)
        for column, value in costs.items():
            if not has_cost(value):
                updates[COST_TO_PRICE[column]] = None if value is None else ZERO
        
        write_record(session, item, updates)
    except Exception:
        session.rollback()
        raise
    
    logger.info(f"[PRICING] Costs submitted for item {item.id}: {', '.join(f'{k}={v}' for k, v in costs.items())}")
    return item


def _recompute_items(session: Session, items: List[LineItem], context: PricingContext, label: str) -> RecalculationResult:
    result = RecalculationResult()
    for item in items:
        try:
            updates = price_line_item(item, context)
            if not updates:
                continue
            write_record(session, item, updates)
            result.updated += 1
        except Exception:
            session.rollback()
            logger.exception(f"[PRICING] {label}: failed to update line item {item.id}")
            result.failed.append(('line_item', item.id))
    return result


def save_order_margin(
    session: Session,
    order_id: int,
    product_margin_pct=UNCHANGED,
    shipping_margin_pct=UNCHANGED
) -> Tuple[OrderMargin, RecalculationResult]:
    """
    Set or clear (None) the order-level product and shipping margins, then
    reprice the order.
    
    The OrderMargin row is created on first use. A margin that is not passed
    keeps its stored value. Items carrying an item-level override keep their
    overridden prices since the item layer wins resolution.
    
    Every item goes through price_line_item, so client sample fees are
    recomputed as well. Samples resolve client -> system and never read the
    order layer, so an order margin edit alone leaves them at their current
    value; they only move here if the client or system sample margin changed
    since they were last priced.
    """
    order = get_order(session, order_id)
    margins = {}
    if product_margin_pct is not UNCHANGED:
        margins['margin_percentage'] = (
            validate_rate(product_margin_pct, 'product_margin_pct') if product_margin_pct is not None else None
        )
    if shipping_margin_pct is not UNCHANGED:
        margins['shipping_margin_percentage'] = (
            validate_rate(shipping_margin_pct, 'shipping_margin_pct') if shipping_margin_pct is not None else None
        )
    
    try:
        margin = order.margin
        if margin is None:
            margin = OrderMargin(order_id=order.id)
            session.add(margin)
        for column, value in margins.items():
            setattr(margin, column, value)
        session.commit()
    except Exception:
        session.rollback()
        raise
    
    context = load_pricing_context(session, order)
    result = _recompute_items(session, list(order.line_items), context, f"order {order.id} margin")
    logger.info(
        f"[PRICING] Order {order.id} margins product={margin.margin_percentage} "
        f"shipping={margin.shipping_margin_percentage}; "
        f"{result.updated} items repriced, {result.failed_count} failed"
    )
    return margin, result


def save_item_override(
    session: Session,
    item_id: int,
    product_margin=UNCHANGED,
    shipping_margin=UNCHANGED,
    clothing_fee=UNCHANGED
) -> LineItem:
    """
    Set or clear (None) one item's overrides and reprice only that item.
    
    Regular items take a product margin override, clothing items a flat fee
    override; both may take a shipping margin override. Categories that are
    not touched keep inheriting their current rates.
    """
    item = get_line_item(session, item_id)
    overrides = {}
    
    if product_margin is not UNCHANGED:
        if item.is_clothing:
            raise BusinessLogicError('Clothing items are priced with a flat fee, not a margin')
        overrides['product_margin_override'] = (
            validate_rate(product_margin, 'product_margin') if product_margin is not None else None
        )
    if clothing_fee is not UNCHANGED:
        if not item.is_clothing:
            raise BusinessLogicError('Only clothing items take a flat fee override')
        overrides['clothing_fee_override'] = (
            validate_fee(clothing_fee, 'clothing_fee') if clothing_fee is not None else None
        )
    if shipping_margin is not UNCHANGED:
        overrides['shipping_margin_override'] = (
            validate_rate(shipping_margin, 'shipping_margin') if shipping_margin is not None else None
        )
    
    if not overrides:
        return item
    
    try:
        for column, value in overrides.items():
            setattr(item, column, value)
        context = load_pricing_context(session, item.order)
        write_record(session, item, price_line_item(item, context))
    except Exception:
        session.rollback()
        raise
    
    logger.info(f"[PRICING] Item {item.id} overrides: {', '.join(f'{k}={v}' for k, v in overrides.items())}")
    return item


def resolve_item_rates(session: Session, item_id: int) -> Dict[PriceCategory, ResolvedRate]:
    """Current resolution of every category for one item."""
    item = get_line_item(session, item_id)
    return load_pricing_context(session, item.order).resolve_all(item)


@dataclass
class OrderTotals:
    manufacturer_total: Decimal
    client_total: Decimal
    shipping_total: Decimal
    sample_total: Decimal
    
    @property
    def grand_total(self) -> Decimal:
        return self.client_total + self.shipping_total + self.sample_total
    
    @property
    def margin_pct(self) -> Decimal:
        """Realised product margin, one decimal."""
        if self.manufacturer_total <= 0:
            return Decimal('0.0')
        pct = (self.client_total - self.manufacturer_total) / self.manufacturer_total * 100
        return pct.quantize(Decimal('0.1'))
    
    def to_dict(self):
        return {
            'manufacturer_total': str(self.manufacturer_total),
            'client_total': str(self.client_total),
            'shipping_total': str(self.shipping_total),
            'sample_total': str(self.sample_total),
            'grand_total': str(self.grand_total),
            'margin_pct': str(self.margin_pct),
        }


def compute_order_totals(order: Order) -> OrderTotals:
    """
    Totals for an order as the client sees them.
    
    Product prices are multiplied by quantity; shipping counts the client
    price of the selected method once per item (covered items are zero).
    """
    covered = covered_item_ids(order.line_items)
    manufacturer_total = client_total = shipping_total = sample_total = ZERO
    
    for item in order.line_items:
        quantity = Decimal(item.quantity or 0)
        manufacturer_total += Decimal(item.product_price or 0) * quantity
        client_total += Decimal(item.client_product_price or 0) * quantity
        sample_total += Decimal(item.client_sample_fee or 0)
        
        if item.id in covered:
            continue
        if item.selected_shipping_method == ShippingMethod.AIR.value:
            shipping_total += Decimal(item.client_shipping_air_price or 0)
        elif item.selected_shipping_method == ShippingMethod.BOAT.value:
            shipping_total += Decimal(item.client_shipping_boat_price or 0)
    
    return OrderTotals(
        manufacturer_total=round_currency(manufacturer_total),
        client_total=round_currency(client_total),
        shipping_total=round_currency(shipping_total),
        sample_total=round_currency(sample_total)
    )
