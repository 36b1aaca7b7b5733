"""
Shipping coverage between sibling line items.

One "primary" item's shipping cost can be declared to cover the shipping of
other items in the same order. Covered items carry zeroed shipping costs and
prices plus a note naming the primary.

Releasing coverage is one-way: items dropped from a primary's list keep their
zeroed shipping until a manufacturer re-enters the costs. The release is
reported as a ShippingCoverageReleased event.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional, Set, Tuple

from sqlalchemy.orm import Session

from orderdesk.models import LineItem
from orderdesk.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


@dataclass(frozen=True)
class ShippingCoverageReleased:
    """Items whose shipping is no longer covered; their zeroed shipping stays zero."""
    primary_item_id: int
    released_item_ids: Tuple[int, ...]
    
    @property
    def message(self) -> str:
        ids = ', '.join(str(i) for i in self.released_item_ids)
        return (
            f"Shipping coverage by item {self.primary_item_id} released for items {ids}; "
            f"their shipping stays at 0 until costs are re-entered"
        )


@dataclass
class ShippingLinkResult:
    primary_item_id: int
    covered_item_ids: List[int] = field(default_factory=list)
    released: Optional[ShippingCoverageReleased] = None
    
    def to_dict(self):
        return {
            'primary_item_id': self.primary_item_id,
            'covered_item_ids': self.covered_item_ids,
            'released_item_ids': list(self.released.released_item_ids) if self.released else [],
        }


def item_label(item: LineItem) -> str:
    return item.product_order_number or f"#{item.id}"


def covered_item_ids(items: Iterable[LineItem]) -> Set[int]:
    """Ids covered by any primary among the given sibling items."""
    covered = set()
    for item in items:
        covered.update(int(i) for i in item.covers_shipping_for)
    return covered


def find_covering_item(items: Iterable[LineItem], item_id: int) -> Optional[LineItem]:
    """The sibling whose shipping covers item_id, if any."""
    for item in items:
        if item_id in {int(i) for i in item.covers_shipping_for}:
            return item
    return None


def _normalize_ids(ids: Iterable) -> List[int]:
    normalized = []
    for raw in ids or []:
        try:
            value = int(raw)
        except (TypeError, ValueError):
            raise ValidationError(f'Invalid line item id: {raw!r}', field='covered_ids')
        if value not in normalized:
            normalized.append(value)
    return normalized


def _validate_link(primary: LineItem, covered: List[LineItem], siblings: List[LineItem]) -> None:
    if any(item.id == primary.id for item in covered):
        raise ValidationError('An item cannot cover its own shipping', field='covered_ids')
    
    other_primary = find_covering_item((s for s in siblings if s.id != primary.id), primary.id)
    if other_primary:
        raise ValidationError(
            f'Item {item_label(primary)} is itself covered by {item_label(other_primary)}',
            field='primary_id'
        )
    
    for item in covered:
        covering = find_covering_item((s for s in siblings if s.id != primary.id), item.id)
        if covering:
            raise ValidationError(
                f'Item {item_label(item)} is already covered by {item_label(covering)}',
                field='covered_ids'
            )
        if item.covers_shipping_for:
            raise ValidationError(
                f'Item {item_label(item)} covers other items and cannot be covered',
                field='covered_ids'
            )


def link_shipping(session: Session, primary_id: int, covered_ids: Iterable) -> ShippingLinkResult:
    """
    Make primary_id's shipping cover covered_ids.
    
    Covered items get zero air/boat costs and prices and a note naming the
    primary; the primary keeps its own costs and prices. Running the same
    call twice gives the same state. An empty list unlinks.
    
    Raises:
        NotFoundError: unknown primary or covered id
        ValidationError: self-reference, item from another order, or an item
            already covered by a different primary
    """
    primary = session.get(LineItem, primary_id)
    if not primary:
        raise NotFoundError(f'Line item {primary_id} not found')
    
    ids = _normalize_ids(covered_ids)
    siblings = list(primary.order.line_items)
    by_id = {item.id: item for item in siblings}
    
    covered = []
    for item_id in ids:
        item = by_id.get(item_id)
        if item is None:
            if session.get(LineItem, item_id) is None:
                raise NotFoundError(f'Line item {item_id} not found')
            raise ValidationError(f'Line item {item_id} belongs to another order', field='covered_ids')
        covered.append(item)
    
    _validate_link(primary, covered, siblings)
    
    released_ids = tuple(i for i in (int(x) for x in primary.covers_shipping_for) if i not in ids)
    
    try:
        if covered:
            primary.shipping_linked_item_ids = ids
            primary.shipping_link_note = (
                f"Shipping covers items {', '.join(item_label(item) for item in covered)}"
            )
        else:
            primary.shipping_linked_item_ids = None
            primary.shipping_link_note = None
        
        for item in covered:
            item.shipping_air_price = ZERO
            item.shipping_boat_price = ZERO
            item.client_shipping_air_price = ZERO
            item.client_shipping_boat_price = ZERO
            item.shipping_link_note = f"Shipping covered by item {item_label(primary)}"
        
        for item_id in released_ids:
            released_item = by_id.get(item_id)
            if released_item is not None:
                released_item.shipping_link_note = None
        
        session.commit()
    except Exception:
        session.rollback()
        raise
    
    result = ShippingLinkResult(primary_item_id=primary.id, covered_item_ids=ids)
    if released_ids:
        result.released = ShippingCoverageReleased(primary.id, released_ids)
        logger.warning(f"[SHIPPING] {result.released.message}")
    logger.info(f"[SHIPPING] Item {primary.id} covers {ids or 'no items'}")
    return result
