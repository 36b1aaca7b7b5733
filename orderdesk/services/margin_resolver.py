"""
Margin resolution.

Walks the override chain (item -> order -> client -> system) for one price
category and reports which layer produced the value. Each category has its
own chain; layers that do not exist for a category are skipped:

    product    item.product_margin_override -> order -> client -> system
    shipping   item.shipping_margin_override -> order -> client -> system
    sample     client -> system
    clothing   item.clothing_fee_override -> system
    accessory  system

Resolution never fails: when no layer has a value the hard-coded safety
default for the category is returned with source ``system``.
"""
import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

# Write-path argument default: leave the stored override as it is (None clears it)
UNCHANGED = object()


class PriceCategory(enum.Enum):
    """Price categories handled by the pricing engine."""
    PRODUCT = "product"
    SHIPPING = "shipping"
    SAMPLE = "sample"
    CLOTHING = "clothing"
    ACCESSORY = "accessory"


class RateSource(enum.Enum):
    """Layer that produced a resolved rate or fee."""
    ITEM = "item"
    ORDER = "order"
    CLIENT = "client"
    SYSTEM = "system"


SAFETY_DEFAULTS = {
    PriceCategory.PRODUCT: Decimal('80'),
    PriceCategory.SHIPPING: Decimal('5'),
    PriceCategory.SAMPLE: Decimal('80'),
    PriceCategory.ACCESSORY: Decimal('100'),
    PriceCategory.CLOTHING: Decimal('0'),
}

# (layer, attribute on the record of that layer), most specific first
_CHAINS = {
    PriceCategory.PRODUCT: (
        (RateSource.ITEM, 'product_margin_override'),
        (RateSource.ORDER, 'margin_percentage'),
        (RateSource.CLIENT, 'custom_margin_percentage'),
    ),
    PriceCategory.SHIPPING: (
        (RateSource.ITEM, 'shipping_margin_override'),
        (RateSource.ORDER, 'shipping_margin_percentage'),
        (RateSource.CLIENT, 'custom_shipping_margin_percentage'),
    ),
    PriceCategory.SAMPLE: (
        (RateSource.CLIENT, 'custom_sample_margin_percentage'),
    ),
    PriceCategory.CLOTHING: (
        (RateSource.ITEM, 'clothing_fee_override'),
    ),
    PriceCategory.ACCESSORY: (),
}


@dataclass(frozen=True)
class SystemPricingDefaults:
    """System-wide pricing defaults. None means the row is missing."""
    product_margin_pct: Optional[Decimal] = None
    shipping_margin_pct: Optional[Decimal] = None
    sample_margin_pct: Optional[Decimal] = None
    accessory_margin_pct: Optional[Decimal] = None
    clothing_flat_fee: Optional[Decimal] = None
    
    def for_category(self, category) -> Optional[Decimal]:
        category = PriceCategory(category)
        return {
            PriceCategory.PRODUCT: self.product_margin_pct,
            PriceCategory.SHIPPING: self.shipping_margin_pct,
            PriceCategory.SAMPLE: self.sample_margin_pct,
            PriceCategory.ACCESSORY: self.accessory_margin_pct,
            PriceCategory.CLOTHING: self.clothing_flat_fee,
        }[category]
    
    def effective(self, category) -> Decimal:
        """System value for a category, or the safety default when missing."""
        value = self.for_category(category)
        if value is None:
            return SAFETY_DEFAULTS[PriceCategory(category)]
        return Decimal(value)


@dataclass(frozen=True)
class ResolvedRate:
    """A margin % or flat fee together with the layer it came from."""
    value: Decimal
    source: RateSource
    
    def to_dict(self) -> Dict[str, Any]:
        return {'value': str(self.value), 'source': self.source.value}


def resolve_rate(
    category,
    item=None,
    order_margin=None,
    client_override=None,
    defaults: Optional[SystemPricingDefaults] = None
) -> ResolvedRate:
    """
    Resolve the effective margin % (or clothing fee) for one category.
    
    Args:
        category: PriceCategory or its string value
        item: LineItem or AccessoryInventory (any object with the override attributes)
        order_margin: OrderMargin of the enclosing order, if any
        client_override: ClientPricingOverride of the owning client, if any
        defaults: SystemPricingDefaults; None behaves like an empty config
    
    Returns:
        ResolvedRate with the first non-null value of the chain
    """
    category = PriceCategory(category)
    records = {
        RateSource.ITEM: item,
        RateSource.ORDER: order_margin,
        RateSource.CLIENT: client_override,
    }
    
    for source, attribute in _CHAINS[category]:
        record = records[source]
        if record is None:
            continue
        value = getattr(record, attribute, None)
        if value is not None:
            return ResolvedRate(Decimal(value), source)
    
    defaults = defaults or SystemPricingDefaults()
    return ResolvedRate(defaults.effective(category), RateSource.SYSTEM)


def resolve_all(item=None, order_margin=None, client_override=None, defaults=None) -> Dict[PriceCategory, ResolvedRate]:
    """Resolve every category for one item (used by the rates endpoint)."""
    return {
        category: resolve_rate(category, item, order_margin, client_override, defaults)
        for category in PriceCategory
    }
