"""
Client price calculation.

Single routine for turning a manufacturer cost into a client price. Every
write path (cost submission, order/item override edits, bulk recalculation)
goes through compute_client_price so all of them round the same way.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from orderdesk.exceptions import ValidationError
from orderdesk.services.margin_resolver import PriceCategory
from orderdesk.utils.number_format import parse_decimal

CENT = Decimal('0.01')
HUNDRED = Decimal('100')
MIN_MARGIN_PCT = Decimal('0')
MAX_MARGIN_PCT = Decimal('500')


def round_currency(value: Any) -> Decimal:
    """Round to the cent, ties away from zero."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _as_decimal(value: Any, field: str) -> Decimal:
    """Parse and round to the cent so computed and stored values agree."""
    try:
        return round_currency(parse_decimal(value))
    except ValueError:
        raise ValidationError(f'{field} must be a number', field=field)


def validate_rate(value: Any, field: str = 'margin') -> Decimal:
    """Margin percentages must be within [0, 500]."""
    rate = _as_decimal(value, field)
    if rate < MIN_MARGIN_PCT or rate > MAX_MARGIN_PCT:
        raise ValidationError(
            f'{field} must be between {MIN_MARGIN_PCT} and {MAX_MARGIN_PCT}, got {rate}',
            field=field
        )
    return rate


def validate_fee(value: Any, field: str = 'fee') -> Decimal:
    """Flat fees must be zero or positive."""
    fee = _as_decimal(value, field)
    if fee < 0:
        raise ValidationError(f'{field} cannot be negative, got {fee}', field=field)
    return fee


def validate_cost(value: Any, field: str = 'cost') -> Decimal:
    """Manufacturer costs must be zero or positive."""
    cost = _as_decimal(value, field)
    if cost < 0:
        raise ValidationError(f'{field} cannot be negative, got {cost}', field=field)
    return cost


def validate_for_category(category, value: Any, field: str = None) -> Decimal:
    """Validate a rate-or-fee according to what the category expects."""
    category = PriceCategory(category)
    if category is PriceCategory.CLOTHING:
        return validate_fee(value, field or 'clothing_fee')
    return validate_rate(value, field or f'{category.value}_margin')


def compute_client_price(cost: Any, rate_or_fee: Any, category) -> Decimal:
    """
    Apply a margin (or the clothing flat fee) to a cost.
    
    margin categories:  round2(cost * (1 + rate / 100))
    clothing:           round2(cost + fee)
    
    Raises:
        ValidationError: negative cost, negative fee or rate outside [0, 500]
    """
    category = PriceCategory(category)
    cost = validate_cost(cost)
    value = validate_for_category(category, rate_or_fee)
    
    if category is PriceCategory.CLOTHING:
        return round_currency(cost + value)
    return round_currency(cost * (1 + value / HUNDRED))
