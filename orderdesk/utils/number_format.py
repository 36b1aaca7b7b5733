"""Number parsing utilities for rates, fees and costs typed by staff."""
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

NUMBER_PATTERN = re.compile(r"^-?\d+(?:\.\d+)?$")


def parse_decimal(value: Any) -> Decimal:
    """
    Parse a user-supplied number to Decimal.

    Accepts Decimal, int, float and strings such as "80", "12.5", " 80 % "
    or "$5.00". Thousands separators are not accepted.

    Raises:
        ValueError: if the value is empty or not a number.
    """
    if value is None or isinstance(value, bool):
        raise ValueError('A number is required')
    
    if isinstance(value, Decimal):
        decimal_value = value
    elif isinstance(value, (int, float)):
        decimal_value = Decimal(str(value))
    else:
        cleaned = str(value).strip().rstrip('%').strip().lstrip('$').strip()
        if not NUMBER_PATTERN.match(cleaned):
            raise ValueError(f'Invalid number: {value!r}')
        try:
            decimal_value = Decimal(cleaned)
        except (InvalidOperation, ValueError):
            raise ValueError(f'Invalid number: {value!r}')
    
    if not decimal_value.is_finite():
        raise ValueError(f'Invalid number: {value!r}')
    return decimal_value


def decimal_to_str(value: Optional[Decimal]) -> Optional[str]:
    """JSON-safe representation of a Decimal column; None stays None."""
    if value is None:
        return None
    return str(value)
