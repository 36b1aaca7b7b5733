"""
Pricing configuration service.

System-wide defaults live in system_config as key/value rows; per-client
overrides live in client_pricing_override. Both are read-mostly: defaults are
cached through the Redis cache service when it is available.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional

from flask import current_app, has_app_context
from sqlalchemy.orm import Session

from orderdesk.models import SystemConfig, ConfigKey, Client, ClientPricingOverride
from orderdesk.exceptions import NotFoundError, ValidationError
from orderdesk.services.cache_service import get_cache
from orderdesk.services.margin_resolver import UNCHANGED, PriceCategory, SystemPricingDefaults, SAFETY_DEFAULTS
from orderdesk.services.price_calculator import validate_rate, validate_fee

logger = logging.getLogger(__name__)

CACHE_MODULE = 'pricing'
CACHE_KEY_DEFAULTS = 'system_defaults'

# SystemPricingDefaults field -> (config key, category, description)
_DEFAULT_FIELDS = {
    'product_margin_pct': (ConfigKey.PRODUCT_MARGIN, PriceCategory.PRODUCT,
                           'Default margin percentage for products'),
    'shipping_margin_pct': (ConfigKey.SHIPPING_MARGIN, PriceCategory.SHIPPING,
                            'Default margin percentage for shipping fees'),
    'sample_margin_pct': (ConfigKey.SAMPLE_MARGIN, PriceCategory.SAMPLE,
                          'Default margin percentage for sample fees and tech packs'),
    'accessory_margin_pct': (ConfigKey.ACCESSORY_MARGIN, PriceCategory.ACCESSORY,
                             'Default margin percentage for accessories'),
    'clothing_flat_fee': (ConfigKey.CLOTHING_FEE, PriceCategory.CLOTHING,
                          'Flat fee per unit for clothing products (bypasses percentage margin)'),
}


def _parse_config_value(raw: Optional[str]) -> Optional[Decimal]:
    """Config rows are text; anything unparseable counts as missing."""
    if raw is None or not str(raw).strip():
        return None
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        logger.warning(f"[PRICING] Ignoring unparseable config value {raw!r}")
        return None
    return value if value.is_finite() else None


def _read_default_rows(session: Session) -> Dict[str, Optional[str]]:
    keys = [key for key, _, _ in _DEFAULT_FIELDS.values()]
    rows = session.query(SystemConfig).filter(SystemConfig.config_key.in_(keys)).all()
    return {row.config_key: row.config_value for row in rows}


def _pricing_cache():
    try:
        return get_cache()
    except RuntimeError:
        return None


def invalidate_defaults_cache() -> None:
    cache = _pricing_cache()
    if cache:
        cache.delete(CACHE_MODULE, CACHE_KEY_DEFAULTS)


def load_system_defaults(session: Session) -> SystemPricingDefaults:
    """
    Load system pricing defaults.
    
    Missing rows come back as None so the resolver can apply its safety
    defaults; a missing row is never an error.
    """
    cache = _pricing_cache()
    if cache:
        ttl = current_app.config.get('CACHE_PRICING_TTL') if has_app_context() else None
        raw = cache.memoize(CACHE_MODULE, CACHE_KEY_DEFAULTS, lambda: _read_default_rows(session), ttl)
    else:
        raw = _read_default_rows(session)
    
    return SystemPricingDefaults(**{
        field: _parse_config_value(raw.get(key))
        for field, (key, _, _) in _DEFAULT_FIELDS.items()
    })


def update_system_defaults(session: Session, **values) -> SystemPricingDefaults:
    """
    Update one or more system defaults.
    
    Accepts the SystemPricingDefaults field names as keyword arguments.
    Every value is validated before anything is written.
    
    Raises:
        ValidationError: unknown field, margin outside [0, 500] or negative fee
    """
    validated = {}
    for field, value in values.items():
        if field not in _DEFAULT_FIELDS:
            raise ValidationError(f'Unknown pricing default: {field}', field=field)
        if value is None:
            continue
        _, category, _ = _DEFAULT_FIELDS[field]
        if category is PriceCategory.CLOTHING:
            validated[field] = validate_fee(value, field)
        else:
            validated[field] = validate_rate(value, field)
    
    if not validated:
        return load_system_defaults(session)
    
    try:
        for field, value in validated.items():
            key, _, description = _DEFAULT_FIELDS[field]
            row = session.query(SystemConfig).filter(SystemConfig.config_key == key).first()
            if row is None:
                row = SystemConfig(config_key=key, description=description)
                session.add(row)
            row.config_value = str(value)
        session.commit()
    except Exception:
        session.rollback()
        raise
    
    invalidate_defaults_cache()
    logger.info(f"[PRICING] System defaults updated: {', '.join(f'{k}={v}' for k, v in validated.items())}")
    return load_system_defaults(session)


def seed_system_defaults(session: Session) -> int:
    """Insert safety-default rows for any missing default. Returns rows created."""
    existing = _read_default_rows(session)
    created = 0
    try:
        for key, category, description in _DEFAULT_FIELDS.values():
            if key in existing:
                continue
            session.add(SystemConfig(
                config_key=key,
                config_value=str(SAFETY_DEFAULTS[category]),
                description=description
            ))
            created += 1
        session.commit()
    except Exception:
        session.rollback()
        raise
    
    if created:
        invalidate_defaults_cache()
    return created


def get_client_override(session: Session, client_id: int) -> Optional[ClientPricingOverride]:
    """Return the client's pricing override row, or None when it has none."""
    return session.query(ClientPricingOverride).filter(
        ClientPricingOverride.client_id == client_id
    ).first()


def set_client_override(
    session: Session,
    client_id: int,
    product_margin_pct=UNCHANGED,
    shipping_margin_pct=UNCHANGED,
    sample_margin_pct=UNCHANGED
) -> ClientPricingOverride:
    """
    Set or clear a client's margin overrides.
    
    None clears that layer back to "inherit the system default"; a margin
    that is not passed keeps its stored value.
    Existing order prices are not recomputed.
    """
    client = session.get(Client, client_id)
    if not client:
        raise NotFoundError(f'Client {client_id} not found')
    
    changes = {}
    for field, column, value in (
        ('product_margin_pct', 'custom_margin_percentage', product_margin_pct),
        ('shipping_margin_pct', 'custom_shipping_margin_percentage', shipping_margin_pct),
        ('sample_margin_pct', 'custom_sample_margin_percentage', sample_margin_pct),
    ):
        if value is not UNCHANGED:
            changes[column] = validate_rate(value, field) if value is not None else None
    
    try:
        override = get_client_override(session, client_id)
        if override is None:
            override = ClientPricingOverride(client_id=client_id)
            session.add(override)
        for column, value in changes.items():
            setattr(override, column, value)
        session.commit()
    except Exception:
        session.rollback()
        raise
    
    logger.info(
        f"[PRICING] Client {client_id} overrides: product={override.custom_margin_percentage}, "
        f"shipping={override.custom_shipping_margin_percentage}, "
        f"sample={override.custom_sample_margin_percentage}"
    )
    return override
