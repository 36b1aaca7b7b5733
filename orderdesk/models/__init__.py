"""Models package - exports all SQLAlchemy models."""
from orderdesk.models.system_config import SystemConfig, ConfigKey
from orderdesk.models.client import Client, ClientPricingOverride
from orderdesk.models.manufacturer import Manufacturer
from orderdesk.models.order import Order, OrderMargin
from orderdesk.models.line_item import LineItem, ShippingMethod
from orderdesk.models.accessory import AccessoryInventory

__all__ = [
    'SystemConfig', 'ConfigKey',
    'Client', 'ClientPricingOverride', 'Manufacturer',
    'Order', 'OrderMargin', 'LineItem', 'ShippingMethod',
    'AccessoryInventory',
]
