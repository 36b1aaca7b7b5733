"""Order records: clients, manufacturers, orders, line items and accessories."""
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from orderdesk.models import Client, Manufacturer, Order, LineItem, AccessoryInventory, ShippingMethod
from orderdesk.exceptions import NotFoundError, ValidationError
from orderdesk.services.price_calculator import validate_cost


def _require_name(name: Optional[str], field: str = 'name') -> str:
    if not name or not name.strip():
        raise ValidationError(f'{field} is required', field=field)
    return name.strip()


def get_order(session: Session, order_id: int) -> Order:
    order = session.get(Order, order_id)
    if not order:
        raise NotFoundError(f'Order {order_id} not found')
    return order


def get_line_item(session: Session, item_id: int) -> LineItem:
    item = session.get(LineItem, item_id)
    if not item:
        raise NotFoundError(f'Line item {item_id} not found')
    return item


def create_client(session: Session, name: str, email: Optional[str] = None) -> Client:
    """Create a client. The name is required."""
    client = Client(name=_require_name(name), email=(email or '').strip() or None)
    session.add(client)
    session.commit()
    return client


def create_manufacturer(session: Session, name: str) -> Manufacturer:
    manufacturer = Manufacturer(name=_require_name(name))
    session.add(manufacturer)
    session.commit()
    return manufacturer


def generate_order_number(session: Session) -> str:
    """Generate a unique order number (ORD-YYYYMMDD-NNNN)."""
    prefix = f"ORD-{datetime.now().strftime('%Y%m%d')}-"
    count = session.query(Order).filter(Order.order_number.like(f"{prefix}%")).count()
    return f"{prefix}{str(count + 1).zfill(4)}"


def create_order(
    session: Session,
    client_id: int,
    manufacturer_id: Optional[int] = None,
    order_name: Optional[str] = None,
    order_number: Optional[str] = None
) -> Order:
    """Create an order for a client. No OrderMargin row is created here."""
    if not session.get(Client, client_id):
        raise NotFoundError(f'Client {client_id} not found')
    if manufacturer_id is not None and not session.get(Manufacturer, manufacturer_id):
        raise NotFoundError(f'Manufacturer {manufacturer_id} not found')
    
    order = Order(
        client_id=client_id,
        manufacturer_id=manufacturer_id,
        order_name=(order_name or '').strip() or None,
        order_number=order_number or generate_order_number(session)
    )
    session.add(order)
    session.commit()
    return order


def add_line_item(
    session: Session,
    order_id: int,
    description: str,
    is_clothing: bool = False,
    quantity: int = 0,
    selected_shipping_method: Optional[str] = None
) -> LineItem:
    """Add a product to an order. Costs and prices are filled in later."""
    order = get_order(session, order_id)
    description = _require_name(description, 'description')
    
    if quantity is None or int(quantity) < 0:
        raise ValidationError('quantity cannot be negative', field='quantity')
    
    if selected_shipping_method is not None:
        try:
            selected_shipping_method = ShippingMethod(selected_shipping_method).value
        except ValueError:
            raise ValidationError(
                f'Unknown shipping method: {selected_shipping_method}', field='selected_shipping_method'
            )
    
    position = len(order.line_items) + 1
    item = LineItem(
        order_id=order.id,
        product_order_number=f"{order.order_number}-{str(position).zfill(2)}",
        description=description,
        is_clothing=bool(is_clothing),
        quantity=int(quantity),
        selected_shipping_method=selected_shipping_method
    )
    session.add(item)
    session.commit()
    return item


def add_accessory(
    session: Session,
    client_id: int,
    name: str,
    unit_cost=None,
    manufacturer_id: Optional[int] = None,
    quantity: int = 0
) -> AccessoryInventory:
    """Register an accessory held for a client. client_unit_cost is set by recalculation."""
    if not session.get(Client, client_id):
        raise NotFoundError(f'Client {client_id} not found')
    
    accessory = AccessoryInventory(
        client_id=client_id,
        manufacturer_id=manufacturer_id,
        name=_require_name(name),
        quantity=int(quantity or 0),
        unit_cost=validate_cost(unit_cost, 'unit_cost') if unit_cost is not None else None
    )
    session.add(accessory)
    session.commit()
    return accessory
