"""LineItem model (one product inside an order, with its pricing)."""
import enum
from sqlalchemy import Column, BigInteger, String, Text, Boolean, Numeric, DateTime, ForeignKey, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from orderdesk.database import Base, BigIntegerPK


class ShippingMethod(enum.Enum):
    """Shipping method chosen for a line item."""
    AIR = "air"
    BOAT = "boat"


class LineItem(Base):
    """
    Line item (order product).

    Manufacturer-side columns hold costs, client-side columns hold computed
    prices. The three override columns are the only per-item pricing layer;
    an override is "explicit" exactly when its column is not NULL.
    """
    
    __tablename__ = 'order_product'
    
    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    order_id = Column(BigInteger, ForeignKey('orders.id'), nullable=False)
    product_order_number = Column(String(64), nullable=True)
    description = Column(String(255), nullable=True)
    is_clothing = Column(Boolean, nullable=False, default=False)
    quantity = Column(BigInteger, nullable=False, default=0)
    selected_shipping_method = Column(String(10), nullable=True)  # air, boat
    
    # Manufacturer costs
    product_price = Column(Numeric(14, 2), nullable=True)
    shipping_air_price = Column(Numeric(14, 2), nullable=True)
    shipping_boat_price = Column(Numeric(14, 2), nullable=True)
    sample_fee = Column(Numeric(14, 2), nullable=True)
    
    # Client prices
    client_product_price = Column(Numeric(14, 2), nullable=True)
    client_shipping_air_price = Column(Numeric(14, 2), nullable=True)
    client_shipping_boat_price = Column(Numeric(14, 2), nullable=True)
    client_sample_fee = Column(Numeric(14, 2), nullable=True)
    margin_applied = Column(Numeric(6, 2), nullable=True)
    
    # Item-level overrides (NULL = inherit)
    product_margin_override = Column(Numeric(6, 2), nullable=True)
    shipping_margin_override = Column(Numeric(6, 2), nullable=True)
    clothing_fee_override = Column(Numeric(14, 2), nullable=True)
    
    # Shipping coverage
    shipping_linked_item_ids = Column(JSON().with_variant(JSONB, 'postgresql'), nullable=True)
    shipping_link_note = Column(Text, nullable=True)
    
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    order = relationship('Order', back_populates='line_items')
    
    def __repr__(self):
        return (
            f"<LineItem(id={self.id}, order_id={self.order_id}, cost={self.product_price}, "
            f"client_price={self.client_product_price})>"
        )
    
    @property
    def has_product_override(self):
        return self.product_margin_override is not None
    
    @property
    def has_shipping_override(self):
        return self.shipping_margin_override is not None
    
    @property
    def has_clothing_fee_override(self):
        return self.clothing_fee_override is not None
    
    @property
    def covers_shipping_for(self):
        """Ids of sibling items whose shipping this item pays for."""
        return list(self.shipping_linked_item_ids or [])
