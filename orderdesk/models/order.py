"""Order and order-level margin models."""
from sqlalchemy import Column, BigInteger, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from orderdesk.database import Base, BigIntegerPK


class Order(Base):
    """Manufacturing order placed by a client."""
    
    __tablename__ = 'orders'
    
    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    order_number = Column(String(64), nullable=False, unique=True)
    order_name = Column(String(200), nullable=True)
    client_id = Column(BigInteger, ForeignKey('client.id'), nullable=False)
    manufacturer_id = Column(BigInteger, ForeignKey('manufacturer.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    client = relationship('Client', back_populates='orders')
    manufacturer = relationship('Manufacturer')
    margin = relationship('OrderMargin', uselist=False, back_populates='order')
    line_items = relationship('LineItem', back_populates='order', order_by='LineItem.id',
                              cascade='all, delete-orphan')
    
    def __repr__(self):
        return f"<Order(id={self.id}, number='{self.order_number}')>"


class OrderMargin(Base):
    """
    Order-level margin overrides.

    Created lazily on the first order-level edit and never deleted.
    NULL columns inherit from the client / system layers.
    """
    
    __tablename__ = 'order_margin'
    
    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    order_id = Column(BigInteger, ForeignKey('orders.id'), nullable=False, unique=True)
    margin_percentage = Column(Numeric(6, 2), nullable=True)
    shipping_margin_percentage = Column(Numeric(6, 2), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    order = relationship('Order', back_populates='margin')
    
    def __repr__(self):
        return (
            f"<OrderMargin(order_id={self.order_id}, product={self.margin_percentage}, "
            f"shipping={self.shipping_margin_percentage})>"
        )
