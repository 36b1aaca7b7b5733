"""Client and per-client pricing override models."""
from sqlalchemy import Column, BigInteger, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from orderdesk.database import Base, BigIntegerPK


class Client(Base):
    """Client (the party that places and pays for orders)."""
    
    __tablename__ = 'client'
    
    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    
    # Relationships
    pricing_override = relationship('ClientPricingOverride', uselist=False, back_populates='client',
                                    cascade='all, delete-orphan')
    orders = relationship('Order', back_populates='client')
    
    def __repr__(self):
        return f"<Client(id={self.id}, name='{self.name}')>"


class ClientPricingOverride(Base):
    """
    Per-client margin overrides.

    Every column is nullable; NULL means "inherit the system default".
    There is no clothing fee or accessory margin at this layer.
    """
    
    __tablename__ = 'client_pricing_override'
    
    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    client_id = Column(BigInteger, ForeignKey('client.id'), nullable=False, unique=True)
    custom_margin_percentage = Column(Numeric(6, 2), nullable=True)
    custom_shipping_margin_percentage = Column(Numeric(6, 2), nullable=True)
    custom_sample_margin_percentage = Column(Numeric(6, 2), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    client = relationship('Client', back_populates='pricing_override')
    
    def __repr__(self):
        return (
            f"<ClientPricingOverride(client_id={self.client_id}, product={self.custom_margin_percentage}, "
            f"shipping={self.custom_shipping_margin_percentage}, sample={self.custom_sample_margin_percentage})>"
        )
