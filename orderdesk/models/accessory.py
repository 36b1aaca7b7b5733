"""Accessory inventory model."""
from sqlalchemy import Column, BigInteger, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from orderdesk.database import Base, BigIntegerPK


class AccessoryInventory(Base):
    """
    Accessory stock a manufacturer holds for a client.

    Priced per unit: unit_cost comes from the manufacturer, client_unit_cost is
    derived with the accessory margin.
    """
    
    __tablename__ = 'manufacturer_accessories_inventory'
    
    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    client_id = Column(BigInteger, ForeignKey('client.id'), nullable=False)
    manufacturer_id = Column(BigInteger, ForeignKey('manufacturer.id'), nullable=True)
    name = Column(String(200), nullable=False)
    quantity = Column(BigInteger, nullable=False, default=0)
    unit_cost = Column(Numeric(14, 2), nullable=True)
    client_unit_cost = Column(Numeric(14, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    client = relationship('Client')
    manufacturer = relationship('Manufacturer')
    
    def __repr__(self):
        return f"<AccessoryInventory(id={self.id}, name='{self.name}', unit_cost={self.unit_cost})>"
