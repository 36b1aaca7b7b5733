"""Manufacturer model."""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from orderdesk.database import Base, BigIntegerPK


class Manufacturer(Base):
    """Manufacturer (supplies costs for line items and accessories)."""
    
    __tablename__ = 'manufacturer'
    
    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    
    def __repr__(self):
        return f"<Manufacturer(id={self.id}, name='{self.name}')>"
