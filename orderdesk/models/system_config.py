"""System-wide configuration rows (key/value)."""
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func
from orderdesk.database import Base, BigIntegerPK


class ConfigKey:
    """Keys of the pricing defaults stored in system_config."""
    PRODUCT_MARGIN = 'default_margin_percentage'
    SHIPPING_MARGIN = 'default_shipping_margin_percentage'
    SAMPLE_MARGIN = 'default_sample_margin_percentage'
    ACCESSORY_MARGIN = 'accessory_margin_percentage'
    CLOTHING_FEE = 'clothing_product_fee'


class SystemConfig(Base):
    """
    One configuration value.

    Values are stored as text; pricing code parses them to Decimal and treats
    unparseable rows as missing.
    """
    
    __tablename__ = 'system_config'
    
    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    config_key = Column(String(100), nullable=False, unique=True)
    config_value = Column(Text, nullable=True)
    description = Column(String(255), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    def __repr__(self):
        return f"<SystemConfig(key='{self.config_key}', value='{self.config_value}')>"
