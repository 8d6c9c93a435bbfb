"""Product model."""
from sqlalchemy import Column, String, Boolean, Numeric, DateTime, Text, CheckConstraint
from sqlalchemy.sql import func
from pdv.database import Base, BigId


class Product(Base):
    """Product model (catalog snapshot read by the order core)."""

    __tablename__ = 'product'
    __table_args__ = (
        CheckConstraint('stock >= 0', name='ck_product_stock_non_negative'),
    )

    id = Column(BigId, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    unit = Column(String(10), nullable=False, default='UNID', server_default='UNID')
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Product(id={self.id}, code='{self.code}', stock={self.stock})>"
