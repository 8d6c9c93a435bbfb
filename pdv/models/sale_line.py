"""Sale Line model."""
from sqlalchemy import Column, Integer, String, Numeric, Text, ForeignKey
from sqlalchemy.orm import relationship
from pdv.database import Base, BigId


class SaleLine(Base):
    """
    Sale Line (item do pedido).

    Product code, name and unit are copied at add-time so later catalog
    edits never rewrite historical sales.
    """

    __tablename__ = 'sale_line'

    id = Column(BigId, primary_key=True, autoincrement=True)
    sale_id = Column(BigId, ForeignKey('sale.id', ondelete='CASCADE'), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    product_id = Column(BigId, ForeignKey('product.id'), nullable=False)
    product_code = Column(String(50), nullable=True)
    product_name = Column(String, nullable=False)
    unit = Column(String(10), nullable=False, default='UNID')
    qty = Column(Numeric(10, 2), nullable=False)
    unit_price = Column(Numeric(14, 4), nullable=False)  # 4 dp survives proration
    original_price = Column(Numeric(10, 2), nullable=False)
    line_total = Column(Numeric(10, 2), nullable=False)
    observation = Column(Text, nullable=True)

    # Relationships
    sale = relationship('Sale', back_populates='lines')
    product = relationship('Product')

    def __repr__(self):
        return f"<SaleLine(id={self.id}, product_id={self.product_id}, qty={self.qty})>"
