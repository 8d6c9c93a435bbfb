"""Stock Move Line model."""
from sqlalchemy import Column, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from pdv.database import Base, BigId


class StockMoveLine(Base):
    """Stock Move Line - one product's quantity change inside a move."""

    __tablename__ = 'stock_move_line'

    id = Column(BigId, primary_key=True, autoincrement=True)
    stock_move_id = Column(BigId, ForeignKey('stock_move.id'), nullable=False)
    product_id = Column(BigId, ForeignKey('product.id'), nullable=False)
    qty = Column(Numeric(10, 2), nullable=False)
    stock_before = Column(Numeric(10, 2), nullable=False)
    stock_after = Column(Numeric(10, 2), nullable=False)

    # Relationships
    stock_move = relationship('StockMove', back_populates='lines')
    product = relationship('Product')

    def __repr__(self):
        return f"<StockMoveLine(id={self.id}, product_id={self.product_id}, qty={self.qty})>"
