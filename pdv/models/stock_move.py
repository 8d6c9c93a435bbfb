"""Stock Move model."""
from sqlalchemy import Column, DateTime, Text, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pdv.database import Base, BigId
import enum


class StockMoveType(enum.Enum):
    """Stock move type enum."""
    IN = "IN"
    OUT = "OUT"


class StockReferenceType(enum.Enum):
    """Stock move reference type enum."""
    SALE_COMPLETION = "SALE_COMPLETION"
    SALE_CANCELLATION = "SALE_CANCELLATION"


class StockMove(Base):
    """Stock Move (movimento de estoque)."""

    __tablename__ = 'stock_move'

    id = Column(BigId, primary_key=True, autoincrement=True)
    date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    type = Column(Enum(StockMoveType, name='stock_move_type'), nullable=False)
    reference_type = Column(Enum(StockReferenceType, name='stock_ref_type'), nullable=False)
    sale_id = Column(BigId, ForeignKey('sale.id'), nullable=True, index=True)
    notes = Column(Text, nullable=True)

    # Relationships
    lines = relationship('StockMoveLine', back_populates='stock_move', cascade='all, delete-orphan')

    def __repr__(self):
        return f"<StockMove(id={self.id}, type={self.type.value}, reference_type={self.reference_type.value})>"
