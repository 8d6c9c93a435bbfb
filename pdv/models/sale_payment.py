"""Sale Payment model for mixed payment methods."""
from sqlalchemy import Column, String, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from pdv.database import Base, BigId


class SalePayment(Base):
    """
    Sale Payment - amount tendered in one bucket (cash, pix, ...).

    A sale has at most one row per bucket; zero buckets are not stored.
    """

    __tablename__ = 'sale_payment'
    __table_args__ = (
        UniqueConstraint('sale_id', 'payment_method', name='uq_sale_payment_method'),
    )

    id = Column(BigId, primary_key=True, autoincrement=True)
    sale_id = Column(BigId, ForeignKey('sale.id', ondelete='CASCADE'), nullable=False, index=True)

    payment_method = Column(String(20), nullable=False)  # see pdv.domain.TENDER_BUCKETS
    amount = Column(Numeric(10, 2), nullable=False)

    # Relationships
    sale = relationship('Sale', back_populates='payments')

    def __repr__(self):
        return f"<SalePayment(id={self.id}, sale_id={self.sale_id}, method={self.payment_method}, amount={self.amount})>"
