"""Sale model."""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Text, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pdv.database import Base, BigId
import enum


class SaleStatus(enum.Enum):
    """Sale status enum."""
    BUDGET = "BUDGET"        # Saved quote, never shown to the cashier
    PENDING = "PENDING"      # Waiting for the cashier
    COMPLETED = "COMPLETED"  # Paid and stock decremented
    CANCELLED = "CANCELLED"


class Sale(Base):
    """Sale (pedido de venda)."""

    __tablename__ = 'sale'

    id = Column(BigId, primary_key=True, autoincrement=True)
    seller_id = Column(String(64), nullable=False)
    seller_name = Column(String(120), nullable=False, default='')
    cashier_id = Column(String(64), nullable=True)
    cashier_name = Column(String(120), nullable=True)
    client_name = Column(String(200), nullable=True)
    status = Column(Enum(SaleStatus, name='sale_status'), nullable=False, default=SaleStatus.PENDING)

    # Money
    discount = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    freight = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    other_costs = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    total_value = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    installments = Column(Integer, nullable=False, default=1, server_default='1')

    # Free-text POS footer fields
    observation = Column(Text, nullable=True)
    delivery_address = Column(Text, nullable=True)
    customer_email = Column(String(200), nullable=True)
    purchase_order = Column(String(100), nullable=True)
    cashier_ident = Column(String(120), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    finished_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Optimistic lock: concurrent writers on the same sale raise StaleDataError
    version = Column(Integer, nullable=False)

    # Relationships
    lines = relationship(
        'SaleLine', back_populates='sale', cascade='all, delete-orphan',
        order_by='SaleLine.position'
    )
    payments = relationship('SalePayment', back_populates='sale', cascade='all, delete-orphan')

    __mapper_args__ = {'version_id_col': version}

    @property
    def subtotal(self):
        """Sum of line totals."""
        return sum((line.line_total for line in self.lines), 0)

    def __repr__(self):
        return f"<Sale(id={self.id}, total={self.total_value}, status={self.status.value})>"
