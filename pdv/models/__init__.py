"""Models package - exports all SQLAlchemy models."""
from pdv.models.product import Product
from pdv.models.sale import Sale, SaleStatus
from pdv.models.sale_line import SaleLine
from pdv.models.sale_payment import SalePayment
from pdv.models.stock_move import StockMove, StockMoveType, StockReferenceType
from pdv.models.stock_move_line import StockMoveLine

__all__ = [
    'Product',
    'Sale', 'SaleStatus', 'SaleLine', 'SalePayment',
    'StockMove', 'StockMoveType', 'StockReferenceType', 'StockMoveLine',
]
