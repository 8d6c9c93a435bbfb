"""
Stock ledger operations - discount proration and stock movements for sales.

Nothing here commits: the lifecycle service wraps each call in the same
transaction as the sale's status change.
"""
import logging
from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Sequence

from sqlalchemy.orm import Session

from pdv.domain import PRICE_PLACES, ZERO, money
from pdv.exceptions import InsufficientStockError
from pdv.models import Sale, StockMove, StockMoveLine, StockMoveType, StockReferenceType
from pdv.services import catalog_service

logger = logging.getLogger(__name__)


def prorate_discount(lines: Sequence, discount: Decimal) -> Decimal:
    """
    Fold an order-level discount into the line prices.

    Every unit price is multiplied by ``(subtotal - discount) / subtotal``
    and every line total recomputed. The cent left over by rounding goes to
    the last line, so the line totals add up to exactly
    ``subtotal - discount``.

    Returns the discount that remains on the order: zero once prorated,
    or the untouched discount when there is nothing to prorate into.
    """
    if not lines or discount <= 0:
        return discount

    subtotal = sum((Decimal(str(line.line_total)) for line in lines), ZERO)
    if subtotal <= 0:
        return discount

    target = money(subtotal - discount)
    factor = target / subtotal

    for line in lines:
        line.unit_price = (Decimal(str(line.unit_price)) * factor).quantize(PRICE_PLACES)
        line.line_total = money(line.unit_price * Decimal(str(line.qty)))

    residue = target - sum((line.line_total for line in lines), ZERO)
    if residue:
        lines[-1].line_total = lines[-1].line_total + residue
        logger.debug(f"Proration residue {residue} absorbed by last line")

    return ZERO


def _required_by_product(sale: Sale) -> Dict[int, Decimal]:
    """Total quantity per product, in first-seen line order."""
    required: Dict[int, Decimal] = OrderedDict()
    for line in sale.lines:
        required[line.product_id] = required.get(line.product_id, ZERO) + Decimal(str(line.qty))
    return required


def decrement_stock_for_sale(session: Session, sale: Sale) -> StockMove:
    """
    Take a completed sale's quantities out of stock.

    Every product row is locked and checked before any stock is written,
    so an insufficient line aborts the operation with no partial decrement.

    Raises:
        InsufficientStockError: naming the first product that is short.
    """
    required = _required_by_product(sale)
    products = catalog_service.lock_products(session, required.keys())

    for product_id, qty in required.items():
        product = products[product_id]
        if product.stock < qty:
            raise InsufficientStockError(product.name, qty, product.stock)

    move_lines: List[StockMoveLine] = []
    for product_id, qty in required.items():
        before = products[product_id].stock
        after = before - qty
        catalog_service.write_product_stock(session, product_id, after)
        move_lines.append(StockMoveLine(product_id=product_id, qty=qty, stock_before=before, stock_after=after))

    return _record_move(session, sale, StockMoveType.OUT, StockReferenceType.SALE_COMPLETION, move_lines)


def restock_sale(session: Session, sale: Sale) -> StockMove:
    """Return every line's quantity to stock (cancellation of a completed sale)."""
    required = _required_by_product(sale)
    products = catalog_service.lock_products(session, required.keys())

    move_lines: List[StockMoveLine] = []
    for product_id, qty in required.items():
        before = products[product_id].stock
        after = before + qty
        catalog_service.write_product_stock(session, product_id, after)
        move_lines.append(StockMoveLine(product_id=product_id, qty=qty, stock_before=before, stock_after=after))

    return _record_move(session, sale, StockMoveType.IN, StockReferenceType.SALE_CANCELLATION, move_lines)


def _record_move(session: Session, sale: Sale, move_type: StockMoveType,
                 reference_type: StockReferenceType, lines: List[StockMoveLine]) -> StockMove:
    """Generate the stock movement journal entry for a sale."""
    label = 'Venda' if move_type == StockMoveType.OUT else 'Cancelamento da venda'
    move = StockMove(
        date=datetime.now(),
        type=move_type,
        reference_type=reference_type,
        sale_id=sale.id,
        notes=f'{label} #{sale.id}',
        lines=lines,
    )
    session.add(move)
    session.flush()
    logger.info(f"Stock move {move_type.value} recorded for sale #{sale.id} ({len(lines)} products)")
    return move
