"""Cart composition - building a DraftOrder line by line at the POS."""
import logging
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from pdv.domain import DraftLine, DraftOrder, PolicySettings, DEFAULT_POLICY, to_decimal
from pdv.exceptions import ValidationError, InvalidTransitionError
from pdv.models import SaleStatus
from pdv.services import catalog_service, discount_service, sale_store_service
from pdv.utils.formatters import num_br

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = (SaleStatus.BUDGET, SaleStatus.PENDING)


def add_item(
    session: Session,
    draft: DraftOrder,
    product_id: Optional[int],
    qty=1,
    unit_price=None,
    policy: PolicySettings = DEFAULT_POLICY
) -> Tuple[DraftLine, Optional[str]]:
    """
    Append a product to the cart.

    Stock is checked against the quantity of this product already in the
    cart plus the new quantity. Code, name, unit and catalog price are
    copied onto the line so later catalog edits do not affect it.
    """
    if not product_id:
        raise ValidationError('Selecione um produto válido.')

    qty = to_decimal(qty, 'quantidade')
    if qty <= 0:
        raise ValidationError('A quantidade deve ser maior que 0.')

    product = catalog_service.read_product(session, product_id)
    if not product.active:
        raise ValidationError(f'O produto "{product.name}" não está ativo.')

    in_cart = sum((line.qty for line in draft.lines if line.product_id == product.id), Decimal('0'))
    if product.stock < in_cart + qty:
        raise ValidationError(f'Estoque insuficiente! Disponível: {num_br(product.stock)}')

    original = Decimal(str(product.price))
    notice = None
    price = original
    if unit_price is not None:
        price, notice = discount_service.clamp_price(unit_price, original, policy)

    line = DraftLine(
        product_id=product.id,
        product_code=product.code,
        product_name=product.name,
        unit=product.unit or 'UNID',
        qty=qty,
        unit_price=price,
        original_price=original,
    )
    draft.lines.append(line)
    logger.debug(f"Cart: added product={product.id} qty={qty} price={price}")
    return line, notice


def remove_item(draft: DraftOrder, index: int) -> DraftLine:
    if index < 0 or index >= len(draft.lines):
        raise ValidationError('Item não encontrado no carrinho.')
    return draft.lines.pop(index)


def edit_item(draft: DraftOrder, index: int, unit_price, qty=None, observation=None,
              policy: PolicySettings = DEFAULT_POLICY):
    """Line edit under the per-line discount rule."""
    return discount_service.apply_line_edit(draft, index, unit_price, qty, observation, policy)


def set_adjustments(draft: DraftOrder, freight=None, other_costs=None) -> DraftOrder:
    """Freight and other costs are added on top of the subtotal."""
    if freight is not None:
        freight = to_decimal(freight, 'frete')
        if freight < 0:
            raise ValidationError('O frete não pode ser negativo.')
        draft.freight = freight
    if other_costs is not None:
        other_costs = to_decimal(other_costs, 'outras despesas')
        if other_costs < 0:
            raise ValidationError('Outras despesas não podem ser negativas.')
        draft.other_costs = other_costs
    return draft


def clear_discount(draft: DraftOrder) -> DraftOrder:
    """Drop the global discount so lines can be edited again."""
    draft.discount = Decimal('0')
    return draft


def load_sale_for_edit(session: Session, sale_id: int) -> DraftOrder:
    """Reopen a Budget or Pending sale as a draft; resubmitting overwrites it."""
    sale = sale_store_service.read_sale(session, sale_id)
    if sale.status not in EDITABLE_STATUSES:
        raise InvalidTransitionError(sale.id, sale.status, SaleStatus.PENDING)
    return sale_store_service.sale_to_draft(sale)


def load_sale_for_cashier(session: Session, sale_id: int) -> DraftOrder:
    """Open a Pending sale in cashier mode (only payments can change)."""
    sale = sale_store_service.read_sale(session, sale_id)
    if sale.status != SaleStatus.PENDING:
        raise InvalidTransitionError(sale.id, sale.status, SaleStatus.COMPLETED)
    return sale_store_service.sale_to_draft(sale)
