"""
Sale store - create/read/update sale records.

Field names here are the persistence schema; the lifecycle service talks in
DraftOrder objects and uses these helpers to write them.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from pdv.domain import DraftLine, DraftOrder, PaymentDetails, PRICE_PLACES, money
from pdv.exceptions import NotFoundError
from pdv.models import Sale, SaleLine, SalePayment, SaleStatus

# Scalar columns a caller may set through create_sale/update_sale
SALE_FIELDS = (
    'seller_id', 'seller_name', 'cashier_id', 'cashier_name', 'client_name', 'status',
    'discount', 'freight', 'other_costs', 'total_value', 'installments',
    'observation', 'delivery_address', 'customer_email', 'purchase_order',
    'cashier_ident', 'finished_at', 'cancelled_at',
)


def read_sale(session: Session, sale_id: int, for_update: bool = False) -> Sale:
    query = session.query(Sale).filter(Sale.id == sale_id)
    if for_update:
        query = query.with_for_update()
    sale = query.first()
    if not sale:
        raise NotFoundError(f'Venda #{sale_id} não encontrada')
    return sale


def create_sale(session: Session, payload: Dict[str, Any]) -> Sale:
    """Insert a sale with its lines and payments. Caller commits."""
    sale = Sale(created_at=datetime.now())
    _apply_fields(sale, payload)
    _replace_lines(sale, payload.get('lines') or [])
    _replace_payments(sale, payload.get('payments') or {})
    session.add(sale)
    session.flush()
    return sale


def update_sale(session: Session, sale_id: int, payload: Dict[str, Any]) -> Sale:
    """
    Partial update: only keys present in ``payload`` are written.
    ``lines`` and ``payments``, when present, replace the current ones.
    """
    sale = read_sale(session, sale_id)
    _apply_fields(sale, payload)
    if 'lines' in payload:
        _replace_lines(sale, payload['lines'])
    if 'payments' in payload:
        _replace_payments(sale, payload['payments'])
    session.flush()
    return sale


def _apply_fields(sale: Sale, payload: Dict[str, Any]) -> None:
    for name in SALE_FIELDS:
        if name in payload:
            setattr(sale, name, payload[name])


def _replace_lines(sale: Sale, lines: List[Dict[str, Any]]) -> None:
    sale.lines[:] = [
        SaleLine(
            position=position,
            product_id=line['product_id'],
            product_code=line.get('product_code'),
            product_name=line['product_name'],
            unit=line.get('unit') or 'UNID',
            qty=line['qty'],
            unit_price=line['unit_price'],
            original_price=line['original_price'],
            line_total=line['line_total'],
            observation=line.get('observation') or None,
        )
        for position, line in enumerate(lines)
    ]


def _replace_payments(sale: Sale, amounts: Dict[str, Decimal]) -> None:
    """Upsert one row per non-zero bucket and drop the rest."""
    amounts = {method: amount for method, amount in amounts.items() if amount}
    existing = {p.payment_method: p for p in sale.payments}
    for method, payment in existing.items():
        if method in amounts:
            payment.amount = amounts[method]
        else:
            sale.payments.remove(payment)
    for method, amount in amounts.items():
        if method not in existing:
            sale.payments.append(SalePayment(payment_method=method, amount=amount))


# =====================================================
# DRAFT <-> RECORD
# =====================================================

def draft_payload(draft: DraftOrder, total: Decimal, status: SaleStatus) -> Dict[str, Any]:
    """Persistence payload for a submitted draft."""
    return {
        'seller_id': draft.seller_id,
        'seller_name': draft.seller_name,
        'client_name': draft.client_name,
        'status': status,
        'discount': money(draft.discount),
        'freight': money(draft.freight),
        'other_costs': money(draft.other_costs),
        'total_value': total,
        'installments': draft.installments,
        'observation': draft.observation,
        'delivery_address': draft.delivery_address,
        'customer_email': draft.customer_email,
        'purchase_order': draft.purchase_order,
        'cashier_ident': draft.cashier_ident,
        'lines': [
            {
                'product_id': line.product_id,
                'product_code': line.product_code,
                'product_name': line.product_name,
                'unit': line.unit,
                'qty': line.qty,
                'unit_price': line.unit_price.quantize(PRICE_PLACES),
                'original_price': line.original_price,
                'line_total': line.line_total,
                'observation': line.observation,
            }
            for line in draft.lines
        ],
        'payments': draft.payments.non_zero(),
    }


def payments_of(sale: Sale) -> PaymentDetails:
    return PaymentDetails.from_dict({p.payment_method: p.amount for p in sale.payments})


def sale_to_draft(sale: Sale) -> DraftOrder:
    """Load a persisted sale back into an editable draft."""
    return DraftOrder(
        sale_id=sale.id,
        seller_id=sale.seller_id,
        seller_name=sale.seller_name or '',
        client_name=sale.client_name or '',
        lines=[
            DraftLine(
                product_id=line.product_id,
                product_code=line.product_code,
                product_name=line.product_name,
                unit=line.unit,
                qty=Decimal(str(line.qty)),
                unit_price=Decimal(str(line.unit_price)),
                original_price=Decimal(str(line.original_price)),
                observation=line.observation or '',
            )
            for line in sale.lines
        ],
        discount=Decimal(str(sale.discount or 0)),
        freight=Decimal(str(sale.freight or 0)),
        other_costs=Decimal(str(sale.other_costs or 0)),
        payments=payments_of(sale),
        installments=sale.installments or 1,
        observation=sale.observation or '',
        delivery_address=sale.delivery_address or '',
        customer_email=sale.customer_email or '',
        purchase_order=sale.purchase_order or '',
        cashier_ident=sale.cashier_ident or '',
    )


def sale_to_dict(sale: Sale) -> Dict[str, Any]:
    def _iso(value: Optional[datetime]):
        return value.isoformat() if value else None

    return {
        'id': sale.id,
        'status': sale.status.value,
        'seller_id': sale.seller_id,
        'seller_name': sale.seller_name,
        'cashier_id': sale.cashier_id,
        'cashier_name': sale.cashier_name,
        'client_name': sale.client_name,
        'lines': [
            {
                'product_id': line.product_id,
                'product_code': line.product_code,
                'product_name': line.product_name,
                'unit': line.unit,
                'qty': str(line.qty),
                'unit_price': str(line.unit_price),
                'original_price': str(line.original_price),
                'line_total': str(line.line_total),
                'observation': line.observation or '',
            }
            for line in sale.lines
        ],
        'discount': str(sale.discount),
        'freight': str(sale.freight),
        'other_costs': str(sale.other_costs),
        'total_value': str(sale.total_value),
        'payments': payments_of(sale).to_dict(),
        'installments': sale.installments,
        'observation': sale.observation or '',
        'delivery_address': sale.delivery_address or '',
        'customer_email': sale.customer_email or '',
        'purchase_order': sale.purchase_order or '',
        'cashier_ident': sale.cashier_ident or '',
        'created_at': _iso(sale.created_at),
        'finished_at': _iso(sale.finished_at),
        'cancelled_at': _iso(sale.cancelled_at),
    }
