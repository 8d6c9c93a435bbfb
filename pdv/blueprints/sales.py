"""
Sales API blueprint - JSON surface over the order core.

The cart lives on the client: every cart/discount/payment endpoint receives
the current draft as ``{"draft": {...}}`` and answers with the updated
draft and its totals. Only ``POST /api/sales`` and the cashier endpoints
touch the database.
"""
from flask import Blueprint, request, jsonify, current_app

from pdv.blueprints.metrics import record_sale_event
from pdv.database import get_session
from pdv.domain import DraftOrder, PaymentDetails, policy_from_config
from pdv.exceptions import ValidationError
from pdv.models import SaleStatus
from pdv.services import (
    cart_service, discount_service, payment_service, sale_store_service, sales_service
)
from pdv.services.pricing_service import build_cart

sales_bp = Blueprint('sales', __name__, url_prefix='/api')


def _payload() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError('Corpo da requisição deve ser um objeto JSON.')
    return payload


def _draft(payload: dict) -> DraftOrder:
    data = payload.get('draft')
    if not isinstance(data, dict):
        raise ValidationError('Carrinho (draft) não informado.')
    return DraftOrder.from_dict(data)


def _policy():
    return policy_from_config(current_app.config)


def _draft_response(draft: DraftOrder, **extra):
    body = {
        'status': 'success',
        'draft': draft.to_dict(),
        'totals': build_cart(draft).to_dict(),
    }
    body.update(extra)
    return jsonify(body)


# ============================================================================
# Cart (stateless, draft in / draft out)
# ============================================================================

@sales_bp.route('/cart/totals', methods=['POST'])
def cart_totals():
    """Subtotal and total for the draft."""
    draft = _draft(_payload())
    return _draft_response(draft)


@sales_bp.route('/cart/items', methods=['POST'])
def cart_add():
    """Add a product line. Body: draft, product_id, qty, unit_price (optional)."""
    payload = _payload()
    draft = _draft(payload)
    try:
        product_id = int(payload.get('product_id') or 0)
    except (TypeError, ValueError):
        raise ValidationError('Selecione um produto válido.')

    line, notice = cart_service.add_item(
        get_session(), draft, product_id,
        qty=payload.get('qty', 1),
        unit_price=payload.get('unit_price'),
        policy=_policy()
    )
    current_app.logger.info(f"[cart_add] product_id={line.product_id} qty={line.qty} lines={len(draft.lines)}")
    return _draft_response(draft, notice=notice)


@sales_bp.route('/cart/items/<int:index>', methods=['PUT'])
def cart_edit(index):
    """Edit one line's price/qty/observation under the per-line cap."""
    payload = _payload()
    draft = _draft(payload)
    result = cart_service.edit_item(
        draft, index,
        payload.get('unit_price'),
        qty=payload.get('qty'),
        observation=payload.get('observation'),
        policy=_policy()
    )
    return _draft_response(draft, notice=result.notice)


@sales_bp.route('/cart/items/<int:index>', methods=['DELETE'])
def cart_remove(index):
    payload = _payload()
    draft = _draft(payload)
    cart_service.remove_item(draft, index)
    return _draft_response(draft)


@sales_bp.route('/cart/adjustments', methods=['POST'])
def cart_adjustments():
    """Set freight and/or other costs."""
    payload = _payload()
    draft = _draft(payload)
    cart_service.set_adjustments(draft, payload.get('freight'), payload.get('other_costs'))
    return _draft_response(draft)


# ============================================================================
# Discount
# ============================================================================

@sales_bp.route('/discount/propose', methods=['POST'])
def discount_propose():
    """
    Recompute the three discount views from whichever one was edited.

    Body: draft plus exactly one of ``amount``, ``percent``, ``target_total``.
    With none of them, returns the views of the draft's current discount.
    """
    payload = _payload()
    draft = _draft(payload)
    views = {k: payload.get(k) for k in ('amount', 'percent', 'target_total') if payload.get(k) is not None}
    if views:
        proposal = discount_service.propose_discount(draft, policy=_policy(), **views)
    else:
        proposal = discount_service.current_discount(draft, _policy())
    return jsonify({'status': 'success', 'proposal': proposal.to_dict()})


@sales_bp.route('/discount/confirm', methods=['POST'])
def discount_confirm():
    """Apply the order-level discount. Body: draft, amount, token (optional)."""
    payload = _payload()
    draft = _draft(payload)
    proposal = discount_service.confirm_discount(
        draft, payload.get('amount'), token=payload.get('token'), policy=_policy()
    )
    return _draft_response(draft, proposal=proposal.to_dict())


@sales_bp.route('/discount', methods=['DELETE'])
def discount_clear():
    payload = _payload()
    draft = _draft(payload)
    cart_service.clear_discount(draft)
    return _draft_response(draft)


# ============================================================================
# Payments
# ============================================================================

@sales_bp.route('/payments/validate', methods=['POST'])
def payments_validate():
    """
    Check the draft's payments against its total.

    With ``autofill`` set to a bucket name, the missing amount is first
    added to that bucket.
    """
    payload = _payload()
    draft = _draft(payload)
    totals = build_cart(draft)
    if payload.get('autofill'):
        payment_service.autofill_remaining(draft.payments, payload['autofill'], totals.total)

    payment_service.validate_payment(totals.total, draft.payments, policy=_policy())
    return _draft_response(
        draft,
        paid=str(payment_service.total_paid(draft.payments)),
        remaining=str(payment_service.remaining(totals.total, draft.payments))
    )


# ============================================================================
# Sales lifecycle
# ============================================================================

@sales_bp.route('/sales', methods=['POST'])
def sales_submit():
    """Save the draft as a Pending order, or as a Budget with ``as_budget``."""
    payload = _payload()
    draft = _draft(payload)
    sale = sales_service.submit_order(
        get_session(), draft,
        as_budget=bool(payload.get('as_budget')),
        discount_token=payload.get('discount_token'),
        policy=_policy()
    )
    record_sale_event(sale.status.value.lower())
    status_code = 200 if draft.sale_id else 201
    return jsonify({'status': 'success', 'sale': sale_store_service.sale_to_dict(sale)}), status_code


@sales_bp.route('/sales', methods=['GET'])
def sales_list():
    status = request.args.get('status')
    if status:
        try:
            status = SaleStatus(status.upper())
        except ValueError:
            raise ValidationError(f'Status inválido: {status}')
    try:
        limit = min(int(request.args.get('limit', 100)), 500)
    except ValueError:
        raise ValidationError('Parâmetro limit inválido.')

    sales = sales_service.list_sales(get_session(), status=status or None, limit=limit)
    return jsonify({'status': 'success', 'sales': [sale_store_service.sale_to_dict(s) for s in sales]})


@sales_bp.route('/sales/pending', methods=['GET'])
def sales_pending():
    """Cashier queue."""
    sales = sales_service.list_cashier_queue(get_session())
    return jsonify({'status': 'success', 'sales': [sale_store_service.sale_to_dict(s) for s in sales]})


@sales_bp.route('/sales/<int:sale_id>', methods=['GET'])
def sales_detail(sale_id):
    sale = sale_store_service.read_sale(get_session(), sale_id)
    return jsonify({'status': 'success', 'sale': sale_store_service.sale_to_dict(sale)})


@sales_bp.route('/sales/<int:sale_id>/draft', methods=['GET'])
def sales_draft(sale_id):
    """Reopen a sale as a draft; ``?mode=cashier`` only accepts Pending sales."""
    if request.args.get('mode') == 'cashier':
        draft = cart_service.load_sale_for_cashier(get_session(), sale_id)
    else:
        draft = cart_service.load_sale_for_edit(get_session(), sale_id)
    return _draft_response(draft)


@sales_bp.route('/sales/<int:sale_id>/complete', methods=['POST'])
def sales_complete(sale_id):
    """
    Cashier confirmation.

    Body: cashier_id, cashier_name, and optionally payments (bucket ->
    amount), installments and cashier_ident typed at the register.
    """
    payload = _payload()
    cashier_id = str(payload.get('cashier_id') or '').strip()
    if not cashier_id:
        raise ValidationError('Caixa não informado.')

    payments = None
    if payload.get('payments') is not None:
        payments = PaymentDetails.from_dict(payload['payments'])

    installments = payload.get('installments')
    if installments is not None:
        try:
            installments = int(installments)
        except (TypeError, ValueError):
            raise ValidationError('Número de parcelas inválido.')

    sale = sales_service.complete_order(
        get_session(), sale_id,
        cashier_id=cashier_id,
        cashier_name=payload.get('cashier_name') or '',
        payments=payments,
        installments=installments,
        cashier_ident=payload.get('cashier_ident'),
        policy=_policy()
    )
    record_sale_event('completed', sale.total_value)
    return jsonify({'status': 'success', 'sale': sale_store_service.sale_to_dict(sale)})


@sales_bp.route('/sales/<int:sale_id>/cancel', methods=['POST'])
def sales_cancel(sale_id):
    sale = sales_service.cancel_order(get_session(), sale_id)
    record_sale_event('cancelled')
    return jsonify({'status': 'success', 'sale': sale_store_service.sale_to_dict(sale)})
