"""
Sales service with transactional lifecycle logic.
Handles order submission, cashier completion and cancellation.

Completion and cancellation each run as one unit of work: the sale row and
every product row involved are locked FOR UPDATE, stock and status are
written together, and any failure rolls everything back. The sale's
``version`` column guards against a concurrent writer that got past the
lock (e.g. on backends without row locks).
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from pdv.domain import DraftOrder, PaymentDetails, PolicySettings, DEFAULT_POLICY
from pdv.exceptions import (
    ValidationError, ConsistencyError, AlreadySettledError, InvalidTransitionError
)
from pdv.models import Sale, SaleStatus
from pdv.services import (
    catalog_service, discount_service, payment_service, sale_store_service, stock_ledger_service
)
from pdv.services.pricing_service import build_cart, calculate_total

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = (SaleStatus.BUDGET, SaleStatus.PENDING)


def submit_order(
    session: Session,
    draft: DraftOrder,
    as_budget: bool = False,
    discount_token: Optional[str] = None,
    policy: PolicySettings = DEFAULT_POLICY
) -> Sale:
    """
    Persist a draft as a Budget (quote) or a Pending order.

    A draft loaded from an existing Budget/Pending sale overwrites that
    record instead of creating a new one. Budgets skip payment validation.

    Args:
        discount_token: manager token, required again here when the
            draft's combined discount is above the policy threshold.
    """
    if not draft.lines:
        raise ValidationError('Adicione produtos à venda.')
    if not draft.seller_id:
        raise ValidationError('Vendedor não informado.')

    _restore_original_prices(session, draft)
    totals = build_cart(draft)
    discount_service.authorize_draft(draft, discount_token, policy)
    if draft.discount > 0:
        # Discounted sales are paid in a single installment
        draft.installments = 1

    if not as_budget:
        payment_service.validate_payment(totals.total, draft.payments, policy=policy)

    status = SaleStatus.BUDGET if as_budget else SaleStatus.PENDING
    payload = sale_store_service.draft_payload(draft, totals.total, status)

    try:
        if draft.sale_id:
            sale = sale_store_service.read_sale(session, draft.sale_id, for_update=True)
            if sale.status not in EDITABLE_STATUSES:
                raise InvalidTransitionError(sale.id, sale.status, status)
            if sale.status == SaleStatus.PENDING and status == SaleStatus.BUDGET:
                raise InvalidTransitionError(sale.id, sale.status, status)
            sale = sale_store_service.update_sale(session, sale.id, payload)
            action = 'updated'
        else:
            sale = sale_store_service.create_sale(session, payload)
            action = 'created'

        session.commit()
    except StaleDataError:
        session.rollback()
        raise ConsistencyError(f'Venda #{draft.sale_id} foi alterada por outro usuário. Recarregue e tente novamente.')
    except Exception:
        session.rollback()
        raise

    logger.info(
        f"Sale #{sale.id} {action} as {status.value}: total={totals.total} "
        f"lines={len(draft.lines)} seller={draft.seller_id}"
    )
    _invalidate_dashboard_cache()
    return sale


def complete_order(
    session: Session,
    sale_id: int,
    cashier_id: str,
    cashier_name: str,
    payments: Optional[PaymentDetails] = None,
    installments: Optional[int] = None,
    cashier_ident: Optional[str] = None,
    policy: PolicySettings = DEFAULT_POLICY
) -> Sale:
    """
    Cashier confirmation: receive payment, prorate discount, take stock out.

    Process:
        1. Lock the sale; only Pending sales can be completed
        2. Apply the payment details typed by the cashier, if any
        3. Check the tendered amount against the total (tolerance)
        4. Prorate the order-level discount into the lines
        5. Lock products, check and decrement stock, journal the move
        6. Stamp cashier and completion time, commit

    Raises:
        NotFoundError, AlreadySettledError, InvalidTransitionError,
        PaymentMismatchError, InsufficientStockError, ConsistencyError
    """
    try:
        sale = sale_store_service.read_sale(session, sale_id, for_update=True)

        if sale.status == SaleStatus.COMPLETED:
            raise AlreadySettledError(sale.id, sale.finished_at)
        if sale.status != SaleStatus.PENDING:
            raise InvalidTransitionError(sale.id, sale.status, SaleStatus.COMPLETED)

        # Cashier may have changed the tender split at the register
        update = {}
        if payments is not None:
            update['payments'] = payments.non_zero()
        if installments is not None:
            update['installments'] = max(1, int(installments))
        if cashier_ident is not None:
            update['cashier_ident'] = cashier_ident
        if update:
            sale = sale_store_service.update_sale(session, sale.id, update)
        if Decimal(str(sale.discount)) > 0:
            sale.installments = 1

        total = calculate_total(
            Decimal(str(sale.subtotal)),
            Decimal(str(sale.discount)),
            Decimal(str(sale.freight)),
            Decimal(str(sale.other_costs))
        )
        payment_service.validate_cashier_payment(total, sale_store_service.payments_of(sale), policy)

        sale.discount = stock_ledger_service.prorate_discount(sale.lines, Decimal(str(sale.discount)))
        stock_ledger_service.decrement_stock_for_sale(session, sale)

        sale.status = SaleStatus.COMPLETED
        sale.total_value = total
        sale.cashier_id = cashier_id
        sale.cashier_name = cashier_name
        sale.finished_at = datetime.now()

        session.commit()
    except StaleDataError:
        session.rollback()
        raise ConsistencyError(f'Venda #{sale_id} foi alterada por outro usuário. Recarregue e tente novamente.')
    except Exception:
        session.rollback()
        raise

    logger.info(f"Sale #{sale.id} completed by cashier {cashier_id}: total={sale.total_value}")
    _invalidate_dashboard_cache()
    return sale


def cancel_order(session: Session, sale_id: int) -> Sale:
    """
    Cancel a sale from any status except Cancelled.

    A Completed sale has every line's quantity returned to stock in the
    same transaction as the status change.
    """
    try:
        sale = sale_store_service.read_sale(session, sale_id, for_update=True)

        if sale.status == SaleStatus.CANCELLED:
            raise InvalidTransitionError(sale.id, sale.status, SaleStatus.CANCELLED)

        restocked = sale.status == SaleStatus.COMPLETED
        if restocked:
            stock_ledger_service.restock_sale(session, sale)

        sale.status = SaleStatus.CANCELLED
        sale.cancelled_at = datetime.now()

        session.commit()
    except StaleDataError:
        session.rollback()
        raise ConsistencyError(f'Venda #{sale_id} foi alterada por outro usuário. Recarregue e tente novamente.')
    except Exception:
        session.rollback()
        raise

    logger.info(f"Sale #{sale.id} cancelled (restocked={restocked})")
    _invalidate_dashboard_cache()
    return sale


def list_cashier_queue(session: Session) -> List[Sale]:
    """Pending sales waiting for the cashier, oldest first. Budgets never appear."""
    return session.query(Sale).filter(
        Sale.status == SaleStatus.PENDING
    ).order_by(Sale.created_at, Sale.id).all()


def list_sales(session: Session, status: Optional[SaleStatus] = None, limit: int = 100) -> List[Sale]:
    """Sales history, newest first."""
    query = session.query(Sale)
    if status is not None:
        query = query.filter(Sale.status == status)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()


# =====================================================
# PRIVATE HELPERS
# =====================================================

def _restore_original_prices(session: Session, draft: DraftOrder) -> None:
    """
    Reset every line's discount baseline from the store.

    Lines already on the sale being overwritten keep their persisted
    original price; any other line takes the current catalog price. The
    value sent with the draft is never trusted.
    """
    persisted = {}
    if draft.sale_id:
        sale = sale_store_service.read_sale(session, draft.sale_id)
        for line in sale.lines:
            persisted.setdefault(line.product_id, Decimal(str(line.original_price)))

    for line in draft.lines:
        baseline = persisted.get(line.product_id)
        if baseline is None:
            baseline = Decimal(str(catalog_service.read_product(session, line.product_id).price))
        if line.original_price != baseline:
            logger.warning(
                f"Draft line {line.product_id} sent original_price={line.original_price}, "
                f"using {baseline}"
            )
            line.original_price = baseline


def _invalidate_dashboard_cache():
    """Drop cached dashboard figures after any sale was saved or changed status."""
    from pdv.services.cache_service import get_cache
    try:
        cache = get_cache()
    except RuntimeError:
        # Cache not initialized (service used outside the Flask app)
        return
    cache.invalidate_module('dashboard')
