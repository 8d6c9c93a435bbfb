"""
Integration tests for the order lifecycle: submission, cashier completion
and cancellation against the database.
"""

import pytest
from decimal import Decimal

from pdv.domain import PaymentDetails
from pdv.exceptions import (
    AlreadySettledError, InsufficientStockError, InvalidTransitionError,
    NotFoundError, PaymentMismatchError, PolicyError, ValidationError
)
from pdv.models import Product, Sale, SaleStatus, StockMove, StockMoveType, StockReferenceType
from pdv.services import discount_service, sales_service


def _complete(session, sale_id, **kwargs):
    return sales_service.complete_order(session, sale_id, cashier_id='C01', cashier_name='Caixa Um', **kwargs)


class TestSubmitOrder:
    """Tests for saving drafts as Pending orders or Budgets."""

    def test_submit_pending(self, session, coffee_draft):
        sale = sales_service.submit_order(session, coffee_draft)

        assert sale.id is not None
        assert sale.status == SaleStatus.PENDING
        assert sale.total_value == Decimal('30.00')
        assert len(sale.lines) == 1
        assert sale.lines[0].original_price == Decimal('10.00')
        assert [(p.payment_method, p.amount) for p in sale.payments] == [('cash', Decimal('30.00'))]

    def test_submit_budget_skips_payment_validation(self, session, coffee_draft):
        coffee_draft.payments = PaymentDetails()

        sale = sales_service.submit_order(session, coffee_draft, as_budget=True)

        assert sale.status == SaleStatus.BUDGET
        assert sale.payments == []

    def test_pending_requires_matching_payment(self, session, coffee_draft):
        coffee_draft.payments = PaymentDetails(cash=Decimal('20.00'))

        with pytest.raises(PaymentMismatchError):
            sales_service.submit_order(session, coffee_draft)
        assert session.query(Sale).count() == 0

    def test_empty_cart_rejected(self, session, coffee_draft):
        coffee_draft.lines = []

        with pytest.raises(ValidationError):
            sales_service.submit_order(session, coffee_draft)

    def test_large_discount_needs_token_on_submit(self, session, coffee_draft):
        discount_service.confirm_discount(coffee_draft, '3.00', token='mgr1')
        coffee_draft.payments = PaymentDetails(cash=Decimal('27.00'))

        with pytest.raises(PolicyError):
            sales_service.submit_order(session, coffee_draft)

        sale = sales_service.submit_order(session, coffee_draft, discount_token='mgr1')
        assert sale.discount == Decimal('3.00')
        assert sale.total_value == Decimal('27.00')

    def test_original_price_comes_from_catalog(self, session, coffee_draft):
        """A lowered baseline sent with the draft is replaced by the catalog price."""
        coffee_draft.lines[0].unit_price = Decimal('5.00')
        coffee_draft.lines[0].original_price = Decimal('5.00')
        coffee_draft.payments = PaymentDetails(cash=Decimal('15.00'))

        with pytest.raises(PolicyError):
            sales_service.submit_order(session, coffee_draft)
        assert session.query(Sale).count() == 0

    def test_resubmit_keeps_persisted_original_price(self, session, coffee, coffee_draft):
        coffee_draft.payments = PaymentDetails()
        sale_id = sales_service.submit_order(session, coffee_draft, as_budget=True).id
        coffee.price = Decimal('12.00')
        session.commit()

        coffee_draft.sale_id = sale_id
        coffee_draft.lines[0].original_price = Decimal('9.00')
        sale = sales_service.submit_order(session, coffee_draft, as_budget=True)

        assert sale.lines[0].original_price == Decimal('10.00')

    def test_discounted_submit_forces_single_installment(self, session, coffee_draft):
        coffee_draft.discount = Decimal('1.00')
        coffee_draft.installments = 4
        coffee_draft.payments = PaymentDetails(credit=Decimal('29.00'))

        sale = sales_service.submit_order(session, coffee_draft)

        assert sale.installments == 1

    def test_resubmit_overwrites_same_record(self, session, coffee_draft):
        coffee_draft.payments = PaymentDetails()
        budget = sales_service.submit_order(session, coffee_draft, as_budget=True)
        sale_id = budget.id

        coffee_draft.sale_id = sale_id
        coffee_draft.lines[0].qty = Decimal('4')
        coffee_draft.payments = PaymentDetails(pix=Decimal('40.00'))
        sale = sales_service.submit_order(session, coffee_draft)

        assert sale.id == sale_id
        assert sale.status == SaleStatus.PENDING
        assert sale.total_value == Decimal('40.00')
        assert session.query(Sale).count() == 1
        assert len(sale.lines) == 1
        assert [p.payment_method for p in sale.payments] == ['pix']

    def test_pending_cannot_go_back_to_budget(self, session, coffee_draft):
        sale = sales_service.submit_order(session, coffee_draft)
        coffee_draft.sale_id = sale.id

        with pytest.raises(InvalidTransitionError):
            sales_service.submit_order(session, coffee_draft, as_budget=True)

    def test_completed_sale_cannot_be_edited(self, session, coffee_draft):
        sale = sales_service.submit_order(session, coffee_draft)
        _complete(session, sale.id)
        coffee_draft.sale_id = sale.id

        with pytest.raises(InvalidTransitionError):
            sales_service.submit_order(session, coffee_draft)


class TestCompleteOrder:
    """Tests for cashier confirmation."""

    def test_complete_prorates_discount_and_decrements_stock(self, session, coffee, coffee_draft):
        """Subtotal 30.00 with discount 3.00: factor 0.9, stock 20 -> 17."""
        discount_service.confirm_discount(coffee_draft, '3.00', token='mgr1')
        coffee_draft.payments = PaymentDetails(cash=Decimal('27.00'))
        sale = sales_service.submit_order(session, coffee_draft, discount_token='mgr1')

        sale = _complete(session, sale.id)

        assert sale.status == SaleStatus.COMPLETED
        assert sale.discount == 0
        assert sale.total_value == Decimal('27.00')
        assert sale.lines[0].unit_price == Decimal('9.0000')
        assert sale.lines[0].line_total == Decimal('27.00')
        assert sale.cashier_id == 'C01'
        assert sale.cashier_name == 'Caixa Um'
        assert sale.finished_at is not None
        assert session.get(Product, coffee.id).stock == Decimal('17')

        move = session.query(StockMove).filter_by(sale_id=sale.id).one()
        assert move.type == StockMoveType.OUT
        assert move.reference_type == StockReferenceType.SALE_COMPLETION
        assert [(line.qty, line.stock_before, line.stock_after) for line in move.lines] == [
            (Decimal('3'), Decimal('20'), Decimal('17'))
        ]

    def test_complete_twice_fails(self, session, coffee_draft):
        sale = sales_service.submit_order(session, coffee_draft)
        _complete(session, sale.id)

        with pytest.raises(AlreadySettledError) as exc_info:
            _complete(session, sale.id)

        assert exc_info.value.finished_at is not None
        assert ' em ' in exc_info.value.message

    def test_cashier_cannot_split_discounted_sale(self, session, coffee_draft):
        coffee_draft.discount = Decimal('1.00')
        coffee_draft.payments = PaymentDetails(cash=Decimal('29.00'))
        sale_id = sales_service.submit_order(session, coffee_draft).id

        sale = _complete(session, sale_id, installments=6)

        assert sale.installments == 1

    def test_budget_cannot_be_completed(self, session, coffee_draft):
        sale = sales_service.submit_order(session, coffee_draft, as_budget=True)

        with pytest.raises(InvalidTransitionError):
            _complete(session, sale.id)

    def test_unknown_sale(self, session):
        with pytest.raises(NotFoundError):
            _complete(session, 999)

    def test_insufficient_stock_writes_nothing(self, session, coffee, sugar, coffee_draft, make_line):
        """Sugar has 4 units; the sale asks for 5. Coffee stock must stay untouched."""
        coffee_draft.lines.append(make_line(product_id=sugar.id, qty='5', unit_price='5.49', name=sugar.name))
        coffee_draft.payments = PaymentDetails(cash=Decimal('57.45'))
        sale_id = sales_service.submit_order(session, coffee_draft).id

        with pytest.raises(InsufficientStockError) as exc_info:
            _complete(session, sale_id)

        assert 'Açúcar 1kg' in exc_info.value.message
        assert exc_info.value.required == Decimal('5')
        assert session.get(Product, coffee.id).stock == Decimal('20')
        assert session.get(Product, sugar.id).stock == Decimal('4')
        assert session.get(Sale, sale_id).status == SaleStatus.PENDING
        assert session.query(StockMove).count() == 0

    def test_cashier_payment_mismatch_keeps_pending(self, session, coffee_draft):
        sale_id = sales_service.submit_order(session, coffee_draft).id

        with pytest.raises(PaymentMismatchError) as exc_info:
            _complete(session, sale_id, payments=PaymentDetails(cash=Decimal('25.00')))

        assert exc_info.value.difference == Decimal('5.00')
        assert session.get(Sale, sale_id).status == SaleStatus.PENDING

    def test_cashier_changes_tender_split(self, session, coffee_draft):
        sale_id = sales_service.submit_order(session, coffee_draft).id

        sale = _complete(
            session, sale_id,
            payments=PaymentDetails(cash=Decimal('10.00'), credit=Decimal('20.00')),
            installments=2,
            cashier_ident='Maria'
        )

        assert sorted(p.payment_method for p in sale.payments) == ['cash', 'credit']
        assert sale.installments == 2
        assert sale.cashier_ident == 'Maria'

    def test_same_product_on_two_lines_is_checked_together(self, session, sugar, make_line):
        from pdv.domain import DraftOrder
        draft = DraftOrder(
            seller_id='V01',
            lines=[
                make_line(product_id=sugar.id, qty='3', unit_price='5.49', name=sugar.name),
                make_line(product_id=sugar.id, qty='2', unit_price='5.49', name=sugar.name),
            ],
            payments=PaymentDetails(cash=Decimal('27.45')),
        )
        sale_id = sales_service.submit_order(session, draft).id

        with pytest.raises(InsufficientStockError):
            _complete(session, sale_id)


class TestCancelOrder:
    """Tests for cancellation and restocking."""

    def test_cancel_completed_restores_stock(self, session, coffee, coffee_draft):
        sale_id = sales_service.submit_order(session, coffee_draft).id
        _complete(session, sale_id)
        assert session.get(Product, coffee.id).stock == Decimal('17')

        sale = sales_service.cancel_order(session, sale_id)

        assert sale.status == SaleStatus.CANCELLED
        assert sale.cancelled_at is not None
        assert session.get(Product, coffee.id).stock == Decimal('20')

        restock = session.query(StockMove).filter_by(sale_id=sale_id, type=StockMoveType.IN).one()
        assert restock.reference_type == StockReferenceType.SALE_CANCELLATION
        assert restock.lines[0].qty == Decimal('3')

    def test_cancel_pending_does_not_touch_stock(self, session, coffee, coffee_draft):
        sale_id = sales_service.submit_order(session, coffee_draft).id

        sales_service.cancel_order(session, sale_id)

        assert session.get(Product, coffee.id).stock == Decimal('20')
        assert session.query(StockMove).count() == 0

    def test_cancel_twice_fails(self, session, coffee, coffee_draft):
        sale_id = sales_service.submit_order(session, coffee_draft).id
        _complete(session, sale_id)
        sales_service.cancel_order(session, sale_id)

        with pytest.raises(InvalidTransitionError):
            sales_service.cancel_order(session, sale_id)

        # Stock restored once only
        assert session.get(Product, coffee.id).stock == Decimal('20')

    def test_cancelled_sale_cannot_be_completed(self, session, coffee_draft):
        sale_id = sales_service.submit_order(session, coffee_draft).id
        sales_service.cancel_order(session, sale_id)

        with pytest.raises(InvalidTransitionError):
            _complete(session, sale_id)


class TestQueues:
    """Tests for the cashier queue and sales history."""

    def test_budgets_never_in_cashier_queue(self, session, coffee_draft):
        pending = sales_service.submit_order(session, coffee_draft)
        coffee_draft.sale_id = None
        budget = sales_service.submit_order(session, coffee_draft, as_budget=True)

        queue = sales_service.list_cashier_queue(session)

        assert [s.id for s in queue] == [pending.id]
        assert budget.id not in [s.id for s in queue]

    def test_completed_leaves_queue(self, session, coffee_draft):
        sale_id = sales_service.submit_order(session, coffee_draft).id
        _complete(session, sale_id)

        assert sales_service.list_cashier_queue(session) == []

    def test_list_sales_by_status(self, session, coffee_draft):
        first = sales_service.submit_order(session, coffee_draft).id
        second = sales_service.submit_order(session, coffee_draft).id
        sales_service.cancel_order(session, first)

        assert [s.id for s in sales_service.list_sales(session)] == [second, first]
        assert [s.id for s in sales_service.list_sales(session, status=SaleStatus.CANCELLED)] == [first]
