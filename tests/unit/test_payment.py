"""
Unit tests for payment reconciliation.
"""

import pytest
from decimal import Decimal

from pdv.domain import PaymentDetails
from pdv.exceptions import PaymentMismatchError, ValidationError
from pdv.services import payment_service


class TestValidatePayment:
    """Tests for the tender-vs-total check."""

    def test_exact_payment_passes(self):
        payments = PaymentDetails(cash=Decimal('30.00'))

        payment_service.validate_payment(Decimal('30.00'), payments)
        assert payment_service.remaining(Decimal('30.00'), payments) == Decimal('0.00')

    @pytest.mark.parametrize('paid', ['29.95', '29.96', '30.04', '30.05'])
    def test_within_tolerance_passes(self, paid):
        payment_service.validate_payment(Decimal('30.00'), PaymentDetails(pix=Decimal(paid)))

    def test_shortfall_carries_positive_difference(self):
        with pytest.raises(PaymentMismatchError) as exc_info:
            payment_service.validate_payment(Decimal('30.00'), PaymentDetails(cash=Decimal('29.94')))

        error = exc_info.value
        assert error.difference == Decimal('0.06')
        assert 'Falta R$ 0,06' in error.message
        assert error.to_dict()['difference'] == '0.06'

    def test_overage_carries_negative_difference(self):
        with pytest.raises(PaymentMismatchError) as exc_info:
            payment_service.validate_payment(Decimal('30.00'), PaymentDetails(cash=Decimal('30.10')))

        assert exc_info.value.difference == Decimal('-0.10')
        assert 'Sobra R$ 0,10' in exc_info.value.message

    def test_no_payment_method(self):
        with pytest.raises(PaymentMismatchError) as exc_info:
            payment_service.validate_payment(Decimal('30.00'), PaymentDetails())

        assert 'forma de pagamento' in exc_info.value.message
        assert exc_info.value.difference == Decimal('30.00')

    @pytest.mark.parametrize('payments', [PaymentDetails(), PaymentDetails(cash=Decimal('10'))])
    def test_zero_total_always_passes(self, payments):
        payment_service.validate_payment(Decimal('0'), payments)

    def test_split_tender(self):
        payments = PaymentDetails(cash=Decimal('10.00'), debit=Decimal('15.00'), voucher=Decimal('5.00'))

        payment_service.validate_payment(Decimal('30.00'), payments)
        assert payment_service.total_paid(payments) == Decimal('30.00')

    def test_custom_tolerance(self):
        payment_service.validate_payment(Decimal('30.00'), PaymentDetails(cash=Decimal('29.50')), tolerance=Decimal('0.50'))


class TestCashierPayment:
    """Tests for the check run at cashier confirmation."""

    def test_empty_tender_is_full_shortfall(self):
        with pytest.raises(PaymentMismatchError) as exc_info:
            payment_service.validate_cashier_payment(Decimal('27.00'), PaymentDetails())

        assert exc_info.value.difference == Decimal('27.00')
        assert exc_info.value.message.startswith('Valor incorreto!')

    def test_within_tolerance(self):
        payment_service.validate_cashier_payment(Decimal('27.00'), PaymentDetails(credit=Decimal('26.96')))


class TestAutofill:
    """Tests for filling the remaining amount into one bucket."""

    def test_autofill_adds_missing_amount(self):
        payments = PaymentDetails(cash=Decimal('10.00'))

        payment_service.autofill_remaining(payments, 'pix', Decimal('30.00'))

        assert payments.pix == Decimal('20.00')
        assert payment_service.remaining(Decimal('30.00'), payments) == Decimal('0.00')

    def test_autofill_when_already_paid_adds_nothing(self):
        payments = PaymentDetails(cash=Decimal('40.00'))
        payment_service.autofill_remaining(payments, 'cash', Decimal('30.00'))
        assert payments.cash == Decimal('40.00')

    def test_autofill_unknown_bucket(self):
        with pytest.raises(ValidationError):
            payment_service.autofill_remaining(PaymentDetails(), 'bitcoin', Decimal('30.00'))
