"""Payment reconciliation - multi-tender amounts against the order total."""
import logging
from decimal import Decimal

from pdv.domain import PaymentDetails, PolicySettings, DEFAULT_POLICY, ZERO, money, to_decimal
from pdv.exceptions import PaymentMismatchError
from pdv.utils.formatters import money_br

logger = logging.getLogger(__name__)


def total_paid(payments: PaymentDetails) -> Decimal:
    return payments.total()


def remaining(total: Decimal, payments: PaymentDetails) -> Decimal:
    """Amount still to be tendered (never negative)."""
    return money(max(ZERO, total - payments.total()))


def autofill_remaining(payments: PaymentDetails, bucket: str, total: Decimal) -> PaymentDetails:
    """Add whatever is still missing to one bucket (Enter on a payment field)."""
    missing = remaining(total, payments)
    payments.set(bucket, payments.get(bucket) + missing)
    return payments


def validate_payment(
    total,
    payments: PaymentDetails,
    tolerance: Decimal = None,
    policy: PolicySettings = DEFAULT_POLICY
) -> None:
    """
    Check that the tendered amounts match the total.

    A zero total always passes. Otherwise at least one bucket must be
    filled and the absolute difference must not exceed the tolerance.

    Raises:
        PaymentMismatchError: with ``difference = total - paid``.
    """
    total = to_decimal(total, 'total')
    if tolerance is None:
        tolerance = policy.payment_tolerance
    if total <= 0:
        return

    paid = payments.total()
    if paid == 0:
        raise PaymentMismatchError(
            'Selecione uma forma de pagamento antes de finalizar.',
            difference=money(total)
        )

    difference = total - paid
    if abs(difference) > tolerance:
        if difference > 0:
            detail = f'Falta {money_br(difference)}'
        else:
            detail = f'Sobra {money_br(abs(difference))}'
        logger.info(f"Payment mismatch: total={total} paid={paid} difference={difference}")
        raise PaymentMismatchError(f'Pagamento divergente! {detail}.', difference=money(difference))


def validate_cashier_payment(total, payments: PaymentDetails, policy: PolicySettings = DEFAULT_POLICY) -> None:
    """
    Cashier confirmation check: paid must be within tolerance of the total.

    Unlike :func:`validate_payment` there is no separate "no payment"
    message; an empty tender is simply the full shortfall.
    """
    total = to_decimal(total, 'total')
    difference = total - payments.total()
    if abs(difference) > policy.payment_tolerance:
        detail = f'Falta {money_br(difference)}' if difference > 0 else f'Sobra {money_br(abs(difference))}'
        raise PaymentMismatchError(f'Valor incorreto! {detail}', difference=money(difference))
