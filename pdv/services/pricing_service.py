"""Pricing engine - cart subtotal and total. Pure functions, no session."""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from pdv.domain import DraftLine, DraftOrder, ZERO, money


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    total: Decimal

    def to_dict(self):
        return {'subtotal': str(self.subtotal), 'total': str(self.total)}


def calculate_subtotal(lines: Iterable[DraftLine]) -> Decimal:
    """Sum of line totals (each already rounded to cents)."""
    return money(sum((line.line_total for line in lines), ZERO))


def original_value(lines: Iterable[DraftLine]) -> Decimal:
    """Sum of qty x original price: the undiscounted value of the cart."""
    return sum((line.original_total for line in lines), ZERO)


def calculate_total(subtotal: Decimal, discount: Decimal, freight: Decimal, other_costs: Decimal) -> Decimal:
    """total = max(0, subtotal - discount + freight + other_costs)."""
    return money(max(ZERO, subtotal - discount + freight + other_costs))


def calculate_totals(
    lines: Iterable[DraftLine],
    discount: Decimal = ZERO,
    freight: Decimal = ZERO,
    other_costs: Decimal = ZERO
) -> CartTotals:
    lines = list(lines)
    subtotal = calculate_subtotal(lines)
    return CartTotals(
        subtotal=subtotal,
        total=calculate_total(subtotal, discount, freight, other_costs),
    )


def build_cart(draft: DraftOrder) -> CartTotals:
    """Totals for a draft; recomputed after every cart mutation."""
    return calculate_totals(draft.lines, draft.discount, draft.freight, draft.other_costs)
