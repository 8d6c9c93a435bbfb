"""Number parsing utilities for Brazilian formats."""
import re
from decimal import Decimal, InvalidOperation

BR_NUMBER_PATTERN = re.compile(r"^-?(?:\d{1,3}(?:\.\d{3})+|\d+)(?:,\d+)?$")


def parse_br_number(value: str) -> Decimal:
    """
    Parse a number typed at the POS (e.g. "1.234,56", "12,5", "30").

    Rules:
    - Thousands separator: dot (.)
    - Decimal separator: comma (,)
    - Proper thousand grouping (1.234,56 is valid; 1.2,00 is not)

    Raises:
        ValueError: if the value is invalid or empty.
    """
    if value is None:
        raise ValueError('Formato inválido. Use 1.234,56')

    cleaned = value.strip().replace('R$', '').strip()
    if not cleaned or not BR_NUMBER_PATTERN.match(cleaned):
        raise ValueError('Formato inválido. Use 1.234,56')

    normalized = cleaned.replace('.', '').replace(',', '.')
    try:
        return Decimal(normalized)
    except (InvalidOperation, ValueError):
        raise ValueError('Formato inválido. Use 1.234,56')
