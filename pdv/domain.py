# ==============================================================================
# DRAFT ORDER - in-memory cart value objects
# ==============================================================================
# The cart being composed at the POS is an explicit DraftOrder passed into the
# pricing, discount and payment engines. Nothing here touches the database.
# ==============================================================================

from dataclasses import dataclass, field, fields
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from pdv.exceptions import ValidationError
from pdv.utils.number_format import parse_br_number

CENT = Decimal('0.01')
PRICE_PLACES = Decimal('0.0001')
ZERO = Decimal('0')

# Tender buckets accepted at the POS, in display order
TENDER_BUCKETS = (
    'cash', 'debit', 'credit', 'pix', 'boleto',
    'store_credit', 'voucher', 'transfer', 'cheque',
)


def to_decimal(value: Any, field_name: str = 'valor') -> Decimal:
    """Coerce operator/JSON input to Decimal. None and '' become zero."""
    if value is None or value == '':
        return ZERO
    try:
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, str) and ',' in value:
            result = parse_br_number(value)
        else:
            result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f'Valor inválido para {field_name}: {value!r}')
    # NaN and Infinity parse fine but break every comparison downstream
    if not result.is_finite():
        raise ValidationError(f'Valor inválido para {field_name}: {value!r}')
    return result


def money(value: Decimal) -> Decimal:
    """Round to cents."""
    return value.quantize(CENT)


@dataclass
class DraftLine:
    """
    One cart line.

    Attributes:
        original_price: catalog price captured when the line was added; the
            baseline for every discount computation and never edited.
        unit_price: price actually charged, bounded by the per-line cap.
    """
    product_id: int
    product_name: str
    qty: Decimal
    unit_price: Decimal
    original_price: Decimal
    product_code: Optional[str] = None
    unit: str = 'UNID'
    observation: str = ''

    @property
    def line_total(self) -> Decimal:
        return money(self.qty * self.unit_price)

    @property
    def original_total(self) -> Decimal:
        return self.qty * self.original_price

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'product_code': self.product_code,
            'product_name': self.product_name,
            'unit': self.unit,
            'qty': str(self.qty),
            'unit_price': str(self.unit_price),
            'original_price': str(self.original_price),
            'line_total': str(self.line_total),
            'observation': self.observation,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DraftLine':
        if not data.get('product_id'):
            raise ValidationError('Selecione um produto válido.')
        qty = to_decimal(data.get('qty'), 'quantidade')
        if qty <= 0:
            raise ValidationError('A quantidade deve ser maior que 0.')
        unit_price = to_decimal(data.get('unit_price'), 'preço unitário')
        if data.get('original_price') in (None, ''):
            raise ValidationError('Preço original do item não informado.')
        original_price = to_decimal(data['original_price'], 'preço original')
        return cls(
            product_id=int(data['product_id']),
            product_code=data.get('product_code'),
            product_name=data.get('product_name', ''),
            unit=data.get('unit') or 'UNID',
            qty=qty,
            unit_price=unit_price,
            original_price=original_price,
            observation=data.get('observation') or '',
        )


@dataclass
class PaymentDetails:
    """Amounts tendered per bucket. Every bucket is a non-negative amount."""
    cash: Decimal = ZERO
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    pix: Decimal = ZERO
    boleto: Decimal = ZERO
    store_credit: Decimal = ZERO
    voucher: Decimal = ZERO
    transfer: Decimal = ZERO
    cheque: Decimal = ZERO

    def __post_init__(self):
        for f in fields(self):
            amount = to_decimal(getattr(self, f.name), f.name)
            if amount < 0:
                raise ValidationError(f'O valor de {f.name} não pode ser negativo.')
            setattr(self, f.name, amount)

    def total(self) -> Decimal:
        return sum((getattr(self, name) for name in TENDER_BUCKETS), ZERO)

    def get(self, bucket: str) -> Decimal:
        _check_bucket(bucket)
        return getattr(self, bucket)

    def set(self, bucket: str, amount) -> None:
        _check_bucket(bucket)
        amount = to_decimal(amount, bucket)
        if amount < 0:
            raise ValidationError(f'O valor de {bucket} não pode ser negativo.')
        setattr(self, bucket, amount)

    def non_zero(self) -> Dict[str, Decimal]:
        return {name: getattr(self, name) for name in TENDER_BUCKETS if getattr(self, name) != 0}

    def to_dict(self) -> Dict[str, str]:
        return {name: str(getattr(self, name)) for name in TENDER_BUCKETS}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'PaymentDetails':
        data = data or {}
        unknown = set(data) - set(TENDER_BUCKETS)
        if unknown:
            raise ValidationError(f'Forma de pagamento inválida: {", ".join(sorted(unknown))}')
        return cls(**{k: to_decimal(v, k) for k, v in data.items()})


def _check_bucket(bucket: str) -> None:
    if bucket not in TENDER_BUCKETS:
        raise ValidationError(f'Forma de pagamento inválida: {bucket}')


@dataclass
class DraftOrder:
    """
    Cart being composed at the POS.

    ``sale_id`` is set when the draft was loaded from a persisted Budget or
    Pending sale; submitting it overwrites that record.
    """
    seller_id: str
    seller_name: str = ''
    sale_id: Optional[int] = None
    client_name: str = ''
    lines: List[DraftLine] = field(default_factory=list)
    discount: Decimal = ZERO
    freight: Decimal = ZERO
    other_costs: Decimal = ZERO
    payments: PaymentDetails = field(default_factory=PaymentDetails)
    installments: int = 1
    observation: str = ''
    delivery_address: str = ''
    customer_email: str = ''
    purchase_order: str = ''
    cashier_ident: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sale_id': self.sale_id,
            'seller_id': self.seller_id,
            'seller_name': self.seller_name,
            'client_name': self.client_name,
            'lines': [line.to_dict() for line in self.lines],
            'discount': str(self.discount),
            'freight': str(self.freight),
            'other_costs': str(self.other_costs),
            'payments': self.payments.to_dict(),
            'installments': self.installments,
            'observation': self.observation,
            'delivery_address': self.delivery_address,
            'customer_email': self.customer_email,
            'purchase_order': self.purchase_order,
            'cashier_ident': self.cashier_ident,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DraftOrder':
        """Build a draft from a JSON payload (HTTP layer)."""
        adjustments = {}
        for name in ('discount', 'freight', 'other_costs'):
            amount = to_decimal(data.get(name), name)
            if amount < 0:
                raise ValidationError(f'O valor de {name} não pode ser negativo.')
            adjustments[name] = amount
        try:
            installments = int(data.get('installments') or 1)
        except (TypeError, ValueError):
            raise ValidationError('Número de parcelas inválido.')
        return cls(
            sale_id=int(data['sale_id']) if data.get('sale_id') else None,
            seller_id=str(data.get('seller_id') or ''),
            seller_name=data.get('seller_name') or '',
            client_name=data.get('client_name') or '',
            lines=[DraftLine.from_dict(item) for item in data.get('lines') or []],
            payments=PaymentDetails.from_dict(data.get('payments')),
            installments=max(1, installments),
            observation=data.get('observation') or '',
            delivery_address=data.get('delivery_address') or '',
            customer_email=data.get('customer_email') or '',
            purchase_order=data.get('purchase_order') or '',
            cashier_ident=data.get('cashier_ident') or '',
            **adjustments
        )


@dataclass(frozen=True)
class PolicySettings:
    """Discount and payment policy knobs (see config.Config)."""
    item_discount_cap: Decimal = Decimal('0.06')
    token_threshold: Decimal = Decimal('6')  # percent
    token_min_length: int = 3
    payment_tolerance: Decimal = Decimal('0.05')

    @property
    def item_price_floor_factor(self) -> Decimal:
        return Decimal('1') - self.item_discount_cap


DEFAULT_POLICY = PolicySettings()


def policy_from_config(config: Dict[str, Any]) -> PolicySettings:
    """Build PolicySettings from a Flask config mapping."""
    return PolicySettings(
        item_discount_cap=to_decimal(config.get('ITEM_DISCOUNT_CAP', DEFAULT_POLICY.item_discount_cap)),
        token_threshold=to_decimal(config.get('DISCOUNT_TOKEN_THRESHOLD', DEFAULT_POLICY.token_threshold)),
        token_min_length=int(config.get('DISCOUNT_TOKEN_MIN_LENGTH', DEFAULT_POLICY.token_min_length)),
        payment_tolerance=to_decimal(config.get('PAYMENT_TOLERANCE', DEFAULT_POLICY.payment_tolerance)),
    )
