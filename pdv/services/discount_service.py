"""
Discount authorization engine.

Two tiers of discount are supported:

- per line: the operator edits a line's unit price; the price is clamped to
  a floor of ``original_price x (1 - cap)``.
- order level (global): a single amount taken off the subtotal. The amount
  is the only stored quantity; the combined percent and the target total
  are always derived from it.

The combined percent measures every discount on the cart (line-level plus
global) against the undiscounted value ``sum(qty x original_price)``. A
combined percent above the policy threshold needs a manager token.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple

from pdv.domain import DraftLine, DraftOrder, PolicySettings, DEFAULT_POLICY, ZERO, PRICE_PLACES, money, to_decimal
from pdv.exceptions import PolicyError, ValidationError
from pdv.services.pricing_service import calculate_subtotal, original_value
from pdv.utils.formatters import num_br

logger = logging.getLogger(__name__)

HUNDRED = Decimal('100')


@dataclass(frozen=True)
class LineEditResult:
    line: DraftLine
    notice: Optional[str] = None


@dataclass(frozen=True)
class DiscountProposal:
    """The three views of one order-level discount amount."""
    amount: Decimal
    percent: Decimal
    target_total: Decimal
    requires_token: bool

    def to_dict(self):
        return {
            'amount': str(self.amount),
            'percent': str(self.percent.quantize(PRICE_PLACES)),
            'target_total': str(self.target_total),
            'requires_token': self.requires_token,
        }


# =====================================================
# PER-LINE EDIT
# =====================================================

def clamp_price(unit_price, original: Decimal, policy: PolicySettings = DEFAULT_POLICY) -> Tuple[Decimal, Optional[str]]:
    """
    Apply the per-line price rule. Returns (price, notice).

    Empty or zero reverts to ``original``; anything below the floor is
    raised to the floor.
    """
    price = to_decimal(unit_price, 'preço unitário')
    if price == 0:
        return original, 'Valor inválido. Revertido para o preço original.'
    if price < 0:
        raise ValidationError('O preço não pode ser negativo.')

    floor = (original * policy.item_price_floor_factor).quantize(PRICE_PLACES)
    if price < floor:
        return floor, (
            f'Preço ajustado para o limite máximo de '
            f'{num_br(policy.item_discount_cap * HUNDRED)}% de desconto.'
        )
    return price, None


def apply_line_edit(
    draft: DraftOrder,
    index: int,
    unit_price,
    qty=None,
    observation: Optional[str] = None,
    policy: PolicySettings = DEFAULT_POLICY
) -> LineEditResult:
    """
    Edit one cart line in place.

    An empty or zero price reverts the line to its original price; a price
    below the floor is raised to the floor. Both cases return a notice for
    the operator instead of failing.
    """
    if draft.discount != 0:
        raise PolicyError('Remova o desconto global antes de editar o preço dos itens.')
    if index < 0 or index >= len(draft.lines):
        raise ValidationError('Item não encontrado no carrinho.')

    line = draft.lines[index]

    if qty is not None:
        qty = to_decimal(qty, 'quantidade')
        if qty <= 0:
            raise ValidationError('A quantidade deve ser maior que 0.')

    original = line.original_price or line.unit_price
    price, notice = clamp_price(unit_price, original, policy)

    # Nothing is written until both values are valid
    if qty is not None:
        line.qty = qty
    line.unit_price = price
    if observation is not None:
        line.observation = observation

    if notice:
        logger.info(f"Line {index} ({line.product_name}) price adjusted: {notice}")
    return LineEditResult(line=line, notice=notice)


# =====================================================
# ORDER-LEVEL DISCOUNT VIEWS
# =====================================================

def combined_percent(original: Decimal, subtotal: Decimal, amount: Decimal) -> Decimal:
    """(line-level discount + global amount) / original value x 100."""
    if original <= 0:
        return ZERO
    return (original - subtotal + amount) / original * HUNDRED


def _proposal(draft: DraftOrder, amount: Decimal, policy: PolicySettings) -> DiscountProposal:
    amount = money(amount)
    subtotal = calculate_subtotal(draft.lines)
    percent = combined_percent(original_value(draft.lines), subtotal, amount)
    return DiscountProposal(
        amount=amount,
        percent=percent,
        target_total=money(max(ZERO, subtotal - amount)),
        requires_token=percent > policy.token_threshold,
    )


def propose_discount_from_amount(draft: DraftOrder, amount, policy: PolicySettings = DEFAULT_POLICY) -> DiscountProposal:
    amount = to_decimal(amount, 'desconto')
    if amount < 0:
        raise ValidationError('O desconto não pode ser negativo.')
    return _proposal(draft, amount, policy)


def propose_discount_from_percent(draft: DraftOrder, percent, policy: PolicySettings = DEFAULT_POLICY) -> DiscountProposal:
    """Back-solve the global amount that yields the given combined percent."""
    percent = to_decimal(percent, 'percentual')
    if percent < 0:
        raise ValidationError('O percentual não pode ser negativo.')
    original = original_value(draft.lines)
    line_discount = original - calculate_subtotal(draft.lines)
    needed = max(ZERO, original * percent / HUNDRED - line_discount)
    return _proposal(draft, needed, policy)


def propose_discount_from_target_total(draft: DraftOrder, target_total, policy: PolicySettings = DEFAULT_POLICY) -> DiscountProposal:
    """Back-solve the global amount from the post-discount total the customer wants to pay."""
    target_total = to_decimal(target_total, 'total com desconto')
    needed = max(ZERO, calculate_subtotal(draft.lines) - target_total)
    return _proposal(draft, needed, policy)


def propose_discount(
    draft: DraftOrder,
    amount=None,
    percent=None,
    target_total=None,
    policy: PolicySettings = DEFAULT_POLICY
) -> DiscountProposal:
    """Dispatch on whichever single view the operator edited."""
    given = [v is not None for v in (amount, percent, target_total)]
    if sum(given) != 1:
        raise ValidationError('Informe apenas um entre valor, percentual ou total com desconto.')
    if amount is not None:
        return propose_discount_from_amount(draft, amount, policy)
    if percent is not None:
        return propose_discount_from_percent(draft, percent, policy)
    return propose_discount_from_target_total(draft, target_total, policy)


def current_discount(draft: DraftOrder, policy: PolicySettings = DEFAULT_POLICY) -> DiscountProposal:
    """Views for the discount already on the draft (opening the discount dialog)."""
    return _proposal(draft, draft.discount, policy)


# =====================================================
# AUTHORIZATION GATE
# =====================================================

def _require_token(proposal: DiscountProposal, token: Optional[str], policy: PolicySettings) -> None:
    if proposal.requires_token and len((token or '').strip()) < policy.token_min_length:
        raise PolicyError(
            f'Desconto total ({proposal.percent:.2f}%) excede {policy.token_threshold}%. Token obrigatório.',
            percent=proposal.percent.quantize(PRICE_PLACES),
            threshold=policy.token_threshold
        )


def confirm_discount(
    draft: DraftOrder,
    amount,
    token: Optional[str] = None,
    policy: PolicySettings = DEFAULT_POLICY
) -> DiscountProposal:
    """
    Apply an order-level discount to the draft.

    Raises:
        ValidationError: amount above the subtotal.
        PolicyError: combined percent above the threshold and no valid token.
    """
    proposal = propose_discount_from_amount(draft, amount, policy)
    if proposal.amount > calculate_subtotal(draft.lines):
        raise ValidationError('O desconto não pode ser maior que o subtotal.')

    try:
        _require_token(proposal, token, policy)
    except PolicyError:
        logger.warning(
            f"Discount refused: {proposal.percent:.2f}% over {policy.token_threshold}% without token "
            f"(seller {draft.seller_id})"
        )
        raise

    draft.discount = proposal.amount
    if draft.discount > 0:
        # Discounted sales are paid in a single installment
        draft.installments = 1

    if proposal.requires_token:
        logger.info(f"Discount {proposal.amount} ({proposal.percent:.2f}%) authorized by token for seller {draft.seller_id}")
    return proposal


def authorize_draft(draft: DraftOrder, token: Optional[str] = None, policy: PolicySettings = DEFAULT_POLICY) -> None:
    """
    Re-check the whole discount policy on a draft about to be saved.

    Line prices must respect the per-line floor, the global discount cannot
    exceed the subtotal, and a combined percent above the threshold needs
    the manager token.
    """
    for line in draft.lines:
        floor = (line.original_price * policy.item_price_floor_factor).quantize(PRICE_PLACES)
        if line.unit_price < floor:
            raise PolicyError(
                f'Preço de "{line.product_name}" abaixo do limite de '
                f'{num_br(policy.item_discount_cap * HUNDRED)}% de desconto por item.',
                threshold=policy.item_discount_cap * HUNDRED
            )

    if draft.discount < 0 or draft.discount > calculate_subtotal(draft.lines):
        raise ValidationError('O desconto não pode ser maior que o subtotal.')

    _require_token(current_discount(draft, policy), token, policy)
