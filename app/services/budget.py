"""Budget arithmetic for expenditure line items and expense claims."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from app.core.exceptions import InsufficientBudget
from app.core.settings import settings
from app.schemas.claim import ClaimStatus, ClaimWarning, PaymentType
from app.schemas.expenditure import ItemStatus


TWOPLACES = Decimal("0.01")

CASH_RATIO_EXCEEDED = "cash_ratio_exceeded"


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value) -> Decimal:
    return _as_decimal(value).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class BudgetLine:
    allocated: Decimal
    spent: Decimal
    remaining: Decimal

    @classmethod
    def of(cls, item) -> "BudgetLine":
        return cls(
            allocated=_as_decimal(item.allocated_amount),
            spent=_as_decimal(item.spent_amount),
            remaining=_as_decimal(item.remaining_amount),
        )


@dataclass(frozen=True)
class ClaimEvaluation:
    allowed: bool
    warnings: list[ClaimWarning] = field(default_factory=list)

    @property
    def cash_ratio_warning(self) -> bool:
        return any(warning.code == CASH_RATIO_EXCEEDED for warning in self.warnings)


def cash_ratio(amount, allocated) -> Decimal:
    allocated = _as_decimal(allocated)
    if allocated <= 0:
        return Decimal("0")
    return _as_decimal(amount) / allocated


def evaluate_claim(
    item,
    amount,
    payment_type: PaymentType | str,
    *,
    threshold: Decimal | None = None,
) -> ClaimEvaluation:
    """Check a prospective claim against the item's remaining budget.

    Cash claims above the ratio threshold of the allocation produce a
    non-blocking warning.
    """
    line = item if isinstance(item, BudgetLine) else BudgetLine.of(item)
    amount = _as_decimal(amount)
    limit = settings.cash_ratio_warning_threshold if threshold is None else _as_decimal(threshold)

    warnings: list[ClaimWarning] = []
    ratio = cash_ratio(amount, line.allocated)
    if PaymentType(payment_type) == PaymentType.CASH and ratio > limit:
        warnings.append(
            ClaimWarning(
                code=CASH_RATIO_EXCEEDED,
                message=(
                    f"Cash payment is {(ratio * 100).quantize(Decimal('0.1'))}% of the "
                    f"allocated amount; cash above {(limit * 100).normalize():f}% needs extra scrutiny"
                ),
            )
        )
    return ClaimEvaluation(allowed=amount <= line.remaining, warnings=warnings)


def apply_approval(line: BudgetLine, amount, *, item_id=None) -> BudgetLine:
    amount = quantize(amount)
    if amount > line.remaining:
        raise InsufficientBudget(amount, line.remaining, item_id)
    spent = quantize(line.spent + amount)
    return BudgetLine(allocated=line.allocated, spent=spent, remaining=quantize(line.allocated - spent))


def item_status(claims: Iterable) -> ItemStatus:
    """Derive an item's status from its claims.

    Any pending claim makes the item ``claimed``; otherwise the most recently
    reviewed claim decides. Items without claims are ``available``.
    """
    claims = list(claims)
    if any(claim.status == ClaimStatus.PENDING.value for claim in claims):
        return ItemStatus.CLAIMED
    reviewed = [claim for claim in claims if claim.reviewed_at is not None]
    if not reviewed:
        return ItemStatus.AVAILABLE
    latest = max(reviewed, key=lambda claim: claim.reviewed_at)
    return ItemStatus(latest.status)


def utilization_percent(allocated, spent) -> Decimal:
    allocated = _as_decimal(allocated)
    if allocated <= 0:
        return Decimal("0.00")
    return quantize(_as_decimal(spent) / allocated * 100)
