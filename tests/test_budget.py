from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app.core.exceptions import InsufficientBudget
from app.schemas.expenditure import ItemStatus
from app.services import budget
from conftest import make_claim, make_item


def test_remaining_is_allocated_minus_spent():
    line = budget.BudgetLine.of(make_item(allocated="10000.00", spent="3500.00"))
    assert line.remaining == Decimal("6500.00")
    assert line.allocated - line.spent == line.remaining


def test_claim_over_remaining_is_not_allowed():
    item = make_item(allocated="10000.00", spent="3500.00")
    assert budget.evaluate_claim(item, Decimal("7000"), "bank-transfer").allowed is False
    assert budget.evaluate_claim(item, Decimal("6500"), "bank-transfer").allowed is True


def test_cash_ratio_warning_above_threshold():
    item = make_item(allocated="5000.00")
    evaluation = budget.evaluate_claim(item, Decimal("1200"), "cash")
    assert evaluation.allowed is True
    assert evaluation.cash_ratio_warning is True
    assert evaluation.warnings[0].code == budget.CASH_RATIO_EXCEEDED
    assert "24.0%" in evaluation.warnings[0].message


def test_cash_within_threshold_has_no_warning():
    item = make_item(allocated="5000.00")
    assert budget.evaluate_claim(item, Decimal("900"), "cash").warnings == []
    # exactly 20% is still fine
    assert budget.evaluate_claim(item, Decimal("1000"), "cash").warnings == []


def test_non_cash_never_warns():
    item = make_item(allocated="5000.00")
    assert budget.evaluate_claim(item, Decimal("4000"), "cheque").warnings == []


def test_custom_threshold():
    item = make_item(allocated="5000.00")
    evaluation = budget.evaluate_claim(item, Decimal("600"), "cash", threshold=Decimal("0.10"))
    assert evaluation.cash_ratio_warning is True


def test_apply_approval_moves_amount_from_remaining_to_spent():
    line = budget.BudgetLine(Decimal("10000.00"), Decimal("3500.00"), Decimal("6500.00"))
    updated = budget.apply_approval(line, Decimal("1500"))
    assert updated.spent == Decimal("5000.00")
    assert updated.remaining == Decimal("5000.00")
    assert updated.allocated == line.allocated


def test_apply_approval_rejects_overspend():
    line = budget.BudgetLine(Decimal("10000.00"), Decimal("3500.00"), Decimal("6500.00"))
    with pytest.raises(InsufficientBudget) as excinfo:
        budget.apply_approval(line, Decimal("7000"), item_id="exp-1")
    assert excinfo.value.details["remaining"] == "6500.00"
    assert excinfo.value.details["expenditure_item_id"] == "exp-1"


def test_item_status_from_claims():
    item = make_item()
    assert budget.item_status([]) == ItemStatus.AVAILABLE

    early = datetime(2026, 1, 1, tzinfo=timezone.utc)
    late = datetime(2026, 1, 5, tzinfo=timezone.utc)
    approved = make_claim(item, status="approved", reviewed_at=early)
    rejected = make_claim(item, status="rejected", reviewed_at=late)
    pending = make_claim(item, status="pending")

    assert budget.item_status([approved, rejected]) == ItemStatus.REJECTED
    assert budget.item_status([approved]) == ItemStatus.APPROVED
    assert budget.item_status([approved, rejected, pending]) == ItemStatus.CLAIMED


def test_utilization_percent():
    assert budget.utilization_percent(Decimal("10000"), Decimal("3500")) == Decimal("35.00")
    assert budget.utilization_percent(Decimal("0"), Decimal("0")) == Decimal("0.00")
