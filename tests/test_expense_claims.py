import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import InsufficientBudget, InvalidTransition, NotFound, ValidationError
from app.core.permissions import Role
from app.models.audit_log import AuditLog
from app.models.expenditure_item import ExpenditureItem
from app.models.expense_claim import ExpenseClaim
from app.services import expense_claims
from conftest import FakeAsyncSession, FakeResult, entity_handler, make_claim, make_item, make_principal


def _session_for(item, claims=()):
    db = FakeAsyncSession()
    db.on_execute(entity_handler(ExpenditureItem, FakeResult(scalar=item)))
    db.on_execute(entity_handler(ExpenseClaim, FakeResult(items=list(claims))))
    return db


def test_validate_claim_input_collects_errors():
    with pytest.raises(ValidationError) as excinfo:
        expense_claims.validate_claim_input("0", "short", "barter")
    errors = excinfo.value.details["errors"]
    assert set(errors) == {"amount", "description", "payment_type"}


def test_submit_claim_marks_item_claimed():
    client = make_principal(Role.CLIENT)
    item = make_item(allocated="5000.00")
    db = FakeAsyncSession()

    claim, evaluation = asyncio.run(
        expense_claims.submit_claim(
            db,
            client,
            item,
            amount="1200",
            description="Cash purchase of flour sacks",
            payment_type="cash",
        )
    )

    assert claim.status == "pending"
    assert claim.amount == Decimal("1200.00")
    assert claim.cash_ratio_warning is True
    assert evaluation.cash_ratio_warning is True
    assert item.status == "claimed"
    # budget only moves on approval
    assert item.remaining_amount == Decimal("5000.00")
    assert db.added_of(AuditLog)[0].action == "expense_claim.submitted"


def test_submit_claim_over_remaining_fails():
    client = make_principal(Role.CLIENT)
    item = make_item(allocated="10000.00", spent="3500.00")
    with pytest.raises(InsufficientBudget):
        asyncio.run(
            expense_claims.submit_claim(
                FakeAsyncSession(),
                client,
                item,
                amount="7000",
                description="Second-hand delivery van",
                payment_type="bank-transfer",
            )
        )
    assert item.status == "available"


def test_approve_claim_moves_budget():
    financier = make_principal(Role.FINANCIER, name="Sarah Wilson")
    item = make_item(allocated="10000.00", spent="3500.00", status="claimed")
    claim = make_claim(item, amount="1500.00")
    item.claims = [claim]
    db = _session_for(item)

    asyncio.run(expense_claims.approve_claim(db, financier, claim, "Receipts verified"))

    assert claim.status == "approved"
    assert claim.reviewed_by == "Sarah Wilson"
    assert claim.reviewed_at is not None
    assert item.spent_amount == Decimal("5000.00")
    assert item.remaining_amount == Decimal("5000.00")
    assert item.status == "approved"


def test_approve_non_pending_claim_fails():
    financier = make_principal(Role.FINANCIER)
    item = make_item()
    claim = make_claim(item, status="rejected")
    with pytest.raises(InvalidTransition):
        asyncio.run(expense_claims.approve_claim(_session_for(item), financier, claim))


def test_reject_requires_comments_and_leaves_budget():
    financier = make_principal(Role.FINANCIER)
    item = make_item(allocated="10000.00", spent="3500.00", status="claimed")
    claim = make_claim(item)
    item.claims = [claim]
    db = _session_for(item)

    with pytest.raises(ValidationError):
        asyncio.run(expense_claims.reject_claim(db, financier, claim, "  "))

    asyncio.run(expense_claims.reject_claim(db, financier, claim, "Receipt is illegible"))
    assert claim.status == "rejected"
    assert claim.comments == "Receipt is illegible"
    assert item.remaining_amount == Decimal("6500.00")
    assert item.status == "rejected"


def test_bulk_approve_approves_exactly_the_selection():
    financier = make_principal(Role.FINANCIER)
    item = make_item(allocated="10000.00", spent="3500.00", status="claimed")
    claims = [make_claim(item, amount="1000.00") for _ in range(3)]
    item.claims = list(claims)
    db = _session_for(item, claims)

    approved = asyncio.run(
        expense_claims.bulk_approve(db, financier, [claim.id for claim in claims])
    )

    assert len(approved) == 3
    assert all(claim.status == "approved" for claim in claims)
    assert item.spent_amount == Decimal("6500.00")
    assert item.remaining_amount == Decimal("3500.00")
    assert item.status == "approved"


def test_bulk_approve_aborts_on_non_pending_selection():
    financier = make_principal(Role.FINANCIER)
    item = make_item()
    pending = make_claim(item)
    done = make_claim(item, status="approved")
    db = _session_for(item, [pending, done])

    with pytest.raises(InvalidTransition):
        asyncio.run(expense_claims.bulk_approve(db, financier, [pending.id, done.id]))
    assert pending.status == "pending"
    assert item.spent_amount == Decimal("0.00")


def test_bulk_approve_unknown_id():
    financier = make_principal(Role.FINANCIER)
    item = make_item()
    pending = make_claim(item)
    db = _session_for(item, [pending])
    with pytest.raises(NotFound):
        asyncio.run(expense_claims.bulk_approve(db, financier, [pending.id, uuid4()]))


def test_bulk_approve_stops_when_budget_runs_out():
    financier = make_principal(Role.FINANCIER)
    item = make_item(allocated="2000.00", status="claimed")
    claims = [make_claim(item, amount="1500.00") for _ in range(2)]
    item.claims = list(claims)
    db = _session_for(item, claims)
    with pytest.raises(InsufficientBudget):
        asyncio.run(expense_claims.bulk_approve(db, financier, [claim.id for claim in claims]))


def _bound_ids(stmt) -> set:
    ids = set()
    for value in stmt.compile().params.values():
        ids.update(value if isinstance(value, (list, tuple)) else [value])
    return ids


def _lookup_by_id(model, records):
    """Answer only for the rows whose ids the query binds, like a WHERE id IN (...) would."""

    def _handler(stmt):
        descriptions = getattr(stmt, "column_descriptions", None)
        if not descriptions or descriptions[0].get("entity") is not model:
            return None
        wanted = _bound_ids(stmt)
        matches = [record for record in records if record.id in wanted]
        return FakeResult(scalar=matches[0] if matches else None, items=matches)

    return _handler


def test_bulk_approve_leaves_unselected_claims_and_items_untouched():
    financier = make_principal(Role.FINANCIER)
    shared = make_item(allocated="10000.00", spent="2000.00", status="claimed")
    selected = make_claim(shared, amount="1500.00")
    sibling = make_claim(shared, amount="700.00")
    shared.claims = [selected, sibling]
    other = make_item(allocated="4000.00", spent="1000.00", status="claimed", line_item="Marketing")
    bystander = make_claim(other, amount="900.00")
    other.claims = [bystander]
    db = FakeAsyncSession()
    db.on_execute(_lookup_by_id(ExpenditureItem, [shared, other]))
    db.on_execute(_lookup_by_id(ExpenseClaim, [selected, sibling, bystander]))

    approved = asyncio.run(expense_claims.bulk_approve(db, financier, [selected.id]))

    assert approved == [selected]
    assert selected.status == "approved"
    assert sibling.status == "pending"
    assert bystander.status == "pending"
    assert shared.spent_amount == Decimal("3500.00")
    assert shared.remaining_amount == Decimal("6500.00")
    assert shared.status == "claimed"
    assert (other.spent_amount, other.remaining_amount, other.status) == (
        Decimal("1000.00"),
        Decimal("3000.00"),
        "claimed",
    )
    assert other not in db.added
    assert bystander not in db.added


def test_approve_endpoint_maps_lost_update_to_409(client, fake_db, override_deps, financier_principal, monkeypatch):
    override_deps(financier_principal)
    item = make_item(allocated="5000.00", status="claimed")
    claim = make_claim(item, amount="1000.00")
    item.claims = [claim]
    fake_db.on_execute(entity_handler(ExpenseClaim, FakeResult(scalar=claim)))
    fake_db.on_execute(entity_handler(ExpenditureItem, FakeResult(scalar=item)))

    async def _version_mismatch():
        raise StaleDataError("expenditure_items expected to update 1 row(s); 0 were matched")

    monkeypatch.setattr(fake_db, "flush", _version_mismatch)

    response = client.post(f"/api/v1/claims/{claim.id}/approve", json={})

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "concurrent_update"
    assert body["data"] is None
    assert fake_db.committed is False


def test_claims_summary():
    item = make_item()
    claims = [
        expense_claims.to_dto(make_claim(item, amount="100.00")),
        expense_claims.to_dto(make_claim(item, amount="250.00")),
        expense_claims.to_dto(make_claim(item, status="approved")),
    ]
    summary = expense_claims.claims_summary(claims)
    assert (summary.total, summary.pending, summary.approved, summary.rejected) == (3, 2, 1, 0)
    assert summary.pending_amount == Decimal("350.00")
