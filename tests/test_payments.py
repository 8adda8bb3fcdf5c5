import asyncio
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import Conflict, InvalidTransition, NotFound
from app.core.permissions import Role
from app.models.loan_application import LoanApplication
from app.models.payment_entry import PaymentEntry
from app.schemas.payment import PaymentEntryCreate, PaymentEntryDTO
from app.services import payments
from conftest import FakeAsyncSession, FakeResult, make_application, make_payment, make_principal


def _create(loan_id, reference="TXN-001") -> PaymentEntryCreate:
    return PaymentEntryCreate(
        loan_application_id=loan_id,
        amount=Decimal("50000"),
        reference_number=f"  {reference} ",
        payment_date=date(2026, 1, 10),
    )


def test_record_payment_starts_pending():
    admin = make_principal(Role.ADMIN, name="Admin User")
    application = make_application(status="disbursed", stage="disbursement")
    db = FakeAsyncSession().on_get(LoanApplication, application.id, application)

    entry = asyncio.run(payments.record_payment(db, admin, _create(application.id)))

    assert entry.status == "pending"
    assert entry.reference_number == "TXN-001"
    assert entry.amount == Decimal("50000.00")


def test_record_payment_duplicate_reference():
    admin = make_principal(Role.ADMIN)
    application = make_application()
    db = FakeAsyncSession().on_get(LoanApplication, application.id, application)
    db.on_execute_return(FakeResult(rows=[(uuid4(),)]))

    with pytest.raises(Conflict):
        asyncio.run(payments.record_payment(db, admin, _create(application.id)))


def test_record_payment_unknown_loan():
    admin = make_principal(Role.ADMIN)
    with pytest.raises(NotFound):
        asyncio.run(payments.record_payment(FakeAsyncSession(), admin, _create(uuid4())))


def test_confirm_and_fail_only_from_pending():
    admin = make_principal(Role.ADMIN, name="Admin User")
    db = FakeAsyncSession()

    entry = make_payment()
    asyncio.run(payments.confirm_payment(db, admin, entry, notes="Matched bank statement"))
    assert entry.status == "confirmed"
    assert entry.confirmed_by == "Admin User"
    assert entry.confirmed_at is not None
    assert entry.notes == "Matched bank statement"

    with pytest.raises(InvalidTransition):
        asyncio.run(payments.fail_payment(db, admin, entry, "Bounced"))

    other = make_payment()
    asyncio.run(payments.fail_payment(db, admin, other, " Bounced "))
    assert other.status == "failed"
    assert other.failure_reason == "Bounced"


def test_reconciliation_summary():
    entries = [
        PaymentEntryDTO.model_validate(make_payment(amount="50000.00", status="confirmed")),
        PaymentEntryDTO.model_validate(make_payment(amount="25000.00", status="pending")),
        PaymentEntryDTO.model_validate(make_payment(amount="1000.00", status="failed")),
    ]
    summary = payments.reconciliation_summary(entries)
    assert (summary.total, summary.pending, summary.confirmed, summary.failed) == (3, 1, 1, 1)
    assert summary.confirmed_amount == Decimal("50000.00")
    assert summary.pending_amount == Decimal("25000.00")


def test_payments_endpoint_requires_admin(client, override_deps, financier_principal):
    override_deps(financier_principal)
    response = client.get("/api/v1/admin/payments")
    assert response.status_code == 403
    assert response.json()["message"] == "Missing permission: payment.reconcile"


def test_confirm_endpoint(client, fake_db, override_deps, admin_principal):
    override_deps(admin_principal)
    entry = make_payment(reference_number="TXN-2024-002")
    fake_db.on_get(PaymentEntry, entry.id, entry)

    response = client.post(f"/api/v1/admin/payments/{entry.id}/confirm", json={})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "confirmed"
    assert data["confirmed_by"] == "Admin User"
    assert fake_db.committed is True


def test_reference_race_surfaces_as_conflict(client, fake_db, override_deps, admin_principal, monkeypatch):
    override_deps(admin_principal)
    application = make_application(status="disbursed", stage="disbursement")
    fake_db.on_get(LoanApplication, application.id, application)

    async def _duplicate_insert():
        raise IntegrityError(
            "INSERT INTO payment_entries", {}, Exception("uq_payment_entries_reference_number")
        )

    monkeypatch.setattr(fake_db, "flush", _duplicate_insert)

    response = client.post(
        "/api/v1/admin/payments",
        json={
            "loan_application_id": str(application.id),
            "amount": "50000",
            "reference_number": "TXN-RACE",
            "payment_date": "2026-01-10",
        },
    )

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "conflict"
    assert body["data"] is None
    assert fake_db.committed is False
