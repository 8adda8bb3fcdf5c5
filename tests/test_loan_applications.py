import asyncio
from decimal import Decimal

import pytest

from app.core.exceptions import NotFound, ValidationError
from app.core.permissions import Role
from app.models.audit_log import AuditLog
from app.models.loan_application import LoanApplication
from app.schemas.loan import LoanApplicationCreate, LoanTransitionRequest
from app.services import loan_applications
from conftest import FakeAsyncSession, FakeResult, entity_handler, make_application, make_principal


def _intake(**overrides) -> dict:
    payload = dict(
        kyc_number="KYC123456789",
        amount="50000",
        purpose="Purchase two industrial ovens",
        term_months=12,
        business_name="Doe Bakery Ltd",
        business_type="Food & Beverage",
        years_in_business=4,
        monthly_revenue="12000",
        monthly_expenses="8000",
        existing_debt="0",
        contact_person="John Doe",
        phone_number="+15550100100",
        email="john@example.com",
        business_address="12 Market Street, Springfield",
    )
    payload.update(overrides)
    return payload


def _latest_application_handler(db: FakeAsyncSession):
    def _handler(stmt):
        descriptions = getattr(stmt, "column_descriptions", None)
        if descriptions and descriptions[0].get("entity") is LoanApplication:
            return FakeResult(scalar=db.added_of(LoanApplication)[-1])
        return None

    return _handler


# ---------------------------------------------------------------------------
# Service layer
# ---------------------------------------------------------------------------


def test_validate_intake_collects_all_errors():
    payload = LoanApplicationCreate(
        **_intake(kyc_number="KYC12", amount="500", purpose="short", phone_number="123")
    )
    with pytest.raises(ValidationError) as excinfo:
        loan_applications.validate_intake(payload)
    errors = excinfo.value.details["errors"]
    assert {"kyc_number", "amount", "purpose", "phone_number"} <= set(errors)
    assert excinfo.value.field == "kyc_number"


def test_malformed_email_is_rejected_at_the_schema(client, override_deps, client_principal):
    override_deps(client_principal)
    response = client.post("/api/v1/loans", json=_intake(email="not-an-email"))
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"
    assert response.json()["message"].startswith("email:")


def test_validate_intake_amount_ceiling():
    payload = LoanApplicationCreate(**_intake(amount="1000001"))
    with pytest.raises(ValidationError) as excinfo:
        loan_applications.validate_intake(payload)
    assert "amount" in excinfo.value.details["errors"]


def test_create_application_as_draft_or_submitted():
    client = make_principal(Role.CLIENT, name="John Doe")
    db = FakeAsyncSession()

    draft = asyncio.run(
        loan_applications.create_application(db, client, LoanApplicationCreate(**_intake()))
    )
    assert (draft.status, draft.stage) == ("draft", "application")
    assert draft.client_id == client.id
    assert draft.client_name == "John Doe"
    assert draft.submitted_at is None

    submitted = asyncio.run(
        loan_applications.create_application(
            db, client, LoanApplicationCreate(**_intake(submit=True))
        )
    )
    assert (submitted.status, submitted.stage) == ("submitted", "application")
    assert submitted.submitted_at is not None
    assert [entry.action for entry in db.added_of(AuditLog)] == [
        "loan_application.created",
        "loan_application.created",
    ]


def test_audit_snapshot_never_contains_kyc():
    client = make_principal(Role.CLIENT)
    db = FakeAsyncSession()
    asyncio.run(loan_applications.create_application(db, client, LoanApplicationCreate(**_intake())))
    entry = db.added_of(AuditLog)[0]
    assert "kyc_number" not in entry.new_value


def test_second_stage_approval_sets_default_rate():
    financier = make_principal(Role.FINANCIER, name="Sarah Wilson")
    application = make_application(status="under-review", stage="approval-2", approved_by=["Sarah Wilson"])
    db = FakeAsyncSession()

    asyncio.run(
        loan_applications.transition_application(
            db, financier, application, LoanTransitionRequest(event="approve-stage-2", comments="Strong plan")
        )
    )
    assert application.status == "approved"
    assert application.stage == "disbursement"
    assert application.interest_rate == Decimal("8.5")
    assert application.financier_comments == "Strong plan"
    assert application.approved_by == ["Sarah Wilson", "Sarah Wilson"]
    assert db.added_of(AuditLog)[0].action == "loan_application.approve-stage-2"


def test_submit_by_non_owner_is_not_found():
    other = make_principal(Role.CLIENT)
    application = make_application(status="draft", stage="application")
    with pytest.raises(NotFound):
        asyncio.run(
            loan_applications.transition_application(
                FakeAsyncSession(), other, application, LoanTransitionRequest(event="submit")
            )
        )


def test_client_dashboard_uses_active_loan_steps():
    client = make_principal(Role.CLIENT)
    active = make_application(status="approved", stage="disbursement", client_id=client.id)
    pending = make_application(status="submitted", stage="application", client_id=client.id)
    disbursed = make_application(
        status="disbursed", stage="disbursement", client_id=client.id, amount=Decimal("20000.00")
    )
    db = FakeAsyncSession()
    db.on_execute(entity_handler(LoanApplication, FakeResult(items=[active, pending, disbursed])))
    db.on_execute(entity_handler(AuditLog, FakeResult(items=[])))

    dashboard = asyncio.run(loan_applications.build_client_dashboard(db, client))

    assert dashboard.active_loan.id == active.id
    assert [step.status.value for step in dashboard.steps] == [
        "completed",
        "completed",
        "completed",
        "current",
    ]
    assert [app.id for app in dashboard.pending_applications] == [pending.id]
    assert dashboard.total_applications == 3
    assert dashboard.active_loan_count == 2
    assert dashboard.total_borrowed == Decimal("20000.00")


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------


def test_create_loan_endpoint(client, fake_db, override_deps, client_principal):
    override_deps(client_principal)
    fake_db.on_execute(_latest_application_handler(fake_db))

    response = client.post("/api/v1/loans", json=_intake())

    assert response.status_code == 201
    body = response.json()
    assert body["code"] == "created"
    data = body["data"]
    assert data["status"] == "draft"
    assert data["kyc_number_masked"] == "********6789"
    assert "kyc_number" not in data
    assert data["steps"][0]["status"] == "current"
    assert fake_db.committed is True


def test_create_loan_validation_envelope(client, override_deps, client_principal):
    override_deps(client_principal)
    response = client.post("/api/v1/loans", json=_intake(kyc_number="123"))
    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "validation_error"
    assert body["data"] is None
    assert "kyc_number" in body["details"]["errors"]


def test_financier_cannot_apply(client, override_deps, financier_principal):
    override_deps(financier_principal)
    response = client.post("/api/v1/loans", json=_intake())
    assert response.status_code == 403
    assert response.json()["message"] == "Missing permission: loan.apply"


def test_list_loans_search_and_status(client, fake_db, override_deps, financier_principal):
    override_deps(financier_principal)
    apps = [
        make_application(client_name="John Doe", status="under-review", stage="review"),
        make_application(
            client_name="Jane Smith",
            business_name="Smith Tailoring",
            status="under-review",
            stage="approval-1",
        ),
        make_application(client_name="Mary Doe", status="submitted", stage="application"),
    ]
    fake_db.on_execute(entity_handler(LoanApplication, FakeResult(items=apps)))

    response = client.get("/api/v1/loans", params={"search": "doe", "status": "under-review"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert [item["client_name"] for item in data["items"]] == ["John Doe"]
    assert data["total"] == 1
    assert data["counts_by_status"] == {"under-review": 2, "submitted": 1}
    assert Decimal(data["total_requested"]) == Decimal("50000.00")


def test_start_review_transition(client, fake_db, override_deps, financier_principal):
    override_deps(financier_principal)
    application = make_application(status="submitted", stage="application")
    fake_db.on_execute(entity_handler(LoanApplication, FakeResult(scalar=application)))

    response = client.post(
        f"/api/v1/loans/{application.id}/transitions", json={"event": "start-review"}
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert (data["status"], data["stage"]) == ("under-review", "review")
    assert data["reviewed_by"] == "Sarah Wilson"
    assert [step["status"] for step in data["steps"]] == ["completed", "current", "upcoming", "upcoming"]
    assert fake_db.committed is True


def test_client_cannot_review(client, fake_db, override_deps, client_principal):
    override_deps(client_principal)
    application = make_application(status="submitted", stage="application", client_id=client_principal.id)
    fake_db.on_execute(entity_handler(LoanApplication, FakeResult(scalar=application)))

    response = client.post(
        f"/api/v1/loans/{application.id}/transitions", json={"event": "start-review"}
    )

    assert response.status_code == 403
    body = response.json()
    assert body["code"] == "forbidden"
    assert body["message"] == "Missing permission: loan.review"
    assert application.status == "submitted"


def test_illegal_transition_is_conflict(client, fake_db, override_deps, financier_principal):
    override_deps(financier_principal)
    application = make_application(status="submitted", stage="application")
    fake_db.on_execute(entity_handler(LoanApplication, FakeResult(scalar=application)))

    response = client.post(
        f"/api/v1/loans/{application.id}/transitions", json={"event": "approve-stage-1"}
    )

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "invalid_transition"
    assert body["details"]["current"] == {"status": "submitted", "stage": "application"}
    assert fake_db.committed is False


def test_reject_without_reason(client, fake_db, override_deps, financier_principal):
    override_deps(financier_principal)
    application = make_application(status="under-review", stage="review")
    fake_db.on_execute(entity_handler(LoanApplication, FakeResult(scalar=application)))

    response = client.post(f"/api/v1/loans/{application.id}/transitions", json={"event": "reject"})

    assert response.status_code == 422
    assert response.json()["details"]["field"] == "reason"


def test_missing_loan_is_not_found(client, override_deps, financier_principal):
    override_deps(financier_principal)
    response = client.get("/api/v1/loans/6f1d7c8e-3c1a-4b53-9d55-2f7f3e1c0a11")
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_steps_endpoint(client, fake_db, override_deps, client_principal):
    override_deps(client_principal)
    application = make_application(status="approved", stage="disbursement", client_id=client_principal.id)
    fake_db.on_execute(entity_handler(LoanApplication, FakeResult(scalar=application)))

    response = client.get(f"/api/v1/loans/{application.id}/steps")

    assert response.status_code == 200
    assert [step["status"] for step in response.json()["data"]] == [
        "completed",
        "completed",
        "completed",
        "current",
    ]


def _loan_lookup(application: LoanApplication):
    """Honour the draft-status predicate the way the database would."""

    def _handler(stmt):
        descriptions = getattr(stmt, "column_descriptions", None)
        if not descriptions or descriptions[0].get("entity") is not LoanApplication:
            return None
        if "loan_applications.status !=" in str(stmt) and application.status == "draft":
            return FakeResult()
        return FakeResult(scalar=application)

    return _handler


def test_financier_cannot_open_a_draft_by_id(client, fake_db, override_deps, financier_principal):
    override_deps(financier_principal)
    draft = make_application(status="draft", stage="application")
    fake_db.on_execute(_loan_lookup(draft))

    response = client.get(f"/api/v1/loans/{draft.id}")

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_owner_and_admin_still_open_a_draft(client, fake_db, override_deps, client_principal, admin_principal):
    draft = make_application(status="draft", stage="application", client_id=client_principal.id)
    fake_db.on_execute(_loan_lookup(draft))

    override_deps(client_principal)
    assert client.get(f"/api/v1/loans/{draft.id}").status_code == 200
    override_deps(admin_principal)
    assert client.get(f"/api/v1/loans/{draft.id}").status_code == 200
