import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from app.core.permissions import Role
from app.schemas.clients import ClientStatus
from app.services import clients
from conftest import (
    FakeAsyncSession,
    FakeResult,
    make_application,
    make_claim,
    make_item,
    make_principal,
    make_user,
    sequence_handler,
)


def _at(day: int) -> datetime:
    return datetime(2026, 1, day, tzinfo=timezone.utc)


def _portfolio():
    doe = make_user(name="John Doe", email="john.client@example.com")
    smith = make_user(name="Jane Smith", email="jane@example.com")
    applications = [
        make_application(
            status="approved", client_id=doe.id, client_name="John Doe",
            amount=Decimal("50000.00"), business_name="Doe Bakery Ltd", created_at=_at(5),
        ),
        make_application(
            status="rejected", client_id=doe.id, client_name="John Doe",
            amount=Decimal("20000.00"), business_name="Doe Catering", created_at=_at(12),
        ),
        make_application(
            status="submitted", client_id=smith.id, client_name="Jane Smith",
            amount=Decimal("75000.00"), business_name="Smith Textiles", created_at=_at(9),
        ),
    ]
    return doe, smith, applications


def test_summarize_clients_groups_by_client():
    doe, smith, applications = _portfolio()

    summaries = clients.summarize_clients(applications, {doe.id: 2}, {doe.id: doe})
    by_name = {summary.name: summary for summary in summaries}

    assert by_name["John Doe"].total_loans == 2
    assert by_name["John Doe"].active_loans == 1
    assert by_name["John Doe"].total_amount == Decimal("70000.00")
    assert by_name["John Doe"].pending_claims == 2
    assert by_name["John Doe"].status == ClientStatus.ACTIVE
    assert by_name["John Doe"].email == "john.client@example.com"
    assert by_name["John Doe"].business_name == "Doe Catering"
    assert by_name["John Doe"].last_application_at == _at(12)
    # no user row: fall back to the application contact details
    assert by_name["Jane Smith"].status == ClientStatus.INACTIVE
    assert by_name["Jane Smith"].email == "john@example.com"
    assert by_name["Jane Smith"].joined_at is None
    assert by_name["Jane Smith"].pending_claims == 0


def test_list_clients_skips_lookups_without_applications():
    financier = make_principal(Role.FINANCIER)
    db = FakeAsyncSession().on_execute(sequence_handler([FakeResult(items=[])]))
    assert asyncio.run(clients.list_clients(db, financier)) == []


def test_clients_endpoint_search_and_status(client, fake_db, override_deps, financier_principal):
    override_deps(financier_principal)
    doe, smith, applications = _portfolio()
    fake_db.on_execute(
        sequence_handler(
            [
                FakeResult(items=applications),
                FakeResult(rows=[(doe.id, 1)]),
                FakeResult(items=[doe, smith]),
            ]
        )
    )

    response = client.get("/api/v1/clients", params={"search": "catering", "status": "active"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total"] == 1
    assert data["items"][0]["name"] == "John Doe"
    assert data["counts_by_status"] == {"active": 1, "inactive": 1}


def test_clients_endpoint_sorted_by_amount(client, fake_db, override_deps, admin_principal):
    override_deps(admin_principal)
    doe, smith, applications = _portfolio()
    fake_db.on_execute(
        sequence_handler(
            [
                FakeResult(items=applications),
                FakeResult(rows=[(doe.id, 1)]),
                FakeResult(items=[doe, smith]),
            ]
        )
    )

    response = client.get("/api/v1/clients", params={"sort": "amount-desc", "search": "doe"})

    assert response.status_code == 200
    items = response.json()["data"]["items"]
    assert [item["name"] for item in items] == ["John Doe"]
    assert items[0]["total_amount"] == "70000.00"
    assert items[0]["pending_claims"] == 1


def test_client_detail_lists_loans_and_claims(client, fake_db, override_deps, financier_principal):
    override_deps(financier_principal)
    doe, smith, applications = _portfolio()
    item = make_item(loan_application_id=applications[0].id)
    claim = make_claim(item, amount="1200.00")
    fake_db.on_execute(
        sequence_handler(
            [
                FakeResult(items=applications),
                FakeResult(rows=[(doe.id, 1)]),
                FakeResult(items=[doe]),
                FakeResult(rows=[(claim, item.line_item, applications[0].id, "John Doe")]),
            ]
        )
    )

    response = client.get(f"/api/v1/clients/{doe.id}")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_loans"] == 2
    assert {app["business_name"] for app in data["applications"]} == {"Doe Bakery Ltd", "Doe Catering"}
    assert [entry["line_item"] for entry in data["claims"]] == ["Equipment"]


def test_unknown_client_is_not_found(client, fake_db, override_deps, financier_principal):
    override_deps(financier_principal)
    fake_db.on_execute(sequence_handler([FakeResult(items=[])]))

    response = client.get(f"/api/v1/clients/{uuid4()}")

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_clients_cannot_browse_the_portfolio(client, override_deps, client_principal):
    override_deps(client_principal)
    response = client.get("/api/v1/clients")
    assert response.status_code == 403
    assert response.json()["message"] == "Missing permission: loan.view_all"
