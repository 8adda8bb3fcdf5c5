from datetime import timedelta
from uuid import uuid4

import pytest

from app.api import deps
from app.core.permissions import Role, has_permission, roles_with
from app.core.security import create_principal_token, decode_token
from app.db.session import get_db
from app.main import app


@pytest.fixture
def db_only(fake_db):
    async def _get_db():
        yield fake_db

    app.dependency_overrides[get_db] = _get_db
    yield fake_db
    app.dependency_overrides.clear()


def _bearer(role: str, name: str = "John Doe", subject=None) -> dict:
    token = create_principal_token(str(subject or uuid4()), name=name, role=role)
    return {"Authorization": f"Bearer {token}"}


def test_token_round_trip():
    subject = str(uuid4())
    token = create_principal_token(subject, name="Sarah Wilson", role="financier")
    payload = decode_token(token, expected_type="access")
    principal = deps.principal_from_claims(payload)
    assert str(principal.id) == subject
    assert principal.role == Role.FINANCIER
    assert principal.name == "Sarah Wilson"


def test_expired_token_is_rejected():
    token = create_principal_token(str(uuid4()), name="x", role="client", expires_delta=timedelta(seconds=-5))
    with pytest.raises(ValueError):
        decode_token(token)


def test_unexpected_token_type():
    token = create_principal_token(str(uuid4()), name="x", role="client")
    with pytest.raises(ValueError):
        decode_token(token, expected_type="refresh")


@pytest.mark.parametrize(
    "claims",
    [
        {"sub": str(uuid4()), "role": "auditor"},
        {"sub": "not-a-uuid", "role": "client"},
        {"role": "client"},
    ],
)
def test_principal_from_bad_claims(claims):
    with pytest.raises(ValueError):
        deps.principal_from_claims(claims)


def test_role_permission_matrix():
    assert has_permission(Role.CLIENT, "claim.submit")
    assert not has_permission(Role.CLIENT, "claim.review")
    assert not has_permission(Role.FINANCIER, "loan.apply")
    assert has_permission(Role.ADMIN, "payment.reconcile")
    assert roles_with("payment.reconcile") == [Role.ADMIN]


def test_missing_token_is_unauthorized(client, db_only):
    response = client.get("/api/v1/admin/users")
    assert response.status_code == 401
    assert response.json()["code"] == "unauthorized"
    assert response.headers["www-authenticate"] == "Bearer"


def test_garbage_token_is_unauthorized(client, db_only):
    response = client.get("/api/v1/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid token"


def test_client_token_on_admin_route_is_forbidden(client, db_only):
    response = client.get("/api/v1/admin/users", headers=_bearer("client"))
    assert response.status_code == 403
    body = response.json()
    assert body["code"] == "forbidden"
    assert body["message"] == "Missing permission: user.manage"


def test_me_lists_permissions(client, db_only):
    subject = uuid4()
    response = client.get("/api/v1/me", headers=_bearer("client", subject=subject))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["id"] == str(subject)
    assert data["role"] == "client"
    assert data["permissions"] == [
        "claim.submit",
        "document.upload",
        "expenditure.manage",
        "expenditure.view",
        "loan.apply",
        "loan.view_own",
    ]


def test_client_dashboard_is_client_only(client, db_only):
    response = client.get("/api/v1/dashboard/client", headers=_bearer("financier", name="Sarah Wilson"))
    assert response.status_code == 403
    assert response.json()["message"] == "Role 'financier' may not access this resource"
