from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import set_principal_id
from app.core.permissions import PermissionCode, Role, has_permission, permissions_for
from app.core.security import decode_token
from app.db.session import get_db


@dataclass(slots=True, frozen=True)
class Principal:
    """Authenticated caller as asserted by the session provider's token."""

    id: UUID
    name: str
    role: Role

    @property
    def permissions(self) -> frozenset[PermissionCode]:
        return permissions_for(self.role)

    def can(self, permission: PermissionCode | str) -> bool:
        return has_permission(self.role, permission)


bearer_scheme = HTTPBearer(auto_error=False)


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    return db


def principal_from_claims(payload: dict) -> Principal:
    subject = payload.get("sub")
    role = payload.get("role")
    if not subject or not role:
        raise ValueError("Token is missing subject or role")
    try:
        return Principal(id=UUID(str(subject)), name=payload.get("name") or "", role=Role(role))
    except ValueError as exc:
        raise ValueError("Token carries an invalid subject or role") from exc


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = decode_token(credentials.credentials, expected_type="access")
        principal = principal_from_claims(payload)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    set_principal_id(str(principal.id))
    return principal


def require_roles(*roles: Role | str):
    allowed = {Role(role) for role in roles}

    async def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{principal.role.value}' may not access this resource",
            )
        return principal

    return dependency


def require_permission(permission_code: PermissionCode | str):
    async def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.can(permission_code):
            target = PermissionCode(permission_code).value
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {target}",
            )
        return principal

    return dependency
