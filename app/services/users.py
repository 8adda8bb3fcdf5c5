from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.exceptions import Conflict, NotFound, ValidationError
from app.models.loan_application import LoanApplication
from app.models.user import User
from app.schemas.common import ListQuery
from app.schemas.users import UserCreate, UserUpdate
from app.services import listing
from app.services.audit import model_snapshot, record_audit_log


def _normalize_email(email: str) -> str:
    return str(email).strip().lower()


async def _ensure_email_free(db: AsyncSession, email: str, *, exclude_id: UUID | None = None) -> None:
    stmt = select(User.id).where(func.lower(User.email) == email)
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    if (await db.execute(stmt)).first() is not None:
        raise Conflict(f"A user with email '{email}' already exists", {"email": email})


async def list_users(db: AsyncSession, query: ListQuery | None = None) -> list[User]:
    result = await db.execute(select(User).order_by(User.created_at.desc()))
    return listing.apply_query(result.scalars().all(), query, listing.USER_LISTING)


async def get_user(db: AsyncSession, user_id: UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User", user_id)
    return user


async def create_user(db: AsyncSession, principal: deps.Principal, payload: UserCreate) -> User:
    email = _normalize_email(payload.email)
    await _ensure_email_free(db, email)
    now = datetime.now(timezone.utc)
    user = User(
        email=email,
        name=payload.name.strip(),
        role=payload.role.value,
        avatar_url=payload.avatar_url,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action="user.created",
        resource_type="user",
        resource_id=user.id,
        new_value=model_snapshot(user),
    )
    return user


async def update_user(
    db: AsyncSession,
    principal: deps.Principal,
    user: User,
    payload: UserUpdate,
) -> User:
    before = model_snapshot(user)
    data = payload.model_dump(exclude_unset=True)
    if "email" in data and data["email"] is not None:
        email = _normalize_email(data["email"])
        await _ensure_email_free(db, email, exclude_id=user.id)
        user.email = email
    if data.get("name") is not None:
        user.name = data["name"].strip()
    if data.get("role") is not None:
        if user.id == principal.id and data["role"] != principal.role:
            raise ValidationError("Administrators cannot change their own role", field="role")
        user.role = data["role"].value
    if "avatar_url" in data:
        user.avatar_url = data["avatar_url"]
    if data.get("is_active") is not None:
        user.is_active = data["is_active"]
    user.updated_at = datetime.now(timezone.utc)
    db.add(user)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action="user.updated",
        resource_type="user",
        resource_id=user.id,
        old_value=before,
        new_value=model_snapshot(user),
    )
    return user


async def delete_user(db: AsyncSession, principal: deps.Principal, user: User) -> None:
    if user.id == principal.id:
        raise ValidationError("Administrators cannot delete their own account", field="id")
    owned = await db.execute(
        select(func.count()).select_from(LoanApplication).where(LoanApplication.client_id == user.id)
    )
    if int(owned.scalar_one() or 0) > 0:
        raise Conflict(
            "User owns loan applications; deactivate the account instead",
            {"user_id": str(user.id)},
        )
    snapshot = model_snapshot(user)
    await db.delete(user)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action="user.deleted",
        resource_type="user",
        resource_id=snapshot["id"],
        old_value=snapshot,
    )
