from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.exceptions import Conflict, NotFound, ValidationError
from app.models.financier import Financier
from app.schemas.common import ListQuery
from app.schemas.financier import FinancierCreate, FinancierUpdate
from app.services import listing
from app.services.audit import model_snapshot, record_audit_log
from app.services.budget import quantize


async def _ensure_registration_free(
    db: AsyncSession, registration_number: str, *, exclude_id: UUID | None = None
) -> None:
    stmt = select(Financier.id).where(Financier.registration_number == registration_number)
    if exclude_id is not None:
        stmt = stmt.where(Financier.id != exclude_id)
    if (await db.execute(stmt)).first() is not None:
        raise Conflict(
            f"Registration number '{registration_number}' is already in use",
            {"registration_number": registration_number},
        )


async def list_financiers(db: AsyncSession, query: ListQuery | None = None) -> list[Financier]:
    result = await db.execute(select(Financier).order_by(Financier.name))
    return listing.apply_query(result.scalars().all(), query, listing.FINANCIER_LISTING)


async def get_financier(db: AsyncSession, financier_id: UUID) -> Financier:
    financier = await db.get(Financier, financier_id)
    if financier is None:
        raise NotFound("Financier", financier_id)
    return financier


async def create_financier(
    db: AsyncSession, principal: deps.Principal, payload: FinancierCreate
) -> Financier:
    registration = payload.registration_number.strip()
    await _ensure_registration_free(db, registration)
    now = datetime.now(timezone.utc)
    financier = Financier(
        name=payload.name.strip(),
        email=str(payload.email).lower(),
        contact_person=payload.contact_person.strip(),
        phone=payload.phone.strip(),
        address=payload.address.strip(),
        registration_number=registration,
        status=payload.status.value,
        loan_limit=quantize(payload.loan_limit),
        interest_rate_min=payload.interest_rate_min,
        interest_rate_max=payload.interest_rate_max,
        specializations=list(payload.specializations),
        created_at=now,
        updated_at=now,
    )
    db.add(financier)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action="financier.created",
        resource_type="financier",
        resource_id=financier.id,
        new_value=model_snapshot(financier),
    )
    return financier


async def update_financier(
    db: AsyncSession,
    principal: deps.Principal,
    financier: Financier,
    payload: FinancierUpdate,
) -> Financier:
    before = model_snapshot(financier)
    data = payload.model_dump(exclude_unset=True, exclude_none=True)

    rate_min = data.get("interest_rate_min", financier.interest_rate_min)
    rate_max = data.get("interest_rate_max", financier.interest_rate_max)
    if rate_min is not None and rate_max is not None and rate_min > rate_max:
        raise ValidationError(
            "interest_rate_min must not exceed interest_rate_max", field="interest_rate_min"
        )
    if "registration_number" in data:
        data["registration_number"] = data["registration_number"].strip()
        await _ensure_registration_free(db, data["registration_number"], exclude_id=financier.id)

    for key, value in data.items():
        if key == "status":
            value = value.value
        elif key == "email":
            value = str(value).lower()
        elif key == "loan_limit":
            value = quantize(value)
        elif key == "specializations":
            value = list(value)
        setattr(financier, key, value)
    financier.updated_at = datetime.now(timezone.utc)
    db.add(financier)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action="financier.updated",
        resource_type="financier",
        resource_id=financier.id,
        old_value=before,
        new_value=model_snapshot(financier),
    )
    return financier


async def delete_financier(db: AsyncSession, principal: deps.Principal, financier: Financier) -> None:
    snapshot = model_snapshot(financier)
    await db.delete(financier)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action="financier.deleted",
        resource_type="financier",
        resource_id=snapshot["id"],
        old_value=snapshot,
    )
