from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.exceptions import Conflict, InvalidTransition, NotFound
from app.models.loan_application import LoanApplication
from app.models.payment_entry import PaymentEntry
from app.schemas.common import ListQuery
from app.schemas.payment import (
    PaymentEntryCreate,
    PaymentEntryDTO,
    PaymentStatus,
    ReconciliationSummary,
)
from app.services import listing
from app.services.audit import model_snapshot, record_audit_log
from app.services.budget import quantize


logger = logging.getLogger(__name__)


async def record_payment(
    db: AsyncSession,
    principal: deps.Principal,
    payload: PaymentEntryCreate,
) -> PaymentEntry:
    application = await db.get(LoanApplication, payload.loan_application_id)
    if application is None:
        raise NotFound("Loan application", payload.loan_application_id)

    reference = payload.reference_number.strip()
    existing = await db.execute(
        select(PaymentEntry.id).where(PaymentEntry.reference_number == reference)
    )
    if existing.first() is not None:
        raise Conflict(
            f"Payment reference '{reference}' already exists",
            {"reference_number": reference},
        )

    entry = PaymentEntry(
        loan_application_id=application.id,
        amount=quantize(payload.amount),
        reference_number=reference,
        status=PaymentStatus.PENDING.value,
        payment_date=payload.payment_date,
        notes=payload.notes,
        created_at=datetime.now(timezone.utc),
    )
    db.add(entry)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action="payment.recorded",
        resource_type="payment_entry",
        resource_id=entry.id,
        new_value=model_snapshot(entry),
    )
    return entry


async def get_payment(db: AsyncSession, payment_id: UUID) -> PaymentEntry:
    entry = await db.get(PaymentEntry, payment_id)
    if entry is None:
        raise NotFound("Payment entry", payment_id)
    return entry


def _require_pending(entry: PaymentEntry, action: str) -> None:
    if entry.status != PaymentStatus.PENDING.value:
        raise InvalidTransition(action, {"status": entry.status}, resource="payment_entry")


async def confirm_payment(
    db: AsyncSession,
    principal: deps.Principal,
    entry: PaymentEntry,
    notes: str | None = None,
) -> PaymentEntry:
    _require_pending(entry, "confirm")
    before = model_snapshot(entry)
    entry.status = PaymentStatus.CONFIRMED.value
    entry.confirmed_at = datetime.now(timezone.utc)
    entry.confirmed_by = principal.name
    if notes:
        entry.notes = notes
    db.add(entry)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action="payment.confirmed",
        resource_type="payment_entry",
        resource_id=entry.id,
        old_value=before,
        new_value=model_snapshot(entry),
    )
    logger.info("Payment confirmed", extra={"resource_id": entry.reference_number})
    return entry


async def fail_payment(
    db: AsyncSession,
    principal: deps.Principal,
    entry: PaymentEntry,
    reason: str,
) -> PaymentEntry:
    _require_pending(entry, "fail")
    before = model_snapshot(entry)
    entry.status = PaymentStatus.FAILED.value
    entry.failure_reason = reason.strip()
    db.add(entry)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action="payment.failed",
        resource_type="payment_entry",
        resource_id=entry.id,
        old_value=before,
        new_value=model_snapshot(entry),
    )
    return entry


async def list_payments(db: AsyncSession, query: ListQuery | None = None) -> list[PaymentEntryDTO]:
    stmt = (
        select(PaymentEntry, LoanApplication.client_name)
        .join(LoanApplication, PaymentEntry.loan_application_id == LoanApplication.id)
        .order_by(PaymentEntry.payment_date.desc())
    )
    entries = []
    for entry, client_name in (await db.execute(stmt)).all():
        dto = PaymentEntryDTO.model_validate(entry)
        dto.client_name = client_name
        entries.append(dto)
    return listing.apply_query(entries, query, listing.PAYMENT_LISTING)


def reconciliation_summary(entries) -> ReconciliationSummary:
    counts = listing.count_by(entries, "status")

    def _total(status: PaymentStatus) -> Decimal:
        return quantize(
            sum((Decimal(str(e.amount)) for e in entries if e.status == status), Decimal("0"))
        )

    return ReconciliationSummary(
        total=len(entries),
        pending=counts.get(PaymentStatus.PENDING.value, 0),
        confirmed=counts.get(PaymentStatus.CONFIRMED.value, 0),
        failed=counts.get(PaymentStatus.FAILED.value, 0),
        confirmed_amount=_total(PaymentStatus.CONFIRMED),
        pending_amount=_total(PaymentStatus.PENDING),
    )
