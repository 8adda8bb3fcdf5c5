"""Expense claim submission and review.

Every mutation re-checks the budget against the line item as loaded in the
current transaction; the item's version column makes two concurrent approvals
against the same item collide with ``StaleDataError`` instead of overspending.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api import deps
from app.core.exceptions import InsufficientBudget, InvalidTransition, NotFound, ValidationError
from app.core.permissions import PermissionCode
from app.models.expenditure_item import ExpenditureItem
from app.models.expense_claim import ExpenseClaim
from app.models.loan_application import LoanApplication
from app.schemas.claim import (
    ClaimQueueEntry,
    ClaimStatus,
    ClaimSummary,
    ExpenseClaimDTO,
    PaymentType,
)
from app.schemas.common import ListQuery
from app.schemas.document import DocumentType
from app.schemas.expenditure import ItemStatus
from app.services import budget, documents, listing, local_uploads
from app.services.audit import model_snapshot, record_audit_log
from app.services.expenditures import get_item


logger = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 10


def validate_claim_input(amount, description: str | None, payment_type) -> PaymentType:
    errors: dict[str, str] = {}
    try:
        value = Decimal(str(amount))
    except ArithmeticError:
        value = None
    if value is None or not value.is_finite() or value <= 0:
        errors["amount"] = "Amount must be greater than zero"
    if len((description or "").strip()) < MIN_DESCRIPTION_LENGTH:
        errors["description"] = (
            f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters"
        )
    try:
        kind = PaymentType(payment_type)
    except ValueError:
        kind = None
        errors["payment_type"] = "Payment type must be one of cash, bank-transfer, cheque"
    if errors:
        first = next(iter(errors))
        raise ValidationError(errors[first], field=first, details={"errors": errors})
    return kind


async def submit_claim(
    db: AsyncSession,
    principal: deps.Principal,
    item: ExpenditureItem,
    *,
    amount,
    description: str,
    payment_type: PaymentType | str,
    files: Sequence[UploadFile] = (),
) -> tuple[ExpenseClaim, budget.ClaimEvaluation]:
    kind = validate_claim_input(amount, description, payment_type)
    amount = budget.quantize(amount)
    evaluation = budget.evaluate_claim(item, amount, kind)
    if not evaluation.allowed:
        raise InsufficientBudget(amount, Decimal(str(item.remaining_amount)), item.id)

    now = datetime.now(timezone.utc)
    claim = ExpenseClaim(
        expenditure_item_id=item.id,
        submitted_by_id=principal.id,
        amount=amount,
        description=description.strip(),
        payment_type=kind.value,
        status=ClaimStatus.PENDING.value,
        cash_ratio_warning=evaluation.cash_ratio_warning,
        submitted_at=now,
    )
    db.add(claim)
    await db.flush()

    for upload in files:
        await documents.upload_document(
            db,
            principal,
            upload,
            document_type=DocumentType.OTHER,
            expense_claim_id=claim.id,
            allowed_extensions=local_uploads.CLAIM_DOCUMENT_EXTENSIONS,
            max_size_bytes=local_uploads.CLAIM_DOCUMENT_MAX_BYTES,
        )

    item.status = ItemStatus.CLAIMED.value
    db.add(item)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action="expense_claim.submitted",
        resource_type="expense_claim",
        resource_id=claim.id,
        new_value=model_snapshot(claim),
    )
    if evaluation.warnings:
        logger.warning(
            "Cash claim above ratio threshold",
            extra={"claim_id": str(claim.id), "resource_id": str(item.id)},
        )
    return claim, evaluation


async def get_claim(db: AsyncSession, claim_id: UUID) -> ExpenseClaim:
    stmt = (
        select(ExpenseClaim)
        .options(selectinload(ExpenseClaim.documents))
        .where(ExpenseClaim.id == claim_id)
    )
    claim = (await db.execute(stmt)).scalar_one_or_none()
    if claim is None:
        raise NotFound("Expense claim", claim_id)
    return claim


def _require_pending(claim: ExpenseClaim, action: str) -> None:
    if claim.status != ClaimStatus.PENDING.value:
        raise InvalidTransition(action, {"status": claim.status}, resource="expense_claim")


def _close_review(claim: ExpenseClaim, principal: deps.Principal, status: ClaimStatus, comments) -> None:
    claim.status = status.value
    claim.reviewed_at = datetime.now(timezone.utc)
    claim.reviewed_by = principal.name
    claim.comments = comments


async def approve_claim(
    db: AsyncSession,
    principal: deps.Principal,
    claim: ExpenseClaim,
    comments: str | None = None,
) -> ExpenseClaim:
    _require_pending(claim, "approve")
    item = await get_item(db, claim.expenditure_item_id)
    item_before = model_snapshot(item)

    line = budget.apply_approval(budget.BudgetLine.of(item), claim.amount, item_id=item.id)
    item.spent_amount = line.spent
    item.remaining_amount = line.remaining
    _close_review(claim, principal, ClaimStatus.APPROVED, comments)
    item.status = budget.item_status(item.claims or [claim]).value

    db.add(claim)
    db.add(item)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action="expense_claim.approved",
        resource_type="expense_claim",
        resource_id=claim.id,
        old_value={"item": item_before},
        new_value={"item": model_snapshot(item), "claim": model_snapshot(claim)},
    )
    logger.info("Expense claim approved", extra={"claim_id": str(claim.id)})
    return claim


async def reject_claim(
    db: AsyncSession,
    principal: deps.Principal,
    claim: ExpenseClaim,
    comments: str,
) -> ExpenseClaim:
    _require_pending(claim, "reject")
    if not comments or not comments.strip():
        raise ValidationError("Comments are required when rejecting a claim", field="comments")
    item = await get_item(db, claim.expenditure_item_id)
    _close_review(claim, principal, ClaimStatus.REJECTED, comments.strip())
    item.status = budget.item_status(item.claims or [claim]).value

    db.add(claim)
    db.add(item)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action="expense_claim.rejected",
        resource_type="expense_claim",
        resource_id=claim.id,
        new_value=model_snapshot(claim),
    )
    return claim


async def bulk_approve(
    db: AsyncSession,
    principal: deps.Principal,
    claim_ids: Sequence[UUID],
    comments: str | None = None,
) -> list[ExpenseClaim]:
    """Approve exactly the selected claims or none of them.

    Unknown or non-pending ids abort before any change; a budget failure part
    way through propagates and the caller's transaction is rolled back.
    """
    unique_ids = list(dict.fromkeys(claim_ids))
    stmt = (
        select(ExpenseClaim)
        .options(selectinload(ExpenseClaim.documents))
        .where(ExpenseClaim.id.in_(unique_ids))
    )
    claims = {claim.id: claim for claim in (await db.execute(stmt)).scalars().all()}

    missing = [str(claim_id) for claim_id in unique_ids if claim_id not in claims]
    if missing:
        raise NotFound("Expense claim", ", ".join(missing))
    not_pending = [
        str(claim.id) for claim in claims.values() if claim.status != ClaimStatus.PENDING.value
    ]
    if not_pending:
        raise InvalidTransition(
            "bulk_approve",
            {"status": "not pending", "claims": ", ".join(not_pending)},
            resource="expense_claim",
        )

    approved = []
    for claim_id in unique_ids:
        approved.append(await approve_claim(db, principal, claims[claim_id], comments))
    return approved


async def list_claims(
    db: AsyncSession,
    principal: deps.Principal,
    query: ListQuery | None = None,
    *,
    loan_id: UUID | None = None,
    client_id: UUID | None = None,
) -> list[ClaimQueueEntry]:
    stmt = (
        select(ExpenseClaim, ExpenditureItem.line_item, LoanApplication.id, LoanApplication.client_name)
        .join(ExpenditureItem, ExpenseClaim.expenditure_item_id == ExpenditureItem.id)
        .join(LoanApplication, ExpenditureItem.loan_application_id == LoanApplication.id)
        .options(selectinload(ExpenseClaim.documents))
        .order_by(ExpenseClaim.submitted_at.desc())
    )
    if loan_id is not None:
        stmt = stmt.where(LoanApplication.id == loan_id)
    if client_id is not None:
        stmt = stmt.where(LoanApplication.client_id == client_id)
    if not principal.can(PermissionCode.CLAIM_REVIEW):
        stmt = stmt.where(LoanApplication.client_id == principal.id)
    rows = (await db.execute(stmt)).all()
    entries = []
    for claim, line_item, application_id, client_name in rows:
        entry = ClaimQueueEntry.model_validate(claim)
        entry.line_item = line_item
        entry.loan_application_id = application_id
        entry.client_name = client_name
        entries.append(entry)
    return listing.apply_query(entries, query, listing.CLAIM_LISTING)


def claims_summary(claims) -> ClaimSummary:
    pending = [claim for claim in claims if claim.status == ClaimStatus.PENDING]
    return ClaimSummary(
        total=len(claims),
        pending=len(pending),
        approved=sum(1 for claim in claims if claim.status == ClaimStatus.APPROVED),
        rejected=sum(1 for claim in claims if claim.status == ClaimStatus.REJECTED),
        pending_amount=budget.quantize(
            sum((Decimal(str(claim.amount)) for claim in pending), Decimal("0"))
        ),
    )


def to_dto(claim: ExpenseClaim) -> ExpenseClaimDTO:
    return ExpenseClaimDTO.model_validate(claim)
