from __future__ import annotations

import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api import deps
from app.core.exceptions import InvalidTransition, NotFound
from app.models.expenditure_item import ExpenditureItem
from app.models.expense_claim import ExpenseClaim
from app.models.loan_application import LoanApplication
from app.schemas.expenditure import ExpenditureItemCreate, ExpenditureTotals, ItemStatus
from app.services.audit import model_snapshot, record_audit_log
from app.services.budget import quantize, utilization_percent
from app.services.loan_applications import ACTIVE_STATUSES
from app.services.spreadsheet import ExpenditureRow


logger = logging.getLogger(__name__)


def _require_funded(application: LoanApplication) -> None:
    if application.status not in ACTIVE_STATUSES:
        raise InvalidTransition(
            "plan_expenditure",
            {"status": application.status, "stage": application.stage},
        )


async def list_items(db: AsyncSession, loan_id: UUID) -> list[ExpenditureItem]:
    stmt = (
        select(ExpenditureItem)
        .options(selectinload(ExpenditureItem.claims).selectinload(ExpenseClaim.documents))
        .where(ExpenditureItem.loan_application_id == loan_id)
        .order_by(ExpenditureItem.created_at)
    )
    return list((await db.execute(stmt)).scalars().all())


async def get_item(db: AsyncSession, item_id: UUID) -> ExpenditureItem:
    stmt = (
        select(ExpenditureItem)
        .options(selectinload(ExpenditureItem.claims).selectinload(ExpenseClaim.documents))
        .where(ExpenditureItem.id == item_id)
    )
    item = (await db.execute(stmt)).scalar_one_or_none()
    if item is None:
        raise NotFound("Expenditure item", item_id)
    return item


def ledger_totals(items) -> ExpenditureTotals:
    allocated = sum((Decimal(str(item.allocated_amount)) for item in items), Decimal("0"))
    spent = sum((Decimal(str(item.spent_amount)) for item in items), Decimal("0"))
    remaining = sum((Decimal(str(item.remaining_amount)) for item in items), Decimal("0"))
    return ExpenditureTotals(
        allocated=quantize(allocated),
        spent=quantize(spent),
        remaining=quantize(remaining),
        utilization_percent=utilization_percent(allocated, spent),
    )


def _new_item(application: LoanApplication, line_item: str, allocated, description: str) -> ExpenditureItem:
    allocated = quantize(allocated)
    return ExpenditureItem(
        loan_application_id=application.id,
        line_item=line_item,
        description=description or "",
        allocated_amount=allocated,
        spent_amount=Decimal("0.00"),
        remaining_amount=allocated,
        status=ItemStatus.AVAILABLE.value,
    )


async def create_item(
    db: AsyncSession,
    principal: deps.Principal,
    application: LoanApplication,
    payload: ExpenditureItemCreate,
) -> ExpenditureItem:
    _require_funded(application)
    item = _new_item(application, payload.line_item.strip(), payload.allocated_amount, payload.description)
    db.add(item)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action="expenditure_item.created",
        resource_type="expenditure_item",
        resource_id=item.id,
        new_value=model_snapshot(item),
    )
    return item


async def import_plan(
    db: AsyncSession,
    principal: deps.Principal,
    application: LoanApplication,
    rows: list[ExpenditureRow],
) -> list[ExpenditureItem]:
    """Create one available line item per parsed spreadsheet row, in sheet order."""
    _require_funded(application)
    items = [_new_item(application, row.line_item, row.allocated_amount, row.description) for row in rows]
    for item in items:
        db.add(item)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action="expenditure_plan.imported",
        resource_type="loan_application",
        resource_id=application.id,
        new_value={
            "items": [
                {"line_item": item.line_item, "allocated_amount": item.allocated_amount}
                for item in items
            ]
        },
    )
    logger.info(
        "Imported %d expenditure items", len(items), extra={"loan_id": str(application.id)}
    )
    return items
