"""Financier-facing client portfolio, derived from loan applications and claims."""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.exceptions import NotFound
from app.models.expenditure_item import ExpenditureItem
from app.models.expense_claim import ExpenseClaim
from app.models.loan_application import LoanApplication
from app.models.user import User
from app.schemas.claim import ClaimStatus
from app.schemas.clients import ClientDetail, ClientStatus, ClientSummary
from app.schemas.common import ListQuery
from app.services import expense_claims, listing, loan_applications
from app.services.budget import quantize


def summarize_clients(
    applications,
    pending_claims: dict[UUID, int] | None = None,
    users: dict[UUID, User] | None = None,
) -> list[ClientSummary]:
    """Group applications by client; the newest application supplies the business name."""
    pending_claims = pending_claims or {}
    users = users or {}
    grouped: dict[UUID, list] = defaultdict(list)
    for application in applications:
        grouped[application.client_id].append(application)

    summaries = []
    for client_id, owned in grouped.items():
        owned = sorted(owned, key=lambda app: app.created_at, reverse=True)
        active = [app for app in owned if app.status in loan_applications.ACTIVE_STATUSES]
        user = users.get(client_id)
        summaries.append(
            ClientSummary(
                client_id=client_id,
                name=user.name if user is not None else owned[0].client_name,
                email=user.email if user is not None else owned[0].email,
                business_name=owned[0].business_name,
                total_loans=len(owned),
                active_loans=len(active),
                total_amount=quantize(
                    sum((Decimal(str(app.amount)) for app in owned), Decimal("0"))
                ),
                pending_claims=pending_claims.get(client_id, 0),
                status=ClientStatus.ACTIVE if active else ClientStatus.INACTIVE,
                joined_at=user.created_at if user is not None else None,
                last_application_at=owned[0].created_at,
            )
        )
    return summaries


async def _pending_claims_by_client(db: AsyncSession, client_ids) -> dict[UUID, int]:
    if not client_ids:
        return {}
    rows = (
        await db.execute(
            select(LoanApplication.client_id, func.count(ExpenseClaim.id))
            .join(ExpenditureItem, ExpenditureItem.loan_application_id == LoanApplication.id)
            .join(ExpenseClaim, ExpenseClaim.expenditure_item_id == ExpenditureItem.id)
            .where(ExpenseClaim.status == ClaimStatus.PENDING.value)
            .where(LoanApplication.client_id.in_(list(client_ids)))
            .group_by(LoanApplication.client_id)
        )
    ).all()
    return {row[0]: int(row[1]) for row in rows}


async def _users_by_id(db: AsyncSession, client_ids) -> dict[UUID, User]:
    if not client_ids:
        return {}
    result = await db.execute(select(User).where(User.id.in_(list(client_ids))))
    return {user.id: user for user in result.scalars().all()}


async def list_clients(
    db: AsyncSession,
    principal: deps.Principal,
    query: ListQuery | None = None,
) -> list[ClientSummary]:
    # draft visibility follows the loan list for the same principal
    applications = await loan_applications.list_applications(db, principal)
    client_ids = {app.client_id for app in applications}
    summaries = summarize_clients(
        applications,
        await _pending_claims_by_client(db, client_ids),
        await _users_by_id(db, client_ids),
    )
    return listing.apply_query(summaries, query, listing.CLIENT_LISTING)


async def get_client(db: AsyncSession, principal: deps.Principal, client_id: UUID) -> ClientDetail:
    applications = [
        app
        for app in await loan_applications.list_applications(db, principal)
        if app.client_id == client_id
    ]
    if not applications:
        raise NotFound("Client", client_id)
    summary = summarize_clients(
        applications,
        await _pending_claims_by_client(db, {client_id}),
        await _users_by_id(db, {client_id}),
    )[0]
    claims = await expense_claims.list_claims(db, principal, client_id=client_id)
    return ClientDetail(
        **summary.model_dump(),
        applications=[loan_applications.to_summary(app) for app in applications],
        claims=claims,
    )
