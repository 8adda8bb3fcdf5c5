from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.expenditure_item import ExpenditureItem
from app.models.expense_claim import ExpenseClaim
from app.models.financier import Financier
from app.models.loan_application import LoanApplication
from app.models.payment_entry import PaymentEntry
from app.models.user import User
from app.schemas.analytics import MonthlyVolume, PortfolioAnalytics, StatusBreakdown
from app.schemas.loan import LoanStatus
from app.services.budget import quantize, utilization_percent


ZERO = Decimal("0")


def _as_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def month_keys(as_of: date, months: int) -> list[str]:
    """Return ``YYYY-MM`` labels for the ``months`` months ending at ``as_of``, oldest first."""
    keys: list[str] = []
    year, month = as_of.year, as_of.month
    for _ in range(months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


def _month_of(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        value = value.date()
    return f"{value.year:04d}-{value.month:02d}"


def approval_rate(status_counts: dict[str, int]) -> Decimal:
    funded = status_counts.get(LoanStatus.APPROVED.value, 0) + status_counts.get(
        LoanStatus.DISBURSED.value, 0
    )
    decided = funded + status_counts.get(LoanStatus.REJECTED.value, 0)
    if decided == 0:
        return Decimal("0.00")
    return quantize(Decimal(funded) / Decimal(decided) * 100)


def monthly_series(applications, payments, *, as_of: date, months: int) -> list[MonthlyVolume]:
    buckets = {
        key: {"applications": 0, "requested": ZERO, "disbursed": ZERO}
        for key in month_keys(as_of, months)
    }
    for created_at, amount in applications:
        bucket = buckets.get(_month_of(created_at))
        if bucket is not None:
            bucket["applications"] += 1
            bucket["requested"] += _as_decimal(amount)
    for payment_date, amount in payments:
        bucket = buckets.get(_month_of(payment_date))
        if bucket is not None:
            bucket["disbursed"] += _as_decimal(amount)
    return [
        MonthlyVolume(
            month=key,
            applications=values["applications"],
            requested=quantize(values["requested"]),
            disbursed=quantize(values["disbursed"]),
        )
        for key, values in buckets.items()
    ]


async def build_portfolio_analytics(
    db: AsyncSession,
    *,
    as_of: date | None = None,
    months: int = 6,
) -> PortfolioAnalytics:
    as_of = as_of or date.today()

    status_rows = (
        await db.execute(
            select(LoanApplication.status, func.count(), func.coalesce(func.sum(LoanApplication.amount), 0))
            .group_by(LoanApplication.status)
        )
    ).all()
    by_status = [
        StatusBreakdown(status=row[0], count=int(row[1]), amount=quantize(_as_decimal(row[2])))
        for row in status_rows
    ]
    status_counts = {entry.status: entry.count for entry in by_status}
    total_applications = sum(status_counts.values())
    total_requested = sum((entry.amount for entry in by_status), ZERO)

    confirmed_payments = (
        await db.execute(
            select(PaymentEntry.payment_date, PaymentEntry.amount).where(
                PaymentEntry.status == "confirmed"
            )
        )
    ).all()
    total_disbursed = sum((_as_decimal(row[1]) for row in confirmed_payments), ZERO)

    application_rows = (
        await db.execute(select(LoanApplication.created_at, LoanApplication.amount))
    ).all()

    budget_row = (
        await db.execute(
            select(
                func.coalesce(func.sum(ExpenditureItem.allocated_amount), 0),
                func.coalesce(func.sum(ExpenditureItem.spent_amount), 0),
            )
        )
    ).first()
    allocated, spent = (budget_row or (0, 0))

    claims_row = (
        await db.execute(
            select(func.count(), func.coalesce(func.sum(ExpenseClaim.amount), 0))
            .select_from(ExpenseClaim)
            .where(ExpenseClaim.status == "pending")
        )
    ).first()
    pending_claims, pending_claims_amount = (claims_row or (0, 0))
    pending_payments = (
        await db.execute(
            select(func.count()).select_from(PaymentEntry).where(PaymentEntry.status == "pending")
        )
    ).scalar_one()
    active_financiers = (
        await db.execute(
            select(func.count()).select_from(Financier).where(Financier.status == "active")
        )
    ).scalar_one()
    role_rows = (
        await db.execute(
            select(User.role, func.count()).where(User.is_active.is_(True)).group_by(User.role)
        )
    ).all()

    return PortfolioAnalytics(
        total_applications=total_applications,
        total_requested=quantize(total_requested),
        total_disbursed=quantize(total_disbursed),
        approval_rate=approval_rate(status_counts),
        average_loan_amount=(
            quantize(total_requested / total_applications) if total_applications else Decimal("0.00")
        ),
        by_status=by_status,
        monthly=monthly_series(application_rows, confirmed_payments, as_of=as_of, months=months),
        budget_utilization_percent=utilization_percent(_as_decimal(allocated), _as_decimal(spent)),
        pending_claims=int(pending_claims or 0),
        pending_claims_amount=quantize(_as_decimal(pending_claims_amount)),
        pending_payments=int(pending_payments or 0),
        active_financiers=int(active_financiers or 0),
        users_by_role={row[0]: int(row[1]) for row in role_rows},
    )
