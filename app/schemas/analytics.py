from decimal import Decimal

from pydantic import BaseModel


class StatusBreakdown(BaseModel):
    status: str
    count: int
    amount: Decimal


class MonthlyVolume(BaseModel):
    month: str
    applications: int
    requested: Decimal
    disbursed: Decimal


class PortfolioAnalytics(BaseModel):
    total_applications: int
    total_requested: Decimal
    total_disbursed: Decimal
    approval_rate: Decimal
    average_loan_amount: Decimal
    by_status: list[StatusBreakdown]
    monthly: list[MonthlyVolume]
    budget_utilization_percent: Decimal
    pending_claims: int
    pending_claims_amount: Decimal
    pending_payments: int
    active_financiers: int
    users_by_role: dict[str, int]
