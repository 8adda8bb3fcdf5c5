from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PaymentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class PaymentEntryCreate(BaseModel):
    loan_application_id: UUID
    amount: Decimal = Field(gt=0)
    reference_number: str = Field(min_length=1, max_length=100)
    payment_date: date
    notes: str | None = None


class PaymentConfirmRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)


class PaymentFailRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=2000)


class PaymentEntryDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    loan_application_id: UUID
    amount: Decimal
    reference_number: str
    status: PaymentStatus
    payment_date: date
    confirmed_at: datetime | None = None
    confirmed_by: str | None = None
    notes: str | None = None
    failure_reason: str | None = None
    created_at: datetime | None = None
    client_name: str | None = None


class ReconciliationSummary(BaseModel):
    total: int
    pending: int
    confirmed: int
    failed: int
    confirmed_amount: Decimal
    pending_amount: Decimal


class PaymentListResponse(BaseModel):
    items: list[PaymentEntryDTO]
    summary: ReconciliationSummary
