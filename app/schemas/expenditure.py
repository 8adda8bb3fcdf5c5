from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.claim import ExpenseClaimDTO


class ItemStatus(str, Enum):
    AVAILABLE = "available"
    CLAIMED = "claimed"
    APPROVED = "approved"
    REJECTED = "rejected"


class ExpenditureItemCreate(BaseModel):
    line_item: str = Field(min_length=1, max_length=255)
    description: str = ""
    allocated_amount: Decimal = Field(gt=0)


class ExpenditureItemDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    loan_application_id: UUID
    line_item: str
    description: str
    allocated_amount: Decimal
    spent_amount: Decimal
    remaining_amount: Decimal
    status: ItemStatus
    version: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    claims: list[ExpenseClaimDTO] = Field(default_factory=list)


class ExpenditureTotals(BaseModel):
    allocated: Decimal
    spent: Decimal
    remaining: Decimal
    utilization_percent: Decimal


class ExpenditureLedgerResponse(BaseModel):
    loan_application_id: UUID
    items: list[ExpenditureItemDTO]
    totals: ExpenditureTotals


class SpreadsheetImportResponse(BaseModel):
    loan_application_id: UUID
    imported: int
    items: list[ExpenditureItemDTO]
