from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.document import DocumentDTO


class PaymentType(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank-transfer"
    CHEQUE = "cheque"


class ClaimStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ExpenseClaimDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    expenditure_item_id: UUID
    submitted_by_id: UUID | None = None
    amount: Decimal
    description: str
    payment_type: PaymentType
    status: ClaimStatus
    cash_ratio_warning: bool = False
    submitted_at: datetime | None = None
    reviewed_at: datetime | None = None
    reviewed_by: str | None = None
    comments: str | None = None
    documents: list[DocumentDTO] = Field(default_factory=list)


class ClaimWarning(BaseModel):
    code: str
    message: str


class ClaimSubmissionResponse(BaseModel):
    claim: ExpenseClaimDTO
    warnings: list[ClaimWarning] = Field(default_factory=list)


class ClaimReviewRequest(BaseModel):
    comments: str | None = Field(default=None, max_length=2000)


class ClaimRejectRequest(BaseModel):
    comments: str = Field(min_length=1, max_length=2000)


class BulkApproveRequest(BaseModel):
    claim_ids: list[UUID] = Field(min_length=1)
    comments: str | None = Field(default=None, max_length=2000)


class BulkApproveResponse(BaseModel):
    approved: list[ExpenseClaimDTO]


class ClaimQueueEntry(ExpenseClaimDTO):
    line_item: str | None = None
    loan_application_id: UUID | None = None
    client_name: str | None = None


class ClaimSummary(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    pending_amount: Decimal


class ClaimListResponse(BaseModel):
    items: list[ClaimQueueEntry]
    summary: ClaimSummary
