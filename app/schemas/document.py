from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class DocumentType(str, Enum):
    RESOLUTION_LETTER = "resolution-letter"
    BUSINESS_PLAN = "business-plan"
    FINANCIAL_PROJECTIONS = "financial-projections"
    CONTRACT = "contract"
    OTHER = "other"


class DocumentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DocumentReviewDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class DocumentDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    type: DocumentType = Field(validation_alias="document_type")
    url: str
    status: DocumentStatus
    content_type: str | None = None
    size_bytes: int | None = None
    loan_application_id: UUID | None = None
    expense_claim_id: UUID | None = None
    uploaded_by: str | None = None
    uploaded_at: datetime | None = None
    reviewed_at: datetime | None = None
    reviewed_by: str | None = None
    comments: str | None = None


class DocumentReviewRequest(BaseModel):
    decision: DocumentReviewDecision
    comments: str | None = Field(default=None, max_length=2000)


class DocumentListResponse(BaseModel):
    items: list[DocumentDTO]
    total: int
    counts_by_status: dict[str, int]
