from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.schemas.document import DocumentDTO


class LoanStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under-review"
    APPROVED = "approved"
    REJECTED = "rejected"
    DISBURSED = "disbursed"


class LoanStage(str, Enum):
    APPLICATION = "application"
    REVIEW = "review"
    APPROVAL_1 = "approval-1"
    APPROVAL_2 = "approval-2"
    DISBURSEMENT = "disbursement"


class LoanEvent(str, Enum):
    SUBMIT = "submit"
    START_REVIEW = "start-review"
    COMPLETE_REVIEW = "complete-review"
    APPROVE_STAGE_1 = "approve-stage-1"
    APPROVE_STAGE_2 = "approve-stage-2"
    DISBURSE = "disburse"
    REJECT = "reject"


class StepStatus(str, Enum):
    COMPLETED = "completed"
    CURRENT = "current"
    UPCOMING = "upcoming"


class ProgressStep(BaseModel):
    id: str
    title: str
    description: str
    status: StepStatus


class LoanApplicationCreate(BaseModel):
    kyc_number: str
    amount: Decimal
    purpose: str
    term_months: int = 12
    business_name: str
    business_type: str
    years_in_business: int = 0
    monthly_revenue: Decimal = Decimal("0")
    monthly_expenses: Decimal = Decimal("0")
    existing_debt: Decimal = Decimal("0")
    contact_person: str
    phone_number: str
    email: EmailStr
    business_address: str
    submit: bool = False


class LoanTransitionRequest(BaseModel):
    event: LoanEvent
    reason: str | None = Field(default=None, max_length=2000)
    comments: str | None = Field(default=None, max_length=4000)
    interest_rate: Decimal | None = Field(default=None, ge=0, le=100)
    recommended_course_ids: list[UUID] = Field(default_factory=list)


class LoanApplicationSummaryDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    client_name: str
    business_name: str
    amount: Decimal
    purpose: str
    status: LoanStatus
    stage: LoanStage
    interest_rate: Decimal | None = None
    term_months: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    steps: list[ProgressStep] = Field(default_factory=list)


class LoanApplicationDTO(LoanApplicationSummaryDTO):
    kyc_number_masked: str | None = None
    business_type: str
    years_in_business: int
    monthly_revenue: Decimal
    monthly_expenses: Decimal
    existing_debt: Decimal
    contact_person: str
    phone_number: str
    email: str
    business_address: str
    reviewed_by: str | None = None
    approved_by: list[str] = Field(default_factory=list)
    rejection_reason: str | None = None
    financier_comments: str | None = None
    recommended_course_ids: list[UUID] = Field(default_factory=list)
    submitted_at: datetime | None = None
    disbursed_at: datetime | None = None
    version: int | None = None
    documents: list[DocumentDTO] = Field(default_factory=list)


class LoanApplicationListResponse(BaseModel):
    items: list[LoanApplicationSummaryDTO]
    total: int
    counts_by_status: dict[str, int]
    total_requested: Decimal


class ActivityDTO(BaseModel):
    id: UUID
    action: str
    summary: str | None = None
    resource_type: str
    resource_id: str
    actor_name: str | None = None
    created_at: datetime | None = None


class ClientDashboardDTO(BaseModel):
    active_loan: LoanApplicationSummaryDTO | None = None
    steps: list[ProgressStep]
    pending_applications: list[LoanApplicationSummaryDTO]
    total_applications: int
    active_loan_count: int
    total_borrowed: Decimal
    recent_activity: list[ActivityDTO]
