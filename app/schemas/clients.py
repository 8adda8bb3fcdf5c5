from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.claim import ClaimQueueEntry
from app.schemas.loan import LoanApplicationSummaryDTO


class ClientStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class ClientSummary(BaseModel):
    client_id: UUID
    name: str
    email: str | None = None
    business_name: str
    total_loans: int
    active_loans: int
    total_amount: Decimal
    pending_claims: int
    status: ClientStatus
    joined_at: datetime | None = None
    last_application_at: datetime | None = None


class ClientDetail(ClientSummary):
    applications: list[LoanApplicationSummaryDTO] = Field(default_factory=list)
    claims: list[ClaimQueueEntry] = Field(default_factory=list)


class ClientListResponse(BaseModel):
    items: list[ClientSummary]
    total: int
    counts_by_status: dict[str, int]
