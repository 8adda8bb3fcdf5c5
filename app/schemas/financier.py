from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator


class FinancierStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class FinancierBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    contact_person: str = Field(min_length=1, max_length=255)
    phone: str = Field(min_length=1, max_length=50)
    address: str = Field(min_length=1)
    registration_number: str = Field(min_length=1, max_length=100)
    status: FinancierStatus = FinancierStatus.ACTIVE
    loan_limit: Decimal = Field(default=Decimal("0"), ge=0)
    interest_rate_min: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    interest_rate_max: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    specializations: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_rate_range(self):
        if self.interest_rate_min > self.interest_rate_max:
            raise ValueError("interest_rate_min must not exceed interest_rate_max")
        return self


class FinancierCreate(FinancierBase):
    pass


class FinancierUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: EmailStr | None = None
    contact_person: str | None = None
    phone: str | None = None
    address: str | None = None
    registration_number: str | None = None
    status: FinancierStatus | None = None
    loan_limit: Decimal | None = Field(default=None, ge=0)
    interest_rate_min: Decimal | None = Field(default=None, ge=0, le=100)
    interest_rate_max: Decimal | None = Field(default=None, ge=0, le=100)
    specializations: list[str] | None = None


class FinancierDTO(FinancierBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class FinancierListResponse(BaseModel):
    items: list[FinancierDTO]
    total: int
