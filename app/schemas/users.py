from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.core.permissions import Role


class UserCreate(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1, max_length=255)
    role: Role
    avatar_url: str | None = None


class UserUpdate(BaseModel):
    email: EmailStr | None = None
    name: str | None = Field(default=None, min_length=1, max_length=255)
    role: Role | None = None
    avatar_url: str | None = None
    is_active: bool | None = None


class UserDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: EmailStr
    name: str
    role: Role
    avatar_url: str | None = None
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserListResponse(BaseModel):
    items: list[UserDTO]
    total: int
    counts_by_role: dict[str, int]


class PrincipalDTO(BaseModel):
    id: UUID
    name: str
    role: Role
    permissions: list[str]
