from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class SettingCategory(str, Enum):
    GENERAL = "general"
    SECURITY = "security"
    NOTIFICATIONS = "notifications"
    INTEGRATIONS = "integrations"


class SettingValueType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"


class SystemSettingCreate(BaseModel):
    category: SettingCategory
    key: str = Field(min_length=1, max_length=150)
    value: str
    description: str = ""
    value_type: SettingValueType = SettingValueType.STRING


class SystemSettingUpdate(BaseModel):
    value: str | None = None
    description: str | None = None
    category: SettingCategory | None = None
    value_type: SettingValueType | None = None


class SystemSettingDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    category: SettingCategory
    key: str
    value: str
    description: str
    value_type: SettingValueType
    updated_at: datetime | None = None
    updated_by: str | None = None


class SystemSettingListResponse(BaseModel):
    items: list[SystemSettingDTO]
    categories: dict[str, int]


class HealthComponent(BaseModel):
    name: str
    status: str
    detail: str | None = None
    latency_ms: float | None = None


class SystemHealthDTO(BaseModel):
    status: str
    version: str
    environment: str
    components: list[HealthComponent]
