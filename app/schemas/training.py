from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class TrainingCourseCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    provider: str = Field(min_length=1, max_length=255)
    duration: str = Field(min_length=1, max_length=50)
    description: str = ""
    category: str = Field(min_length=1, max_length=100)


class TrainingCourseDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    provider: str
    duration: str
    description: str
    category: str
