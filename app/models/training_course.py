import uuid

from sqlalchemy import Column, String, Text
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base


class TrainingCourse(Base):
    __tablename__ = "training_courses"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    provider = Column(String(255), nullable=False)
    duration = Column(String(50), nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(String(100), nullable=False, index=True)
