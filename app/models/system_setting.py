import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base


SETTING_CATEGORIES = ("general", "security", "notifications", "integrations")
SETTING_VALUE_TYPES = ("string", "number", "boolean", "json")


class SystemSetting(Base):
    __tablename__ = "system_settings"
    __table_args__ = (
        UniqueConstraint("key", name="uq_system_settings_key"),
        CheckConstraint(
            "category IN ('general', 'security', 'notifications', 'integrations')",
            name="category",
        ),
        CheckConstraint("value_type IN ('string', 'number', 'boolean', 'json')", name="value_type"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    category = Column(String(30), nullable=False, index=True)
    key = Column(String(150), nullable=False)
    value = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    value_type = Column(String(20), nullable=False, default="string")
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
    updated_by = Column(String(255), nullable=True)
