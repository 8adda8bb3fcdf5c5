import uuid

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base


class Financier(Base):
    __tablename__ = "financiers"
    __table_args__ = (
        UniqueConstraint("registration_number", name="uq_financiers_registration_number"),
        CheckConstraint("status IN ('active', 'inactive', 'suspended')", name="status"),
        CheckConstraint("loan_limit >= 0", name="loan_limit_nonneg"),
        CheckConstraint("interest_rate_min <= interest_rate_max", name="rate_range"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    contact_person = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False)
    address = Column(Text, nullable=False)
    registration_number = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, default="active", index=True)
    loan_limit = Column(Numeric(18, 2), nullable=False, default=0)
    interest_rate_min = Column(Numeric(6, 3), nullable=False, default=0)
    interest_rate_max = Column(Numeric(6, 3), nullable=False, default=0)
    specializations = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
