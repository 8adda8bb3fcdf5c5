import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.base import Base


PAYMENT_STATUSES = ("pending", "confirmed", "failed")


class PaymentEntry(Base):
    __tablename__ = "payment_entries"
    __table_args__ = (
        UniqueConstraint("reference_number", name="uq_payment_entries_reference_number"),
        CheckConstraint("amount > 0", name="amount_positive"),
        CheckConstraint("status IN ('pending', 'confirmed', 'failed')", name="status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("loan_applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount = Column(Numeric(18, 2), nullable=False)
    reference_number = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    payment_date = Column(Date, nullable=False)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    confirmed_by = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    failure_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    loan_application = relationship("LoanApplication", back_populates="payments")
