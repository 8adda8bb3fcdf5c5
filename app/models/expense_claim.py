import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.base import Base


PAYMENT_TYPES = ("cash", "bank-transfer", "cheque")
CLAIM_STATUSES = ("pending", "approved", "rejected")


class ExpenseClaim(Base):
    __tablename__ = "expense_claims"
    __table_args__ = (
        CheckConstraint("amount > 0", name="amount_positive"),
        CheckConstraint("payment_type IN ('cash', 'bank-transfer', 'cheque')", name="payment_type"),
        CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="status"),
        CheckConstraint("version >= 1", name="version_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    expenditure_item_id = Column(
        UUID(as_uuid=True),
        ForeignKey("expenditure_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    submitted_by_id = Column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    amount = Column(Numeric(18, 2), nullable=False)
    description = Column(Text, nullable=False)
    payment_type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    cash_ratio_warning = Column(Boolean, nullable=False, default=False, server_default="false")
    version = Column(Integer, nullable=False, default=1)
    submitted_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(String(255), nullable=True)
    comments = Column(Text, nullable=True)

    expenditure_item = relationship("ExpenditureItem", back_populates="claims")
    documents = relationship(
        "Document",
        back_populates="expense_claim",
        order_by="Document.uploaded_at",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}
