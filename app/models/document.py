import uuid

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.base import Base


DOCUMENT_TYPES = (
    "resolution-letter",
    "business-plan",
    "financial-projections",
    "contract",
    "other",
)

DOCUMENT_STATUSES = ("pending", "approved", "rejected")


class Document(Base):
    __tablename__ = "documents"
    __table_args__ = (
        CheckConstraint(
            "document_type IN ('resolution-letter', 'business-plan', 'financial-projections', 'contract', 'other')",
            name="document_type",
        ),
        CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("loan_applications.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    expense_claim_id = Column(
        UUID(as_uuid=True),
        ForeignKey("expense_claims.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    name = Column(String(255), nullable=False)
    document_type = Column(String(40), nullable=False, default="other")
    url = Column(String(1024), nullable=False)
    storage_key = Column(String(1024), nullable=True)
    content_type = Column(String(100), nullable=True)
    size_bytes = Column(BigInteger, nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    uploaded_by = Column(String(255), nullable=True)
    uploaded_by_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    uploaded_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(String(255), nullable=True)
    comments = Column(Text, nullable=True)

    loan_application = relationship("LoanApplication", back_populates="documents")
    expense_claim = relationship("ExpenseClaim", back_populates="documents")
