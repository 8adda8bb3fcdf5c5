import uuid

from sqlalchemy import (
    JSON,
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
from app.models.types import EncryptedString


LOAN_STATUSES = ("draft", "submitted", "under-review", "approved", "rejected", "disbursed")
LOAN_STAGES = ("application", "review", "approval-1", "approval-2", "disbursement")


class LoanApplication(Base):
    __tablename__ = "loan_applications"
    __table_args__ = (
        CheckConstraint("amount > 0", name="amount_positive"),
        CheckConstraint("term_months > 0", name="term_positive"),
        CheckConstraint("interest_rate >= 0", name="rate_nonneg"),
        CheckConstraint("years_in_business >= 0", name="years_nonneg"),
        CheckConstraint("monthly_revenue >= 0", name="revenue_nonneg"),
        CheckConstraint("monthly_expenses >= 0", name="expenses_nonneg"),
        CheckConstraint("existing_debt >= 0", name="debt_nonneg"),
        CheckConstraint("version >= 1", name="version_positive"),
        CheckConstraint(
            "status IN ('draft', 'submitted', 'under-review', 'approved', 'rejected', 'disbursed')",
            name="status",
        ),
        CheckConstraint(
            "stage IN ('application', 'review', 'approval-1', 'approval-2', 'disbursement')",
            name="stage",
        ),
        CheckConstraint("status <> 'disbursed' OR stage = 'disbursement'", name="disbursed_stage"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    client_id = Column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    client_name = Column(String(255), nullable=False)
    kyc_number = Column(EncryptedString(), nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)
    purpose = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="draft", index=True)
    stage = Column(String(20), nullable=False, default="application", index=True)
    interest_rate = Column(Numeric(6, 3), nullable=True)
    term_months = Column(Integer, nullable=False, default=12)
    version = Column(Integer, nullable=False, default=1)

    business_name = Column(String(255), nullable=False)
    business_type = Column(String(100), nullable=False)
    years_in_business = Column(Integer, nullable=False, default=0)
    monthly_revenue = Column(Numeric(18, 2), nullable=False, default=0)
    monthly_expenses = Column(Numeric(18, 2), nullable=False, default=0)
    existing_debt = Column(Numeric(18, 2), nullable=False, default=0)
    contact_person = Column(String(255), nullable=False)
    phone_number = Column(String(50), nullable=False)
    email = Column(String(255), nullable=False)
    business_address = Column(Text, nullable=False)

    reviewed_by = Column(String(255), nullable=True)
    approved_by = Column(JSON, nullable=False, default=list)
    rejection_reason = Column(Text, nullable=True)
    financier_comments = Column(Text, nullable=True)
    recommended_course_ids = Column(JSON, nullable=False, default=list)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    disbursed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    documents = relationship(
        "Document",
        back_populates="loan_application",
        order_by="Document.uploaded_at",
        cascade="all, delete-orphan",
    )
    expenditure_items = relationship(
        "ExpenditureItem",
        back_populates="loan_application",
        order_by="ExpenditureItem.created_at",
        cascade="all, delete-orphan",
    )
    payments = relationship("PaymentEntry", back_populates="loan_application")

    __mapper_args__ = {"version_id_col": version}
