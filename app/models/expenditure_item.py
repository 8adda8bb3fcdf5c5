import uuid

from sqlalchemy import (
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


ITEM_STATUSES = ("available", "claimed", "approved", "rejected")


class ExpenditureItem(Base):
    __tablename__ = "expenditure_items"
    __table_args__ = (
        CheckConstraint("allocated_amount > 0", name="allocated_positive"),
        CheckConstraint("spent_amount >= 0", name="spent_nonneg"),
        CheckConstraint("remaining_amount >= 0", name="remaining_nonneg"),
        CheckConstraint(
            "remaining_amount = allocated_amount - spent_amount",
            name="remaining_balanced",
        ),
        CheckConstraint(
            "status IN ('available', 'claimed', 'approved', 'rejected')",
            name="status",
        ),
        CheckConstraint("version >= 1", name="version_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("loan_applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    line_item = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    allocated_amount = Column(Numeric(18, 2), nullable=False)
    spent_amount = Column(Numeric(18, 2), nullable=False, default=0)
    remaining_amount = Column(Numeric(18, 2), nullable=False)
    status = Column(String(20), nullable=False, default="available")
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    loan_application = relationship("LoanApplication", back_populates="expenditure_items")
    claims = relationship(
        "ExpenseClaim",
        back_populates="expenditure_item",
        order_by="ExpenseClaim.submitted_at",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}
