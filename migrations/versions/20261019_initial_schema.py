"""create loan dashboard schema

Revision ID: 20261019_initial_schema
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20261019_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _uuid(name: str = "id", **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), **kwargs)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        _uuid(primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("avatar_url", sa.String(length=1024), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("role IN ('client', 'financier', 'admin')", name=op.f("ck_users_role")),
    )
    op.create_index(op.f("ix_users_role"), "users", ["role"])

    op.create_table(
        "financiers",
        _uuid(primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("contact_person", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=False),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("registration_number", sa.String(length=100), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("loan_limit", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("interest_rate_min", sa.Numeric(6, 3), nullable=False, server_default="0"),
        sa.Column("interest_rate_max", sa.Numeric(6, 3), nullable=False, server_default="0"),
        sa.Column("specializations", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("registration_number", name="uq_financiers_registration_number"),
        sa.CheckConstraint(
            "status IN ('active', 'inactive', 'suspended')", name=op.f("ck_financiers_status")
        ),
        sa.CheckConstraint("loan_limit >= 0", name=op.f("ck_financiers_loan_limit_nonneg")),
        sa.CheckConstraint(
            "interest_rate_min <= interest_rate_max", name=op.f("ck_financiers_rate_range")
        ),
    )
    op.create_index(op.f("ix_financiers_status"), "financiers", ["status"])

    op.create_table(
        "system_settings",
        _uuid(primary_key=True, nullable=False),
        sa.Column("category", sa.String(length=30), nullable=False),
        sa.Column("key", sa.String(length=150), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("value_type", sa.String(length=20), nullable=False, server_default="string"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_by", sa.String(length=255), nullable=True),
        sa.UniqueConstraint("key", name="uq_system_settings_key"),
        sa.CheckConstraint(
            "category IN ('general', 'security', 'notifications', 'integrations')",
            name=op.f("ck_system_settings_category"),
        ),
        sa.CheckConstraint(
            "value_type IN ('string', 'number', 'boolean', 'json')",
            name=op.f("ck_system_settings_value_type"),
        ),
    )
    op.create_index(op.f("ix_system_settings_category"), "system_settings", ["category"])

    op.create_table(
        "training_courses",
        _uuid(primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("provider", sa.String(length=255), nullable=False),
        sa.Column("duration", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("category", sa.String(length=100), nullable=False),
    )
    op.create_index(op.f("ix_training_courses_category"), "training_courses", ["category"])

    op.create_table(
        "loan_applications",
        _uuid(primary_key=True, nullable=False),
        _uuid("client_id", nullable=False),
        sa.Column("client_name", sa.String(length=255), nullable=False),
        sa.Column("kyc_number", sa.LargeBinary(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("purpose", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
        sa.Column("stage", sa.String(length=20), nullable=False, server_default="application"),
        sa.Column("interest_rate", sa.Numeric(6, 3), nullable=True),
        sa.Column("term_months", sa.Integer(), nullable=False, server_default="12"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("business_name", sa.String(length=255), nullable=False),
        sa.Column("business_type", sa.String(length=100), nullable=False),
        sa.Column("years_in_business", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("monthly_revenue", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("monthly_expenses", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("existing_debt", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("contact_person", sa.String(length=255), nullable=False),
        sa.Column("phone_number", sa.String(length=50), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("business_address", sa.Text(), nullable=False),
        sa.Column("reviewed_by", sa.String(length=255), nullable=True),
        sa.Column("approved_by", sa.JSON(), nullable=False),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("financier_comments", sa.Text(), nullable=True),
        sa.Column("recommended_course_ids", sa.JSON(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("disbursed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["client_id"], ["users.id"], ondelete="RESTRICT",
            name=op.f("fk_loan_applications_client_id_users"),
        ),
        sa.CheckConstraint("amount > 0", name=op.f("ck_loan_applications_amount_positive")),
        sa.CheckConstraint("term_months > 0", name=op.f("ck_loan_applications_term_positive")),
        sa.CheckConstraint("interest_rate >= 0", name=op.f("ck_loan_applications_rate_nonneg")),
        sa.CheckConstraint("years_in_business >= 0", name=op.f("ck_loan_applications_years_nonneg")),
        sa.CheckConstraint("monthly_revenue >= 0", name=op.f("ck_loan_applications_revenue_nonneg")),
        sa.CheckConstraint("monthly_expenses >= 0", name=op.f("ck_loan_applications_expenses_nonneg")),
        sa.CheckConstraint("existing_debt >= 0", name=op.f("ck_loan_applications_debt_nonneg")),
        sa.CheckConstraint("version >= 1", name=op.f("ck_loan_applications_version_positive")),
        sa.CheckConstraint(
            "status IN ('draft', 'submitted', 'under-review', 'approved', 'rejected', 'disbursed')",
            name=op.f("ck_loan_applications_status"),
        ),
        sa.CheckConstraint(
            "stage IN ('application', 'review', 'approval-1', 'approval-2', 'disbursement')",
            name=op.f("ck_loan_applications_stage"),
        ),
        sa.CheckConstraint(
            "status <> 'disbursed' OR stage = 'disbursement'",
            name=op.f("ck_loan_applications_disbursed_stage"),
        ),
    )
    op.create_index(op.f("ix_loan_applications_client_id"), "loan_applications", ["client_id"])
    op.create_index(op.f("ix_loan_applications_status"), "loan_applications", ["status"])
    op.create_index(op.f("ix_loan_applications_stage"), "loan_applications", ["stage"])

    op.create_table(
        "expenditure_items",
        _uuid(primary_key=True, nullable=False),
        _uuid("loan_application_id", nullable=False),
        sa.Column("line_item", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("allocated_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("spent_amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("remaining_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="available"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["loan_application_id"], ["loan_applications.id"], ondelete="CASCADE",
            name=op.f("fk_expenditure_items_loan_application_id_loan_applications"),
        ),
        sa.CheckConstraint("allocated_amount > 0", name=op.f("ck_expenditure_items_allocated_positive")),
        sa.CheckConstraint("spent_amount >= 0", name=op.f("ck_expenditure_items_spent_nonneg")),
        sa.CheckConstraint("remaining_amount >= 0", name=op.f("ck_expenditure_items_remaining_nonneg")),
        sa.CheckConstraint(
            "remaining_amount = allocated_amount - spent_amount",
            name=op.f("ck_expenditure_items_remaining_balanced"),
        ),
        sa.CheckConstraint(
            "status IN ('available', 'claimed', 'approved', 'rejected')",
            name=op.f("ck_expenditure_items_status"),
        ),
        sa.CheckConstraint("version >= 1", name=op.f("ck_expenditure_items_version_positive")),
    )
    op.create_index(
        op.f("ix_expenditure_items_loan_application_id"), "expenditure_items", ["loan_application_id"]
    )

    op.create_table(
        "expense_claims",
        _uuid(primary_key=True, nullable=False),
        _uuid("expenditure_item_id", nullable=False),
        _uuid("submitted_by_id", nullable=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("payment_type", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("cash_ratio_warning", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", sa.String(length=255), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["expenditure_item_id"], ["expenditure_items.id"], ondelete="CASCADE",
            name=op.f("fk_expense_claims_expenditure_item_id_expenditure_items"),
        ),
        sa.ForeignKeyConstraint(
            ["submitted_by_id"], ["users.id"], ondelete="SET NULL",
            name=op.f("fk_expense_claims_submitted_by_id_users"),
        ),
        sa.CheckConstraint("amount > 0", name=op.f("ck_expense_claims_amount_positive")),
        sa.CheckConstraint(
            "payment_type IN ('cash', 'bank-transfer', 'cheque')",
            name=op.f("ck_expense_claims_payment_type"),
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')", name=op.f("ck_expense_claims_status")
        ),
        sa.CheckConstraint("version >= 1", name=op.f("ck_expense_claims_version_positive")),
    )
    op.create_index(
        op.f("ix_expense_claims_expenditure_item_id"), "expense_claims", ["expenditure_item_id"]
    )
    op.create_index(op.f("ix_expense_claims_status"), "expense_claims", ["status"])

    op.create_table(
        "documents",
        _uuid(primary_key=True, nullable=False),
        _uuid("loan_application_id", nullable=True),
        _uuid("expense_claim_id", nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("document_type", sa.String(length=40), nullable=False, server_default="other"),
        sa.Column("url", sa.String(length=1024), nullable=False),
        sa.Column("storage_key", sa.String(length=1024), nullable=True),
        sa.Column("content_type", sa.String(length=100), nullable=True),
        sa.Column("size_bytes", sa.BigInteger(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("uploaded_by", sa.String(length=255), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", sa.String(length=255), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["loan_application_id"], ["loan_applications.id"], ondelete="CASCADE",
            name=op.f("fk_documents_loan_application_id_loan_applications"),
        ),
        sa.ForeignKeyConstraint(
            ["expense_claim_id"], ["expense_claims.id"], ondelete="CASCADE",
            name=op.f("fk_documents_expense_claim_id_expense_claims"),
        ),
        sa.CheckConstraint(
            "document_type IN ('resolution-letter', 'business-plan', 'financial-projections', 'contract', 'other')",
            name=op.f("ck_documents_document_type"),
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')", name=op.f("ck_documents_status")
        ),
    )
    op.create_index(op.f("ix_documents_loan_application_id"), "documents", ["loan_application_id"])
    op.create_index(op.f("ix_documents_expense_claim_id"), "documents", ["expense_claim_id"])
    op.create_index(op.f("ix_documents_status"), "documents", ["status"])

    op.create_table(
        "payment_entries",
        _uuid(primary_key=True, nullable=False),
        _uuid("loan_application_id", nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("reference_number", sa.String(length=100), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_by", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(
            ["loan_application_id"], ["loan_applications.id"], ondelete="CASCADE",
            name=op.f("fk_payment_entries_loan_application_id_loan_applications"),
        ),
        sa.UniqueConstraint("reference_number", name="uq_payment_entries_reference_number"),
        sa.CheckConstraint("amount > 0", name=op.f("ck_payment_entries_amount_positive")),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'failed')", name=op.f("ck_payment_entries_status")
        ),
    )
    op.create_index(
        op.f("ix_payment_entries_loan_application_id"), "payment_entries", ["loan_application_id"]
    )
    op.create_index(op.f("ix_payment_entries_status"), "payment_entries", ["status"])

    op.create_table(
        "audit_logs",
        _uuid(primary_key=True, nullable=False),
        sa.Column("actor_id", sa.String(length=64), nullable=True),
        sa.Column("actor_name", sa.String(length=255), nullable=True),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("resource_type", sa.String(length=100), nullable=False),
        sa.Column("resource_id", sa.String(length=255), nullable=False),
        sa.Column("old_value", sa.JSON(), nullable=True),
        sa.Column("new_value", sa.JSON(), nullable=True),
        sa.Column("changes", sa.JSON(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(op.f("ix_audit_logs_actor_id"), "audit_logs", ["actor_id"])
    op.create_index(op.f("ix_audit_logs_resource_id"), "audit_logs", ["resource_id"])
    op.create_index(op.f("ix_audit_logs_created_at"), "audit_logs", ["created_at"])


def downgrade() -> None:
    for table in (
        "audit_logs",
        "payment_entries",
        "documents",
        "expense_claims",
        "expenditure_items",
        "loan_applications",
        "training_courses",
        "system_settings",
        "financiers",
        "users",
    ):
        op.drop_table(table)
