"""track the uploading user on documents

Revision ID: 20261020_document_uploader_id
Revises: 20261019_initial_schema
Create Date: 2026-10-20
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20261020_document_uploader_id"
down_revision = "20261019_initial_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "documents",
        sa.Column("uploaded_by_id", postgresql.UUID(as_uuid=True), nullable=True),
    )
    op.create_foreign_key(
        op.f("fk_documents_uploaded_by_id_users"),
        "documents",
        "users",
        ["uploaded_by_id"],
        ["id"],
        ondelete="SET NULL",
    )
    op.create_index(op.f("ix_documents_uploaded_by_id"), "documents", ["uploaded_by_id"])
    # backfill from the loan owner; library uploads without a loan stay unowned
    op.execute(
        """
        UPDATE documents
        SET uploaded_by_id = loan_applications.client_id
        FROM loan_applications
        WHERE documents.loan_application_id = loan_applications.id
          AND documents.uploaded_by = loan_applications.client_name
        """
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_documents_uploaded_by_id"), table_name="documents")
    op.drop_constraint(op.f("fk_documents_uploaded_by_id_users"), "documents", type_="foreignkey")
    op.drop_column("documents", "uploaded_by_id")
