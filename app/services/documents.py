from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import UploadFile
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.exceptions import InvalidTransition, NotFound
from app.core.permissions import PermissionCode
from app.core.settings import settings
from app.models.document import Document
from app.models.loan_application import LoanApplication
from app.schemas.common import ListQuery
from app.schemas.document import DocumentReviewDecision, DocumentStatus, DocumentType
from app.services import listing, local_uploads
from app.services.audit import model_snapshot, record_audit_log


logger = logging.getLogger(__name__)

_DECISION_STATUS = {
    DocumentReviewDecision.APPROVE: DocumentStatus.APPROVED,
    DocumentReviewDecision.REJECT: DocumentStatus.REJECTED,
}


async def upload_document(
    db: AsyncSession,
    principal: deps.Principal,
    file: UploadFile,
    *,
    document_type: DocumentType = DocumentType.OTHER,
    loan_application: LoanApplication | None = None,
    expense_claim_id: UUID | None = None,
    allowed_extensions: set[str] | None = None,
    max_size_bytes: int | None = None,
) -> Document:
    """Store the bytes through the local storage adapter and register a pending document."""
    if loan_application is not None:
        subdir = local_uploads.loan_documents_subdir(loan_application.id)
    elif expense_claim_id is not None:
        subdir = local_uploads.claim_documents_subdir(expense_claim_id)
    else:
        subdir = local_uploads.library_subdir()

    stored = await local_uploads.save_upload(
        file,
        local_uploads.upload_root(),
        subdir,
        allowed_extensions or local_uploads.DOCUMENT_EXTENSIONS,
        max_size_bytes=(
            max_size_bytes
            if max_size_bytes is not None
            else settings.max_document_size_mb * 1024 * 1024
        ),
    )
    document = Document(
        loan_application_id=loan_application.id if loan_application is not None else None,
        expense_claim_id=expense_claim_id,
        name=stored.original_name,
        document_type=DocumentType(document_type).value,
        url=stored.url,
        storage_key=stored.storage_key,
        content_type=stored.content_type,
        size_bytes=stored.size_bytes,
        status=DocumentStatus.PENDING.value,
        uploaded_by=principal.name,
        uploaded_by_id=principal.id,
        uploaded_at=datetime.now(timezone.utc),
    )
    db.add(document)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action="document.uploaded",
        resource_type="document",
        resource_id=document.id,
        new_value=model_snapshot(document),
    )
    logger.info("Document uploaded", extra={"resource_id": str(document.id)})
    return document


async def get_document(
    db: AsyncSession,
    document_id: UUID,
    *,
    principal: deps.Principal | None = None,
) -> Document:
    stmt = select(Document).where(Document.id == document_id)
    if principal is not None and not principal.can(PermissionCode.DOCUMENT_REVIEW):
        stmt = _scope_to_owner(stmt, principal)
    document = (await db.execute(stmt)).scalar_one_or_none()
    if document is None:
        raise NotFound("Document", document_id)
    return document


def _scope_to_owner(stmt, principal: deps.Principal):
    return stmt.outerjoin(
        LoanApplication, Document.loan_application_id == LoanApplication.id
    ).where(
        or_(LoanApplication.client_id == principal.id, Document.uploaded_by_id == principal.id)
    )


def _require_pending(document: Document, action: str) -> None:
    if document.status != DocumentStatus.PENDING.value:
        raise InvalidTransition(action, {"status": document.status}, resource="document")


async def review_document(
    db: AsyncSession,
    principal: deps.Principal,
    document: Document,
    decision: DocumentReviewDecision,
    comments: str | None = None,
) -> Document:
    decision = DocumentReviewDecision(decision)
    _require_pending(document, decision.value)
    before = model_snapshot(document)
    document.status = _DECISION_STATUS[decision].value
    document.reviewed_at = datetime.now(timezone.utc)
    document.reviewed_by = principal.name
    document.comments = comments
    db.add(document)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action=f"document.{document.status}",
        resource_type="document",
        resource_id=document.id,
        old_value=before,
        new_value=model_snapshot(document),
    )
    return document


async def list_documents(
    db: AsyncSession,
    principal: deps.Principal,
    query: ListQuery | None = None,
    *,
    document_type: DocumentType | None = None,
    loan_id: UUID | None = None,
) -> list[Document]:
    stmt = select(Document).order_by(Document.uploaded_at.desc())
    if loan_id is not None:
        stmt = stmt.where(Document.loan_application_id == loan_id)
    if document_type is not None:
        stmt = stmt.where(Document.document_type == DocumentType(document_type).value)
    if not principal.can(PermissionCode.DOCUMENT_REVIEW):
        stmt = _scope_to_owner(stmt, principal)
    documents = list((await db.execute(stmt)).scalars().all())
    return listing.apply_query(documents, query, listing.DOCUMENT_LISTING)


async def delete_document(db: AsyncSession, principal: deps.Principal, document: Document) -> str | None:
    """Remove the row and return the storage key; the caller drops the file after commit."""
    _require_pending(document, "delete")
    snapshot = model_snapshot(document)
    await db.delete(document)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action="document.deleted",
        resource_type="document",
        resource_id=snapshot.get("id"),
        old_value=snapshot,
    )
    return document.storage_key
