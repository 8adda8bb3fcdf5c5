from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.permissions import PermissionCode
from app.db.session import get_db
from app.schemas.common import DeleteResponse, ListQuery, SortOption
from app.schemas.document import (
    DocumentDTO,
    DocumentListResponse,
    DocumentReviewRequest,
    DocumentStatus,
    DocumentType,
)
from app.services import documents, listing, local_uploads

router = APIRouter(prefix="/documents", tags=["documents"])


@router.get("", response_model=DocumentListResponse, summary="Document library")
async def list_documents(
    search: str | None = Query(default=None, max_length=200),
    status_filter: DocumentStatus | None = Query(default=None, alias="status"),
    document_type: DocumentType | None = Query(default=None, alias="type"),
    loan_id: UUID | None = Query(default=None),
    sort: SortOption | None = Query(default=SortOption.DATE_DESC),
    principal: deps.Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> DocumentListResponse:
    everything = await documents.list_documents(
        db, principal, document_type=document_type, loan_id=loan_id
    )
    items = listing.apply_query(
        everything,
        ListQuery(
            search=search,
            filter_value=status_filter.value if status_filter else None,
            sort=sort,
        ),
        listing.DOCUMENT_LISTING,
    )
    return DocumentListResponse(
        items=[DocumentDTO.model_validate(doc) for doc in items],
        total=len(items),
        counts_by_status=listing.count_by(everything, "status"),
    )


@router.post(
    "",
    response_model=DocumentDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a document to the library",
)
async def upload_library_document(
    file: UploadFile = File(...),
    document_type: DocumentType = Form(default=DocumentType.OTHER),
    principal: deps.Principal = Depends(deps.require_permission(PermissionCode.DOCUMENT_UPLOAD)),
    db: AsyncSession = Depends(get_db),
) -> DocumentDTO:
    document = await documents.upload_document(db, principal, file, document_type=document_type)
    await db.commit()
    return DocumentDTO.model_validate(document)


@router.get("/{document_id}", response_model=DocumentDTO, summary="Get a document")
async def get_document(
    document_id: UUID,
    principal: deps.Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> DocumentDTO:
    document = await documents.get_document(db, document_id, principal=principal)
    return DocumentDTO.model_validate(document)


@router.post(
    "/{document_id}/review",
    response_model=DocumentDTO,
    summary="Approve or reject a pending document",
)
async def review_document(
    document_id: UUID,
    payload: DocumentReviewRequest,
    principal: deps.Principal = Depends(deps.require_permission(PermissionCode.DOCUMENT_REVIEW)),
    db: AsyncSession = Depends(get_db),
) -> DocumentDTO:
    document = await documents.get_document(db, document_id)
    await documents.review_document(db, principal, document, payload.decision, payload.comments)
    await db.commit()
    return DocumentDTO.model_validate(document)


@router.delete(
    "/{document_id}",
    response_model=DeleteResponse,
    summary="Remove a pending document from the library",
)
async def delete_document(
    document_id: UUID,
    principal: deps.Principal = Depends(deps.require_permission(PermissionCode.DOCUMENT_UPLOAD)),
    db: AsyncSession = Depends(get_db),
) -> DeleteResponse:
    document = await documents.get_document(db, document_id, principal=principal)
    storage_key = await documents.delete_document(db, principal, document)
    await db.commit()
    local_uploads.delete_stored_file(local_uploads.upload_root(), storage_key)
    return DeleteResponse(id=str(document_id))
