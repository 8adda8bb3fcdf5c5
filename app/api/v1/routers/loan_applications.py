from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.permissions import PermissionCode
from app.db.session import get_db
from app.schemas.common import ListQuery, SortOption
from app.schemas.document import DocumentDTO, DocumentType
from app.schemas.loan import (
    LoanApplicationCreate,
    LoanApplicationDTO,
    LoanApplicationListResponse,
    LoanEvent,
    LoanStatus,
    LoanTransitionRequest,
    ProgressStep,
)
from app.schemas.training import TrainingCourseDTO
from app.services import documents, listing, loan_applications, loan_workflow, training

router = APIRouter(prefix="/loans", tags=["loans"])

_EVENT_PERMISSIONS = {
    LoanEvent.SUBMIT: PermissionCode.LOAN_APPLY,
    LoanEvent.DISBURSE: PermissionCode.LOAN_DISBURSE,
}


@router.post(
    "",
    response_model=LoanApplicationDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a new loan application",
)
async def create_loan_application(
    payload: LoanApplicationCreate,
    principal: deps.Principal = Depends(deps.require_permission(PermissionCode.LOAN_APPLY)),
    db: AsyncSession = Depends(get_db),
) -> LoanApplicationDTO:
    application = await loan_applications.create_application(db, principal, payload)
    await db.commit()
    hydrated = await loan_applications.get_application(db, application.id, principal=principal)
    return loan_applications.to_detail(hydrated)


@router.get(
    "",
    response_model=LoanApplicationListResponse,
    summary="List loan applications visible to the caller",
)
async def list_loan_applications(
    search: str | None = Query(default=None, max_length=200),
    status_filter: LoanStatus | None = Query(default=None, alias="status"),
    sort: SortOption | None = Query(default=SortOption.DATE_DESC),
    principal: deps.Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> LoanApplicationListResponse:
    everything = await loan_applications.list_applications(db, principal)
    items = listing.apply_query(
        everything,
        ListQuery(
            search=search,
            filter_value=status_filter.value if status_filter else None,
            sort=sort,
        ),
        listing.APPLICATION_LISTING,
    )
    return LoanApplicationListResponse(
        items=[loan_applications.to_summary(app) for app in items],
        total=len(items),
        counts_by_status=listing.count_by(everything, "status"),
        total_requested=loan_applications.total_requested(items),
    )


@router.get(
    "/{loan_id}",
    response_model=LoanApplicationDTO,
    summary="Get loan application detail",
)
async def get_loan_application(
    loan_id: UUID,
    principal: deps.Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> LoanApplicationDTO:
    application = await loan_applications.get_application(db, loan_id, principal=principal)
    return loan_applications.to_detail(application)


@router.get(
    "/{loan_id}/steps",
    response_model=list[ProgressStep],
    summary="Progress stepper for a loan application",
)
async def get_loan_steps(
    loan_id: UUID,
    principal: deps.Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> list[ProgressStep]:
    application = await loan_applications.get_application(db, loan_id, principal=principal)
    return loan_workflow.progress_steps(application.status, application.stage)


@router.post(
    "/{loan_id}/transitions",
    response_model=LoanApplicationDTO,
    summary="Apply a workflow event to a loan application",
)
async def transition_loan_application(
    loan_id: UUID,
    payload: LoanTransitionRequest,
    principal: deps.Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> LoanApplicationDTO:
    required = _EVENT_PERMISSIONS.get(payload.event, PermissionCode.LOAN_REVIEW)
    if not principal.can(required):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Missing permission: {required.value}",
        )
    application = await loan_applications.get_application(db, loan_id, principal=principal)
    await loan_applications.transition_application(db, principal, application, payload)
    await db.commit()
    hydrated = await loan_applications.get_application(db, loan_id, principal=principal)
    return loan_applications.to_detail(hydrated)


@router.post(
    "/{loan_id}/documents",
    response_model=DocumentDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a supporting document for a loan application",
)
async def upload_loan_document(
    loan_id: UUID,
    file: UploadFile = File(...),
    document_type: DocumentType = Form(default=DocumentType.OTHER),
    principal: deps.Principal = Depends(deps.require_permission(PermissionCode.DOCUMENT_UPLOAD)),
    db: AsyncSession = Depends(get_db),
) -> DocumentDTO:
    application = await loan_applications.get_application(db, loan_id, principal=principal)
    document = await documents.upload_document(
        db,
        principal,
        file,
        document_type=document_type,
        loan_application=application,
    )
    await db.commit()
    return DocumentDTO.model_validate(document)


@router.get(
    "/{loan_id}/training",
    response_model=list[TrainingCourseDTO],
    summary="Training courses recommended with the loan approval",
)
async def get_recommended_training(
    loan_id: UUID,
    principal: deps.Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> list[TrainingCourseDTO]:
    application = await loan_applications.get_application(db, loan_id, principal=principal)
    courses = await training.recommended_for(db, application)
    return [TrainingCourseDTO.model_validate(course) for course in courses]
