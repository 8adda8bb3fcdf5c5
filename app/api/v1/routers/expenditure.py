from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.permissions import PermissionCode
from app.core.settings import settings
from app.db.session import get_db
from app.schemas.claim import ClaimSubmissionResponse, PaymentType
from app.schemas.expenditure import (
    ExpenditureItemCreate,
    ExpenditureItemDTO,
    ExpenditureLedgerResponse,
    SpreadsheetImportResponse,
)
from app.services import expense_claims, expenditures, loan_applications, local_uploads, spreadsheet

router = APIRouter(tags=["expenditure"])


@router.get(
    "/loans/{loan_id}/expenditure",
    response_model=ExpenditureLedgerResponse,
    summary="Expenditure ledger for a loan",
)
async def get_ledger(
    loan_id: UUID,
    principal: deps.Principal = Depends(deps.require_permission(PermissionCode.EXPENDITURE_VIEW)),
    db: AsyncSession = Depends(get_db),
) -> ExpenditureLedgerResponse:
    await loan_applications.get_application(db, loan_id, principal=principal)
    items = await expenditures.list_items(db, loan_id)
    return ExpenditureLedgerResponse(
        loan_application_id=loan_id,
        items=[ExpenditureItemDTO.model_validate(item) for item in items],
        totals=expenditures.ledger_totals(items),
    )


@router.post(
    "/loans/{loan_id}/expenditure/items",
    response_model=ExpenditureItemDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Add a single expenditure line item",
)
async def create_item(
    loan_id: UUID,
    payload: ExpenditureItemCreate,
    principal: deps.Principal = Depends(deps.require_permission(PermissionCode.EXPENDITURE_MANAGE)),
    db: AsyncSession = Depends(get_db),
) -> ExpenditureItemDTO:
    application = await loan_applications.get_application(db, loan_id, principal=principal)
    item = await expenditures.create_item(db, principal, application, payload)
    await db.commit()
    return ExpenditureItemDTO.model_validate(await expenditures.get_item(db, item.id))


@router.post(
    "/loans/{loan_id}/expenditure/import",
    response_model=SpreadsheetImportResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Import an expenditure plan from an Excel workbook",
)
async def import_plan(
    loan_id: UUID,
    file: UploadFile = File(...),
    principal: deps.Principal = Depends(deps.require_permission(PermissionCode.EXPENDITURE_MANAGE)),
    db: AsyncSession = Depends(get_db),
) -> SpreadsheetImportResponse:
    application = await loan_applications.get_application(db, loan_id, principal=principal)
    content, filename = await local_uploads.read_upload(
        file,
        allowed_extensions=local_uploads.SPREADSHEET_EXTENSIONS,
        max_size_bytes=settings.max_spreadsheet_size_mb * 1024 * 1024,
    )
    rows = spreadsheet.parse_expenditure_workbook(content, filename)
    await expenditures.import_plan(db, principal, application, rows)
    await db.commit()
    items = await expenditures.list_items(db, loan_id)
    return SpreadsheetImportResponse(
        loan_application_id=loan_id,
        imported=len(rows),
        items=[ExpenditureItemDTO.model_validate(item) for item in items],
    )


@router.post(
    "/expenditure-items/{item_id}/claims",
    response_model=ClaimSubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit an expense claim against a line item",
)
async def submit_claim(
    item_id: UUID,
    amount: Decimal = Form(...),
    description: str = Form(...),
    payment_type: PaymentType = Form(...),
    files: list[UploadFile] = File(default=[]),
    principal: deps.Principal = Depends(deps.require_permission(PermissionCode.CLAIM_SUBMIT)),
    db: AsyncSession = Depends(get_db),
) -> ClaimSubmissionResponse:
    item = await expenditures.get_item(db, item_id)
    await loan_applications.get_application(db, item.loan_application_id, principal=principal)
    claim, evaluation = await expense_claims.submit_claim(
        db,
        principal,
        item,
        amount=amount,
        description=description,
        payment_type=payment_type,
        files=files,
    )
    await db.commit()
    hydrated = await expense_claims.get_claim(db, claim.id)
    return ClaimSubmissionResponse(
        claim=expense_claims.to_dto(hydrated),
        warnings=evaluation.warnings,
    )
