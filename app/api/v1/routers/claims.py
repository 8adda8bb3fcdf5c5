from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.permissions import PermissionCode
from app.db.session import get_db
from app.schemas.claim import (
    BulkApproveRequest,
    BulkApproveResponse,
    ClaimListResponse,
    ClaimRejectRequest,
    ClaimReviewRequest,
    ClaimStatus,
    ExpenseClaimDTO,
)
from app.schemas.common import ListQuery, SortOption
from app.services import expense_claims, listing

router = APIRouter(prefix="/claims", tags=["claims"])


@router.get("", response_model=ClaimListResponse, summary="Expense claim queue")
async def list_claims(
    search: str | None = Query(default=None, max_length=200),
    status_filter: ClaimStatus | None = Query(default=None, alias="status"),
    loan_id: UUID | None = Query(default=None),
    sort: SortOption | None = Query(default=SortOption.DATE_DESC),
    principal: deps.Principal = Depends(deps.require_permission(PermissionCode.EXPENDITURE_VIEW)),
    db: AsyncSession = Depends(get_db),
) -> ClaimListResponse:
    everything = await expense_claims.list_claims(db, principal, loan_id=loan_id)
    items = listing.apply_query(
        everything,
        ListQuery(
            search=search,
            filter_value=status_filter.value if status_filter else None,
            sort=sort,
        ),
        listing.CLAIM_LISTING,
    )
    return ClaimListResponse(items=items, summary=expense_claims.claims_summary(everything))


@router.post(
    "/bulk-approve",
    response_model=BulkApproveResponse,
    summary="Approve a selection of pending claims in one transaction",
)
async def bulk_approve_claims(
    payload: BulkApproveRequest,
    principal: deps.Principal = Depends(deps.require_permission(PermissionCode.CLAIM_REVIEW)),
    db: AsyncSession = Depends(get_db),
) -> BulkApproveResponse:
    approved = await expense_claims.bulk_approve(db, principal, payload.claim_ids, payload.comments)
    await db.commit()
    return BulkApproveResponse(approved=[expense_claims.to_dto(claim) for claim in approved])


@router.get("/{claim_id}", response_model=ExpenseClaimDTO, summary="Get an expense claim")
async def get_claim(
    claim_id: UUID,
    _: deps.Principal = Depends(deps.require_permission(PermissionCode.CLAIM_REVIEW)),
    db: AsyncSession = Depends(get_db),
) -> ExpenseClaimDTO:
    return expense_claims.to_dto(await expense_claims.get_claim(db, claim_id))


@router.post("/{claim_id}/approve", response_model=ExpenseClaimDTO, summary="Approve a pending claim")
async def approve_claim(
    claim_id: UUID,
    payload: ClaimReviewRequest | None = None,
    principal: deps.Principal = Depends(deps.require_permission(PermissionCode.CLAIM_REVIEW)),
    db: AsyncSession = Depends(get_db),
) -> ExpenseClaimDTO:
    claim = await expense_claims.get_claim(db, claim_id)
    await expense_claims.approve_claim(db, principal, claim, payload.comments if payload else None)
    await db.commit()
    return expense_claims.to_dto(claim)


@router.post("/{claim_id}/reject", response_model=ExpenseClaimDTO, summary="Reject a pending claim")
async def reject_claim(
    claim_id: UUID,
    payload: ClaimRejectRequest,
    principal: deps.Principal = Depends(deps.require_permission(PermissionCode.CLAIM_REVIEW)),
    db: AsyncSession = Depends(get_db),
) -> ExpenseClaimDTO:
    claim = await expense_claims.get_claim(db, claim_id)
    await expense_claims.reject_claim(db, principal, claim, payload.comments)
    await db.commit()
    return expense_claims.to_dto(claim)
