from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.permissions import PermissionCode
from app.db.session import get_db
from app.schemas.common import ListQuery, SortOption
from app.schemas.payment import (
    PaymentConfirmRequest,
    PaymentEntryCreate,
    PaymentEntryDTO,
    PaymentFailRequest,
    PaymentListResponse,
    PaymentStatus,
)
from app.services import listing, payments

router = APIRouter(prefix="/admin/payments", tags=["payments"])

_reconciler = deps.require_permission(PermissionCode.PAYMENT_RECONCILE)


@router.get("", response_model=PaymentListResponse, summary="Payment reconciliation queue")
async def list_payments(
    search: str | None = Query(default=None, max_length=200),
    status_filter: PaymentStatus | None = Query(default=None, alias="status"),
    sort: SortOption | None = Query(default=SortOption.DATE_DESC),
    _: deps.Principal = Depends(_reconciler),
    db: AsyncSession = Depends(get_db),
) -> PaymentListResponse:
    everything = await payments.list_payments(db)
    items = listing.apply_query(
        everything,
        ListQuery(
            search=search,
            filter_value=status_filter.value if status_filter else None,
            sort=sort,
        ),
        listing.PAYMENT_LISTING,
    )
    return PaymentListResponse(items=items, summary=payments.reconciliation_summary(everything))


@router.post(
    "",
    response_model=PaymentEntryDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Record a pending payment entry",
)
async def record_payment(
    payload: PaymentEntryCreate,
    principal: deps.Principal = Depends(_reconciler),
    db: AsyncSession = Depends(get_db),
) -> PaymentEntryDTO:
    entry = await payments.record_payment(db, principal, payload)
    await db.commit()
    return PaymentEntryDTO.model_validate(entry)


@router.post("/{payment_id}/confirm", response_model=PaymentEntryDTO, summary="Confirm a payment")
async def confirm_payment(
    payment_id: UUID,
    payload: PaymentConfirmRequest | None = None,
    principal: deps.Principal = Depends(_reconciler),
    db: AsyncSession = Depends(get_db),
) -> PaymentEntryDTO:
    entry = await payments.get_payment(db, payment_id)
    await payments.confirm_payment(db, principal, entry, payload.notes if payload else None)
    await db.commit()
    return PaymentEntryDTO.model_validate(entry)


@router.post("/{payment_id}/fail", response_model=PaymentEntryDTO, summary="Mark a payment failed")
async def fail_payment(
    payment_id: UUID,
    payload: PaymentFailRequest,
    principal: deps.Principal = Depends(_reconciler),
    db: AsyncSession = Depends(get_db),
) -> PaymentEntryDTO:
    entry = await payments.get_payment(db, payment_id)
    await payments.fail_payment(db, principal, entry, payload.reason)
    await db.commit()
    return PaymentEntryDTO.model_validate(entry)
