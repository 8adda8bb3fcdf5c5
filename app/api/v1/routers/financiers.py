from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.permissions import PermissionCode
from app.db.session import get_db
from app.schemas.common import DeleteResponse, ListQuery, SortOption
from app.schemas.financier import (
    FinancierCreate,
    FinancierDTO,
    FinancierListResponse,
    FinancierStatus,
    FinancierUpdate,
)
from app.services import financiers

router = APIRouter(prefix="/admin/financiers", tags=["financiers"])

_financier_admin = deps.require_permission(PermissionCode.FINANCIER_MANAGE)


@router.get("", response_model=FinancierListResponse, summary="List financier institutions")
async def list_financiers(
    search: str | None = Query(default=None, max_length=200),
    status_filter: FinancierStatus | None = Query(default=None, alias="status"),
    sort: SortOption | None = Query(default=SortOption.NAME),
    _: deps.Principal = Depends(_financier_admin),
    db: AsyncSession = Depends(get_db),
) -> FinancierListResponse:
    items = await financiers.list_financiers(
        db,
        ListQuery(
            search=search,
            filter_value=status_filter.value if status_filter else None,
            sort=sort,
        ),
    )
    return FinancierListResponse(
        items=[FinancierDTO.model_validate(item) for item in items],
        total=len(items),
    )


@router.post(
    "",
    response_model=FinancierDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Register a financier institution",
)
async def create_financier(
    payload: FinancierCreate,
    principal: deps.Principal = Depends(_financier_admin),
    db: AsyncSession = Depends(get_db),
) -> FinancierDTO:
    financier = await financiers.create_financier(db, principal, payload)
    await db.commit()
    return FinancierDTO.model_validate(financier)


@router.get("/{financier_id}", response_model=FinancierDTO, summary="Get a financier")
async def get_financier(
    financier_id: UUID,
    _: deps.Principal = Depends(_financier_admin),
    db: AsyncSession = Depends(get_db),
) -> FinancierDTO:
    return FinancierDTO.model_validate(await financiers.get_financier(db, financier_id))


@router.patch("/{financier_id}", response_model=FinancierDTO, summary="Update a financier")
async def update_financier(
    financier_id: UUID,
    payload: FinancierUpdate,
    principal: deps.Principal = Depends(_financier_admin),
    db: AsyncSession = Depends(get_db),
) -> FinancierDTO:
    financier = await financiers.get_financier(db, financier_id)
    await financiers.update_financier(db, principal, financier, payload)
    await db.commit()
    return FinancierDTO.model_validate(financier)


@router.delete("/{financier_id}", response_model=DeleteResponse, summary="Delete a financier")
async def delete_financier(
    financier_id: UUID,
    principal: deps.Principal = Depends(_financier_admin),
    db: AsyncSession = Depends(get_db),
) -> DeleteResponse:
    financier = await financiers.get_financier(db, financier_id)
    await financiers.delete_financier(db, principal, financier)
    await db.commit()
    return DeleteResponse(id=str(financier_id))
