from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.health import system_health_payload
from app.core.permissions import PermissionCode
from app.db.session import get_db
from app.schemas.common import ListQuery, SortOption
from app.schemas.system_settings import (
    SettingCategory,
    SystemHealthDTO,
    SystemSettingCreate,
    SystemSettingDTO,
    SystemSettingListResponse,
    SystemSettingUpdate,
)
from app.services import listing, system_settings

router = APIRouter(prefix="/admin/system", tags=["system"])

_system_admin = deps.require_permission(PermissionCode.SYSTEM_MANAGE)


@router.get("/settings", response_model=SystemSettingListResponse, summary="List system settings")
async def list_settings(
    search: str | None = Query(default=None, max_length=200),
    category: SettingCategory | None = Query(default=None),
    sort: SortOption | None = Query(default=None),
    _: deps.Principal = Depends(_system_admin),
    db: AsyncSession = Depends(get_db),
) -> SystemSettingListResponse:
    everything = await system_settings.list_settings(db)
    items = listing.apply_query(
        everything,
        ListQuery(search=search, filter_value=category.value if category else None, sort=sort),
        listing.SETTING_LISTING,
    )
    return SystemSettingListResponse(
        items=[SystemSettingDTO.model_validate(item) for item in items],
        categories=listing.count_by(everything, "category"),
    )


@router.post(
    "/settings",
    response_model=SystemSettingDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Create a system setting",
)
async def create_setting(
    payload: SystemSettingCreate,
    principal: deps.Principal = Depends(_system_admin),
    db: AsyncSession = Depends(get_db),
) -> SystemSettingDTO:
    setting = await system_settings.create_setting(db, principal, payload)
    await db.commit()
    return SystemSettingDTO.model_validate(setting)


@router.patch("/settings/{setting_id}", response_model=SystemSettingDTO, summary="Update a system setting")
async def update_setting(
    setting_id: UUID,
    payload: SystemSettingUpdate,
    principal: deps.Principal = Depends(_system_admin),
    db: AsyncSession = Depends(get_db),
) -> SystemSettingDTO:
    setting = await system_settings.get_setting(db, setting_id)
    await system_settings.update_setting(db, principal, setting, payload)
    await db.commit()
    return SystemSettingDTO.model_validate(setting)


@router.get("/health", response_model=SystemHealthDTO, summary="Per-component system health")
async def system_health(_: deps.Principal = Depends(_system_admin)) -> SystemHealthDTO:
    return SystemHealthDTO(**await system_health_payload())
