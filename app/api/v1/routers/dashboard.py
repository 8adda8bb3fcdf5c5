from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.permissions import Role
from app.db.session import get_db
from app.schemas.loan import ClientDashboardDTO
from app.schemas.users import PrincipalDTO
from app.services import loan_applications

router = APIRouter(tags=["dashboard"])


@router.get("/me", response_model=PrincipalDTO, summary="Current principal and permissions")
async def read_me(principal: deps.Principal = Depends(deps.get_current_principal)) -> PrincipalDTO:
    return PrincipalDTO(
        id=principal.id,
        name=principal.name,
        role=principal.role,
        permissions=sorted(permission.value for permission in principal.permissions),
    )


@router.get(
    "/dashboard/client",
    response_model=ClientDashboardDTO,
    summary="Client dashboard: active loan, pending applications and activity",
)
async def client_dashboard(
    principal: deps.Principal = Depends(deps.require_roles(Role.CLIENT)),
    db: AsyncSession = Depends(get_db),
) -> ClientDashboardDTO:
    return await loan_applications.build_client_dashboard(db, principal)
