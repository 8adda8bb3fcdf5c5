from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.permissions import PermissionCode
from app.db.session import get_db
from app.schemas.clients import ClientDetail, ClientListResponse, ClientStatus
from app.schemas.common import ListQuery, SortOption
from app.services import clients, listing

router = APIRouter(prefix="/clients", tags=["clients"])

_portfolio_viewer = deps.require_permission(PermissionCode.LOAN_VIEW_ALL)


@router.get("", response_model=ClientListResponse, summary="Client portfolio")
async def list_clients(
    search: str | None = Query(default=None, max_length=200),
    status_filter: ClientStatus | None = Query(default=None, alias="status"),
    sort: SortOption | None = Query(default=SortOption.NAME),
    principal: deps.Principal = Depends(_portfolio_viewer),
    db: AsyncSession = Depends(get_db),
) -> ClientListResponse:
    everything = await clients.list_clients(db, principal)
    items = listing.apply_query(
        everything,
        ListQuery(
            search=search,
            filter_value=status_filter.value if status_filter else None,
            sort=sort,
        ),
        listing.CLIENT_LISTING,
    )
    return ClientListResponse(
        items=items,
        total=len(items),
        counts_by_status=listing.count_by(everything, "status"),
    )


@router.get("/{client_id}", response_model=ClientDetail, summary="Client profile with loans and claims")
async def get_client(
    client_id: UUID,
    principal: deps.Principal = Depends(_portfolio_viewer),
    db: AsyncSession = Depends(get_db),
) -> ClientDetail:
    return await clients.get_client(db, principal, client_id)
