from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.permissions import PermissionCode, Role
from app.db.session import get_db
from app.schemas.common import DeleteResponse, ListQuery, SortOption
from app.schemas.users import UserCreate, UserDTO, UserListResponse, UserUpdate
from app.services import listing, users

router = APIRouter(prefix="/admin/users", tags=["users"])

_user_admin = deps.require_permission(PermissionCode.USER_MANAGE)


@router.get("", response_model=UserListResponse, summary="List users")
async def list_users(
    search: str | None = Query(default=None, max_length=200),
    role: Role | None = Query(default=None),
    sort: SortOption | None = Query(default=SortOption.NAME),
    _: deps.Principal = Depends(_user_admin),
    db: AsyncSession = Depends(get_db),
) -> UserListResponse:
    everything = await users.list_users(db)
    items = listing.apply_query(
        everything,
        ListQuery(search=search, filter_value=role.value if role else None, sort=sort),
        listing.USER_LISTING,
    )
    return UserListResponse(
        items=[UserDTO.model_validate(user) for user in items],
        total=len(items),
        counts_by_role=listing.count_by(everything, "role"),
    )


@router.post("", response_model=UserDTO, status_code=status.HTTP_201_CREATED, summary="Create a user")
async def create_user(
    payload: UserCreate,
    principal: deps.Principal = Depends(_user_admin),
    db: AsyncSession = Depends(get_db),
) -> UserDTO:
    user = await users.create_user(db, principal, payload)
    await db.commit()
    return UserDTO.model_validate(user)


@router.get("/{user_id}", response_model=UserDTO, summary="Get a user")
async def get_user(
    user_id: UUID,
    _: deps.Principal = Depends(_user_admin),
    db: AsyncSession = Depends(get_db),
) -> UserDTO:
    return UserDTO.model_validate(await users.get_user(db, user_id))


@router.patch("/{user_id}", response_model=UserDTO, summary="Update a user")
async def update_user(
    user_id: UUID,
    payload: UserUpdate,
    principal: deps.Principal = Depends(_user_admin),
    db: AsyncSession = Depends(get_db),
) -> UserDTO:
    user = await users.get_user(db, user_id)
    await users.update_user(db, principal, user, payload)
    await db.commit()
    return UserDTO.model_validate(user)


@router.delete("/{user_id}", response_model=DeleteResponse, summary="Delete a user")
async def delete_user(
    user_id: UUID,
    principal: deps.Principal = Depends(_user_admin),
    db: AsyncSession = Depends(get_db),
) -> DeleteResponse:
    user = await users.get_user(db, user_id)
    await users.delete_user(db, principal, user)
    await db.commit()
    return DeleteResponse(id=str(user_id))
