from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.permissions import PermissionCode
from app.db.session import get_db
from app.schemas.training import TrainingCourseCreate, TrainingCourseDTO
from app.services import training

router = APIRouter(prefix="/training/courses", tags=["training"])


@router.get("", response_model=list[TrainingCourseDTO], summary="Business training catalogue")
async def list_courses(
    category: str | None = Query(default=None, max_length=100),
    _: deps.Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> list[TrainingCourseDTO]:
    courses = await training.list_courses(db, category)
    return [TrainingCourseDTO.model_validate(course) for course in courses]


@router.post(
    "",
    response_model=TrainingCourseDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Add a training course",
)
async def create_course(
    payload: TrainingCourseCreate,
    principal: deps.Principal = Depends(deps.require_permission(PermissionCode.SYSTEM_MANAGE)),
    db: AsyncSession = Depends(get_db),
) -> TrainingCourseDTO:
    course = await training.create_course(db, principal, payload)
    await db.commit()
    return TrainingCourseDTO.model_validate(course)
