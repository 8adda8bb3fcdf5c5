from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.exceptions import NotFound
from app.models.loan_application import LoanApplication
from app.models.training_course import TrainingCourse
from app.schemas.training import TrainingCourseCreate
from app.services.audit import model_snapshot, record_audit_log


async def list_courses(db: AsyncSession, category: str | None = None) -> list[TrainingCourse]:
    stmt = select(TrainingCourse).order_by(TrainingCourse.category, TrainingCourse.title)
    if category and category != "all":
        stmt = stmt.where(TrainingCourse.category == category)
    return list((await db.execute(stmt)).scalars().all())


async def create_course(
    db: AsyncSession, principal: deps.Principal, payload: TrainingCourseCreate
) -> TrainingCourse:
    course = TrainingCourse(**payload.model_dump())
    db.add(course)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action="training_course.created",
        resource_type="training_course",
        resource_id=course.id,
        new_value=model_snapshot(course),
    )
    return course


async def recommended_for(db: AsyncSession, application: LoanApplication) -> list[TrainingCourse]:
    ids = [UUID(str(value)) for value in application.recommended_course_ids or []]
    if not ids:
        return []
    result = await db.execute(select(TrainingCourse).where(TrainingCourse.id.in_(ids)))
    by_id = {course.id: course for course in result.scalars().all()}
    return [by_id[course_id] for course_id in ids if course_id in by_id]


async def get_course(db: AsyncSession, course_id: UUID) -> TrainingCourse:
    course = await db.get(TrainingCourse, course_id)
    if course is None:
        raise NotFound("Training course", course_id)
    return course
