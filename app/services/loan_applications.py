from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api import deps
from app.core.exceptions import NotFound, ValidationError
from app.core.permissions import PermissionCode, Role
from app.core.settings import settings
from app.models.loan_application import LoanApplication
from app.models.training_course import TrainingCourse
from app.models.types import mask_reference
from app.schemas.common import ListQuery
from app.schemas.document import DocumentDTO
from app.schemas.loan import (
    ActivityDTO,
    ClientDashboardDTO,
    LoanApplicationCreate,
    LoanApplicationDTO,
    LoanApplicationSummaryDTO,
    LoanEvent,
    LoanStage,
    LoanStatus,
    LoanTransitionRequest,
)
from app.services import listing, loan_workflow
from app.services.audit import list_recent_activity, model_snapshot, record_audit_log
from app.services.budget import quantize


logger = logging.getLogger(__name__)

KYC_PATTERN = re.compile(r"^KYC\d{9}$")

_SNAPSHOT_EXCLUDE = {"kyc_number", "created_at", "updated_at"}

ACTIVE_STATUSES = {LoanStatus.APPROVED.value, LoanStatus.DISBURSED.value}
PENDING_STATUSES = {LoanStatus.SUBMITTED.value, LoanStatus.UNDER_REVIEW.value}


def validate_intake(payload: LoanApplicationCreate) -> None:
    """Collect every field error of the intake form and raise them together."""
    errors: dict[str, str] = {}

    if not KYC_PATTERN.match(payload.kyc_number or ""):
        errors["kyc_number"] = "KYC number must be 'KYC' followed by 9 digits"
    if payload.amount < settings.min_loan_amount:
        errors["amount"] = f"Minimum loan amount is {settings.min_loan_amount}"
    elif payload.amount > settings.max_loan_amount:
        errors["amount"] = f"Maximum loan amount is {settings.max_loan_amount}"
    if len((payload.purpose or "").strip()) < 10:
        errors["purpose"] = "Please provide a detailed purpose (at least 10 characters)"
    if payload.term_months <= 0:
        errors["term_months"] = "Term must be at least one month"
    if not (payload.business_name or "").strip():
        errors["business_name"] = "Business name is required"
    if not (payload.business_type or "").strip():
        errors["business_type"] = "Business type is required"
    if payload.years_in_business < 0:
        errors["years_in_business"] = "Years in business cannot be negative"
    for field_name in ("monthly_revenue", "monthly_expenses", "existing_debt"):
        if getattr(payload, field_name) < 0:
            errors[field_name] = "Value cannot be negative"
    if not (payload.contact_person or "").strip():
        errors["contact_person"] = "Contact person is required"
    if len((payload.phone_number or "").strip()) < 10:
        errors["phone_number"] = "Phone number must be at least 10 digits"
    if len((payload.business_address or "").strip()) < 10:
        errors["business_address"] = "Please provide a complete address"

    if errors:
        first = next(iter(errors))
        raise ValidationError(errors[first], field=first, details={"errors": errors})


def to_summary(application: LoanApplication) -> LoanApplicationSummaryDTO:
    dto = LoanApplicationSummaryDTO.model_validate(application)
    dto.steps = loan_workflow.progress_steps(application.status, application.stage)
    return dto


def to_detail(application: LoanApplication) -> LoanApplicationDTO:
    dto = LoanApplicationDTO.model_validate(application)
    dto.steps = loan_workflow.progress_steps(application.status, application.stage)
    dto.kyc_number_masked = mask_reference(application.kyc_number)
    dto.documents = [DocumentDTO.model_validate(doc) for doc in application.documents or []]
    return dto


def _with_related():
    return (
        selectinload(LoanApplication.documents),
        selectinload(LoanApplication.expenditure_items),
    )


async def get_application(
    db: AsyncSession,
    loan_id: UUID,
    *,
    principal: deps.Principal | None = None,
) -> LoanApplication:
    """Load an application with documents; clients only ever see their own."""
    stmt = (
        select(LoanApplication)
        .options(*_with_related())
        .where(LoanApplication.id == loan_id)
        .execution_options(populate_existing=True)
    )
    if principal is not None:
        if not principal.can(PermissionCode.LOAN_VIEW_ALL):
            stmt = stmt.where(LoanApplication.client_id == principal.id)
        elif principal.role == Role.FINANCIER:
            stmt = stmt.where(LoanApplication.status != LoanStatus.DRAFT.value)
    result = await db.execute(stmt)
    application = result.scalar_one_or_none()
    if application is None:
        raise NotFound("Loan application", loan_id)
    return application


async def create_application(
    db: AsyncSession,
    principal: deps.Principal,
    payload: LoanApplicationCreate,
) -> LoanApplication:
    validate_intake(payload)
    now = datetime.now(timezone.utc)
    application = LoanApplication(
        client_id=principal.id,
        client_name=principal.name,
        kyc_number=payload.kyc_number,
        amount=quantize(payload.amount),
        purpose=payload.purpose.strip(),
        status=LoanStatus.DRAFT.value,
        stage=LoanStage.APPLICATION.value,
        term_months=payload.term_months,
        business_name=payload.business_name.strip(),
        business_type=payload.business_type.strip(),
        years_in_business=payload.years_in_business,
        monthly_revenue=quantize(payload.monthly_revenue),
        monthly_expenses=quantize(payload.monthly_expenses),
        existing_debt=quantize(payload.existing_debt),
        contact_person=payload.contact_person.strip(),
        phone_number=payload.phone_number.strip(),
        email=str(payload.email),
        business_address=payload.business_address.strip(),
        approved_by=[],
        recommended_course_ids=[],
        created_at=now,
        updated_at=now,
    )
    if payload.submit:
        state = loan_workflow.advance(loan_workflow.state_of(application), LoanEvent.SUBMIT)
        loan_workflow.apply_state(application, state, LoanEvent.SUBMIT, now=now)
    db.add(application)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action="loan_application.created",
        resource_type="loan_application",
        resource_id=application.id,
        new_value=model_snapshot(application, exclude=_SNAPSHOT_EXCLUDE),
    )
    logger.info(
        "Loan application created",
        extra={"loan_id": str(application.id), "action": "loan_application.created"},
    )
    return application


async def list_applications(
    db: AsyncSession,
    principal: deps.Principal,
    query: ListQuery | None = None,
) -> list[LoanApplication]:
    stmt = select(LoanApplication).order_by(LoanApplication.created_at.desc())
    if not principal.can(PermissionCode.LOAN_VIEW_ALL):
        stmt = stmt.where(LoanApplication.client_id == principal.id)
    elif principal.role == Role.FINANCIER:
        # drafts are private to the client until submitted
        stmt = stmt.where(LoanApplication.status != LoanStatus.DRAFT.value)
    result = await db.execute(stmt)
    applications = list(result.scalars().all())
    return listing.apply_query(applications, query, listing.APPLICATION_LISTING)


def total_requested(applications) -> Decimal:
    return quantize(sum((Decimal(str(app.amount)) for app in applications), Decimal("0")))


async def _validate_courses(db: AsyncSession, course_ids: list[UUID]) -> list[str]:
    if not course_ids:
        return []
    result = await db.execute(select(TrainingCourse.id).where(TrainingCourse.id.in_(course_ids)))
    found = {str(row[0]) for row in result.all()}
    missing = [str(course_id) for course_id in course_ids if str(course_id) not in found]
    if missing:
        raise ValidationError(
            "Unknown training course",
            field="recommended_course_ids",
            details={"missing": missing},
        )
    return [str(course_id) for course_id in course_ids]


async def transition_application(
    db: AsyncSession,
    principal: deps.Principal,
    application: LoanApplication,
    request: LoanTransitionRequest,
) -> LoanApplication:
    """Apply a workflow event to ``application`` and stage the audit row.

    The version column turns a concurrent transition into ``StaleDataError``
    at flush time.
    """
    event = LoanEvent(request.event)
    if event == LoanEvent.SUBMIT and application.client_id != principal.id:
        raise NotFound("Loan application", application.id)

    before = model_snapshot(application, exclude=_SNAPSHOT_EXCLUDE)
    state = loan_workflow.advance(
        loan_workflow.state_of(application),
        event,
        actor=principal.name,
        reason=request.reason,
    )

    interest_rate = None
    if event == LoanEvent.APPROVE_STAGE_2:
        interest_rate = request.interest_rate
        if interest_rate is None:
            interest_rate = application.interest_rate or settings.default_interest_rate
        application.recommended_course_ids = await _validate_courses(
            db, list(request.recommended_course_ids)
        )
    loan_workflow.apply_state(application, state, event, interest_rate=interest_rate)
    if request.comments:
        application.financier_comments = request.comments
    application.updated_at = datetime.now(timezone.utc)

    db.add(application)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action=f"loan_application.{event.value}",
        resource_type="loan_application",
        resource_id=application.id,
        old_value=before,
        new_value=model_snapshot(application, exclude=_SNAPSHOT_EXCLUDE),
    )
    logger.info(
        "Loan application transitioned",
        extra={"loan_id": str(application.id), "action": event.value},
    )
    return application


async def build_client_dashboard(db: AsyncSession, principal: deps.Principal) -> ClientDashboardDTO:
    stmt = (
        select(LoanApplication)
        .where(LoanApplication.client_id == principal.id)
        .order_by(LoanApplication.created_at.desc())
    )
    applications = list((await db.execute(stmt)).scalars().all())

    active = [app for app in applications if app.status in ACTIVE_STATUSES]
    pending = [app for app in applications if app.status in PENDING_STATUSES]
    active_loan = active[0] if active else None
    if active_loan is not None:
        steps = loan_workflow.progress_steps(active_loan.status, active_loan.stage)
    elif pending:
        steps = loan_workflow.progress_steps(pending[0].status, pending[0].stage)
    else:
        steps = loan_workflow.progress_steps(LoanStatus.DRAFT, LoanStage.APPLICATION)

    activity = await list_recent_activity(
        db, resource_ids=[app.id for app in applications], limit=10
    )
    return ClientDashboardDTO(
        active_loan=to_summary(active_loan) if active_loan is not None else None,
        steps=steps,
        pending_applications=[to_summary(app) for app in pending],
        total_applications=len(applications),
        active_loan_count=len(active),
        total_borrowed=total_requested(
            [app for app in applications if app.status == LoanStatus.DISBURSED.value]
        ),
        recent_activity=[
            ActivityDTO(
                id=entry.id,
                action=entry.action,
                summary=entry.summary,
                resource_type=entry.resource_type,
                resource_id=entry.resource_id,
                actor_name=entry.actor_name,
                created_at=entry.created_at,
            )
            for entry in activity
        ],
    )
