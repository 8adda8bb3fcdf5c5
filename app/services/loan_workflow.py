"""Loan status/stage state machine and the progress stepper.

``advance`` is the single authority on which (status, stage, event) moves are
legal; every mutation path goes through it. ``progress_steps`` derives the
four-step tracker shown on the dashboard, list and detail views.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal

from app.core.exceptions import InvalidTransition, ValidationError
from app.schemas.loan import LoanEvent, LoanStage, LoanStatus, ProgressStep, StepStatus


@dataclass(frozen=True)
class LoanState:
    status: LoanStatus
    stage: LoanStage
    reviewed_by: str | None = None
    approved_by: tuple[str, ...] = field(default_factory=tuple)
    rejection_reason: str | None = None


# event -> {(status, stage): (status', stage')}; reject is handled separately
_TRANSITIONS: dict[LoanEvent, dict[tuple[LoanStatus, LoanStage], tuple[LoanStatus, LoanStage]]] = {
    LoanEvent.SUBMIT: {
        (LoanStatus.DRAFT, LoanStage.APPLICATION): (LoanStatus.SUBMITTED, LoanStage.APPLICATION),
    },
    LoanEvent.START_REVIEW: {
        (LoanStatus.SUBMITTED, LoanStage.APPLICATION): (LoanStatus.UNDER_REVIEW, LoanStage.REVIEW),
    },
    LoanEvent.COMPLETE_REVIEW: {
        (LoanStatus.UNDER_REVIEW, LoanStage.REVIEW): (LoanStatus.UNDER_REVIEW, LoanStage.APPROVAL_1),
    },
    LoanEvent.APPROVE_STAGE_1: {
        (LoanStatus.UNDER_REVIEW, LoanStage.APPROVAL_1): (LoanStatus.UNDER_REVIEW, LoanStage.APPROVAL_2),
    },
    LoanEvent.APPROVE_STAGE_2: {
        (LoanStatus.UNDER_REVIEW, LoanStage.APPROVAL_2): (LoanStatus.APPROVED, LoanStage.DISBURSEMENT),
    },
    LoanEvent.DISBURSE: {
        (LoanStatus.APPROVED, LoanStage.DISBURSEMENT): (LoanStatus.DISBURSED, LoanStage.DISBURSEMENT),
    },
}

_REJECTABLE_STATUSES = {LoanStatus.SUBMITTED, LoanStatus.UNDER_REVIEW}

_APPROVAL_EVENTS = {LoanEvent.APPROVE_STAGE_1, LoanEvent.APPROVE_STAGE_2}


def _invalid(state: LoanState, event: LoanEvent) -> InvalidTransition:
    return InvalidTransition(
        event.value,
        {"status": state.status.value, "stage": state.stage.value},
    )


def allowed_events(state: LoanState) -> list[LoanEvent]:
    events = [
        event for event, table in _TRANSITIONS.items() if (state.status, state.stage) in table
    ]
    if state.status in _REJECTABLE_STATUSES and state.stage != LoanStage.DISBURSEMENT:
        events.append(LoanEvent.REJECT)
    return events


def advance(
    state: LoanState,
    event: LoanEvent | str,
    *,
    actor: str | None = None,
    reason: str | None = None,
) -> LoanState:
    """Return the state after ``event`` or raise ``InvalidTransition``."""
    event = LoanEvent(event)

    if event == LoanEvent.REJECT:
        if state.status not in _REJECTABLE_STATUSES or state.stage == LoanStage.DISBURSEMENT:
            raise _invalid(state, event)
        if not reason or not reason.strip():
            raise ValidationError("A rejection reason is required", field="reason")
        return replace(state, status=LoanStatus.REJECTED, rejection_reason=reason.strip())

    target = _TRANSITIONS[event].get((state.status, state.stage))
    if target is None:
        raise _invalid(state, event)

    status, stage = target
    updated = replace(state, status=status, stage=stage)
    if event == LoanEvent.START_REVIEW and actor:
        updated = replace(updated, reviewed_by=actor)
    if event in _APPROVAL_EVENTS and actor:
        updated = replace(updated, approved_by=state.approved_by + (actor,))
    return updated


_STEP_DEFINITIONS = (
    ("application", "Application", "Submit loan application"),
    ("review", "Review", "Document verification"),
    ("approval", "Approval", "Final approval process"),
    ("disbursement", "Disbursement", "Funds transfer"),
)

_FUNDED = {LoanStatus.APPROVED, LoanStatus.DISBURSED}
_APPROVAL_STAGES = {LoanStage.APPROVAL_1, LoanStage.APPROVAL_2}


def _step_statuses(status: LoanStatus, stage: LoanStage) -> tuple[StepStatus, ...]:
    application = StepStatus.CURRENT if status == LoanStatus.DRAFT else StepStatus.COMPLETED

    if stage == LoanStage.REVIEW:
        review = StepStatus.CURRENT
    elif status in _FUNDED:
        review = StepStatus.COMPLETED
    else:
        review = StepStatus.UPCOMING

    if stage in _APPROVAL_STAGES:
        approval = StepStatus.CURRENT
    elif status in _FUNDED:
        approval = StepStatus.COMPLETED
    else:
        approval = StepStatus.UPCOMING

    if status == LoanStatus.DISBURSED:
        disbursement = StepStatus.COMPLETED
    elif stage == LoanStage.DISBURSEMENT:
        disbursement = StepStatus.CURRENT
    else:
        disbursement = StepStatus.UPCOMING

    return application, review, approval, disbursement


def progress_steps(status: LoanStatus | str, stage: LoanStage | str) -> list[ProgressStep]:
    statuses = _step_statuses(LoanStatus(status), LoanStage(stage))
    return [
        ProgressStep(id=step_id, title=title, description=description, status=step_status)
        for (step_id, title, description), step_status in zip(_STEP_DEFINITIONS, statuses)
    ]


def state_of(application) -> LoanState:
    return LoanState(
        status=LoanStatus(application.status),
        stage=LoanStage(application.stage),
        reviewed_by=application.reviewed_by,
        approved_by=tuple(application.approved_by or ()),
        rejection_reason=application.rejection_reason,
    )


def apply_state(
    application,
    state: LoanState,
    event: LoanEvent,
    *,
    interest_rate: Decimal | None = None,
    now: datetime | None = None,
) -> None:
    """Copy a computed state back onto the ORM row, stamping event timestamps."""
    now = now or datetime.now(timezone.utc)
    application.status = state.status.value
    application.stage = state.stage.value
    application.reviewed_by = state.reviewed_by
    # JSON columns only detect reassignment
    application.approved_by = list(state.approved_by)
    application.rejection_reason = state.rejection_reason
    if event == LoanEvent.SUBMIT:
        application.submitted_at = now
    elif event == LoanEvent.APPROVE_STAGE_2 and interest_rate is not None:
        application.interest_rate = interest_rate
    elif event == LoanEvent.DISBURSE:
        application.disbursed_at = now
