"""Outreach routes."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from school_ledger.core.deps import Actor, DbSession, log_audit
from school_ledger.schemas.outreach import (
    CallCandidateList,
    CallComplete,
    CallCompletionResponse,
    CallResponse,
    CallSnooze,
    CallUpdate,
    InteractionCreate,
    InteractionResponse,
    OutreachStats,
    ScheduleCallsRequest,
    ScheduleCallsResponse,
)
from school_ledger.schemas.student import StudentResponse
from school_ledger.services import ledger as ledger_service
from school_ledger.services import outreach as outreach_service

router = APIRouter(prefix="/outreach", tags=["Outreach"])


@router.get("/candidates", response_model=CallCandidateList)
async def list_call_candidates(
    db: DbSession,
    limit: int | None = Query(None, ge=1, le=500, description="Max number of candidates"),
) -> CallCandidateList:
    """Students who need a retention call, most urgent first."""
    candidates = await outreach_service.get_call_candidates(db, limit=limit)
    return CallCandidateList(**candidates)


@router.post("/calls/schedule", response_model=ScheduleCallsResponse, status_code=status.HTTP_201_CREATED)
async def schedule_calls(
    data: ScheduleCallsRequest,
    db: DbSession,
    actor: Actor,
) -> ScheduleCallsResponse:
    """Book calls for current candidates that have no open call."""
    result = await outreach_service.schedule_calls(
        db,
        scheduled_date=data.scheduled_date,
        created_by=actor,
        limit=data.limit,
    )
    return ScheduleCallsResponse(
        calls=[CallResponse.model_validate(c) for c in result.calls],
        skipped=result.skipped,
        events=result.events,
    )


@router.get("/calls/scheduled", response_model=list[CallResponse])
async def list_scheduled_calls(
    db: DbSession,
    day: date | None = Query(None, description="Day to list, defaults to today"),
) -> list[CallResponse]:
    """Open calls booked for a day, highest priority first."""
    calls = await outreach_service.get_scheduled_calls(db, day)
    return [CallResponse.model_validate(c) for c in calls]


@router.get("/calls/{call_id}", response_model=CallResponse)
async def get_call(call_id: UUID, db: DbSession) -> CallResponse:
    """Get outreach call by ID."""
    call = await outreach_service.get_call_by_id(db, call_id)
    if not call:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Call not found",
        )
    return CallResponse.model_validate(call)


@router.patch("/calls/{call_id}", response_model=CallResponse)
async def update_call(call_id: UUID, data: CallUpdate, db: DbSession) -> CallResponse:
    """Edit priority, purpose, notes or date of an open call."""
    call = await outreach_service.update_call(db, call_id, data)
    return CallResponse.model_validate(call)


@router.post("/calls/{call_id}/complete", response_model=CallCompletionResponse)
async def complete_call(
    call_id: UUID,
    data: CallComplete,
    db: DbSession,
    actor: Actor,
) -> CallCompletionResponse:
    """
    Complete a call.

    With `schedule_next`, a `next_call_date` and a `sentiment`, the follow-up
    call is booked in the same step.
    """
    result = await outreach_service.complete_call(db, call_id, data, actor=actor)
    log_audit(result.audit)
    return CallCompletionResponse(
        call=CallResponse.model_validate(result.call),
        student=StudentResponse.model_validate(result.student),
        next_call=CallResponse.model_validate(result.next_call) if result.next_call else None,
        audit=result.audit,
        events=result.events,
    )


@router.post("/calls/{call_id}/snooze", response_model=CallResponse)
async def snooze_call(call_id: UUID, data: CallSnooze, db: DbSession) -> CallResponse:
    """Push an open call to a later date."""
    call = await outreach_service.snooze_call(db, call_id, data)
    return CallResponse.model_validate(call)


@router.post("/calls/{call_id}/resume", response_model=CallResponse)
async def resume_call(call_id: UUID, db: DbSession) -> CallResponse:
    """Return a snoozed call to the pending queue."""
    call = await outreach_service.resume_call(db, call_id)
    return CallResponse.model_validate(call)


@router.get("/students/{student_id}/calls", response_model=list[CallResponse])
async def list_student_calls(student_id: UUID, db: DbSession) -> list[CallResponse]:
    """Call history of a student."""
    await ledger_service.require_student(db, student_id)
    calls = await outreach_service.get_student_calls(db, student_id)
    return [CallResponse.model_validate(c) for c in calls]


@router.post(
    "/students/{student_id}/interactions",
    response_model=InteractionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def log_interaction(
    student_id: UUID,
    data: InteractionCreate,
    db: DbSession,
    actor: Actor,
) -> InteractionResponse:
    """Log a contact with a student."""
    interaction = await outreach_service.log_interaction(db, student_id, data, user_name=actor)
    return InteractionResponse.model_validate(interaction)


@router.get("/students/{student_id}/interactions", response_model=list[InteractionResponse])
async def list_interactions(student_id: UUID, db: DbSession) -> list[InteractionResponse]:
    """Logged contacts with a student, newest first."""
    await ledger_service.require_student(db, student_id)
    interactions = await outreach_service.get_student_interactions(db, student_id)
    return [InteractionResponse.model_validate(i) for i in interactions]


@router.get("/stats", response_model=OutreachStats)
async def get_outreach_stats(
    db: DbSession,
    start_date: date | None = Query(None, description="Range start, defaults to start of month"),
    end_date: date | None = Query(None, description="Range end, defaults to now"),
) -> OutreachStats:
    """Outreach activity report."""
    stats = await outreach_service.get_outreach_stats(db, start_date, end_date)
    return OutreachStats(**stats)
