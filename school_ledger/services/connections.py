"""Peer-connection suggestions and introductions."""

import logging
import random
import zlib
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_ledger.core.config import settings
from school_ledger.core.database import transaction, utcnow
from school_ledger.core.exceptions import ErrorKind, PreconditionError, ValidationError
from school_ledger.models.outreach import CONNECTION_INTRODUCED, StudentConnection
from school_ledger.models.student import LEVEL_LADDER, Batch, CompletionStatus, Level, Student
from school_ledger.schemas.connection import ConnectionCreate
from school_ledger.schemas.events import DomainEvent
from school_ledger.services.ledger import require_student
from school_ledger.services.results import ConnectionResult

logger = logging.getLogger(__name__)

REASON_TEMPLATES = (
    "{match} would be a great connection for {student}. {factors_and}. "
    "They could share study tips and motivate each other.",
    "I recommend connecting {student} with {match}. {factors}. "
    "This could create a valuable peer learning opportunity.",
    "{match} and {student} would make great study partners. {factors}. "
    "They're on similar learning journeys.",
)


def adjacent_levels(level: Level | str) -> list[Level]:
    """The level itself and its neighbours on the course ladder."""
    level = Level(level)
    index = LEVEL_LADDER.index(level)
    levels = [level]
    if index > 0:
        levels.append(LEVEL_LADDER[index - 1])
    if index < len(LEVEL_LADDER) - 1:
        levels.append(LEVEL_LADDER[index + 1])
    return levels


def score_match(student: Student, match: Student, timings: dict[UUID, str | None]) -> tuple[int, list[str]]:
    """Score a potential peer and list the factors that contributed."""
    score = 0
    factors = []

    if match.current_level == student.current_level:
        score += 10
        factors.append(f"Both studying {Level(match.current_level).value}")
    else:
        score += 5
        factors.append(
            f"{student.name} is at {Level(student.current_level).value}, "
            f"{match.name} is at {Level(match.current_level).value}"
        )

    if abs(match.attendance_rate - student.attendance_rate) < 10:
        score += 5
        factors.append("Similar attendance patterns")

    if abs((match.enrollment_date - student.enrollment_date).days) < 30:
        score += 8
        factors.append("Started learning around the same time")

    if student.referral_source and match.referral_source == student.referral_source:
        score += 3
        factors.append(f"Both discovered us through {match.referral_source}")

    student_timing = timings.get(student.batch_id)
    match_timing = timings.get(match.batch_id)
    if student_timing and match_timing and student_timing != match_timing:
        score += 4
        factors.append("Can share experiences from different class timings")

    return score, factors


def connection_reason(
    student: Student,
    match: Student,
    factors: list[str],
    rng: random.Random | None = None,
) -> str:
    """
    Prose explanation of a suggestion.

    Without `rng` the template is picked by a hash of the two ids, so the
    same pair always reads the same way.
    """
    if rng is not None:
        template = rng.choice(REASON_TEMPLATES)
    else:
        pair = "".join(sorted((str(student.id), str(match.id))))
        template = REASON_TEMPLATES[zlib.crc32(pair.encode()) % len(REASON_TEMPLATES)]

    return template.format(
        student=student.name,
        match=match.name,
        factors=", ".join(factors),
        factors_and=", and ".join(factors),
    )


async def _connected_ids(db: AsyncSession, student_id: UUID) -> set[UUID]:
    result = await db.execute(
        select(StudentConnection.connected_student_id).where(StudentConnection.student_id == student_id)
    )
    return set(result.scalars().all())


async def suggest_connections(
    db: AsyncSession,
    student_id: UUID,
    limit: int | None = None,
    rng: random.Random | None = None,
) -> dict:
    """
    Suggest peers for a student.

    Candidates are active students at the same or an adjacent level, in
    another batch, not yet connected. Best score first; ties keep lookup order.
    """
    limit = limit or settings.CONNECTION_SUGGESTION_LIMIT
    student = await require_student(db, student_id)
    connected = await _connected_ids(db, student_id)

    query = select(Student).where(
        Student.id != student.id,
        Student.completion_status == CompletionStatus.ACTIVE,
        Student.current_level.in_(adjacent_levels(student.current_level)),
    )
    if connected:
        query = query.where(Student.id.not_in(connected))
    if student.batch_id is not None:
        query = query.where(or_(Student.batch_id.is_(None), Student.batch_id != student.batch_id))
    query = query.order_by(Student.created_at, Student.id)

    result = await db.execute(query)
    candidates = list(result.scalars().all())

    batch_ids = {s.batch_id for s in [student, *candidates] if s.batch_id is not None}
    timings: dict[UUID, str | None] = {}
    if batch_ids:
        batch_result = await db.execute(select(Batch.id, Batch.timing).where(Batch.id.in_(batch_ids)))
        timings = dict(batch_result.all())

    suggestions = []
    for match in candidates:
        score, factors = score_match(student, match, timings)
        suggestions.append(
            {
                "student": {
                    "id": match.id,
                    "name": match.name,
                    "level": match.current_level,
                    "batch_id": match.batch_id,
                },
                "score": score,
                "reason": connection_reason(student, match, factors, rng),
                "match_factors": factors,
            }
        )

    suggestions.sort(key=lambda s: -s["score"])
    suggestions = suggestions[:limit]

    return {
        "target_student": {
            "id": student.id,
            "name": student.name,
            "level": student.current_level,
            "batch_id": student.batch_id,
        },
        "suggestions": suggestions,
        "total": len(suggestions),
    }


async def get_connections(db: AsyncSession, student_id: UUID) -> list[StudentConnection]:
    """Connections made from a student, newest first."""
    await require_student(db, student_id)
    result = await db.execute(
        select(StudentConnection)
        .where(StudentConnection.student_id == student_id)
        .order_by(StudentConnection.introduced_at.desc())
    )
    return list(result.scalars().all())


async def create_connection(
    db: AsyncSession,
    data: ConnectionCreate,
    actor: str | None = None,
) -> ConnectionResult:
    """Introduce two students, writing the connection in both directions."""
    if data.student_id == data.connected_student_id:
        raise ValidationError(ErrorKind.SELF_CONNECTION, "A student cannot be connected to themselves")

    try:
        async with transaction(db):
            student = await require_student(db, data.student_id)
            peer = await require_student(db, data.connected_student_id)

            existing = await db.scalar(
                select(StudentConnection.id).where(
                    or_(
                        (StudentConnection.student_id == student.id)
                        & (StudentConnection.connected_student_id == peer.id),
                        (StudentConnection.student_id == peer.id)
                        & (StudentConnection.connected_student_id == student.id),
                    )
                )
            )
            if existing is not None:
                raise PreconditionError(
                    ErrorKind.DUPLICATE_CONNECTION,
                    f"{student.name} and {peer.name} are already connected",
                )

            introduced_at = utcnow()
            connection = StudentConnection(
                student_id=student.id,
                connected_student_id=peer.id,
                reason=data.reason,
                status=CONNECTION_INTRODUCED,
                introduced_by=actor,
                introduced_at=introduced_at,
                notes=data.notes,
            )
            mirror = StudentConnection(
                student_id=peer.id,
                connected_student_id=student.id,
                reason=data.reason,
                status=CONNECTION_INTRODUCED,
                introduced_by=actor,
                introduced_at=introduced_at,
                notes=data.notes,
            )
            db.add_all([connection, mirror])
            await db.flush()
    except IntegrityError as exc:
        # Lost a race with a concurrent introduction of the same pair.
        raise PreconditionError(
            ErrorKind.DUPLICATE_CONNECTION,
            f"Students {data.student_id} and {data.connected_student_id} are already connected",
        ) from exc

    logger.info(f"Connected {student.name} ({student.id}) with {peer.name} ({peer.id})")

    events = []
    if data.send_introduction:
        events.append(
            DomainEvent(
                name="connection_introduced",
                student_id=student.id,
                payload={
                    "connection_id": connection.id,
                    "student_name": student.name,
                    "connected_student_id": peer.id,
                    "connected_student_name": peer.name,
                    "reason": data.reason,
                },
            )
        )
    return ConnectionResult(connection=connection, mirror=mirror, events=events)
