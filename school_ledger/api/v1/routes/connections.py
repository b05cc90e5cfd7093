"""Peer-connection routes."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from school_ledger.core.deps import Actor, DbSession
from school_ledger.schemas.connection import (
    ConnectionCreate,
    ConnectionPairResponse,
    ConnectionResponse,
    ConnectionSuggestionList,
)
from school_ledger.services import connections as connection_service

router = APIRouter(prefix="/connections", tags=["Connections"])


@router.get("/suggest/{student_id}", response_model=ConnectionSuggestionList)
async def suggest_connections(
    student_id: UUID,
    db: DbSession,
    limit: int | None = Query(None, ge=1, le=20, description="Max number of suggestions"),
) -> ConnectionSuggestionList:
    """
    Suggest peers for a student.

    Same or adjacent level, another batch, not yet connected. Best match first.
    """
    suggestions = await connection_service.suggest_connections(db, student_id, limit)
    return ConnectionSuggestionList(**suggestions)


@router.post("", response_model=ConnectionPairResponse, status_code=status.HTTP_201_CREATED)
async def create_connection(
    data: ConnectionCreate,
    db: DbSession,
    actor: Actor,
) -> ConnectionPairResponse:
    """Introduce two students to each other."""
    result = await connection_service.create_connection(db, data, actor=actor)
    return ConnectionPairResponse(
        connection=ConnectionResponse.model_validate(result.connection),
        mirror=ConnectionResponse.model_validate(result.mirror),
        events=result.events,
    )


@router.get("/students/{student_id}", response_model=list[ConnectionResponse])
async def list_connections(student_id: UUID, db: DbSession) -> list[ConnectionResponse]:
    """Connections made from a student."""
    connections = await connection_service.get_connections(db, student_id)
    return [ConnectionResponse.model_validate(c) for c in connections]
