"""Dependencies for FastAPI routes."""

import logging
from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from school_ledger.core.database import get_db
from school_ledger.schemas.events import AuditRecord

audit_logger = logging.getLogger("school_ledger.audit")


async def get_actor(
    x_actor: Annotated[str | None, Header(max_length=200)] = None,
) -> str | None:
    """Name of whoever is acting, as passed by the calling system."""
    return x_actor


def log_audit(records: list[AuditRecord]) -> None:
    """Hand audit records to the audit log."""
    for record in records:
        audit_logger.info(record.model_dump_json())


# Common dependency aliases
DbSession = Annotated[AsyncSession, Depends(get_db)]
Actor = Annotated[str | None, Depends(get_actor)]
