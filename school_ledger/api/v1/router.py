"""API v1 router aggregating all route modules."""

from fastapi import APIRouter

from school_ledger.api.v1.routes import (
    attendance,
    connections,
    outreach,
    payments,
    students,
)

api_router = APIRouter()

api_router.include_router(students.router)
api_router.include_router(payments.router)
api_router.include_router(attendance.router)
api_router.include_router(outreach.router)
api_router.include_router(connections.router)
