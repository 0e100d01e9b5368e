"""
Face Auth Management API Routes

This module provides REST endpoints for managing a user's face enrollment:
- GET /face-auth/{user_id}/status: Enabled flag, enrollment time, template presence
- DELETE /face-auth/{user_id}: Disable face authentication (idempotent)
- GET /face-auth/{user_id}/auth-logs: Audit trail of authentication attempts
"""

import asyncio

from fastapi import APIRouter, Query

from api.schemas import (
    AuthLogEntry,
    AuthLogResponse,
    DisableResponse,
    StatusResponse,
)
from core.authentication_service import get_authentication_service
from core.enrollment_service import get_enrollment_service

# Create router
router = APIRouter(prefix="/face-auth", tags=["management"])


@router.get("/{user_id}/status", response_model=StatusResponse)
async def get_status(user_id: str):
    """
    Get a user's face authentication status.

    Never returns the template itself.
    """
    status = get_enrollment_service().status(user_id)

    return StatusResponse(
        user_id=user_id,
        enabled=status.enabled,
        enrolled_at=status.enrolled_at,
        has_template=status.has_template,
    )


@router.delete("/{user_id}", response_model=DisableResponse)
async def disable(user_id: str):
    """
    Disable face authentication and delete the template.

    Calling this for a user without a template succeeds and changes nothing.
    """
    service = get_enrollment_service()
    removed = await asyncio.to_thread(service.disable, user_id)

    return DisableResponse(
        success=True,
        user_id=user_id,
        had_template=removed,
        message=(
            "Face authentication disabled successfully"
            if removed else "Face authentication was not enabled"
        ),
    )


@router.get("/{user_id}/auth-logs", response_model=AuthLogResponse)
async def get_auth_logs(user_id: str, limit: int = Query(100, ge=1, le=1000)):
    """
    Get the audit trail of authentication attempts for a user, newest first.

    Records hold outcomes and scores only.
    """
    logs = get_authentication_service().get_auth_logs(user_id=user_id, limit=limit)

    return AuthLogResponse(
        logs=[AuthLogEntry(**entry) for entry in logs],
        total=len(logs),
    )
