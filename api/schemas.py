"""
Pydantic Schemas for API Request/Response Models

This module defines the data models used for API communication between
the client app and the face authentication backend.

These schemas provide:
- Type validation
- Automatic documentation in OpenAPI/Swagger
- Clear interface contracts

No response model carries a face descriptor or template data.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ============================================================
# Enrollment Schemas
# ============================================================

class EnrollRequest(BaseModel):
    """Request for enrollment or re-enrollment."""
    images: List[str] = Field(
        ...,
        description="List of base64-encoded still frames (3-6 images, checked by the service)"
    )


class EnrollResponse(BaseModel):
    """Response from a successful enrollment or re-enrollment."""
    success: bool = Field(True, description="Whether enrollment succeeded")
    template_id: str = Field(..., description="Opaque ID of the new template")
    enrolled_at: datetime = Field(..., description="When the template was created")
    n_captures: int = Field(..., description="Number of captures fused into the template")
    message: str = Field(..., description="Status message")


# ============================================================
# Authentication Schemas
# ============================================================

class AuthRequest(BaseModel):
    """Request for face authentication."""
    image: str = Field(..., min_length=1, description="Base64-encoded still frame")


class AuthResponse(BaseModel):
    """Response from an authentication attempt."""
    authenticated: bool = Field(..., description="Whether the face matched the template")
    confidence_percent: int = Field(
        ...,
        ge=0,
        le=100,
        description="Display confidence derived from distance (not a probability)"
    )
    distance: float = Field(..., ge=0.0, description="Euclidean descriptor distance")
    processing_time_sec: float = Field(..., description="Total processing time in seconds")
    message: str = Field(..., description="Status message")


# ============================================================
# Management Schemas
# ============================================================

class StatusResponse(BaseModel):
    """Face authentication status of a user."""
    user_id: str = Field(..., description="User identifier")
    enabled: bool = Field(..., description="Whether face authentication is enabled")
    enrolled_at: Optional[datetime] = Field(None, description="When the current template was created")
    has_template: bool = Field(..., description="Whether a template is stored")


class DisableResponse(BaseModel):
    """Response from disabling face authentication."""
    success: bool = Field(..., description="Always true, disable is idempotent")
    user_id: str = Field(..., description="User identifier")
    had_template: bool = Field(..., description="Whether a template was removed by this call")
    message: str = Field(..., description="Status message")


class AuthLogEntry(BaseModel):
    """One audit record of an authentication attempt."""
    id: int
    user_id: Optional[str] = None
    timestamp: datetime
    outcome: str = Field(..., description="'match', 'no_match' or the error code")
    is_match: bool
    distance: Optional[float] = None
    confidence_percent: Optional[int] = None
    template_id: Optional[str] = None
    processing_time_ms: Optional[int] = None


class AuthLogResponse(BaseModel):
    """Audit records for a user."""
    logs: List[AuthLogEntry] = Field(default_factory=list)
    total: int = Field(0, description="Number of records returned")


# ============================================================
# Error / Health Schemas
# ============================================================

class ErrorResponse(BaseModel):
    """Error body returned for every core failure."""
    error: str = Field(..., description="Human-readable reason")
    code: str = Field(..., description="Stable error code, e.g. NO_FACE_DETECTED")
    details: Dict[str, Any] = Field(default_factory=dict)


def error_responses(*status_codes: int) -> Dict[int, Dict[str, Any]]:
    """OpenAPI `responses` entries documenting ErrorResponse for the given statuses."""
    return {code: {"model": ErrorResponse} for code in status_codes}


class HealthResponse(BaseModel):
    """System health check response."""
    model_config = {"protected_namespaces": ()}  # Allow 'model_' prefix in field names

    status: str = Field(..., description="Overall status: 'healthy' or 'degraded'")
    model_loaded: bool = Field(..., description="Whether the face model is loaded")
    enrolled_users: int = Field(..., description="Number of enrolled users")
    total_auth_attempts: int = Field(0, description="Number of logged authentication attempts")
