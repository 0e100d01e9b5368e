"""
Authentication API Routes

This module provides the POST /face-auth/{user_id}/authenticate endpoint. It
decodes one captured frame, validates it with the same quality rules as
enrollment and compares it against the user's enrolled template.
"""

import asyncio
import logging
import time

from fastapi import APIRouter

from api.schemas import AuthRequest, AuthResponse, error_responses
from core.authentication_service import get_authentication_service
from core.config import get_face_extraction_config

# Setup logging
logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/face-auth", tags=["authentication"])


@router.post(
    "/{user_id}/authenticate",
    response_model=AuthResponse,
    responses=error_responses(400, 404, 422, 503),
)
async def authenticate(user_id: str, request: AuthRequest):
    """
    Authenticate a user with one face capture.

    This endpoint:
    1. Decodes the base64 frame
    2. Detects the face and computes its descriptor
    3. Applies the capture quality rules
    4. Compares against the enrolled template
    5. Returns the decision with a display confidence

    Raises:
        400: Undecodable image.
        404: The user is not enrolled.
        422: The capture failed a quality check.
        503: The face model failed.
    """
    start_time = time.time()

    max_pixels = get_face_extraction_config().get("max_image_pixels")
    service = get_authentication_service()
    result = await asyncio.to_thread(service.authenticate_frame, user_id, request.image, max_pixels)

    return AuthResponse(
        authenticated=result.is_match,
        confidence_percent=result.confidence_percent,
        distance=result.distance,
        processing_time_sec=time.time() - start_time,
        message="Face authentication successful" if result.is_match else "Face authentication failed",
    )
