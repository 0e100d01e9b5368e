"""
Enrollment API Routes

This module provides:
- POST /face-auth/{user_id}/enroll: first enrollment (3-6 images)
- PUT  /face-auth/{user_id}/enroll: re-enrollment, replaces the template

Images arrive base64-encoded and are decoded here. Extraction and template
fusion are blocking, so they run in a worker thread.
"""

import asyncio
import logging
from typing import List

import numpy as np
from fastapi import APIRouter

from api.schemas import EnrollRequest, EnrollResponse, error_responses
from core.config import get_face_extraction_config
from core.enrollment_service import EnrollmentService, get_enrollment_service
from core.errors import InvalidImageError
from core.face_extractor import decode_image_b64

# Setup logging
logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/face-auth", tags=["enrollment"])


def decode_images(images: List[str]) -> List[np.ndarray]:
    """
    Decode base64 frames for enrollment.

    Raises:
        InvalidImageError: On the first frame that is not a valid image,
                           with its index in the error details.
    """
    max_pixels = get_face_extraction_config().get("max_image_pixels")
    decoded = []
    for index, frame_b64 in enumerate(images):
        try:
            decoded.append(decode_image_b64(frame_b64, max_pixels=max_pixels))
        except InvalidImageError as e:
            e.details.setdefault("capture_index", index)
            raise
    return decoded


def _enroll(service: EnrollmentService, user_id: str, images: List[str], replace: bool):
    service.check_request_shape(images)
    frames = decode_images(images)
    if replace:
        return service.re_enroll(user_id, frames)
    return service.enroll(user_id, frames)


@router.post(
    "/{user_id}/enroll",
    response_model=EnrollResponse,
    status_code=201,
    responses=error_responses(400, 409, 422, 503),
)
async def enroll(user_id: str, request: EnrollRequest):
    """
    Enroll a user's face.

    Every image must contain exactly one clear, frontal face. The first
    rejected image aborts the enrollment and its reason is returned.

    Raises:
        400: Wrong number of images or undecodable image.
        409: The user is already enrolled.
        422: A capture failed a quality check.
        503: The face model failed.
    """
    service = get_enrollment_service()
    template = await asyncio.to_thread(_enroll, service, user_id, request.images, False)

    return EnrollResponse(
        template_id=template.template_id,
        enrolled_at=template.created_at,
        n_captures=template.n_captures,
        message="Face authentication enrolled successfully",
    )


@router.put(
    "/{user_id}/enroll",
    response_model=EnrollResponse,
    responses=error_responses(400, 404, 422, 503),
)
async def re_enroll(user_id: str, request: EnrollRequest):
    """
    Replace an enrolled user's template.

    The old template stays active until the new one is fully built.

    Raises:
        400: Wrong number of images or undecodable image.
        404: The user is not enrolled.
        422: A capture failed a quality check.
        503: The face model failed.
    """
    service = get_enrollment_service()
    template = await asyncio.to_thread(_enroll, service, user_id, request.images, True)

    return EnrollResponse(
        template_id=template.template_id,
        enrolled_at=template.created_at,
        n_captures=template.n_captures,
        message="Face authentication re-enrolled successfully",
    )
