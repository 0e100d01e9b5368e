"""
Authentication Service

Verifies a live capture against a user's enrolled template:

    extract -> validate (same rules as enrollment) -> match -> audit log

Every attempt is written to the auth log with its outcome, whether it ended
in a match, a non-match or an error. The image and the live descriptor only
live for the duration of the call.

Reads do not take the per-user write lock. Templates are swapped in a single
transaction, so an attempt racing a re-enroll sees either the old or the new
template, never a mix.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import numpy as np

from core.capture_validator import CaptureValidator
from core.enrollment_service import extract_valid_face
from core.errors import FaceAuthError, InvalidImageError, NotEnrolledError
from core.face_extractor import DescriptorExtractor, decode_image_b64
from core.matching import DescriptorMatcher, EuclideanMatcher, MatchResult
from core.template_manager import TemplateManager

logger = logging.getLogger(__name__)


class AuthenticationService:
    """
    Authentication orchestrator.

    Args:
        extractor: Face descriptor extractor.
        template_manager: Durable template store (also holds the auth log).
        validator: Capture quality gate.
        matcher: Descriptor matcher.
    """

    def __init__(
        self,
        extractor: DescriptorExtractor,
        template_manager: TemplateManager,
        validator: Optional[CaptureValidator] = None,
        matcher: Optional[DescriptorMatcher] = None,
    ):
        self.extractor = extractor
        self.template_manager = template_manager
        self.validator = validator or CaptureValidator()
        self.matcher = matcher or EuclideanMatcher()

    def authenticate(self, user_id: str, image: np.ndarray) -> MatchResult:
        """
        Match one live capture against the user's template.

        Args:
            user_id: The user claiming the identity.
            image: Decoded BGR capture.

        Returns:
            MatchResult with the decision, distance and confidence.

        Raises:
            NotEnrolledError: The user has no template.
            CaptureRejectedError subclass: The capture failed validation.
            DetectionFailedError: The extractor failed.
        """
        start_time = time.time()

        template = self.template_manager.load_template(user_id)
        if template is None:
            self._audit(user_id, NotEnrolledError.code, start_time)
            raise NotEnrolledError(
                "Face authentication not enabled for this user",
                details={"user_id": user_id},
            )

        try:
            face = extract_valid_face(self.extractor, self.validator, image)
        except FaceAuthError as e:
            self._audit(user_id, e.code, start_time, template_id=template.template_id)
            logger.info(f"Face authentication attempt for user {user_id}: REJECTED ({e.code})")
            raise

        result = self.matcher.compare(template.descriptor, face.descriptor)

        outcome = "match" if result.is_match else (result.error or "no_match")
        self._audit(
            user_id,
            outcome,
            start_time,
            is_match=result.is_match,
            distance=result.distance,
            confidence_percent=result.confidence_percent,
            template_id=template.template_id,
        )

        logger.info(
            f"Face authentication attempt for user {user_id}: "
            f"{'SUCCESS' if result.is_match else 'FAILED'} "
            f"(confidence: {result.confidence_percent}%)"
        )
        return result

    def authenticate_frame(self, user_id: str, frame_b64: str, max_pixels: Optional[int] = None) -> MatchResult:
        """
        Decode a base64 capture and authenticate it.

        A frame that cannot be decoded is audited as INVALID_IMAGE before the
        error propagates.

        Raises:
            InvalidImageError: The frame is not a decodable image.
            Everything authenticate() raises.
        """
        start_time = time.time()
        try:
            image = decode_image_b64(frame_b64, max_pixels=max_pixels)
        except InvalidImageError as e:
            template = self.template_manager.load_template(user_id)
            self._audit(
                user_id,
                e.code,
                start_time,
                template_id=template.template_id if template is not None else None,
            )
            logger.info(f"Face authentication attempt for user {user_id}: REJECTED ({e.code})")
            raise

        return self.authenticate(user_id, image)

    def get_auth_logs(self, user_id: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        """Audit records for a user (or everyone), newest first."""
        return self.template_manager.get_auth_logs(user_id=user_id, limit=limit)

    def _audit(
        self,
        user_id: str,
        outcome: str,
        start_time: float,
        is_match: bool = False,
        distance: Optional[float] = None,
        confidence_percent: Optional[int] = None,
        template_id: Optional[str] = None,
    ) -> None:
        self.template_manager.log_authentication(
            user_id=user_id,
            outcome=outcome,
            is_match=is_match,
            distance=distance,
            confidence_percent=confidence_percent,
            template_id=template_id,
            processing_time_ms=int((time.time() - start_time) * 1000),
        )


# Singleton instance for the service
_service_instance: Optional[AuthenticationService] = None


def get_authentication_service() -> AuthenticationService:
    """
    Get or create the shared AuthenticationService wired from config.yaml.

    Returns:
        The shared AuthenticationService instance.
    """
    global _service_instance

    if _service_instance is None:
        from core.config import get_capture_config, get_matching_config
        from core.face_extractor import get_extractor
        from core.template_manager import get_template_manager

        _service_instance = AuthenticationService(
            extractor=get_extractor(),
            template_manager=get_template_manager(),
            validator=CaptureValidator(get_capture_config()),
            matcher=EuclideanMatcher(get_matching_config()),
        )

    return _service_instance
