"""
Enrollment Service

Sequences extraction, capture validation, template fusion and persistence for
the enrollment use cases, and owns the per-user template lifecycle:

    NotEnrolled --enroll--> Enrolled --re_enroll--> Enrolled
                                     --disable----> NotEnrolled

Every capture must pass validation before anything is stored. The first
rejected capture aborts the whole request with its specific reason; no
partial template is ever written.

Usage:
    from core.enrollment_service import EnrollmentService

    service = EnrollmentService(extractor, template_manager)
    template = service.enroll("user_42", images)
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from core.capture_validator import CaptureValidator
from core.errors import (
    AlreadyEnrolledError,
    DescriptorLengthMismatchError,
    DetectionFailedError,
    FaceAuthError,
    InvalidEnrollmentRequestError,
    NotEnrolledError,
)
from core.face_extractor import DescriptorExtractor, DetectedFace
from core.template_builder import TemplateBuilder
from core.template_manager import FaceTemplate, TemplateManager
from core.user_locks import UserLockRegistry

logger = logging.getLogger(__name__)

DEFAULT_MIN_IMAGES = 3
DEFAULT_MAX_IMAGES = 6


@dataclass
class FaceAuthStatus:
    """Enrollment status of one user. Never carries the descriptor."""

    enabled: bool
    enrolled_at: Optional[datetime]
    has_template: bool


def extract_valid_face(
    extractor: DescriptorExtractor,
    validator: CaptureValidator,
    image: np.ndarray,
) -> DetectedFace:
    """
    Run the extractor on one image and gate the result.

    Extractor failures are reported as DetectionFailedError and are never
    read as "no face".

    Raises:
        CaptureRejectedError subclass: The capture failed a quality rule.
        DetectionFailedError: The extractor itself failed.
    """
    try:
        faces = extractor.extract(image)
    except FaceAuthError:
        raise
    except Exception as e:
        logger.error(f"Face extraction failed: {type(e).__name__}: {e}")
        raise DetectionFailedError("Face detection failed, please try again") from e

    return validator.check(faces)


class EnrollmentService:
    """
    Enrollment orchestrator.

    Args:
        extractor: Face descriptor extractor.
        template_manager: Durable template store.
        validator: Capture quality gate (defaults to built-in thresholds).
        builder: Template builder.
        locks: Per-user lock registry. Share one registry between every
               service that writes templates.
        config: Enrollment settings: min_images, max_images.
        descriptor_dim: Descriptor length the extractor must produce. Captures
                        with any other length are rejected. None disables
                        the check.
    """

    def __init__(
        self,
        extractor: DescriptorExtractor,
        template_manager: TemplateManager,
        validator: Optional[CaptureValidator] = None,
        builder: Optional[TemplateBuilder] = None,
        locks: Optional[UserLockRegistry] = None,
        config: Optional[Dict[str, Any]] = None,
        descriptor_dim: Optional[int] = None,
    ):
        if config is None:
            config = {}

        self.extractor = extractor
        self.template_manager = template_manager
        self.validator = validator or CaptureValidator()
        self.builder = builder or TemplateBuilder()
        self.locks = locks or UserLockRegistry()
        self.min_images = int(config.get("min_images", DEFAULT_MIN_IMAGES))
        self.max_images = int(config.get("max_images", DEFAULT_MAX_IMAGES))
        self.descriptor_dim = int(descriptor_dim) if descriptor_dim else None

    def enroll(self, user_id: str, images: Sequence[np.ndarray]) -> FaceTemplate:
        """
        Enroll a user who has no template yet.

        Args:
            user_id: The user to enroll.
            images: Decoded BGR captures, between min_images and max_images.

        Returns:
            The stored FaceTemplate.

        Raises:
            InvalidEnrollmentRequestError: Wrong number of images.
            AlreadyEnrolledError: The user already has a template.
            CaptureRejectedError subclass: A capture failed validation.
            DetectionFailedError: The extractor failed.
            DescriptorLengthMismatchError: The extractor produced descriptors
                                           of the wrong length.
        """
        self.check_request_shape(images)

        with self.locks.hold(user_id):
            if self.template_manager.user_exists(user_id):
                raise AlreadyEnrolledError(
                    "Face authentication is already enabled for this user",
                    details={"user_id": user_id},
                )

            template = self._build_template(user_id, images)
            self.template_manager.save_template(template)

        logger.info(f"Face authentication enrolled for user {user_id} "
                    f"(template={template.template_id})")
        return template

    def re_enroll(self, user_id: str, images: Sequence[np.ndarray]) -> FaceTemplate:
        """
        Replace an enrolled user's template.

        The new template is fully validated and built before the old one is
        touched; the swap itself is a single transaction.

        Raises:
            InvalidEnrollmentRequestError: Wrong number of images.
            NotEnrolledError: The user has no template to replace.
            CaptureRejectedError subclass: A capture failed validation.
            DetectionFailedError: The extractor failed.
            DescriptorLengthMismatchError: The extractor produced descriptors
                                           of the wrong length.
        """
        self.check_request_shape(images)

        with self.locks.hold(user_id):
            if not self.template_manager.user_exists(user_id):
                raise NotEnrolledError(
                    "Face authentication is not enabled for this user",
                    details={"user_id": user_id},
                )

            template = self._build_template(user_id, images)
            previous_id = self.template_manager.replace_template(template)

        logger.info(f"Face authentication re-enrolled for user {user_id} "
                    f"({previous_id} -> {template.template_id})")
        return template

    def disable(self, user_id: str) -> bool:
        """
        Remove a user's template. Calling it again is a no-op.

        Returns:
            True if a template was removed, False if there was none.
        """
        with self.locks.hold(user_id):
            removed = self.template_manager.delete_template(user_id)

        if removed:
            logger.info(f"Face authentication disabled for user {user_id}")
        return removed

    def status(self, user_id: str) -> FaceAuthStatus:
        """Report whether face auth is enabled, when, and if a template exists."""
        status = self.template_manager.get_status(user_id)
        return FaceAuthStatus(
            enabled=status["enabled"],
            enrolled_at=status["enrolled_at"],
            has_template=status["has_template"],
        )

    def check_request_shape(self, images: Sequence[Any]) -> None:
        """Reject requests outside min_images..max_images before any extraction."""
        n_images = len(images)
        if not self.min_images <= n_images <= self.max_images:
            raise InvalidEnrollmentRequestError(
                f"Please provide {self.min_images}-{self.max_images} face images",
                details={
                    "n_images": n_images,
                    "min_images": self.min_images,
                    "max_images": self.max_images,
                },
            )

    def _build_template(self, user_id: str, images: Sequence[np.ndarray]) -> FaceTemplate:
        """Validate every capture in order, then fuse. Nothing is stored here."""
        start_time = time.time()
        descriptors: List[np.ndarray] = []

        for index, image in enumerate(images):
            try:
                face = extract_valid_face(self.extractor, self.validator, image)
            except FaceAuthError as e:
                e.details.setdefault("capture_index", index)
                logger.info(f"Enrollment capture {index} rejected for user {user_id}: {e.code}")
                raise
            if self.descriptor_dim is not None and len(face.descriptor) != self.descriptor_dim:
                logger.error(f"Enrollment capture {index} for user {user_id} has descriptor "
                             f"length {len(face.descriptor)}, expected {self.descriptor_dim}")
                raise DescriptorLengthMismatchError(
                    "Face descriptor has an unexpected length",
                    details={
                        "capture_index": index,
                        "descriptor_dim": len(face.descriptor),
                        "expected_dim": self.descriptor_dim,
                    },
                )
            descriptors.append(face.descriptor)

        template = self.builder.build(user_id, descriptors)

        logger.debug(f"Built template for user {user_id} from {len(descriptors)} captures "
                     f"in {(time.time() - start_time) * 1000:.0f}ms")
        return template


# Singleton instance for the service
_service_instance: Optional[EnrollmentService] = None


def get_enrollment_service() -> EnrollmentService:
    """
    Get or create the shared EnrollmentService wired from config.yaml.

    Returns:
        The shared EnrollmentService instance.
    """
    global _service_instance

    if _service_instance is None:
        from core.config import get_capture_config, get_enrollment_config, get_matching_config
        from core.face_extractor import get_extractor
        from core.template_manager import get_template_manager

        _service_instance = EnrollmentService(
            extractor=get_extractor(),
            template_manager=get_template_manager(),
            validator=CaptureValidator(get_capture_config()),
            config=get_enrollment_config(),
            descriptor_dim=get_matching_config().get("descriptor_dim"),
        )

    return _service_instance
