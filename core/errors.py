"""
Error taxonomy for the face authentication core.

Every failure the core can report has its own exception class with a stable
machine-readable ``code`` and the HTTP status the API layer maps it to.
Capture-quality errors are expected and user-correctable; state errors are
precondition violations; data-integrity errors are reported by the matcher
as reason codes while it fails closed.
"""

from typing import Optional


class FaceAuthError(Exception):
    """Base exception for face authentication operations."""

    code = "FACE_AUTH_ERROR"
    http_status = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        """
        Initialize face authentication error.

        Args:
            message: Error description, safe to show to the end user.
            details: Additional error context (never biometric data).
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        """Serialize for API error responses."""
        return {"error": self.message, "code": self.code, "details": self.details}


# ============================================================
# Capture quality
# ============================================================

class CaptureRejectedError(FaceAuthError):
    """A capture failed one of the quality gates. The user should retake it."""

    code = "CAPTURE_REJECTED"
    http_status = 422


class NoFaceDetectedError(CaptureRejectedError):
    """Raised when no face is detected in the image."""

    code = "NO_FACE_DETECTED"


class MultipleFacesDetectedError(CaptureRejectedError):
    """Raised when more than one face is found in a single capture."""

    code = "MULTIPLE_FACES_DETECTED"


class LowConfidenceError(CaptureRejectedError):
    """Raised when the detector score is below the confidence floor."""

    code = "LOW_CONFIDENCE"


class FaceTooSmallError(CaptureRejectedError):
    """Raised when the face bounding box is below the minimum area."""

    code = "FACE_TOO_SMALL"


class FaceNotFrontalError(CaptureRejectedError):
    """Raised when the landmark pose check says the face is turned."""

    code = "FACE_NOT_FRONTAL"


# ============================================================
# Enrollment state
# ============================================================

class AlreadyEnrolledError(FaceAuthError):
    """Raised when enrolling a user who already has a template."""

    code = "ALREADY_ENROLLED"
    http_status = 409


class NotEnrolledError(FaceAuthError):
    """Raised when an operation needs a template the user does not have."""

    code = "NOT_ENROLLED"
    http_status = 404


# ============================================================
# Data integrity
# ============================================================

class DescriptorLengthMismatchError(FaceAuthError):
    """Raised when descriptors of different lengths meet."""

    code = "DESCRIPTOR_LENGTH_MISMATCH"


class MissingTemplateError(FaceAuthError):
    """Raised when a stored template has no usable descriptor."""

    code = "MISSING_TEMPLATE"


# ============================================================
# Request shape
# ============================================================

class InvalidEnrollmentRequestError(FaceAuthError):
    """Raised when an enrollment request has the wrong number of images."""

    code = "INVALID_ENROLLMENT_REQUEST"
    http_status = 400


class InvalidImageError(FaceAuthError):
    """Raised when the provided image is invalid or cannot be decoded."""

    code = "INVALID_IMAGE"
    http_status = 400


# ============================================================
# Extractor runtime
# ============================================================

class DetectionFailedError(FaceAuthError):
    """Raised when the extractor itself fails. Retryable by the caller."""

    code = "DETECTION_FAILED"
    http_status = 503


class ModelLoadError(DetectionFailedError):
    """Raised when the face recognition model fails to load."""

    code = "MODEL_LOAD_FAILED"
