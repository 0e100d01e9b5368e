"""
Capture Validator Module

Decides whether the faces found in one image are usable for enrollment or
authentication. The rules run in a fixed order and stop at the first
failure, so the caller always gets the most basic problem first:

    1. Exactly one face             -> NoFaceDetected / MultipleFacesDetected
    2. Detector confidence >= floor -> LowConfidence
    3. Bounding box area >= minimum -> FaceTooSmall
    4. Frontal pose from landmarks  -> FaceNotFrontal (skipped without landmarks)

Usage:
    from core.capture_validator import CaptureValidator

    validator = CaptureValidator(get_capture_config())
    face = validator.check(extractor.extract(image))
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import numpy as np

from core.errors import (
    FaceNotFrontalError,
    FaceTooSmallError,
    LowConfidenceError,
    MultipleFacesDetectedError,
    NoFaceDetectedError,
)
from core.face_extractor import DetectedFace

logger = logging.getLogger(__name__)

DEFAULT_MIN_CONFIDENCE = 0.70
DEFAULT_MIN_FACE_AREA = 10000
DEFAULT_MAX_POSE_RATIO = 0.30


@dataclass(frozen=True)
class LandmarkScheme:
    """
    Landmark indices used by the pose check.

    Defaults follow the 68-point scheme (iBUG 300-W ordering).
    """

    left_eye_outer: int = 36
    right_eye_outer: int = 45
    nose_tip: int = 30

    @property
    def max_index(self) -> int:
        return max(self.left_eye_outer, self.right_eye_outer, self.nose_tip)


def pose_ratio(landmarks: np.ndarray, scheme: LandmarkScheme) -> float:
    """
    Horizontal nose offset from the eye midpoint, relative to eye distance.

    0.0 means the nose tip sits exactly between the outer eye corners.
    A degenerate eye distance of zero returns infinity.

    Args:
        landmarks: (K, 2) landmark array.
        scheme: Indices of the eye corners and nose tip.

    Returns:
        d_nose / d_eyes.
    """
    left_x = float(landmarks[scheme.left_eye_outer][0])
    right_x = float(landmarks[scheme.right_eye_outer][0])
    nose_x = float(landmarks[scheme.nose_tip][0])

    eye_distance = abs(left_x - right_x)
    nose_offset = abs(nose_x - (left_x + right_x) / 2.0)

    if eye_distance == 0.0:
        return float("inf")

    return nose_offset / eye_distance


class CaptureValidator:
    """
    Quality gate for a single capture.

    Args:
        config: Dictionary with optional keys:
            - min_confidence: Detector score floor (default 0.70)
            - min_face_area: Minimum bbox area in px^2 (default 10000)
            - max_pose_ratio: Maximum nose offset / eye distance (default 0.30)
            - landmarks: {left_eye_outer, right_eye_outer, nose_tip} indices
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        if config is None:
            config = {}

        self.min_confidence = float(config.get("min_confidence", DEFAULT_MIN_CONFIDENCE))
        self.min_face_area = float(config.get("min_face_area", DEFAULT_MIN_FACE_AREA))
        self.max_pose_ratio = float(config.get("max_pose_ratio", DEFAULT_MAX_POSE_RATIO))
        self.landmark_scheme = LandmarkScheme(**config.get("landmarks", {}))

    def check(self, faces: Sequence[DetectedFace]) -> DetectedFace:
        """
        Validate the detections of one image.

        Args:
            faces: Everything the extractor found in the image.

        Returns:
            The single accepted face.

        Raises:
            CaptureRejectedError subclass naming the first failed rule.
        """
        if len(faces) == 0:
            raise NoFaceDetectedError("No face detected in image")

        if len(faces) > 1:
            raise MultipleFacesDetectedError(
                "Multiple faces detected. Please ensure only one face is visible",
                details={"n_faces": len(faces)},
            )

        face = faces[0]

        # Negated comparisons so NaN scores and areas are rejected
        if not face.confidence >= self.min_confidence:
            details = {"min_confidence": self.min_confidence}
            if np.isfinite(face.confidence):
                details["confidence"] = round(face.confidence, 4)
            raise LowConfidenceError(
                "Face detection confidence too low. Please ensure good lighting",
                details=details,
            )

        if not face.bbox.area >= self.min_face_area:
            details = {"min_face_area": self.min_face_area}
            if np.isfinite(face.bbox.area):
                details["face_area"] = round(face.bbox.area, 1)
            raise FaceTooSmallError(
                "Face too small. Please move closer to the camera",
                details=details,
            )

        self._check_pose(face)

        return face

    def _check_pose(self, face: DetectedFace) -> None:
        """Reject turned faces. No landmarks means no check."""
        landmarks = face.landmarks
        if landmarks is None:
            return

        if len(landmarks) <= self.landmark_scheme.max_index:
            logger.warning(
                f"Landmark array has {len(landmarks)} points, scheme needs "
                f"index {self.landmark_scheme.max_index}; skipping pose check"
            )
            return

        ratio = pose_ratio(landmarks, self.landmark_scheme)
        if not ratio <= self.max_pose_ratio:
            details = {"max_pose_ratio": self.max_pose_ratio}
            if np.isfinite(ratio):
                details["pose_ratio"] = round(ratio, 4)
            raise FaceNotFrontalError("Please look straight at the camera", details=details)
