"""
Tests for the CaptureValidator module.

This test suite verifies:
- Single-face rule (zero / multiple faces)
- Confidence floor and minimum face area
- Landmark pose check and when it is skipped
- Rule ordering (first failure wins)

Run with: pytest tests/test_capture_validator.py -v
"""

import math

import numpy as np
import pytest

from conftest import frontal_landmarks, make_face
from core.capture_validator import CaptureValidator, LandmarkScheme, pose_ratio
from core.errors import (
    CaptureRejectedError,
    FaceNotFrontalError,
    FaceTooSmallError,
    LowConfidenceError,
    MultipleFacesDetectedError,
    NoFaceDetectedError,
)


@pytest.fixture
def validator():
    return CaptureValidator({
        "min_confidence": 0.70,
        "min_face_area": 10000,
        "max_pose_ratio": 0.30,
    })


class TestFaceCount:
    """Exactly one face must be present."""

    def test_no_faces(self, validator):
        with pytest.raises(NoFaceDetectedError) as exc_info:
            validator.check([])
        assert exc_info.value.code == "NO_FACE_DETECTED"
        assert exc_info.value.http_status == 422

    def test_multiple_faces(self, validator):
        with pytest.raises(MultipleFacesDetectedError) as exc_info:
            validator.check([make_face(), make_face()])
        assert exc_info.value.details["n_faces"] == 2

    def test_single_good_face_is_returned(self, validator):
        face = make_face()
        assert validator.check([face]) is face


class TestQualityRules:
    """Confidence and size thresholds."""

    def test_low_confidence(self, validator):
        with pytest.raises(LowConfidenceError):
            validator.check([make_face(confidence=0.5)])

    def test_confidence_at_floor_passes(self, validator):
        validator.check([make_face(confidence=0.70)])

    def test_face_too_small(self, validator):
        with pytest.raises(FaceTooSmallError) as exc_info:
            validator.check([make_face(width=50, height=50)])
        assert exc_info.value.details["face_area"] == 2500.0

    def test_area_at_minimum_passes(self, validator):
        validator.check([make_face(width=100, height=100)])

    def test_confidence_checked_before_size(self, validator):
        """A face that fails both rules reports the confidence problem."""
        with pytest.raises(LowConfidenceError):
            validator.check([make_face(confidence=0.1, width=10, height=10)])

    def test_all_rejections_share_base_class(self, validator):
        with pytest.raises(CaptureRejectedError):
            validator.check([make_face(width=1, height=1)])

    def test_nan_confidence_rejected(self, validator):
        with pytest.raises(LowConfidenceError) as exc_info:
            validator.check([make_face(confidence=float("nan"))])
        assert "confidence" not in exc_info.value.details

    def test_nan_area_rejected(self, validator):
        with pytest.raises(FaceTooSmallError) as exc_info:
            validator.check([make_face(width=float("nan"))])
        assert "face_area" not in exc_info.value.details


class TestPoseCheck:
    """Frontal pose from eye corners and nose tip."""

    def test_pose_ratio_centered_nose(self):
        assert pose_ratio(frontal_landmarks(), LandmarkScheme()) == 0.0

    def test_pose_ratio_offset_nose(self):
        ratio = pose_ratio(frontal_landmarks(nose_x=180.0), LandmarkScheme())
        assert ratio == pytest.approx(0.3)

    def test_pose_ratio_degenerate_eyes(self):
        landmarks = frontal_landmarks()
        landmarks[45] = landmarks[36]
        assert math.isinf(pose_ratio(landmarks, LandmarkScheme()))

    def test_turned_face_rejected(self, validator):
        face = make_face(landmarks=frontal_landmarks(nose_x=200.0))
        with pytest.raises(FaceNotFrontalError) as exc_info:
            validator.check([face])
        assert exc_info.value.details["pose_ratio"] == pytest.approx(0.5)

    def test_slightly_turned_face_passes(self, validator):
        validator.check([make_face(landmarks=frontal_landmarks(nose_x=170.0))])

    def test_zero_eye_distance_rejected(self, validator):
        landmarks = frontal_landmarks()
        landmarks[45] = landmarks[36]
        with pytest.raises(FaceNotFrontalError) as exc_info:
            validator.check([make_face(landmarks=landmarks)])
        assert "pose_ratio" not in exc_info.value.details

    def test_nan_landmarks_rejected(self, validator):
        landmarks = frontal_landmarks()
        landmarks[30] = [float("nan"), float("nan")]
        with pytest.raises(FaceNotFrontalError) as exc_info:
            validator.check([make_face(landmarks=landmarks)])
        assert "pose_ratio" not in exc_info.value.details

    def test_missing_landmarks_skip_pose(self, validator):
        face = make_face(with_landmarks=False)
        assert face.landmarks is None
        assert validator.check([face]) is face

    def test_short_landmark_array_skips_pose(self, validator):
        """Five-point landmarks cannot be read with the 68-point indices."""
        face = make_face(landmarks=np.zeros((5, 2), dtype=np.float32))
        assert validator.check([face]) is face

    def test_custom_landmark_scheme(self):
        validator = CaptureValidator({
            "landmarks": {"left_eye_outer": 0, "right_eye_outer": 1, "nose_tip": 2},
        })
        landmarks = np.array([[0.0, 0.0], [100.0, 0.0], [95.0, 40.0]], dtype=np.float32)
        with pytest.raises(FaceNotFrontalError):
            validator.check([make_face(landmarks=landmarks)])


class TestDefaults:

    def test_default_thresholds(self):
        validator = CaptureValidator()
        assert validator.min_confidence == 0.70
        assert validator.min_face_area == 10000
        assert validator.max_pose_ratio == 0.30
        assert validator.landmark_scheme == LandmarkScheme(36, 45, 30)
