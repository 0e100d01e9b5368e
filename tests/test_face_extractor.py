"""
Tests for the face extraction module.

The insightface model is not loaded. These tests cover:
- Image decoding helpers (raw bytes and base64)
- DetectedFace / BoundingBox normalization
- Conversion of insightface Face records
- Model load failures

Run with: pytest tests/test_face_extractor.py -v
"""

import base64
import sys
from types import SimpleNamespace
from unittest.mock import patch

import cv2
import numpy as np
import pytest

from core.errors import DetectionFailedError, InvalidImageError, ModelLoadError
from core.face_extractor import (
    BoundingBox,
    DetectedFace,
    InsightFaceExtractor,
    decode_image,
    decode_image_b64,
)


def encode_png(width=32, height=24):
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:, :, 2] = 200
    ok, buffer = cv2.imencode(".png", image)
    assert ok
    return buffer.tobytes()


class TestDecodeImage:

    def test_decode_png(self):
        image = decode_image(encode_png())
        assert image.shape == (24, 32, 3)
        assert image.dtype == np.uint8

    def test_empty_bytes(self):
        with pytest.raises(InvalidImageError):
            decode_image(b"")

    def test_garbage_bytes(self):
        with pytest.raises(InvalidImageError) as exc_info:
            decode_image(b"definitely not an image")
        assert exc_info.value.http_status == 400

    def test_downscale_large_frame(self):
        image = decode_image(encode_png(width=400, height=200), max_pixels=20000)
        height, width = image.shape[:2]
        assert width * height <= 20000
        assert width == 200 and height == 100

    def test_small_frame_untouched(self):
        image = decode_image(encode_png(), max_pixels=20000)
        assert image.shape == (24, 32, 3)


class TestDecodeImageB64:

    def test_plain_base64(self):
        text = base64.b64encode(encode_png()).decode("ascii")
        assert decode_image_b64(text).shape == (24, 32, 3)

    def test_data_url_prefix(self):
        text = "data:image/png;base64," + base64.b64encode(encode_png()).decode("ascii")
        assert decode_image_b64(text).shape == (24, 32, 3)

    def test_invalid_base64(self):
        with pytest.raises(InvalidImageError):
            decode_image_b64("not base64 at all!!")

    def test_valid_base64_not_an_image(self):
        with pytest.raises(InvalidImageError):
            decode_image_b64(base64.b64encode(b"hello world").decode("ascii"))


class TestDataclasses:

    def test_bbox_from_corners(self):
        bbox = BoundingBox.from_corners(10, 20, 110, 170)
        assert (bbox.x, bbox.y, bbox.width, bbox.height) == (10.0, 20.0, 100.0, 150.0)
        assert bbox.area == 15000.0

    def test_detected_face_normalizes_arrays(self):
        face = DetectedFace(
            bbox=BoundingBox(0, 0, 10, 10),
            confidence=0.9,
            landmarks=np.ones((68, 3)),
            descriptor=[0.1] * 512,
        )

        assert face.descriptor.dtype == np.float32
        assert face.descriptor.shape == (512,)
        assert not face.descriptor.flags.writeable
        assert face.landmarks.shape == (68, 2)

    def test_detected_face_rejects_flat_landmarks(self):
        with pytest.raises(ValueError):
            DetectedFace(BoundingBox(0, 0, 1, 1), 0.9, np.zeros(10), np.zeros(4))


class TestInsightFaceExtractor:

    def test_not_loaded_on_creation(self):
        extractor = InsightFaceExtractor({"model": "buffalo_l"})
        assert extractor.is_loaded is False
        assert extractor.det_size == (640, 640)

    def test_face_record_conversion(self):
        embedding = np.linspace(-1, 1, 512).astype(np.float32)
        embedding /= np.linalg.norm(embedding)
        record = SimpleNamespace(
            bbox=np.array([10.0, 20.0, 130.0, 170.0]),
            det_score=np.float32(0.93),
            landmark_3d_68=np.random.rand(68, 3).astype(np.float32),
            normed_embedding=embedding,
        )

        face = InsightFaceExtractor._to_detected_face(record)

        assert face.bbox.width == pytest.approx(120.0)
        assert face.bbox.height == pytest.approx(150.0)
        assert face.confidence == pytest.approx(0.93)
        assert face.landmarks.shape == (68, 2)
        assert face.descriptor.shape == (512,)
        assert np.linalg.norm(face.descriptor) == pytest.approx(1.0, abs=1e-5)

    def test_face_record_without_landmarks(self):
        record = SimpleNamespace(
            bbox=np.array([0.0, 0.0, 100.0, 100.0]),
            det_score=0.8,
            normed_embedding=np.zeros(512),
        )
        face = InsightFaceExtractor._to_detected_face(record)
        assert face.landmarks is None

    def test_extract_uses_loaded_model(self):
        extractor = InsightFaceExtractor()
        record = SimpleNamespace(
            bbox=np.array([0.0, 0.0, 100.0, 100.0]),
            det_score=0.95,
            landmark_3d_68=np.zeros((68, 3)),
            normed_embedding=np.zeros(512),
        )
        extractor._model = SimpleNamespace(get=lambda image: [record, record])

        faces = extractor.extract(np.zeros((8, 8, 3), dtype=np.uint8))

        assert len(faces) == 2
        assert faces[0].confidence == pytest.approx(0.95)

    def test_model_load_failure(self):
        extractor = InsightFaceExtractor()

        with patch.dict(sys.modules, {"insightface": None, "insightface.app": None}):
            with pytest.raises(ModelLoadError) as exc_info:
                extractor.load_model()

        assert isinstance(exc_info.value, DetectionFailedError)
        assert exc_info.value.code == "MODEL_LOAD_FAILED"
        assert extractor.is_loaded is False
        assert exc_info.value.details == {"model": "buffalo_l"}
        assert "insightface" not in exc_info.value.message
