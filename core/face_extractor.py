"""
Face Descriptor Extraction Module

This module wraps the face detection and descriptor model behind a small
capability interface. Given one decoded image, an extractor returns every
face it found, each with a bounding box, a detection confidence, facial
landmarks (68-point scheme) and a fixed-length identity descriptor.

The rest of the core only depends on the DescriptorExtractor interface, so
matching and enrollment can be tested with canned detections and the model
backend can be swapped without touching them.

Backend:
    - insightface (buffalo_l): SCRFD detection + 68-point landmarks +
      ArcFace R100 512-dim L2-normalized embeddings

Usage:
    from core.face_extractor import InsightFaceExtractor, decode_image_b64

    extractor = InsightFaceExtractor(config)
    image = decode_image_b64(request_image)
    faces = extractor.extract(image)
"""

import base64
import binascii
import logging
import math
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import cv2
import numpy as np

from core.errors import InvalidImageError, ModelLoadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoundingBox:
    """
    Face bounding box in pixel coordinates.

    Attributes:
        x: Left edge.
        y: Top edge.
        width: Box width.
        height: Box height.
    """

    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        """Box area in px^2."""
        return self.width * self.height

    @classmethod
    def from_corners(cls, x1: float, y1: float, x2: float, y2: float) -> "BoundingBox":
        """Build from (x1, y1, x2, y2) corner coordinates."""
        return cls(x=float(x1), y=float(y1), width=float(x2 - x1), height=float(y2 - y1))


@dataclass(frozen=True)
class DetectedFace:
    """
    One face found in one image. Transient, never persisted.

    Attributes:
        bbox: Bounding box of the face.
        confidence: Detector score in [0, 1].
        landmarks: Landmark points, shape (K, 2), in the 68-point scheme,
                   or None when the backend does not provide them.
        descriptor: Identity descriptor, shape (D,), float32, read-only.
    """

    bbox: BoundingBox
    confidence: float
    landmarks: Optional[np.ndarray]
    descriptor: np.ndarray

    def __post_init__(self):
        descriptor = as_descriptor(self.descriptor)
        object.__setattr__(self, "descriptor", descriptor)

        if self.landmarks is not None:
            landmarks = np.asarray(self.landmarks, dtype=np.float32)
            if landmarks.ndim != 2 or landmarks.shape[1] < 2:
                raise ValueError(f"landmarks must be (K, 2), got {landmarks.shape}")
            object.__setattr__(self, "landmarks", landmarks[:, :2])


def as_descriptor(values: Any) -> np.ndarray:
    """
    Convert a sequence of numbers to a read-only float32 descriptor.

    Args:
        values: Any 1-D array-like of numbers.

    Returns:
        Flattened float32 ndarray with writes disabled.
    """
    descriptor = np.array(values, dtype=np.float32).ravel()
    descriptor.setflags(write=False)
    return descriptor


class DescriptorExtractor(ABC):
    """
    Capability interface for the face detection + descriptor model.

    Implementations must not keep per-call mutable state: extract() is
    called concurrently for different users.
    """

    @abstractmethod
    def extract(self, image: np.ndarray) -> List[DetectedFace]:
        """
        Detect faces and compute their descriptors.

        Args:
            image: Decoded BGR image, shape (H, W, 3), uint8.

        Returns:
            Detected faces in detector order, empty if none were found.
        """
        pass

    @property
    def is_loaded(self) -> bool:
        """Whether the underlying model is ready."""
        return True


class InsightFaceExtractor(DescriptorExtractor):
    """
    Descriptor extractor backed by insightface's FaceAnalysis bundle.

    The buffalo_l bundle runs SCRFD for detection, a 68-point 3D landmark
    model and ArcFace for the identity embedding. The model is loaded on
    first use.

    Args:
        config: Dictionary with optional keys:
            - model: Model bundle name (default "buffalo_l")
            - device: "cuda" or "cpu" (default "cpu")
            - det_size: Detector input size (default [640, 640])
            - root: Model cache directory (insightface default if omitted)
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        if config is None:
            config = {}

        self.model_name = config.get("model", "buffalo_l")
        self.device = config.get("device", "cpu")
        self.det_size = tuple(config.get("det_size", (640, 640)))
        self.root = config.get("root")

        self._model = None
        self._load_lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def load_model(self) -> None:
        """Load the insightface model bundle. Safe to call repeatedly."""
        with self._load_lock:
            if self._model is not None:
                return

            if self.device == "cuda":
                providers = ["CUDAExecutionProvider", "CPUExecutionProvider"]
            else:
                providers = ["CPUExecutionProvider"]

            try:
                from insightface.app import FaceAnalysis

                kwargs = {"name": self.model_name, "providers": providers}
                if self.root:
                    kwargs["root"] = self.root
                model = FaceAnalysis(**kwargs)
                model.prepare(ctx_id=0 if self.device == "cuda" else -1, det_size=self.det_size)
            except Exception as e:
                logger.error(f"Failed to load face model {self.model_name}: {type(e).__name__}: {e}")
                raise ModelLoadError(
                    "Face model is unavailable, please try again later",
                    details={"model": self.model_name},
                ) from e

            self._model = model
            logger.info(f"InsightFaceExtractor loaded (model={self.model_name}, device={self.device})")

    def extract(self, image: np.ndarray) -> List[DetectedFace]:
        if self._model is None:
            self.load_model()

        faces = self._model.get(image)
        return [self._to_detected_face(face) for face in faces]

    @staticmethod
    def _to_detected_face(face: Any) -> DetectedFace:
        """Convert one insightface Face record."""
        x1, y1, x2, y2 = [float(v) for v in face.bbox[:4]]

        landmarks = getattr(face, "landmark_3d_68", None)
        if landmarks is not None:
            landmarks = np.asarray(landmarks)[:, :2]

        return DetectedFace(
            bbox=BoundingBox.from_corners(x1, y1, x2, y2),
            confidence=float(face.det_score),
            landmarks=landmarks,
            descriptor=face.normed_embedding,
        )


def decode_image(data: bytes, max_pixels: Optional[int] = None) -> np.ndarray:
    """
    Decode an encoded still frame (JPEG, PNG, ...) to a BGR array.

    Args:
        data: Encoded image bytes.
        max_pixels: If set, frames with more pixels are downscaled to fit.

    Returns:
        BGR numpy array of shape (H, W, 3).

    Raises:
        InvalidImageError: If the bytes are not a decodable image.
    """
    if not data:
        raise InvalidImageError("Empty image data")

    np_arr = np.frombuffer(data, np.uint8)
    image = cv2.imdecode(np_arr, cv2.IMREAD_COLOR)

    if image is None:
        raise InvalidImageError("Failed to decode image")

    if max_pixels:
        height, width = image.shape[:2]
        pixels = width * height
        if pixels > max_pixels:
            scale = math.sqrt(max_pixels / pixels)
            new_size = (max(1, int(width * scale)), max(1, int(height * scale)))
            logger.debug(f"Resizing image from {(width, height)} to {new_size}")
            image = cv2.resize(image, new_size, interpolation=cv2.INTER_AREA)

    return image


def decode_image_b64(frame_b64: str, max_pixels: Optional[int] = None) -> np.ndarray:
    """
    Decode a base64-encoded still frame to a BGR array.

    A "data:image/...;base64," prefix is tolerated.

    Raises:
        InvalidImageError: If the text is not valid base64 or not an image.
    """
    if "," in frame_b64 and frame_b64.lstrip().startswith("data:"):
        frame_b64 = frame_b64.split(",", 1)[1]

    try:
        data = base64.b64decode(frame_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageError("Image is not valid base64") from e

    return decode_image(data, max_pixels=max_pixels)


# Singleton instance for the extractor
_extractor_instance: Optional[DescriptorExtractor] = None


def get_extractor() -> DescriptorExtractor:
    """
    Get or create the shared extractor configured in config.yaml.

    The model itself is loaded lazily on the first extract() call.
    """
    global _extractor_instance

    if _extractor_instance is None:
        from core.config import get_face_extraction_config

        _extractor_instance = InsightFaceExtractor(get_face_extraction_config())

    return _extractor_instance
