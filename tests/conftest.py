"""
Shared fixtures for the face authentication tests.

The face model is never loaded here. FakeExtractor hands out canned
DetectedFace lists in call order, which is enough to drive validation,
fusion, matching and the orchestrators end to end.
"""

import os
import sys
from typing import List, Optional, Sequence, Union

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.face_extractor import BoundingBox, DescriptorExtractor, DetectedFace
from core.template_manager import TemplateManager


DESCRIPTOR_DIM = 128


def frontal_landmarks(nose_x: float = 150.0) -> np.ndarray:
    """68-point landmarks with outer eye corners at x=100 and x=200."""
    landmarks = np.zeros((68, 2), dtype=np.float32)
    landmarks[:, 1] = 120.0
    landmarks[36] = (100.0, 100.0)
    landmarks[45] = (200.0, 100.0)
    landmarks[30] = (nose_x, 150.0)
    return landmarks


def make_face(
    descriptor: Optional[Sequence[float]] = None,
    confidence: float = 0.99,
    width: float = 200.0,
    height: float = 200.0,
    landmarks: Optional[np.ndarray] = None,
    with_landmarks: bool = True,
) -> DetectedFace:
    """Build a DetectedFace that passes every capture rule unless told otherwise."""
    if descriptor is None:
        descriptor = np.zeros(DESCRIPTOR_DIM, dtype=np.float32)
    if landmarks is None and with_landmarks:
        landmarks = frontal_landmarks()

    return DetectedFace(
        bbox=BoundingBox(x=50.0, y=50.0, width=width, height=height),
        confidence=confidence,
        landmarks=landmarks,
        descriptor=descriptor,
    )


FakeResult = Union[List[DetectedFace], Exception]


class FakeExtractor(DescriptorExtractor):
    """
    Extractor returning scripted results in call order.

    Each script entry is either the face list for one call or an exception
    to raise. Once the script runs out, the last entry repeats.
    """

    def __init__(self, script: Sequence[FakeResult]):
        self.script = list(script)
        self.calls = 0

    def extract(self, image: np.ndarray) -> List[DetectedFace]:
        index = min(self.calls, len(self.script) - 1)
        self.calls += 1
        result = self.script[index]
        if isinstance(result, Exception):
            raise result
        return list(result)


def image_stub(seed: int = 0) -> np.ndarray:
    """Tiny BGR frame, the fake extractor never looks at it."""
    return np.full((8, 8, 3), seed % 256, dtype=np.uint8)


@pytest.fixture
def template_manager(tmp_path):
    """TemplateManager over a fresh SQLite file."""
    manager = TemplateManager(str(tmp_path / "face_auth.sqlite"))
    yield manager
    manager.close()
