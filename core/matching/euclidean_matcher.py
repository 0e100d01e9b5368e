"""
Euclidean Matcher: compare face descriptors by Euclidean distance.

The decision rule is ``distance < threshold``. The threshold belongs to the
descriptor space of the extractor in use and is read from the matching
section of config.yaml.

Missing descriptors and length mismatches never raise here. They return the
maximum-distance sentinel so a corrupted template can never produce a match.
"""

import logging
import math
from typing import Any, Dict, Optional

import numpy as np

from core.errors import DescriptorLengthMismatchError, MissingTemplateError
from core.matching.interfaces import MAX_DISTANCE_SENTINEL, DescriptorMatcher, MatchResult

logger = logging.getLogger(__name__)

DEFAULT_DISTANCE_THRESHOLD = 0.6


def euclidean_distance(a: Optional[np.ndarray], b: Optional[np.ndarray]) -> float:
    """
    Euclidean distance between two descriptors.

    Returns MAX_DISTANCE_SENTINEL when either descriptor is absent or the
    lengths differ.
    """
    if a is None or b is None:
        return MAX_DISTANCE_SENTINEL

    a = np.asarray(a, dtype=np.float64).ravel()
    b = np.asarray(b, dtype=np.float64).ravel()

    if a.shape[0] != b.shape[0]:
        return MAX_DISTANCE_SENTINEL

    return float(np.sqrt(np.sum((a - b) ** 2)))


def confidence_from_distance(distance: float) -> int:
    """
    Map a distance to a display confidence in [0, 100].

    confidence = round(max(0, (1 - distance) * 100)), rounding halves up.
    """
    value = max(0.0, (1.0 - distance) * 100.0)
    return int(min(100, math.floor(value + 0.5)))


class EuclideanMatcher(DescriptorMatcher):
    """
    Threshold matcher over Euclidean descriptor distance.

    Args:
        config: Dictionary with optional keys:
            - distance_threshold: Match when distance is below this (default 0.6)
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        if config is None:
            config = {}
        self.threshold = float(config.get("distance_threshold", DEFAULT_DISTANCE_THRESHOLD))

    def compare(
        self,
        template_descriptor: Optional[np.ndarray],
        live_descriptor: Optional[np.ndarray],
    ) -> MatchResult:
        # --- Input validation ---
        if template_descriptor is None or len(template_descriptor) == 0:
            logger.error("Template descriptor is missing, failing closed")
            return self._fail_closed(MissingTemplateError.code)

        if live_descriptor is None or len(live_descriptor) == 0:
            logger.error("Live descriptor is missing, failing closed")
            return self._fail_closed(MissingTemplateError.code)

        if len(template_descriptor) != len(live_descriptor):
            logger.error(
                f"Descriptor length mismatch: template={len(template_descriptor)}, "
                f"live={len(live_descriptor)}"
            )
            return self._fail_closed(
                DescriptorLengthMismatchError.code,
                template_dim=len(template_descriptor),
                live_dim=len(live_descriptor),
            )

        distance = euclidean_distance(template_descriptor, live_descriptor)

        return MatchResult(
            is_match=distance < self.threshold,
            distance=distance,
            confidence_percent=confidence_from_distance(distance),
            details={
                "method": "euclidean",
                "threshold": self.threshold,
                "descriptor_dim": len(live_descriptor),
            },
        )

    def _fail_closed(self, error_code: str, **extra: Any) -> MatchResult:
        return MatchResult(
            is_match=False,
            distance=MAX_DISTANCE_SENTINEL,
            confidence_percent=confidence_from_distance(MAX_DISTANCE_SENTINEL),
            details={"method": "euclidean", "threshold": self.threshold, "error": error_code, **extra},
        )
