"""
Matching Module for Face Authentication

This package compares a live face descriptor against an enrolled template.

Components:
    - interfaces: MatchResult and the DescriptorMatcher base class
    - euclidean_matcher: Euclidean distance + threshold decision

Usage:
    from core.matching import EuclideanMatcher

    matcher = EuclideanMatcher(get_matching_config())
    result = matcher.compare(template.descriptor, face.descriptor)
"""

from core.matching.interfaces import (
    MAX_DISTANCE_SENTINEL,
    MatchResult,
    DescriptorMatcher,
)
from core.matching.euclidean_matcher import (
    EuclideanMatcher,
    euclidean_distance,
    confidence_from_distance,
)

__all__ = [
    # Data classes
    "MatchResult",
    "MAX_DISTANCE_SENTINEL",
    # Abstract interfaces
    "DescriptorMatcher",
    # Implementations
    "EuclideanMatcher",
    "euclidean_distance",
    "confidence_from_distance",
]
