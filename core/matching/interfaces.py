"""
Matching Interfaces Module

This module defines the result type and the abstract interface for comparing
a live face descriptor against an enrolled template descriptor.

Usage:
    from core.matching.interfaces import MatchResult, DescriptorMatcher
"""

import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


# Distance reported when descriptors cannot be compared
MAX_DISTANCE_SENTINEL = 1.0


@dataclass
class MatchResult:
    """
    Result of comparing a live descriptor against a template.

    Attributes:
        is_match: True when the distance is under the decision threshold.
        distance: Euclidean distance between the descriptors (>= 0).
                  Lower means more similar.
        confidence_percent: Monotonic display value in [0, 100] derived from
                            the distance. Good for ordering, not a probability.
        details: Algorithm-specific details for logging and debugging.
                 Never contains the descriptors themselves.
    """

    is_match: bool
    distance: float
    confidence_percent: int
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def error(self) -> Optional[str]:
        """Data-integrity error code when the comparison failed closed."""
        return self.details.get("error")


class DescriptorMatcher(ABC):
    """
    Abstract base class for template-vs-live descriptor matching.

    Implementations must fail closed: a missing or malformed descriptor
    produces a non-match, never an exception and never a spurious match.
    """

    @abstractmethod
    def compare(
        self,
        template_descriptor: Optional[np.ndarray],
        live_descriptor: Optional[np.ndarray],
    ) -> MatchResult:
        """
        Compare an enrolled descriptor with a freshly captured one.

        Args:
            template_descriptor: Fused descriptor from the stored template.
                                 Shape: (D,).
            live_descriptor: Descriptor of the validated live capture.
                             Shape: (D,).

        Returns:
            MatchResult with distance, confidence and decision.
        """
        pass
