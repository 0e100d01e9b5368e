"""
Template Builder Module

Fuses the descriptors of several validated enrollment captures into one
reference descriptor and wraps it in a new FaceTemplate.

Fusion is the element-wise arithmetic mean. It is deterministic and does not
depend on capture order; no outlier rejection is applied.

Usage:
    from core.template_builder import TemplateBuilder

    template = TemplateBuilder().build(user_id, [face.descriptor for face in faces])
"""

import uuid
from datetime import datetime, timezone
from typing import Optional, Sequence

import numpy as np

from core.errors import DescriptorLengthMismatchError
from core.face_extractor import as_descriptor
from core.template_manager import FaceTemplate


def fuse_descriptors(descriptors: Sequence[np.ndarray]) -> np.ndarray:
    """
    Average descriptors element-wise.

    Args:
        descriptors: One or more 1-D descriptors of equal length.

    Returns:
        The fused float32 descriptor. A single input is returned unchanged.

    Raises:
        ValueError: If no descriptors are given.
        DescriptorLengthMismatchError: If the lengths differ.
    """
    if len(descriptors) == 0:
        raise ValueError("Cannot fuse an empty list of descriptors")

    vectors = [as_descriptor(d) for d in descriptors]
    if len(vectors) == 1:
        return vectors[0]

    lengths = sorted({len(v) for v in vectors})
    if len(lengths) > 1:
        raise DescriptorLengthMismatchError(
            "Enrollment descriptors have different lengths",
            details={"lengths": lengths},
        )

    # float64 accumulation keeps the mean independent of summation order
    fused = np.mean(np.stack(vectors).astype(np.float64), axis=0)
    return as_descriptor(fused)


def generate_template_id(user_id: str, created_at: datetime) -> str:
    """
    Generate a unique template ID.

    Format: "face_<user_id>_<epoch millis>_<6 random hex chars>". Owner and
    creation time can be read back from the ID when auditing.
    """
    millis = int(created_at.timestamp() * 1000)
    return f"face_{user_id}_{millis}_{uuid.uuid4().hex[:6]}"


class TemplateBuilder:
    """Builds FaceTemplate records from validated capture descriptors."""

    def build(
        self,
        user_id: str,
        descriptors: Sequence[np.ndarray],
        created_at: Optional[datetime] = None,
    ) -> FaceTemplate:
        """
        Fuse descriptors and assign a fresh template ID.

        Args:
            user_id: Owner of the template.
            descriptors: Descriptors of the validated captures.
            created_at: Creation time (defaults to now, UTC).

        Returns:
            A new FaceTemplate, not yet persisted.
        """
        if created_at is None:
            created_at = datetime.now(timezone.utc)

        return FaceTemplate(
            user_id=user_id,
            template_id=generate_template_id(user_id, created_at),
            descriptor=fuse_descriptors(descriptors),
            created_at=created_at,
            n_captures=len(descriptors),
        )
