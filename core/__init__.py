"""
Core Module for the Face Authentication Service

This package contains the face enrollment and verification core: capture
quality gating, template fusion, descriptor matching and template storage.

Main components:
    - config: Configuration loading and management
    - face_extractor: Face detection + descriptor extraction (insightface)
    - capture_validator: Single-face, confidence, size and pose checks
    - template_builder: Fuses enrollment descriptors into one template
    - matching: Euclidean descriptor matching with a calibrated threshold
    - template_manager: SQLite template store and auth log
    - enrollment_service: Enroll / re-enroll / disable / status
    - authentication_service: Verify a live capture against a template

Usage:
    from core.config import get_config
    from core.enrollment_service import get_enrollment_service
    from core.authentication_service import get_authentication_service
"""

from core.config import (
    get_config,
    get_section,
    get_face_extraction_config,
    get_capture_config,
    get_matching_config,
    get_enrollment_config,
    get_storage_config,
    get_api_config,
    get_server_config,
)

from core.face_extractor import (
    BoundingBox,
    DetectedFace,
    DescriptorExtractor,
    InsightFaceExtractor,
    decode_image,
    decode_image_b64,
    get_extractor,
)

from core.capture_validator import CaptureValidator, LandmarkScheme

from core.template_manager import (
    TemplateManager,
    FaceTemplate,
    get_template_manager,
)

from core.template_builder import (
    TemplateBuilder,
    fuse_descriptors,
    generate_template_id,
)

from core.matching import (
    MatchResult,
    EuclideanMatcher,
    euclidean_distance,
    confidence_from_distance,
)

from core.enrollment_service import (
    EnrollmentService,
    FaceAuthStatus,
    get_enrollment_service,
)

from core.authentication_service import (
    AuthenticationService,
    get_authentication_service,
)

__all__ = [
    # Configuration
    "get_config",
    "get_section",
    "get_face_extraction_config",
    "get_capture_config",
    "get_matching_config",
    "get_enrollment_config",
    "get_storage_config",
    "get_api_config",
    "get_server_config",
    # Extraction
    "BoundingBox",
    "DetectedFace",
    "DescriptorExtractor",
    "InsightFaceExtractor",
    "decode_image",
    "decode_image_b64",
    "get_extractor",
    # Validation
    "CaptureValidator",
    "LandmarkScheme",
    # Templates
    "TemplateManager",
    "FaceTemplate",
    "get_template_manager",
    "TemplateBuilder",
    "fuse_descriptors",
    "generate_template_id",
    # Matching
    "MatchResult",
    "EuclideanMatcher",
    "euclidean_distance",
    "confidence_from_distance",
    # Orchestrators
    "EnrollmentService",
    "FaceAuthStatus",
    "get_enrollment_service",
    "AuthenticationService",
    "get_authentication_service",
]
