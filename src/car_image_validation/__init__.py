"""Public exports for the car image validation package."""

from .config import ValidationSettings
from .detection import DetectionModel, ObjectDetectionAdapter
from .hashing import HashEngine
from .pipeline import UploadSession, ValidationJob, ValidationPipeline
from .pixels import PixelAnalyzer
from .registry import DuplicateRegistry, SessionHashCache
from .scoring import ScoreAggregator
from .stores import DuckDBImageHashStore, ImageHashStore, NullImageHashStore
from .types import (
    Detection,
    DetectionResult,
    DuplicateKind,
    DuplicateOutcome,
    DuplicateRecord,
    ImageCandidate,
    ImageFingerprint,
    PerceptualHash,
    PipelineState,
    PixelMetrics,
    ProgressEvent,
    RejectionKind,
    StageScores,
    ValidationResult,
)

__all__ = [
    "Detection",
    "DetectionModel",
    "DetectionResult",
    "DuckDBImageHashStore",
    "DuplicateKind",
    "DuplicateOutcome",
    "DuplicateRecord",
    "DuplicateRegistry",
    "HashEngine",
    "ImageCandidate",
    "ImageFingerprint",
    "ImageHashStore",
    "NullImageHashStore",
    "ObjectDetectionAdapter",
    "PerceptualHash",
    "PipelineState",
    "PixelAnalyzer",
    "PixelMetrics",
    "ProgressEvent",
    "RejectionKind",
    "ScoreAggregator",
    "SessionHashCache",
    "StageScores",
    "UploadSession",
    "ValidationJob",
    "ValidationPipeline",
    "ValidationResult",
    "ValidationSettings",
]
