"""Common types used throughout the validation pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

ExactHash = str
BoundingBox = Tuple[float, float, float, float]  # x1, y1, x2, y2

PERCEPTUAL_HASH_BITS = 64


@dataclass(frozen=True)
class ImageCandidate:
    """A single upload attempt as handed over by the upload queue."""

    data: bytes
    mime_type: str
    filename: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def display_name(self) -> str:
        return self.filename or "<unnamed>"


@dataclass(frozen=True)
class PerceptualHash:
    """Similarity-preserving 64-bit signature of an image."""

    value: int

    def distance(self, other: "PerceptualHash") -> int:
        return (self.value ^ other.value).bit_count()

    def hex(self) -> str:
        return f"{self.value & ((1 << PERCEPTUAL_HASH_BITS) - 1):016x}"

    @classmethod
    def from_hex(cls, raw: str) -> "PerceptualHash":
        return cls(int(raw, 16))

    def __str__(self) -> str:
        return self.hex()


@dataclass(frozen=True)
class ImageFingerprint:
    """Both digests of one image."""

    exact: ExactHash
    perceptual: PerceptualHash


@dataclass(frozen=True)
class Detection:
    """A single labelled box returned by the object detection model."""

    label: str
    confidence: float
    bbox: BoundingBox

    @property
    def area(self) -> float:
        x1, y1, x2, y2 = self.bbox
        return max(0.0, x2 - x1) * max(0.0, y2 - y1)


@dataclass(frozen=True)
class DetectionResult:
    """Model output mapped onto the vehicle / disallowed buckets."""

    detections: Tuple[Detection, ...] = ()
    vehicle_count: int = 0
    disallowed_count: int = 0
    disallowed_labels: Tuple[str, ...] = ()
    degraded: bool = False
    error: Optional[str] = None

    @property
    def has_vehicle(self) -> bool:
        return self.vehicle_count > 0

    @property
    def has_disallowed(self) -> bool:
        return self.disallowed_count > 0


@dataclass(frozen=True)
class PixelMetrics:
    """Derived pixel statistics of a decoded image."""

    width: int
    height: int
    aspect_ratio: float
    color_variance: float
    edge_density: float
    average_brightness: float
    is_well_lit: bool


@dataclass(frozen=True)
class DuplicateRecord:
    """A previously accepted image hash owned by a listing."""

    owner_id: str
    listing_id: str
    exact_hash: ExactHash
    perceptual_hash: PerceptualHash
    brand: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None

    @property
    def listing_label(self) -> str:
        parts = [str(part) for part in (self.brand, self.model, self.year) if part]
        return " ".join(parts) if parts else f"listing {self.listing_id}"


class DuplicateKind(str, Enum):
    """How a candidate matched an earlier image."""

    EXACT = "exact"
    SIMILAR = "similar"
    NONE = "none"


@dataclass(frozen=True)
class DuplicateOutcome:
    """Result of a duplicate registry lookup."""

    kind: DuplicateKind = DuplicateKind.NONE
    matched_record: Optional[DuplicateRecord] = None
    distance: Optional[int] = None
    lookup_failed: bool = False

    @property
    def is_duplicate(self) -> bool:
        return self.kind is not DuplicateKind.NONE


class PipelineState(str, Enum):
    """States a single file passes through during validation."""

    QUEUED = "queued"
    BASIC_CHECKS = "basic_checks"
    DUPLICATE_CHECK = "duplicate_check"
    CONTENT_ANALYSIS = "content_analysis"
    MODEL_INFERENCE = "model_inference"
    DETAIL_ANALYSIS = "detail_analysis"
    AGGREGATED = "aggregated"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.ACCEPTED, PipelineState.REJECTED)


class RejectionKind(str, Enum):
    """Why a result was rejected."""

    FORMAT = "format"
    SIZE = "size"
    POLICY = "policy"
    LOW_CONFIDENCE = "low_confidence"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class ProgressEvent:
    """A progress notification for one file."""

    percentage: float
    message: str
    state: PipelineState
    file_index: int = 0


@dataclass(frozen=True)
class StageScores:
    """Per-stage contributions to the final confidence."""

    pixel: float
    ai: float
    detail: float


@dataclass(frozen=True)
class ValidationResult:
    """Final, immutable verdict for one candidate image."""

    is_valid: bool
    confidence: float
    reason: Optional[str] = None
    suggestions: Tuple[str, ...] = ()
    rejection: Optional[RejectionKind] = None
    warnings: Tuple[str, ...] = ()
    duplicate: Optional[DuplicateOutcome] = None
    metrics: Optional[PixelMetrics] = None
    fingerprint: Optional[ImageFingerprint] = None
    scores: Optional[StageScores] = None

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)
