"""Combines stage scores into the final confidence and suggestions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Optional, Tuple

from .config import VEHICLE_LABELS, ValidationSettings
from .types import DetectionResult

DETAILED_SCORE = 1.0
FULL_FRAME_SCORE = 0.5

INSUFFICIENT_DETAIL_REASON = "photo details are insufficient"
NO_VEHICLE_REASON = "no distinct vehicle features detected"
GENERAL_VIEW_REASON = "photo shows the general car view"
UNVERIFIED_REASON = "vehicle features could not be verified"

SUGGESTIONS: Tuple[str, ...] = (
    "Take a photo where the whole vehicle is visible",
    "Shoot the photo in daylight",
    "Show the exterior of the vehicle clearly",
    "Make sure the photo resolution is high enough",
    "Shoot from an angle where the make and model are visible",
    "Highlight interior and exterior details of the vehicle",
)
DETAIL_SUGGESTION = (
    "Try photos of distinct parts of the vehicle such as headlights, steering wheel or dashboard"
)


@dataclass(frozen=True)
class AggregateScore:
    confidence: float
    is_valid: bool
    reason: Optional[str] = None
    suggestions: Tuple[str, ...] = ()


def detail_score(
    detections: DetectionResult,
    width: int,
    height: int,
    full_frame_ratio: float = 0.9,
    vehicle_labels: AbstractSet[str] = VEHICLE_LABELS,
) -> float:
    """1.0 when a vehicle appears inside a broader scene, 0.5 for full-frame crops.

    Also 0.5 when no vehicle was detected or the model could not run.
    """

    image_area = float(width * height)
    if image_area <= 0 or detections.degraded:
        return FULL_FRAME_SCORE
    for detection in detections.detections:
        if detection.label.lower() not in vehicle_labels:
            continue
        if detection.area < image_area * full_frame_ratio:
            return DETAILED_SCORE
    return FULL_FRAME_SCORE


class ScoreAggregator:
    """Averages the pixel, model and detail scores and applies the threshold."""

    def __init__(self, settings: Optional[ValidationSettings] = None) -> None:
        self.settings = settings or ValidationSettings()

    def detail_score(self, detections: DetectionResult, width: int, height: int) -> float:
        return detail_score(
            detections,
            width,
            height,
            self.settings.full_frame_ratio,
            self.settings.vehicle_labels,
        )

    def stage_reason(self, detections: DetectionResult, detail: float) -> Optional[str]:
        """Reason produced by the model and detail stages, if any."""
        if detections.degraded:
            return UNVERIFIED_REASON
        if not detections.has_vehicle:
            return NO_VEHICLE_REASON
        if detail <= FULL_FRAME_SCORE:
            return GENERAL_VIEW_REASON
        return None

    def aggregate(
        self,
        pixel_score: float,
        ai_score: float,
        detail: float,
        reason: Optional[str] = None,
    ) -> AggregateScore:
        confidence = (pixel_score + ai_score + detail) / 3.0
        confidence = float(max(0.0, min(1.0, confidence)))
        if confidence > self.settings.acceptance_threshold:
            return AggregateScore(confidence=confidence, is_valid=True)

        return AggregateScore(
            confidence=confidence,
            is_valid=False,
            reason=reason or INSUFFICIENT_DETAIL_REASON,
            suggestions=SUGGESTIONS + (DETAIL_SUGGESTION,),
        )
