"""Detection exports."""

from .adapter import NEUTRAL_AI_CONFIDENCE, ObjectDetectionAdapter
from .base import DetectionModel

__all__ = [
    "DetectionModel",
    "NEUTRAL_AI_CONFIDENCE",
    "ObjectDetectionAdapter",
]
