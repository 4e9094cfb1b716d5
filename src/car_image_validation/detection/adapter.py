"""Stable object detection interface over a lazily loaded model."""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

import numpy as np

from ..config import ValidationSettings
from ..types import Detection, DetectionResult
from .base import DetectionModel

logger = logging.getLogger(__name__)

ModelLoader = Callable[[], DetectionModel]

VEHICLE_CONFIDENCE = 0.9
AMBIGUOUS_CONFIDENCE = 0.4
# AI score used whenever the model could not run.
NEUTRAL_AI_CONFIDENCE = 0.75


def default_loader(settings: ValidationSettings) -> ModelLoader:
    def load() -> DetectionModel:
        from .yolo import YOLOModel

        return YOLOModel(
            model_name=settings.model_name,
            confidence_threshold=settings.model_confidence,
            device=settings.device,
        )

    return load


class ObjectDetectionAdapter:
    """Wraps a detection model and maps its labels onto domain buckets.

    The model is created on first use and then shared read-only by every
    validation. A failed load is remembered: later calls degrade immediately
    instead of retrying.
    """

    def __init__(
        self,
        loader: Optional[ModelLoader] = None,
        settings: Optional[ValidationSettings] = None,
    ) -> None:
        self.settings = settings or ValidationSettings()
        self._loader = loader or default_loader(self.settings)
        self._model: Optional[DetectionModel] = None
        self._load_error: Optional[str] = None
        self._lock = threading.Lock()

    @classmethod
    def from_model(
        cls, model: DetectionModel, settings: Optional[ValidationSettings] = None
    ) -> "ObjectDetectionAdapter":
        return cls(loader=lambda: model, settings=settings)

    @property
    def model_loaded(self) -> bool:
        return self._model is not None

    def load(self) -> bool:
        """Load the model now instead of on the first :meth:`detect`; returns availability."""
        return self._get_model() is not None

    def _get_model(self) -> Optional[DetectionModel]:
        if self._model is not None or self._load_error is not None:
            return self._model
        with self._lock:
            if self._model is None and self._load_error is None:
                try:
                    self._model = self._loader()
                    logger.info("Loaded detection model %s", getattr(self._model, "name", "model"))
                except Exception as exc:
                    self._load_error = f"{type(exc).__name__}: {exc}"
                    logger.warning("Detection model failed to load: %s", self._load_error)
        return self._model

    def detect(self, image: np.ndarray) -> DetectionResult:
        """Run the model and bucket its detections; never raises."""

        model = self._get_model()
        if model is None:
            return DetectionResult(degraded=True, error=f"model unavailable ({self._load_error})")

        try:
            detections = model.detect(image)
        except Exception as exc:
            logger.warning("Object detection failed: %s", exc)
            return DetectionResult(degraded=True, error=f"{type(exc).__name__}: {exc}")

        return self.categorize(detections)

    def categorize(self, detections: List[Detection]) -> DetectionResult:
        vehicle_count = 0
        disallowed: List[str] = []
        for detection in detections:
            label = detection.label.lower()
            if label in self.settings.vehicle_labels:
                vehicle_count += 1
            elif (
                label in self.settings.disallowed_labels
                and detection.confidence >= self.settings.disallowed_min_confidence
            ):
                disallowed.append(label)

        return DetectionResult(
            detections=tuple(detections),
            vehicle_count=vehicle_count,
            disallowed_count=len(disallowed),
            disallowed_labels=tuple(sorted(set(disallowed))),
        )

    @staticmethod
    def ai_score(result: DetectionResult) -> float:
        if result.degraded:
            return NEUTRAL_AI_CONFIDENCE
        return VEHICLE_CONFIDENCE if result.has_vehicle else AMBIGUOUS_CONFIDENCE
