"""YOLO-based object detection on COCO classes."""

from __future__ import annotations

from typing import List

import numpy as np

from ..config import DEFAULT_MODEL_NAME
from ..types import Detection
from .base import DetectionModel

try:
    from ultralytics import YOLO
    YOLO_AVAILABLE = True
except ImportError:
    YOLO_AVAILABLE = False


class YOLOModel(DetectionModel):
    """Pretrained YOLO detector (COCO 80 classes) with lowercase labels."""

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL_NAME,
        confidence_threshold: float = 0.25,
        device: str = "cpu",
    ) -> None:
        """
        Initialize YOLO detector.

        Args:
            model_name: YOLO weights to load (yolov8n.pt, yolov8s.pt, a local path, ...)
            confidence_threshold: Minimum confidence for detections (0-1)
            device: Device to run inference on ('cpu' or 'cuda')
        """
        if not YOLO_AVAILABLE:
            raise ImportError(
                "ultralytics is not installed. Install it with: pip install ultralytics"
            )

        self.model = YOLO(model_name)
        self.name = model_name
        self.confidence_threshold = confidence_threshold
        self.device = device

    def detect(self, image: np.ndarray) -> List[Detection]:
        results = self.model(
            image,
            conf=self.confidence_threshold,
            device=self.device,
            verbose=False,
        )

        detections: List[Detection] = []
        for result in results or []:
            if result.boxes is None:
                continue
            for box in result.boxes:
                cls_id = int(box.cls[0])
                x1, y1, x2, y2 = [float(v) for v in box.xyxy[0].cpu().numpy()]
                detections.append(
                    Detection(
                        label=str(result.names.get(cls_id, f"class_{cls_id}")).lower(),
                        confidence=self._clip_confidence(float(box.conf[0])),
                        bbox=(x1, y1, x2, y2),
                    )
                )
        return detections
