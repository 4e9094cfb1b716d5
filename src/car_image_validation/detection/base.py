"""Base detection model definitions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

import numpy as np

from ..types import Detection


class DetectionModel(ABC):
    """Abstract pretrained object detector returning labelled boxes."""

    name: str = "model"

    @abstractmethod
    def detect(self, image: np.ndarray) -> List[Detection]:
        """Return every object found in a BGR image."""

    def _clip_confidence(self, value: float) -> float:
        return float(max(0.0, min(1.0, value)))
