"""Shared fixtures: fake detection models, stores and pipeline builders."""

from __future__ import annotations

import time
from typing import List, Optional, Sequence

import pytest

from car_image_validation import (
    Detection,
    DetectionModel,
    DuckDBImageHashStore,
    DuplicateRegistry,
    ObjectDetectionAdapter,
    ValidationPipeline,
    ValidationSettings,
)

CAR = Detection(label="car", confidence=0.92, bbox=(80.0, 60.0, 560.0, 420.0))
FULL_FRAME_CAR = Detection(label="car", confidence=0.88, bbox=(0.0, 0.0, 640.0, 480.0))
PERSON = Detection(label="person", confidence=0.81, bbox=(300.0, 100.0, 380.0, 400.0))


class FakeModel(DetectionModel):
    name = "fake"

    def __init__(
        self,
        detections: Sequence[Detection] = (CAR,),
        delay: float = 0.0,
        error: Optional[Exception] = None,
    ) -> None:
        self.detections = list(detections)
        self.delay = delay
        self.error = error
        self.calls = 0

    def detect(self, image) -> List[Detection]:
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.detections)


class FailingStore:
    """Store whose backing database is unreachable."""

    def get_owner_image_hashes(self, owner_id):
        raise ConnectionError("database unreachable")

    def record_accepted_image_hash(self, owner_id, listing_id, exact_hash, perceptual_hash):
        raise ConnectionError("database unreachable")


@pytest.fixture
def store():
    hash_store = DuckDBImageHashStore(":memory:")
    yield hash_store
    hash_store.close()


@pytest.fixture
def make_pipeline():
    def build(
        model: Optional[DetectionModel] = None,
        store=None,
        settings: Optional[ValidationSettings] = None,
        detector: Optional[ObjectDetectionAdapter] = None,
    ) -> ValidationPipeline:
        settings = settings or ValidationSettings()
        if detector is None:
            detector = ObjectDetectionAdapter.from_model(model or FakeModel(), settings=settings)
        return ValidationPipeline(
            registry=DuplicateRegistry(store, similarity_distance=settings.similarity_distance),
            detector=detector,
            settings=settings,
        )

    return build
