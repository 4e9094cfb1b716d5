"""Tests for detail scoring and aggregation."""

from __future__ import annotations

import pytest

from car_image_validation.config import ValidationSettings
from car_image_validation.scoring import (
    DETAIL_SUGGESTION,
    GENERAL_VIEW_REASON,
    INSUFFICIENT_DETAIL_REASON,
    NO_VEHICLE_REASON,
    SUGGESTIONS,
    UNVERIFIED_REASON,
    ScoreAggregator,
    detail_score,
)
from car_image_validation.types import DetectionResult

from .conftest import CAR, FULL_FRAME_CAR, PERSON


def _result(*detections, degraded=False) -> DetectionResult:
    return DetectionResult(detections=tuple(detections), degraded=degraded)


def test_vehicle_inside_scene_is_detailed():
    assert detail_score(_result(CAR), 640, 480) == 1.0


def test_full_frame_vehicle_scores_half():
    assert detail_score(_result(FULL_FRAME_CAR), 640, 480) == 0.5


def test_any_partial_vehicle_wins():
    assert detail_score(_result(FULL_FRAME_CAR, CAR), 640, 480) == 1.0


def test_no_vehicle_or_degraded_scores_half():
    assert detail_score(_result(PERSON), 640, 480) == 0.5
    assert detail_score(_result(), 640, 480) == 0.5
    assert detail_score(_result(CAR, degraded=True), 640, 480) == 0.5


def test_aggregate_above_threshold_is_valid():
    score = ScoreAggregator().aggregate(1.0, 0.9, 0.8)
    assert score.is_valid
    assert score.confidence == pytest.approx(0.9)
    assert score.reason is None
    assert score.suggestions == ()


def test_aggregate_below_threshold_suggests_improvements():
    score = ScoreAggregator().aggregate(0.5, 0.4, 0.4)
    assert not score.is_valid
    assert score.confidence == pytest.approx(0.4333, abs=1e-3)
    assert score.reason == INSUFFICIENT_DETAIL_REASON
    assert score.suggestions[: len(SUGGESTIONS)] == SUGGESTIONS
    assert score.suggestions[-1] == DETAIL_SUGGESTION


def test_threshold_itself_is_not_enough():
    score = ScoreAggregator(ValidationSettings(acceptance_threshold=0.5)).aggregate(0.5, 0.5, 0.5)
    assert not score.is_valid


def test_threshold_is_configurable():
    aggregator = ScoreAggregator(ValidationSettings(acceptance_threshold=0.5))
    assert aggregator.aggregate(0.7, 0.4, 0.5).is_valid


def test_upstream_reason_is_kept():
    score = ScoreAggregator().aggregate(0.5, 0.4, 0.5, reason="too dark")
    assert score.reason == "too dark"


@pytest.mark.parametrize(
    ("result", "detail", "expected"),
    [
        (DetectionResult(degraded=True), 0.5, UNVERIFIED_REASON),
        (DetectionResult(), 0.5, NO_VEHICLE_REASON),
        (DetectionResult(detections=(FULL_FRAME_CAR,), vehicle_count=1), 0.5, GENERAL_VIEW_REASON),
        (DetectionResult(detections=(CAR,), vehicle_count=1), 1.0, None),
    ],
)
def test_stage_reason(result, detail, expected):
    assert ScoreAggregator().stage_reason(result, detail) == expected
