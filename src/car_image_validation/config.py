"""Validation thresholds and environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import FrozenSet, Optional, Tuple

from dotenv import load_dotenv

MIN_FILE_SIZE = 100_000  # bytes
MAX_FILE_SIZE = 50 * 1024 * 1024

ACCEPTED_MIME_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp"})
ACCEPTED_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "webp"})
ACCEPTED_FORMATS = frozenset({"JPEG", "PNG", "WEBP"})

PROHIBITED_FILENAME_KEYWORDS = frozenset(
    {
        "person", "people", "face", "human", "kişi", "insan",
        "food", "yemek", "animal", "hayvan", "building", "bina",
        "screenshot", "ekran", "logo", "text", "document",
    }
)

VEHICLE_LABELS = frozenset({"car", "truck", "bus"})
DISALLOWED_LABELS = frozenset(
    {
        "person",
        "bird", "cat", "dog", "horse", "sheep", "cow",
        "elephant", "bear", "zebra", "giraffe",
    }
)

DEFAULT_MODEL_NAME = "yolov8n.pt"


@dataclass(frozen=True)
class ValidationSettings:
    """Every tunable threshold of the pipeline in one place."""

    min_file_size: int = MIN_FILE_SIZE
    max_file_size: int = MAX_FILE_SIZE
    accepted_mime_types: FrozenSet[str] = ACCEPTED_MIME_TYPES
    accepted_extensions: FrozenSet[str] = ACCEPTED_EXTENSIONS
    accepted_formats: FrozenSet[str] = ACCEPTED_FORMATS
    prohibited_keywords: FrozenSet[str] = PROHIBITED_FILENAME_KEYWORDS

    min_width: int = 640
    min_height: int = 480
    aspect_ratio_bounds: Tuple[float, float] = (0.3, 4.0)
    typical_aspect_ratio: Tuple[float, float] = (1.2, 2.5)
    analysis_max_size: Tuple[int, int] = (800, 600)

    color_sample_stride: int = 4
    color_variance_threshold: float = 222.0
    edge_gradient_threshold: float = 30.0
    edge_density_threshold: float = 0.002
    edge_chunk_pixels: int = 5000
    brightness_bounds: Tuple[float, float] = (50.0, 200.0)

    vehicle_labels: FrozenSet[str] = VEHICLE_LABELS
    disallowed_labels: FrozenSet[str] = DISALLOWED_LABELS
    disallowed_min_confidence: float = 0.5
    full_frame_ratio: float = 0.9

    similarity_distance: int = 10
    acceptance_threshold: float = 0.7
    timeout_seconds: Optional[float] = 30.0

    model_name: str = DEFAULT_MODEL_NAME
    model_confidence: float = 0.25
    device: str = "cpu"

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "ValidationSettings":
        """Build settings from ``CAR_IMAGE_*`` variables, reading ``.env`` first."""
        load_dotenv(env_file or Path.cwd() / ".env")
        settings = cls()
        overrides: dict = {}
        for name, cast in (
            ("similarity_distance", int),
            ("acceptance_threshold", float),
            ("timeout_seconds", float),
            ("model_name", str),
            ("model_confidence", float),
            ("device", str),
            ("min_file_size", int),
            ("max_file_size", int),
            ("disallowed_min_confidence", float),
        ):
            raw = os.environ.get(f"CAR_IMAGE_{name.upper()}")
            if raw is None or not raw.strip():
                continue
            try:
                overrides[name] = cast(raw.strip())
            except ValueError as exc:
                raise ValueError(f"Invalid value for CAR_IMAGE_{name.upper()}: {raw!r}") from exc
        if overrides.get("timeout_seconds", 1.0) <= 0:
            overrides["timeout_seconds"] = None
        return replace(settings, **overrides)
