"""Helpers that generate synthetic photos for pipeline tests."""

from __future__ import annotations

import io
from typing import Optional, Tuple

import cv2
import numpy as np
from PIL import Image

from car_image_validation.types import ImageCandidate

Color = Tuple[int, int, int]

GRID = 8
HIGH_LEVELS = (170, 210)
LOW_LEVELS = (40, 80)

HALF_SPLIT = 0xF0F0F0F0F0F0F0F0
COLUMN_STRIPES = 0xAAAAAAAAAAAAAAAA


def create_blank_image(width: int = 640, height: int = 480, color: Color = (128, 128, 128)) -> np.ndarray:
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:] = color
    return image


def add_noise(image: np.ndarray, sigma: float = 6.0, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    noisy = image.astype(np.float32) + rng.normal(0.0, sigma, image.shape)
    return np.clip(noisy, 0, 255).astype(np.uint8)


def create_block_scene(
    mask: int = HALF_SPLIT,
    width: int = 640,
    height: int = 480,
    noise: float = 6.0,
    seed: int = 0,
) -> np.ndarray:
    """8x8 grid of gray blocks; bit ``i`` of ``mask`` (row-major, MSB first) marks a bright block.

    Neighbouring blocks always differ by at least 40 levels so the scene has
    plenty of edges, and its average hash follows ``mask``.
    """

    image = create_blank_image(width, height)
    block_w = width // GRID
    block_h = height // GRID
    for row in range(GRID):
        for col in range(GRID):
            bit = (mask >> (GRID * GRID - 1 - (row * GRID + col))) & 1
            levels = HIGH_LEVELS if bit else LOW_LEVELS
            level = levels[(row + col) % 2]
            image[row * block_h : (row + 1) * block_h, col * block_w : (col + 1) * block_w] = level
    if noise:
        image = add_noise(image, noise, seed)
    return image


def create_dull_scene(width: int = 640, height: int = 480, level: int = 30, seed: int = 0) -> np.ndarray:
    """Dark, flat, noisy frame: no edges, no color spread, badly lit."""

    return add_noise(create_blank_image(width, height, (level, level, level)), 8.0, seed)


def encode_png(image: np.ndarray) -> bytes:
    ok, buffer = cv2.imencode(".png", image)
    assert ok
    return buffer.tobytes()


def encode_jpeg(image: np.ndarray, quality: int = 95, min_size: Optional[int] = None) -> bytes:
    ok, buffer = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, quality])
    assert ok
    data = buffer.tobytes()
    if min_size is not None and len(data) < min_size:
        data = pad_to(data, min_size)
    return data


def encode_pil(image: np.ndarray, fmt: str) -> bytes:
    buffer = io.BytesIO()
    Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGR2RGB)).save(buffer, format=fmt)
    return buffer.getvalue()


def pad_to(data: bytes, size: int) -> bytes:
    """Append trailing bytes after the end-of-image marker; decoders ignore them."""

    assert len(data) <= size
    return data + b"\0" * (size - len(data))


def png_candidate(image: np.ndarray, filename: str = "car.png") -> ImageCandidate:
    return ImageCandidate(data=encode_png(image), mime_type="image/png", filename=filename)


def jpeg_candidate(image: np.ndarray, filename: str = "car.jpg", min_size: int = 100_000) -> ImageCandidate:
    return ImageCandidate(
        data=encode_jpeg(image, min_size=min_size), mime_type="image/jpeg", filename=filename
    )


def crop(image: np.ndarray, margin: float = 0.01) -> np.ndarray:
    """Trim ``margin`` of the width and height from every side."""

    height, width = image.shape[:2]
    dx = int(round(width * margin))
    dy = int(round(height * margin))
    return image[dy : height - dy, dx : width - dx].copy()
