"""Utility helpers for image decoding and preprocessing."""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Tuple, Union

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import DecodeError

ImageInput = Union[bytes, np.ndarray, Image.Image]


@dataclass(frozen=True)
class DecodedImage:
    """Pixels of an uploaded image together with what the decoder saw."""

    pixels: np.ndarray  # BGR, uint8
    format: str
    width: int
    height: int


def decode_image(data: bytes) -> DecodedImage:
    """Decode raw bytes into an OpenCV-compatible BGR ndarray."""

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            fmt = (img.format or "").upper()
            rgb = img.convert("RGB")
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError() from exc

    pixels = cv2.cvtColor(np.asarray(rgb), cv2.COLOR_RGB2BGR)
    height, width = pixels.shape[:2]
    return DecodedImage(pixels=pixels, format=fmt, width=int(width), height=int(height))


def to_pil(image_input: ImageInput) -> Image.Image:
    """Return an RGB Pillow image for any supported input."""

    if isinstance(image_input, Image.Image):
        return image_input.convert("RGB")
    if isinstance(image_input, np.ndarray):
        return Image.fromarray(cv2.cvtColor(ensure_color(image_input), cv2.COLOR_BGR2RGB))
    return Image.fromarray(cv2.cvtColor(decode_image(image_input).pixels, cv2.COLOR_BGR2RGB))


def ensure_color(image: np.ndarray) -> np.ndarray:
    """Ensure the ndarray is three-channel BGR."""

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image


def luminance(image: np.ndarray) -> np.ndarray:
    """Per-pixel mean of the three color channels as float32."""

    color = ensure_color(image)
    return color.astype(np.float32).mean(axis=2)


def fit_within(image: np.ndarray, max_size: Tuple[int, int]) -> np.ndarray:
    """Downscale so the image fits inside ``max_size`` (width, height); never upscales."""

    max_w, max_h = max_size
    h, w = image.shape[:2]
    scale = min(max_w / w, max_h / h, 1.0)
    if scale >= 1.0:
        return image
    new_w = max(1, int(round(w * scale)))
    new_h = max(1, int(round(h * scale)))
    return cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_AREA)
