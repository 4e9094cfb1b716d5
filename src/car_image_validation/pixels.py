"""Pixel statistics: resolution gate, color variance, edge density and brightness."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

import numpy as np

from .config import ValidationSettings
from .image_utils import fit_within, luminance
from .types import PixelMetrics

logger = logging.getLogger(__name__)

EdgeProgress = Callable[[float], None]


class PixelAnalyzer:
    """Derives :class:`PixelMetrics` from decoded pixels and scores them."""

    def __init__(self, settings: Optional[ValidationSettings] = None) -> None:
        self.settings = settings or ValidationSettings()

    def quick_reject(self, width: int, height: int) -> Optional[str]:
        """Return a rejection reason when the dimensions alone disqualify the image."""

        if width < self.settings.min_width or height < self.settings.min_height:
            return "resolution too low"
        low, high = self.settings.aspect_ratio_bounds
        aspect_ratio = width / float(height)
        if aspect_ratio < low or aspect_ratio > high:
            return "aspect ratio not suitable for a vehicle photo"
        return None

    async def analyze(
        self,
        pixels: np.ndarray,
        width: Optional[int] = None,
        height: Optional[int] = None,
        on_progress: Optional[EdgeProgress] = None,
    ) -> PixelMetrics:
        """Compute metrics, yielding to the event loop during edge detection.

        ``width``/``height`` are the original dimensions; statistics are
        computed on a working copy no larger than ``analysis_max_size``.
        """

        h, w = pixels.shape[:2]
        width = width or w
        height = height or h
        working = fit_within(pixels, self.settings.analysis_max_size)
        lum = luminance(working)

        variance = self.color_variance(lum)
        edge_density = await self.edge_density(lum, on_progress=on_progress)
        brightness = float(lum.mean())
        low, high = self.settings.brightness_bounds

        return PixelMetrics(
            width=int(width),
            height=int(height),
            aspect_ratio=width / float(height),
            color_variance=variance,
            edge_density=edge_density,
            average_brightness=brightness,
            is_well_lit=low <= brightness <= high,
        )

    def color_variance(self, lum: np.ndarray) -> float:
        samples = lum.reshape(-1)[:: max(1, self.settings.color_sample_stride)]
        if samples.size == 0:
            return 0.0
        return float(samples.var())

    async def edge_density(
        self, lum: np.ndarray, on_progress: Optional[EdgeProgress] = None
    ) -> float:
        """Fraction of pixels whose two-tap gradient magnitude exceeds the threshold.

        Rows are processed in chunks of roughly ``edge_chunk_pixels`` pixels;
        after every chunk control goes back to the event loop so cancellation
        and other pending work are served.
        """

        h, w = lum.shape[:2]
        if h < 2 or w < 2:
            return 0.0

        threshold_sq = self.settings.edge_gradient_threshold ** 2
        rows = h - 1
        rows_per_chunk = max(1, self.settings.edge_chunk_pixels // (w - 1))
        edge_count = 0

        for start in range(0, rows, rows_per_chunk):
            stop = min(rows, start + rows_per_chunk)
            current = lum[start:stop, : w - 1]
            gx = current - lum[start:stop, 1:w]
            gy = current - lum[start + 1 : stop + 1, : w - 1]
            edge_count += int(np.count_nonzero(gx * gx + gy * gy > threshold_sq))

            if on_progress is not None:
                on_progress(stop / rows)
            await asyncio.sleep(0)

        return edge_count / float(h * w)

    def score(self, metrics: PixelMetrics) -> float:
        """Confidence contribution of the pixel stage, clamped to [0, 1]."""

        confidence = 0.5
        if metrics.color_variance > self.settings.color_variance_threshold:
            confidence += 0.2
        if metrics.edge_density > self.settings.edge_density_threshold:
            confidence += 0.2
        if metrics.is_well_lit:
            confidence += 0.1
        low, high = self.settings.typical_aspect_ratio
        if low <= metrics.aspect_ratio <= high:
            confidence += 0.2
        logger.debug(
            "Pixel score %.2f (variance=%.1f, edges=%.4f, brightness=%.1f, aspect=%.2f)",
            confidence,
            metrics.color_variance,
            metrics.edge_density,
            metrics.average_brightness,
            metrics.aspect_ratio,
        )
        return float(max(0.0, min(1.0, confidence)))
