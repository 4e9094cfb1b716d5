"""Exact and perceptual image digests."""

from __future__ import annotations

import hashlib

import imagehash

from .image_utils import ImageInput, to_pil
from .types import ExactHash, ImageFingerprint, PerceptualHash

PERCEPTUAL_GRID = 8


def hamming_distance(a: PerceptualHash, b: PerceptualHash) -> int:
    return a.distance(b)


class HashEngine:
    """Computes the two digests used for duplicate detection.

    The exact hash is a SHA-256 over the raw upload bytes and is only used
    for identity. The perceptual hash is an average hash over an 8x8
    grayscale thumbnail: Pillow downsamples with the same LANCZOS filter on
    every call, so the same bytes always give the same 64 bits.
    """

    def __init__(self, grid_size: int = PERCEPTUAL_GRID) -> None:
        self.grid_size = grid_size

    def compute_exact_hash(self, data: bytes) -> ExactHash:
        """SHA-256 of the raw bytes.

        Never decodes, so undecodable bytes still get a digest; only
        :meth:`compute_perceptual_hash` raises ``DecodeError``.
        """
        return hashlib.sha256(data).hexdigest()

    def compute_perceptual_hash(self, image: ImageInput) -> PerceptualHash:
        """Average hash of ``image``; raises ``DecodeError`` for undecodable bytes."""

        thumb_hash = imagehash.average_hash(to_pil(image), hash_size=self.grid_size)
        value = 0
        for bit in thumb_hash.hash.flatten():
            value = (value << 1) | int(bool(bit))
        return PerceptualHash(value)

    def fingerprint(self, data: bytes, image: ImageInput | None = None) -> ImageFingerprint:
        return ImageFingerprint(
            exact=self.compute_exact_hash(data),
            perceptual=self.compute_perceptual_hash(data if image is None else image),
        )
