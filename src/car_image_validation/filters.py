"""Basic file checks that run before any pixel is decoded."""

from __future__ import annotations

import re
from typing import Optional

from .config import ValidationSettings
from .errors import FormatError, PolicyRejection, SizeError
from .types import ImageCandidate

_TOKEN_SPLIT = re.compile(r"[^\w]+|_|\d+")


def filename_extension(filename: str) -> str:
    _, dot, ext = filename.rpartition(".")
    return ext.lower() if dot else ""


def prohibited_keyword(filename: str, settings: ValidationSettings) -> Optional[str]:
    """Return the first prohibited keyword appearing as a word of the file stem."""

    stem = filename.rsplit(".", 1)[0].lower()
    for token in _TOKEN_SPLIT.split(stem):
        if token in settings.prohibited_keywords:
            return token
    return None


def check_file_requirements(candidate: ImageCandidate, settings: ValidationSettings) -> None:
    """Raise the matching rejection for size, type or filename problems."""

    if candidate.size < settings.min_file_size:
        raise SizeError(f"photo is too small; it must be at least {settings.min_file_size // 1000} KB")
    if candidate.size > settings.max_file_size:
        raise SizeError(
            f"photo is too large; it can be at most {settings.max_file_size // (1024 * 1024)} MB"
        )

    mime_type = (candidate.mime_type or "").strip().lower()
    if mime_type not in settings.accepted_mime_types:
        raise FormatError("unsupported file format; use JPG, PNG or WebP")

    if candidate.filename:
        if filename_extension(candidate.filename) not in settings.accepted_extensions:
            raise FormatError("unsupported file format; use JPG, PNG or WebP")
        keyword = prohibited_keyword(candidate.filename, settings)
        if keyword is not None:
            raise PolicyRejection("file name is not suitable for a vehicle photo")
