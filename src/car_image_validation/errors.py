"""Exception taxonomy for the validation pipeline."""

from __future__ import annotations

from .types import RejectionKind


class ValidationError(Exception):
    """Base class for every error raised by the validation stages."""


class RejectionError(ValidationError):
    """A condition that terminates validation with a user-facing reason."""

    kind: RejectionKind = RejectionKind.POLICY

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class FormatError(RejectionError):
    """Unsupported MIME type, extension or undecodable bytes."""

    kind = RejectionKind.FORMAT


class DecodeError(FormatError):
    """The image bytes could not be decoded into pixels."""

    def __init__(self, reason: str = "image could not be decoded") -> None:
        super().__init__(reason)


class SizeError(RejectionError):
    """File byte size outside the accepted bounds."""

    kind = RejectionKind.SIZE


class PolicyRejection(RejectionError):
    """Resolution, aspect ratio, filename, subject or duplicate policy violation."""

    kind = RejectionKind.POLICY


class InfrastructureFailure(ValidationError):
    """A collaborator (model, hash store) failed; validation degrades instead of stopping."""
