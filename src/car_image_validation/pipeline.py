"""High level API that orchestrates every validation stage for one file."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from .config import ValidationSettings
from .detection import ObjectDetectionAdapter
from .errors import FormatError, PolicyRejection, RejectionError
from .filters import check_file_requirements
from .hashing import HashEngine
from .image_utils import decode_image
from .pixels import PixelAnalyzer
from .registry import DuplicateRegistry
from .scoring import SUGGESTIONS, ScoreAggregator
from .types import (
    DuplicateKind,
    DuplicateOutcome,
    ImageCandidate,
    ImageFingerprint,
    PipelineState,
    PixelMetrics,
    ProgressEvent,
    RejectionKind,
    StageScores,
    ValidationResult,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]

TIMEOUT_REASON = "validation timed out"
UNEXPECTED_REASON = "photo could not be analyzed"
LOOKUP_WARNING = "duplicate check could not be completed; the photo was not compared with your earlier listings"
MODEL_WARNING = "object detection was unavailable; a neutral confidence was used"
DUPLICATE_SUGGESTION = "Use a different photo"


def duplicate_reason(outcome: DuplicateOutcome) -> str:
    subject = "this photo" if outcome.kind is DuplicateKind.EXACT else "a very similar photo"
    record = outcome.matched_record
    if record is None:
        return f"{subject} was already added in this upload"
    return f'{subject} was already used in your listing "{record.listing_label}"'


@dataclass
class _RunState:
    warnings: List[str] = field(default_factory=list)
    fingerprint: Optional[ImageFingerprint] = None
    reserved: bool = False
    duplicate: Optional[DuplicateOutcome] = None
    metrics: Optional[PixelMetrics] = None


class ValidationJob:
    """Handle for one file's validation task.

    Cancelling stops the task at its next yield point; afterwards no progress
    event or result is delivered and :meth:`wait` returns ``None``.
    """

    def __init__(
        self,
        pipeline: "ValidationPipeline",
        candidate: ImageCandidate,
        owner_id: str,
        on_progress: Optional[ProgressCallback] = None,
        file_index: int = 0,
    ) -> None:
        self.candidate = candidate
        self.owner_id = owner_id
        self.file_index = file_index
        self.state = PipelineState.QUEUED
        self._on_progress = on_progress
        self._percentage = 0.0
        self._cancelled = False
        self._run = _RunState()
        self._task = asyncio.get_running_loop().create_task(pipeline._execute(self))

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        if self._task.done():
            return
        self._cancelled = True
        self._task.cancel()

    async def wait(self) -> Optional[ValidationResult]:
        try:
            return await self._task
        except asyncio.CancelledError:
            if self._cancelled:
                return None
            raise

    def advance(self, state: PipelineState, percentage: float, message: str) -> None:
        if self._cancelled:
            return
        self.state = state
        self._percentage = max(self._percentage, float(percentage))
        logger.debug("[%s] %s %.0f%% %s", self.candidate.display_name, state.value, self._percentage, message)
        if self._on_progress is not None:
            self._on_progress(
                ProgressEvent(
                    percentage=self._percentage,
                    message=message,
                    state=state,
                    file_index=self.file_index,
                )
            )


class ValidationPipeline:
    """Runs basic checks, duplicate lookup, pixel analysis and detection for a file.

    Collaborators are injected; nothing here is a process-wide singleton. The
    registry's session cache lives exactly as long as the registry passed in.
    """

    def __init__(
        self,
        registry: Optional[DuplicateRegistry] = None,
        detector: Optional[ObjectDetectionAdapter] = None,
        hash_engine: Optional[HashEngine] = None,
        pixel_analyzer: Optional[PixelAnalyzer] = None,
        aggregator: Optional[ScoreAggregator] = None,
        settings: Optional[ValidationSettings] = None,
    ) -> None:
        self.settings = settings or ValidationSettings()
        self.registry = registry or DuplicateRegistry(
            similarity_distance=self.settings.similarity_distance
        )
        self.detector = detector or ObjectDetectionAdapter(settings=self.settings)
        self.hash_engine = hash_engine or HashEngine()
        self.pixel_analyzer = pixel_analyzer or PixelAnalyzer(self.settings)
        self.aggregator = aggregator or ScoreAggregator(self.settings)

    def submit(
        self,
        candidate: ImageCandidate,
        owner_id: str,
        on_progress: Optional[ProgressCallback] = None,
        file_index: int = 0,
    ) -> ValidationJob:
        """Start validating ``candidate``; must be called from a running event loop."""
        return ValidationJob(self, candidate, owner_id, on_progress, file_index)

    async def validate(
        self,
        candidate: ImageCandidate,
        owner_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[ValidationResult]:
        return await self.submit(candidate, owner_id, on_progress).wait()

    async def validate_batch(
        self,
        candidates: Iterable[ImageCandidate],
        owner_id: str,
        on_progress: Optional[ProgressCallback] = None,
        on_job: Optional[Callable[[ValidationJob], None]] = None,
    ) -> List[Optional[ValidationResult]]:
        """Validate files one after another; ``None`` marks a cancelled file.

        ``candidates`` is consumed lazily, one file per validation.
        """
        results: List[Optional[ValidationResult]] = []
        for index, candidate in enumerate(candidates):
            job = self.submit(candidate, owner_id, on_progress, file_index=index)
            if on_job is not None:
                on_job(job)
            results.append(await job.wait())
        return results

    def session(self, owner_id: str) -> "UploadSession":
        return UploadSession(self, owner_id)

    async def warm_up(self) -> bool:
        """Load the detection model outside any per-file time budget."""
        return await asyncio.to_thread(self.detector.load)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _execute(self, job: ValidationJob) -> ValidationResult:
        result: Optional[ValidationResult] = None
        try:
            await self.warm_up()
            try:
                result = await asyncio.wait_for(self._run(job), timeout=self.settings.timeout_seconds)
            except asyncio.TimeoutError:
                result = self._rejected(job, TIMEOUT_REASON, RejectionKind.TIMEOUT)
            except RejectionError as exc:
                result = self._rejected(job, exc.reason, exc.kind)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Validation of %s failed unexpectedly", job.candidate.display_name)
                result = self._rejected(job, UNEXPECTED_REASON, None, tuple(SUGGESTIONS))
        finally:
            run = job._run
            if run.reserved and run.fingerprint is not None and not (result and result.is_valid):
                self.registry.release(job.owner_id, run.fingerprint)

        if result.is_valid:
            job.advance(PipelineState.ACCEPTED, 100, "photo accepted")
            logger.info("Accepted %s (confidence %.2f)", job.candidate.display_name, result.confidence)
        else:
            job.advance(PipelineState.REJECTED, 100, result.reason or "photo rejected")
            logger.info("Rejected %s: %s", job.candidate.display_name, result.reason)
        return result

    async def _run(self, job: ValidationJob) -> ValidationResult:
        candidate = job.candidate
        run = job._run
        job.advance(PipelineState.QUEUED, 0, "queued")

        exact_task = asyncio.ensure_future(
            asyncio.to_thread(self.hash_engine.compute_exact_hash, candidate.data)
        )
        try:
            job.advance(PipelineState.BASIC_CHECKS, 10, "running basic checks")
            check_file_requirements(candidate, self.settings)
            decoded = await asyncio.to_thread(decode_image, candidate.data)
            if decoded.format not in self.settings.accepted_formats:
                raise FormatError("unsupported file format; use JPG, PNG or WebP")
            reason = self.pixel_analyzer.quick_reject(decoded.width, decoded.height)
            if reason is not None:
                raise PolicyRejection(reason)

            job.advance(PipelineState.DUPLICATE_CHECK, 25, "checking for duplicates")
            perceptual = await asyncio.to_thread(
                self.hash_engine.compute_perceptual_hash, decoded.pixels
            )
            exact = await exact_task
            run.fingerprint = ImageFingerprint(exact=exact, perceptual=perceptual)
            run.duplicate = await self.registry.check(job.owner_id, exact, perceptual)
            if run.duplicate.is_duplicate:
                raise PolicyRejection(duplicate_reason(run.duplicate))
            run.reserved = True
            if run.duplicate.lookup_failed:
                run.warnings.append(LOOKUP_WARNING)

            job.advance(PipelineState.CONTENT_ANALYSIS, 35, "analyzing image content")
            run.metrics = await self.pixel_analyzer.analyze(
                decoded.pixels,
                decoded.width,
                decoded.height,
                on_progress=lambda fraction: job.advance(
                    PipelineState.CONTENT_ANALYSIS,
                    35 + 20 * fraction,
                    f"detecting edges ({int(fraction * 100)}%)",
                ),
            )
            pixel_score = self.pixel_analyzer.score(run.metrics)

            job.advance(PipelineState.MODEL_INFERENCE, 65, "running object detection")
            detections = await asyncio.to_thread(self.detector.detect, decoded.pixels)
            if detections.degraded:
                run.warnings.append(MODEL_WARNING)
            if detections.has_disallowed:
                raise PolicyRejection(
                    f"prohibited subject detected ({', '.join(detections.disallowed_labels)})"
                )
            ai_score = self.detector.ai_score(detections)

            job.advance(PipelineState.DETAIL_ANALYSIS, 80, "analyzing vehicle details")
            detail = self.aggregator.detail_score(detections, decoded.width, decoded.height)

            job.advance(PipelineState.AGGREGATED, 90, "combining scores")
            score = self.aggregator.aggregate(
                pixel_score, ai_score, detail, self.aggregator.stage_reason(detections, detail)
            )
        finally:
            if not exact_task.done():
                exact_task.cancel()

        return ValidationResult(
            is_valid=score.is_valid,
            confidence=score.confidence,
            reason=score.reason,
            suggestions=score.suggestions,
            rejection=None if score.is_valid else RejectionKind.LOW_CONFIDENCE,
            warnings=tuple(run.warnings),
            duplicate=run.duplicate,
            metrics=run.metrics,
            fingerprint=run.fingerprint,
            scores=StageScores(pixel=pixel_score, ai=ai_score, detail=detail),
        )

    def _rejected(
        self,
        job: ValidationJob,
        reason: str,
        kind: Optional[RejectionKind],
        suggestions: tuple = (),
    ) -> ValidationResult:
        run = job._run
        if run.duplicate is not None and run.duplicate.is_duplicate:
            suggestions = (DUPLICATE_SUGGESTION,)
        return ValidationResult(
            is_valid=False,
            confidence=0.0,
            reason=reason,
            suggestions=tuple(suggestions),
            rejection=kind,
            warnings=tuple(run.warnings),
            duplicate=run.duplicate,
            metrics=run.metrics,
            fingerprint=run.fingerprint,
        )


class UploadSession:
    """One seller's upload batch.

    The session cache entries of ``owner_id`` are dropped when the session
    closes; accepted fingerprints are persisted with :meth:`commit` once the
    listing exists.
    """

    def __init__(self, pipeline: ValidationPipeline, owner_id: str) -> None:
        self.pipeline = pipeline
        self.owner_id = owner_id
        self.results: List[ValidationResult] = []

    async def __aenter__(self) -> "UploadSession":
        await self.pipeline.warm_up()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def validate(
        self, candidate: ImageCandidate, on_progress: Optional[ProgressCallback] = None
    ) -> Optional[ValidationResult]:
        result = await self.pipeline.validate(candidate, self.owner_id, on_progress)
        if result is not None:
            self.results.append(result)
        return result

    async def validate_batch(
        self,
        candidates: Iterable[ImageCandidate],
        on_progress: Optional[ProgressCallback] = None,
        on_job: Optional[Callable[[ValidationJob], None]] = None,
    ) -> List[Optional[ValidationResult]]:
        results = await self.pipeline.validate_batch(
            candidates, self.owner_id, on_progress, on_job
        )
        self.results.extend(result for result in results if result is not None)
        return results

    async def commit(self, listing_id: str) -> int:
        """Persist every accepted fingerprint under ``listing_id``; returns how many."""
        count = 0
        for result in self.results:
            if result.is_valid and result.fingerprint is not None:
                await self.pipeline.registry.record_accepted(
                    self.owner_id, listing_id, result.fingerprint
                )
                count += 1
        return count

    def close(self) -> None:
        self.pipeline.registry.session.clear_owner(self.owner_id)
        self.results.clear()
