"""Validate every photo in a folder and write a JSON report."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import mimetypes
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Sequence

from .config import ValidationSettings
from .detection import ObjectDetectionAdapter
from .pipeline import ValidationPipeline
from .registry import DuplicateRegistry
from .stores import DuckDBImageHashStore, ImageHashStore, NullImageHashStore
from .types import ImageCandidate, ProgressEvent, ValidationResult

logger = logging.getLogger(__name__)

mimetypes.add_type("image/webp", ".webp")

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif", ".bmp", ".tiff"}


def find_images(folder: Path) -> List[Path]:
    """Image-looking files of ``folder``, sorted by name.

    Unsupported formats are included on purpose so the report shows why they
    were rejected.
    """
    return sorted(
        path for path in folder.iterdir() if path.is_file() and path.suffix.lower() in IMAGE_EXTENSIONS
    )


def load_candidate(path: Path) -> ImageCandidate:
    mime_type, _ = mimetypes.guess_type(path.name)
    return ImageCandidate(
        data=path.read_bytes(),
        mime_type=mime_type or "application/octet-stream",
        filename=path.name,
    )


def result_to_dict(name: str, result: ValidationResult) -> dict:
    item = {
        "image": name,
        "confidence": round(result.confidence, 4),
    }
    if result.reason:
        item["reason"] = result.reason
    if result.rejection is not None:
        item["rejection"] = result.rejection.value
    if result.suggestions:
        item["suggestions"] = list(result.suggestions)
    if result.warnings:
        item["warnings"] = list(result.warnings)
    if result.scores is not None:
        item["scores"] = {
            "pixel": round(result.scores.pixel, 4),
            "ai": round(result.scores.ai, 4),
            "detail": round(result.scores.detail, 4),
        }
    if result.fingerprint is not None:
        item["exact_hash"] = result.fingerprint.exact
        item["perceptual_hash"] = result.fingerprint.perceptual.hex()
    return item


def build_report(names: Sequence[str], results: Sequence[Optional[ValidationResult]], threshold: float) -> dict:
    accepted = []
    rejected = []
    for name, result in zip(names, results):
        if result is None:
            continue
        target = accepted if result.is_valid else rejected
        target.append(result_to_dict(name, result))
    return {
        "accepted": accepted,
        "rejected": rejected,
        "summary": {
            "total": len(names),
            "accepted_count": len(accepted),
            "rejected_count": len(rejected),
            "acceptance_threshold": threshold,
        },
    }


def print_progress(names: Sequence[str]):
    def callback(event: ProgressEvent) -> None:
        name = names[event.file_index] if event.file_index < len(names) else "?"
        print(f"  [{event.file_index + 1}/{len(names)}] {name}: {event.percentage:5.1f}% {event.message}")

    return callback


def print_summary(report: dict) -> None:
    summary = report["summary"]
    print("\n" + "=" * 80)
    print("Validation summary")
    print("=" * 80)
    print(f"Total photos: {summary['total']}")
    print(f"  - accepted: {summary['accepted_count']}")
    print(f"  - rejected: {summary['rejected_count']}")
    for item in report["rejected"]:
        print(f"    {item['image']}: {item.get('reason', 'rejected')}")
    print("=" * 80)


async def validate_folder(
    folder: Path,
    owner_id: str,
    settings: ValidationSettings,
    store: ImageHashStore,
    listing_id: Optional[str] = None,
    verbose: bool = False,
    detector: Optional[ObjectDetectionAdapter] = None,
) -> dict:
    images = find_images(folder)
    if not images:
        logger.warning("No image files found in %s", folder)
        return build_report([], [], settings.acceptance_threshold)

    names = [path.name for path in images]
    pipeline = ValidationPipeline(
        registry=DuplicateRegistry(store, similarity_distance=settings.similarity_distance),
        detector=detector,
        settings=settings,
    )

    print(f"Found {len(images)} photos in {folder}\n")
    async with pipeline.session(owner_id) as session:
        results = await session.validate_batch(
            (load_candidate(path) for path in images),
            on_progress=print_progress(names) if verbose else None,
        )
        if listing_id is not None:
            stored = await session.commit(listing_id)
            logger.info("Recorded %d accepted photos under listing %s", stored, listing_id)
    return build_report(names, results, settings.acceptance_threshold)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="validate-car-images",
        description="Validate vehicle listing photos in a folder.",
    )
    parser.add_argument("folder", type=Path, help="Folder containing the photos")
    parser.add_argument("--owner", default="local", help="Uploader id used for duplicate checks")
    parser.add_argument("--db", type=Path, help="DuckDB file holding previously accepted hashes")
    parser.add_argument("--listing", help="Record accepted photos under this listing id (requires --db)")
    parser.add_argument("--model", help="YOLO weights to load")
    parser.add_argument("--device", choices=("cpu", "cuda"), help="Inference device")
    parser.add_argument("--threshold", type=float, help="Acceptance threshold (0-1)")
    parser.add_argument("--output", type=Path, default=Path("validation_results.json"))
    parser.add_argument("--verbose", "-v", action="store_true", help="Print per-stage progress")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.listing and args.db is None:
        parser.error("--listing requires --db")
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.folder.is_dir():
        logger.error("Folder does not exist: %s", args.folder)
        return 1

    settings = ValidationSettings.from_env()
    overrides = {}
    if args.model:
        overrides["model_name"] = args.model
    if args.device:
        overrides["device"] = args.device
    if args.threshold is not None:
        overrides["acceptance_threshold"] = args.threshold
    settings = replace(settings, **overrides)

    store: ImageHashStore = DuckDBImageHashStore(args.db) if args.db else NullImageHashStore()
    try:
        report = asyncio.run(
            validate_folder(
                args.folder,
                args.owner,
                settings,
                store,
                listing_id=args.listing,
                verbose=args.verbose,
            )
        )
    finally:
        if isinstance(store, DuckDBImageHashStore):
            store.close()

    print_summary(report)
    with open(args.output, "w", encoding="utf-8") as f:
        json.dump(report, f, ensure_ascii=False, indent=2)
    print(f"Results saved to: {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
