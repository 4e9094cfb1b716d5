"""Tests for the folder validation command."""

from __future__ import annotations

import asyncio
import json

import pytest

from car_image_validation import ObjectDetectionAdapter, ValidationSettings
from car_image_validation.cli import build_report, find_images, load_candidate, main, validate_folder
from car_image_validation.stores import DuckDBImageHashStore, NullImageHashStore

from . import image_factory as factory
from .conftest import FakeModel


def _populate(folder):
    (folder / "front.png").write_bytes(factory.encode_png(factory.create_block_scene()))
    (folder / "small.png").write_bytes(factory.encode_png(factory.create_block_scene(width=600)))
    (folder / "notes.txt").write_text("not a photo")


def test_find_images_skips_other_files(tmp_path):
    _populate(tmp_path)
    assert [path.name for path in find_images(tmp_path)] == ["front.png", "small.png"]


def test_load_candidate_guesses_mime_type(tmp_path):
    _populate(tmp_path)
    candidate = load_candidate(tmp_path / "front.png")
    assert candidate.mime_type == "image/png"
    assert candidate.filename == "front.png"


def test_validate_folder_builds_report(tmp_path):
    _populate(tmp_path)
    settings = ValidationSettings()
    detector = ObjectDetectionAdapter.from_model(FakeModel(), settings=settings)

    report = asyncio.run(
        validate_folder(tmp_path, "local", settings, NullImageHashStore(), detector=detector)
    )

    assert [item["image"] for item in report["accepted"]] == ["front.png"]
    assert [item["image"] for item in report["rejected"]] == ["small.png"]
    assert report["summary"]["total"] == 2
    assert report["rejected"][0]["rejection"] == "policy"


def test_validate_folder_commits_to_listing(tmp_path):
    _populate(tmp_path)
    settings = ValidationSettings()
    detector = ObjectDetectionAdapter.from_model(FakeModel(), settings=settings)
    store = DuckDBImageHashStore(":memory:")
    try:
        asyncio.run(
            validate_folder(tmp_path, "local", settings, store, listing_id="L1", detector=detector)
        )
        [record] = store.get_owner_image_hashes("local")
        assert record.listing_id == "L1"
    finally:
        store.close()


def test_empty_report():
    report = build_report([], [], 0.7)
    assert report == {
        "accepted": [],
        "rejected": [],
        "summary": {"total": 0, "accepted_count": 0, "rejected_count": 0, "acceptance_threshold": 0.7},
    }


def test_main_rejects_missing_folder(tmp_path):
    assert main([str(tmp_path / "missing")]) == 1


def test_main_writes_json_for_empty_folder(tmp_path):
    output = tmp_path / "out.json"
    folder = tmp_path / "photos"
    folder.mkdir()

    assert main([str(folder), "--output", str(output)]) == 0
    assert json.loads(output.read_text(encoding="utf-8"))["summary"]["total"] == 0


def test_listing_requires_a_database(tmp_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main([str(tmp_path), "--listing", "L1"])
    assert excinfo.value.code == 2
    assert "--listing requires --db" in capsys.readouterr().err


def test_report_includes_stage_scores(tmp_path):
    _populate(tmp_path)
    settings = ValidationSettings()
    detector = ObjectDetectionAdapter.from_model(FakeModel(), settings=settings)

    report = asyncio.run(
        validate_folder(tmp_path, "local", settings, NullImageHashStore(), detector=detector)
    )

    assert report["accepted"][0]["scores"] == {"pixel": 1.0, "ai": 0.9, "detail": 1.0}
    assert "scores" not in report["rejected"][0]
