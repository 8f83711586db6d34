"""Tests for the end-to-end DTR recognition pipeline."""

import time
from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from src.directory.lookup import Company, Employee, InMemoryDirectory
from src.extraction.pipeline import DTRPipeline
from src.formats.registry import FormatRegistry
from src.preprocessing.pipeline import EnhancementOptions
from src.utils.config import AppConfig, ExtractionConfig, OCRConfig, PreprocessingConfig


def _pipeline(registry: FormatRegistry, **kwargs) -> DTRPipeline:
    config = kwargs.pop("config", AppConfig())
    return DTRPipeline(config, registry, **kwargs)


class TestProcessText:
    """Tests for recognition of OCR text."""

    def test_recognizes_standard_sheet(self, seeded_registry: FormatRegistry, standard_text: str) -> None:
        pipeline = _pipeline(seeded_registry)
        prediction = pipeline.process_text(standard_text)

        assert prediction.format_name == "Standard Format"
        assert prediction.date == "2023-05-15"
        assert prediction.time_in == "08:30"
        assert prediction.time_out == "17:30"
        assert prediction.regular_hours == 8.0
        assert prediction.needs_review is False
        assert prediction.intake_id is None
        assert pipeline.review_queue.list_all() == []

    def test_company_scope(self, seeded_registry: FormatRegistry, compact_text: str) -> None:
        pipeline = _pipeline(seeded_registry)
        assert pipeline.process_text(compact_text, company_id=2).format_name == "Compact DTR Format"
        assert pipeline.process_text(compact_text, company_id=3).is_new_format is True

    def test_unmatched_creates_exactly_one_intake(self, seeded_registry: FormatRegistry) -> None:
        pipeline = _pipeline(seeded_registry)
        text = "Visitor log\nArrived 03/07/2024 at 9:15 AM, left 11:00 AM"
        prediction = pipeline.process_text(text, company_id=4, image_data="aW1n")

        assert prediction.is_new_format is True
        assert prediction.needs_review is True
        assert prediction.confidence == pytest.approx(0.2)

        pending = pipeline.review_queue.list_pending()
        assert len(pending) == 1
        record = pending[0]
        assert prediction.intake_id == record.id
        assert record.raw_text == text
        assert record.company_id == 4
        assert record.image_data == "aW1n"
        assert record.parsed_data["date"] == "2024-03-07"
        assert record.parsed_data["time_in"] == "09:15"

    def test_approved_sample_is_recognized_next_time(self, registry: FormatRegistry) -> None:
        pipeline = _pipeline(registry)
        text = "Shift 2024-02-01 from 06:00 to 14:30"
        first = pipeline.process_text(text)
        assert first.is_new_format is True

        pipeline.review_queue.approve(
            first.intake_id,
            "Shift line",
            r"Shift\s+(\S+)\s+from\s+(\S+)\s+to\s+(\S+)",
            {"date": "$1", "timeIn": "$2", "timeOut": "$3"},
        )
        second = pipeline.process_text(text)
        assert second.is_new_format is False
        assert second.format_name == "Shift line"
        assert second.regular_hours == 7.5
        assert len(pipeline.review_queue.list_all()) == 1

    def test_low_confidence_match_is_queued(self, seeded_registry: FormatRegistry, standard_text: str) -> None:
        config = AppConfig(extraction=ExtractionConfig(matched_confidence=0.5))
        pipeline = _pipeline(seeded_registry, config=config)
        prediction = pipeline.process_text(standard_text)
        assert prediction.needs_review is True
        assert prediction.intake_id is not None
        assert pipeline.review_queue.get(prediction.intake_id).parsed_data["date"] == "2023-05-15"

    def test_low_confidence_intake_disabled(self, seeded_registry: FormatRegistry, standard_text: str) -> None:
        config = AppConfig(extraction=ExtractionConfig(matched_confidence=0.5, intake_low_confidence=False))
        pipeline = _pipeline(seeded_registry, config=config)
        prediction = pipeline.process_text(standard_text)
        assert prediction.needs_review is True
        assert prediction.intake_id is None


class TestEnrichment:
    """Tests for directory lookups after extraction."""

    def test_verified_employee(self, seeded_registry: FormatRegistry, compact_text: str) -> None:
        directory = InMemoryDirectory([Employee(12345, "Maria", "Santos", company_id=2)])
        pipeline = _pipeline(seeded_registry, directory=directory)
        prediction = pipeline.process_text(compact_text, company_id=2)
        assert prediction.employee_verified is True
        assert prediction.employee_name == "Maria Santos"

    def test_extracted_name_kept(self, seeded_registry: FormatRegistry, standard_text: str) -> None:
        directory = InMemoryDirectory(
            [Employee(12345, "Johnny", "Smith", company_id=9)], [Company(9, "Northwind")]
        )
        pipeline = _pipeline(seeded_registry, directory=directory)
        prediction = pipeline.process_text(standard_text)
        assert prediction.employee_name == "John Smith"
        assert prediction.company_id == 9

    def test_unknown_employee(self, seeded_registry: FormatRegistry, standard_text: str) -> None:
        pipeline = _pipeline(seeded_registry, directory=InMemoryDirectory())
        prediction = pipeline.process_text(standard_text)
        assert prediction.employee_verified is False

    def test_lookup_failure_tolerated(self, seeded_registry: FormatRegistry, standard_text: str) -> None:
        directory = MagicMock()
        directory.get_employee.side_effect = ConnectionError("directory down")
        pipeline = _pipeline(seeded_registry, directory=directory)
        prediction = pipeline.process_text(standard_text)
        assert prediction.date == "2023-05-15"
        assert prediction.employee_verified is False

    def test_uploader_company_used_as_scope(self, seeded_registry: FormatRegistry, compact_text: str) -> None:
        directory = InMemoryDirectory([Employee(7, "Ana", "Cruz", company_id=2)], [Company(2, "Acme")])
        pipeline = _pipeline(seeded_registry, directory=directory)
        prediction = pipeline.process_text(compact_text, employee_id=7)
        assert prediction.format_name == "Compact DTR Format"

    def test_unlisted_company_not_used_as_scope(
        self, seeded_registry: FormatRegistry, compact_text: str
    ) -> None:
        directory = InMemoryDirectory([Employee(7, "Ana", "Cruz", company_id=2)])
        pipeline = _pipeline(seeded_registry, directory=directory)
        prediction = pipeline.process_text(compact_text, employee_id=7)
        assert prediction.format_name != "Compact DTR Format"

    def test_unlisted_company_not_copied(self, seeded_registry: FormatRegistry, standard_text: str) -> None:
        directory = InMemoryDirectory([Employee(12345, "Johnny", "Smith", company_id=9)])
        pipeline = _pipeline(seeded_registry, directory=directory)
        prediction = pipeline.process_text(standard_text)
        assert prediction.employee_verified is True
        assert prediction.company_id is None

    def test_company_lookup_failure_tolerated(
        self, seeded_registry: FormatRegistry, standard_text: str
    ) -> None:
        directory = MagicMock()
        directory.get_employee.return_value = Employee(12345, "Johnny", "Smith", company_id=9)
        directory.get_company.side_effect = ConnectionError("directory down")
        pipeline = _pipeline(seeded_registry, directory=directory)
        prediction = pipeline.process_text(standard_text)
        assert prediction.employee_verified is True
        assert prediction.company_id is None
        directory.get_company.assert_called_with(9)


class TestProcessImage:
    """Tests for OCR-backed recognition."""

    def test_ocr_text_is_matched(
        self, seeded_registry: FormatRegistry, sample_image: np.ndarray, standard_text: str
    ) -> None:
        ocr = MagicMock()
        ocr.recognize_text.return_value = standard_text
        pipeline = _pipeline(seeded_registry, ocr_engine=ocr)
        prediction = pipeline.process_image(sample_image)
        assert prediction.format_name == "Standard Format"
        ocr.recognize_text.assert_called_once()

    def test_ocr_error_gives_zero_confidence(
        self, seeded_registry: FormatRegistry, sample_image: np.ndarray
    ) -> None:
        ocr = MagicMock()
        ocr.recognize_text.side_effect = RuntimeError("tesseract crashed")
        pipeline = _pipeline(seeded_registry, ocr_engine=ocr)
        prediction = pipeline.process_image(sample_image, company_id=2)

        assert prediction.confidence == 0.0
        assert prediction.raw_text == ""
        assert prediction.needs_review is True
        assert prediction.company_id == 2
        assert "tesseract crashed" in prediction.remarks
        assert pipeline.review_queue.list_all() == []

    def test_ocr_timeout(self, seeded_registry: FormatRegistry, sample_image: np.ndarray) -> None:
        ocr = MagicMock()
        ocr.recognize_text.side_effect = lambda image: time.sleep(1.0) or "late"
        config = AppConfig(ocr=OCRConfig(timeout_seconds=0.05))
        pipeline = _pipeline(seeded_registry, config=config, ocr_engine=ocr)
        prediction = pipeline.process_image(sample_image)
        assert prediction.confidence == 0.0
        assert "timed out" in prediction.remarks

    def test_no_ocr_engine(self, seeded_registry: FormatRegistry, sample_image: np.ndarray) -> None:
        prediction = _pipeline(seeded_registry).process_image(sample_image)
        assert prediction.confidence == 0.0
        assert prediction.needs_review is True

    def test_enhancement_failure_passes_original(
        self, seeded_registry: FormatRegistry, sample_image: np.ndarray, standard_text: str
    ) -> None:
        enhancer = MagicMock()
        enhancer.enhance.side_effect = MemoryError("too big")
        ocr = MagicMock()
        ocr.recognize_text.return_value = standard_text
        pipeline = _pipeline(seeded_registry, ocr_engine=ocr, enhancer=enhancer)

        prediction = pipeline.process_image(sample_image, options=EnhancementOptions(denoise=True))
        assert prediction.format_name == "Standard Format"
        passed = ocr.recognize_text.call_args.args[0]
        assert passed is sample_image

    def test_enhancement_timeout_passes_original(
        self, seeded_registry: FormatRegistry, sample_image: np.ndarray, standard_text: str
    ) -> None:
        enhancer = MagicMock()
        enhancer.enhance.side_effect = lambda image, options: time.sleep(1.0) or image
        ocr = MagicMock()
        ocr.recognize_text.return_value = standard_text
        config = AppConfig(preprocessing=PreprocessingConfig(timeout_seconds=0.05))
        pipeline = _pipeline(seeded_registry, config=config, ocr_engine=ocr, enhancer=enhancer)

        prediction = pipeline.process_image(sample_image)
        assert prediction.format_name == "Standard Format"


class TestProcessDocument:
    @patch("src.extraction.pipeline.load_pages")
    def test_each_page_processed(
        self,
        mock_load: MagicMock,
        seeded_registry: FormatRegistry,
        sample_image: np.ndarray,
        standard_text: str,
    ) -> None:
        mock_load.return_value = [sample_image, sample_image]
        ocr = MagicMock()
        ocr.recognize_text.side_effect = [standard_text, "blank page"]
        pipeline = _pipeline(seeded_registry, ocr_engine=ocr)

        predictions = pipeline.process_document(b"%PDF-1.4 fake")

        assert len(predictions) == 2
        assert predictions[0].format_name == "Standard Format"
        assert predictions[1].is_new_format is True
        record = pipeline.review_queue.get(predictions[1].intake_id)
        assert record.image_data == "JVBERi0xLjQgZmFrZQ=="

    @patch("src.extraction.pipeline.load_pages")
    def test_reads_path(
        self, mock_load: MagicMock, seeded_registry: FormatRegistry, sample_image: np.ndarray, tmp_path: Path
    ) -> None:
        path = tmp_path / "sheet.png"
        path.write_bytes(b"png-bytes")
        mock_load.return_value = [sample_image]
        pipeline = _pipeline(seeded_registry)
        predictions = pipeline.process_document(path)
        assert len(predictions) == 1
        mock_load.assert_called_once_with(path, dpi=300)

    def test_missing_path(self, seeded_registry: FormatRegistry, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            _pipeline(seeded_registry).process_document(tmp_path / "absent.png")
