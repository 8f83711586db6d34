"""End-to-end DTR recognition: image or text in, prediction out.

Each document is matched against one snapshot of the active formats.
Unmatched documents are quarantined for review. OCR and enhancement
run under timeouts; their failures degrade the result instead of
raising.
"""

import base64
from pathlib import Path
from typing import Protocol

import numpy as np

from src.core.exceptions import CollaboratorError
from src.directory.lookup import DirectoryLookup
from src.formats.registry import FormatRegistry
from src.formats.review import ReviewQueue
from src.ocr.document_loader import load_pages
from src.preprocessing.pipeline import EnhancementOptions, ImageEnhancer
from src.utils.config import AppConfig
from src.utils.logger import get_logger
from src.utils.timeout import call_with_timeout

from .field_extractor import DTRPrediction, FieldExtractor
from .format_matcher import FormatMatcher

logger = get_logger(__name__)


class TextRecognizer(Protocol):
    def recognize_text(self, image: np.ndarray) -> str:
        raise NotImplementedError


class DTRPipeline:
    """Wires the matcher, extractor, review queue and collaborators.

    Args:
        config: Application configuration.
        registry: Shared format registry.
        review_queue: Queue for unmatched samples. Built from the
            registry when omitted.
        ocr_engine: Image-to-text collaborator; required for images only.
        enhancer: Pre-OCR image enhancement.
        directory: Employee/company lookup for enrichment.
    """

    def __init__(
        self,
        config: AppConfig,
        registry: FormatRegistry,
        review_queue: ReviewQueue | None = None,
        ocr_engine: TextRecognizer | None = None,
        enhancer: ImageEnhancer | None = None,
        directory: DirectoryLookup | None = None,
    ) -> None:
        self.config = config
        self.registry = registry
        self.review_queue = review_queue or ReviewQueue(registry)
        self.matcher = FormatMatcher(registry)
        self.extractor = FieldExtractor(config.extraction)
        self.ocr_engine = ocr_engine
        self.enhancer = enhancer or ImageEnhancer(config.preprocessing)
        self.directory = directory

    def process_text(
        self,
        raw_text: str,
        company_id: int | None = None,
        employee_id: int | None = None,
        image_data: str | None = None,
    ) -> DTRPrediction:
        """Recognize and extract one document's OCR text.

        Args:
            raw_text: OCR output.
            company_id: Company scope for format selection.
            employee_id: Uploading employee; their company is used as the
                scope when ``company_id`` is not given.
            image_data: Base64 source image, stored with intake records.

        Returns:
            The prediction. Unmatched documents carry the id of the
            intake record created for them.
        """
        company_id = self._company_hint(company_id, employee_id)
        formats = self.registry.list_active(company_id)
        found = self.matcher.match(raw_text, formats)

        if found is None:
            prediction = self.extractor.unmatched(raw_text, company_id)
            record = self.review_queue.intake(
                raw_text,
                company_id=company_id,
                image_data=image_data,
                parsed_data=self.extractor.best_effort(raw_text),
            )
            prediction.intake_id = record.id
            return prediction

        prediction = self.extractor.extract(raw_text, found.format, found.captures)
        if prediction.company_id is None:
            prediction.company_id = company_id
        self._enrich(prediction)

        if (
            self.config.extraction.intake_low_confidence
            and prediction.confidence < self.config.extraction.accept_threshold
        ):
            record = self.review_queue.intake(
                raw_text,
                company_id=prediction.company_id,
                image_data=image_data,
                parsed_data=prediction.parsed_fields(),
            )
            prediction.intake_id = record.id
        return prediction

    def process_image(
        self,
        image: np.ndarray,
        company_id: int | None = None,
        employee_id: int | None = None,
        options: EnhancementOptions | None = None,
        image_data: str | None = None,
    ) -> DTRPrediction:
        """Enhance, OCR and extract a single page image.

        An OCR failure or timeout yields a prediction with zero
        confidence flagged for review; no intake record is created since
        there is no text to review.
        """
        enhanced = self._enhance(image, options)
        if self.ocr_engine is None:
            return self.extractor.failed("OCR engine is not configured", company_id)

        try:
            raw_text = call_with_timeout(
                self.ocr_engine.recognize_text, self.config.ocr.timeout_seconds, enhanced
            )
        except CollaboratorError as exc:
            logger.warning("OCR failed: %s", exc)
            return self.extractor.failed(f"OCR failed: {exc}", company_id)

        return self.process_text(raw_text, company_id, employee_id, image_data)

    def process_document(
        self,
        source: Path | bytes,
        company_id: int | None = None,
        employee_id: int | None = None,
        options: EnhancementOptions | None = None,
    ) -> list[DTRPrediction]:
        """Process every page of an image or PDF upload.

        Raises:
            FileNotFoundError: If ``source`` is a missing path.
            RuntimeError: If the document cannot be decoded.
        """
        content = source if isinstance(source, bytes) else Path(source).read_bytes()
        image_data = base64.b64encode(content).decode("ascii")
        pages = load_pages(source, dpi=self.config.ocr.pdf_dpi)
        logger.info("Processing DTR document with %d page(s)", len(pages))
        return [
            self.process_image(page, company_id, employee_id, options, image_data)
            for page in pages
        ]

    def _enhance(self, image: np.ndarray, options: EnhancementOptions | None) -> np.ndarray:
        try:
            return call_with_timeout(
                self.enhancer.enhance, self.config.preprocessing.timeout_seconds, image, options
            )
        except CollaboratorError as exc:
            logger.warning("Enhancement skipped: %s", exc)
            return image

    def _company_hint(self, company_id: int | None, employee_id: int | None) -> int | None:
        if company_id is not None or employee_id is None or self.directory is None:
            return company_id
        employee = self._lookup_employee(employee_id)
        if employee is None or not self._known_company(employee.company_id):
            return None
        return employee.company_id

    def _enrich(self, prediction: DTRPrediction) -> None:
        if prediction.employee_id is None or self.directory is None:
            return
        employee = self._lookup_employee(prediction.employee_id)
        if employee is None:
            return
        prediction.employee_verified = True
        if not prediction.employee_name:
            prediction.employee_name = employee.full_name
        if prediction.company_id is None and self._known_company(employee.company_id):
            prediction.company_id = employee.company_id

    def _lookup_employee(self, employee_id: int):
        try:
            return self.directory.get_employee(employee_id)
        except Exception as exc:
            logger.warning("Employee lookup for %d failed: %s", employee_id, exc)
            return None

    def _known_company(self, company_id: int | None) -> bool:
        if company_id is None:
            return False
        try:
            company = self.directory.get_company(company_id)
        except Exception as exc:
            logger.warning("Company lookup for %d failed: %s", company_id, exc)
            return False
        if company is None:
            logger.warning("Employee company %d is not in the directory", company_id)
            return False
        return True
