"""Quarantine and operator review of unrecognized DTR samples.

Unmatched documents are parked here as pending records. An operator
writes a pattern and extraction rules for the sample; approving them
registers a new active format and closes the record. Each record is
approved at most once.
"""

import dataclasses
from typing import Any

from src.core.events import FORMAT_CREATED, INTAKE_APPROVED, INTAKE_CREATED
from src.core.exceptions import NotFoundError, PatternCompileError, ValidationError
from src.utils.logger import get_logger

from .models import DtrFormat, FormatDraft, UnknownDtrFormat, utcnow
from .registry import FormatRegistry, compile_pattern, validate_draft

logger = get_logger(__name__)


class ReviewQueue:
    """Intake records for unknown formats, sharing the registry's store.

    Args:
        registry: Registry that approved formats are promoted into. Its
            write lock also guards intake records.
    """

    def __init__(self, registry: FormatRegistry) -> None:
        self.registry = registry
        self.store = registry.store
        self.events = registry.events

    def intake(
        self,
        raw_text: str,
        company_id: int | None = None,
        image_data: str | None = None,
        parsed_data: dict[str, Any] | None = None,
    ) -> UnknownDtrFormat:
        """Quarantine a sample for review.

        Args:
            raw_text: OCR output that no format matched.
            company_id: Company context of the upload, if known.
            image_data: Source image (base64) for visual review.
            parsed_data: Best-effort partial extraction.

        Returns:
            The new pending record.
        """
        with self.registry.write_lock:
            record = UnknownDtrFormat(
                id=self.store.next_unknown_id(),
                raw_text=raw_text,
                company_id=company_id,
                image_data=image_data,
                parsed_data=dict(parsed_data or {}),
            )
            self.store.save_unknown(record)
        logger.info("Stored unrecognized DTR sample %d for review", record.id)
        self.events.publish(INTAKE_CREATED, {"intake_id": record.id, "company_id": company_id})
        return record

    def get(self, intake_id: int) -> UnknownDtrFormat:
        """Look up an intake record.

        Raises:
            NotFoundError: If no record has that id.
        """
        record = self.store.get_unknown(intake_id)
        if record is None:
            raise NotFoundError(f"Unknown DTR format {intake_id} not found")
        return record

    def list_pending(self) -> list[UnknownDtrFormat]:
        """Records still waiting for an operator, oldest first."""
        return [r for r in self.store.list_unknown() if not r.is_processed]

    def list_all(self) -> list[UnknownDtrFormat]:
        return list(self.store.list_unknown())

    def approve(
        self,
        intake_id: int,
        name: str,
        pattern: str,
        extraction_rules: dict[str, str],
        company_id: int | None = None,
    ) -> DtrFormat:
        """Promote a pending sample into a new active format.

        Either the format is created and the record marked processed, or
        neither happens.

        Args:
            intake_id: The pending record being approved.
            name: Label for the new format.
            pattern: Operator-written pattern for the layout.
            extraction_rules: Field to capture-group mapping.
            company_id: Scope of the new format; defaults to the record's.

        Returns:
            The newly registered format.

        Raises:
            ValidationError: Missing name/pattern/rules, a pattern that does
                not compile, or a record that was already processed.
            NotFoundError: If the intake id is unknown.
        """
        if not name or not name.strip():
            raise ValidationError("name must not be empty")
        validate_draft(pattern, extraction_rules)
        try:
            compile_pattern(pattern)
        except PatternCompileError as exc:
            raise ValidationError(f"pattern does not compile: {exc.reason}") from exc

        with self.registry.write_lock:
            record = self.get(intake_id)
            if record.is_processed:
                raise ValidationError(f"Unknown DTR format {intake_id} was already processed")

            fmt = self.registry.insert(
                FormatDraft(
                    name=name.strip(),
                    pattern=pattern,
                    extraction_rules=dict(extraction_rules),
                    company_id=company_id if company_id is not None else record.company_id,
                    example=record.raw_text,
                    source_intake_id=record.id,
                )
            )
            try:
                self.store.save_unknown(
                    dataclasses.replace(
                        record,
                        is_processed=True,
                        processed_at=utcnow(),
                        approved_format_id=fmt.id,
                    )
                )
            except Exception:
                logger.error("Rolling back format %d: intake %d could not be closed", fmt.id, intake_id)
                self.registry.discard(fmt.id)
                raise

        logger.info("Approved DTR sample %d as format %d '%s'", intake_id, fmt.id, fmt.name)
        self.events.publish(FORMAT_CREATED, {"format_id": fmt.id, "name": fmt.name})
        self.events.publish(INTAKE_APPROVED, {"intake_id": intake_id, "format_id": fmt.id})
        return fmt
