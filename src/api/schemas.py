"""Pydantic request/response schemas for the FastAPI endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from src.extraction.field_extractor import DTRPrediction
from src.formats.models import DtrFormat, UnknownDtrFormat


class FormatCreateRequest(BaseModel):
    """Payload for authoring a new DTR format."""

    name: str = "New Format"
    pattern: str
    extraction_rules: dict[str, str]
    company_id: int | None = None
    example: str = ""


class FormatUpdateRequest(BaseModel):
    """Partial correction of an existing format."""

    name: str | None = None
    pattern: str | None = None
    extraction_rules: dict[str, str] | None = None
    company_id: int | None = None
    example: str | None = None


class FormatActiveRequest(BaseModel):
    is_active: bool


class FormatResponse(BaseModel):
    """A registered DTR format."""

    id: int
    name: str
    pattern: str
    extraction_rules: dict[str, str]
    company_id: int | None
    example: str
    is_active: bool
    created_at: datetime
    source_intake_id: int | None = None
    compile_error: str | None = None

    @classmethod
    def from_format(cls, fmt: DtrFormat, compile_error: str | None = None) -> "FormatResponse":
        return cls(
            id=fmt.id,
            name=fmt.name,
            pattern=fmt.pattern,
            extraction_rules=fmt.extraction_rules,
            company_id=fmt.company_id,
            example=fmt.example,
            is_active=fmt.is_active,
            created_at=fmt.created_at,
            source_intake_id=fmt.source_intake_id,
            compile_error=compile_error,
        )


class IntakeRequest(BaseModel):
    """Manual submission of an unrecognized DTR sample."""

    raw_text: str
    company_id: int | None = None
    image_data: str | None = None
    parsed_data: dict[str, Any] = Field(default_factory=dict)


class IntakeResponse(BaseModel):
    """An unrecognized DTR sample awaiting or past review."""

    id: int
    raw_text: str
    company_id: int | None
    image_data: str | None
    parsed_data: dict[str, Any]
    is_processed: bool
    created_at: datetime
    processed_at: datetime | None = None
    approved_format_id: int | None = None

    @classmethod
    def from_record(cls, record: UnknownDtrFormat) -> "IntakeResponse":
        return cls(
            id=record.id,
            raw_text=record.raw_text,
            company_id=record.company_id,
            image_data=record.image_data,
            parsed_data=record.parsed_data,
            is_processed=record.is_processed,
            created_at=record.created_at,
            processed_at=record.processed_at,
            approved_format_id=record.approved_format_id,
        )


class ApprovalRequest(BaseModel):
    """Operator-authored pattern and rules for a pending sample."""

    name: str = "Approved Format"
    pattern: str
    extraction_rules: dict[str, str]
    company_id: int | None = None


class ApprovalResponse(BaseModel):
    success: bool
    message: str
    format: FormatResponse


class TextExtractionRequest(BaseModel):
    """OCR text submitted for recognition."""

    raw_text: str
    company_id: int | None = None
    employee_id: int | None = None


class PredictionResponse(BaseModel):
    """Structured attendance fields extracted from one document."""

    date: str | None = None
    time_in: str | None = None
    time_out: str | None = None
    break_hours: float | None = None
    overtime_hours: float | None = None
    regular_hours: float | None = None
    employee_name: str | None = None
    employee_id: int | None = None
    company_id: int | None = None
    type: str | None = None
    remarks: str | None = None
    confidence: float
    needs_review: bool
    is_new_format: bool
    raw_text: str
    format_id: int | None = None
    format_name: str | None = None
    intake_id: int | None = None
    employee_verified: bool = False
    failed_fields: list[str] = Field(default_factory=list)
    extra_fields: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_prediction(cls, prediction: DTRPrediction) -> "PredictionResponse":
        return cls(**prediction.to_dict())


class DocumentExtractionResponse(BaseModel):
    success: bool
    document_id: str
    page_count: int
    predictions: list[PredictionResponse]
    processing_time_ms: float


class HealthResponse(BaseModel):
    """Response schema for the health check endpoint."""

    status: str
    version: str
    tesseract_available: bool
    active_formats: int
    pending_reviews: int
