"""FastAPI application for DTR recognition and format review.

Provides REST endpoints for managing DTR formats, reviewing
unrecognized samples, and extracting attendance fields from uploaded
images or raw OCR text.
"""

import time
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from src.container import Container, build_container
from src.core.exceptions import NotFoundError, ValidationError
from src.formats.models import FormatDraft
from src.preprocessing.pipeline import EnhancementOptions
from src.utils.config import load_config
from src.utils.logger import get_logger

from .schemas import (
    ApprovalRequest,
    ApprovalResponse,
    DocumentExtractionResponse,
    FormatActiveRequest,
    FormatCreateRequest,
    FormatResponse,
    FormatUpdateRequest,
    HealthResponse,
    IntakeRequest,
    IntakeResponse,
    PredictionResponse,
    TextExtractionRequest,
)

logger = get_logger(__name__)

VERSION = "1.0.0"

_ALLOWED_CONTENT_TYPES = {
    "image/png",
    "image/jpeg",
    "image/tiff",
    "image/bmp",
    "application/pdf",
    "application/octet-stream",
}

router = APIRouter()


def get_container(request: Request) -> Container:
    """Shared registry, review queue and pipeline of this app."""
    return request.app.state.container


ContainerDep = Annotated[Container, Depends(get_container)]


def _format_response(container: Container, fmt) -> FormatResponse:
    error = container.registry.compile_error(fmt.id)
    return FormatResponse.from_format(fmt, str(error) if error else None)


@router.get("/health", response_model=HealthResponse)
def health_check(container: ContainerDep) -> HealthResponse:
    """Return system health status."""
    return HealthResponse(
        status="healthy",
        version=VERSION,
        tesseract_available=container.ocr_engine.is_available(),
        active_formats=len(container.registry.list_active()),
        pending_reviews=len(container.review_queue.list_pending()),
    )


@router.get("/formats", response_model=list[FormatResponse])
def list_formats(
    container: ContainerDep,
    company_id: Annotated[int | None, Query()] = None,
    include_inactive: Annotated[bool, Query()] = False,
) -> list[FormatResponse]:
    """List formats in match order."""
    registry = container.registry
    if include_inactive:
        formats = [f for f in registry.list_all() if f.applies_to(company_id)]
    else:
        formats = registry.list_active(company_id)
    return [_format_response(container, f) for f in formats]


@router.post("/formats", response_model=FormatResponse, status_code=201)
def create_format(payload: FormatCreateRequest, container: ContainerDep) -> FormatResponse:
    """Author a new active format."""
    fmt = container.registry.create(
        FormatDraft(
            name=payload.name,
            pattern=payload.pattern,
            extraction_rules=payload.extraction_rules,
            company_id=payload.company_id,
            example=payload.example,
        )
    )
    return _format_response(container, fmt)


@router.get("/formats/{format_id}", response_model=FormatResponse)
def get_format(format_id: int, container: ContainerDep) -> FormatResponse:
    return _format_response(container, container.registry.get(format_id))


@router.patch("/formats/{format_id}", response_model=FormatResponse)
def update_format(
    format_id: int, payload: FormatUpdateRequest, container: ContainerDep
) -> FormatResponse:
    """Correct fields of a format. Omitted fields are left unchanged."""
    changes = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key == "company_id"
    }
    if not changes:
        raise ValidationError("no fields to update")
    return _format_response(container, container.registry.update(format_id, **changes))


@router.patch("/formats/{format_id}/active", response_model=FormatResponse)
def set_format_active(
    format_id: int, payload: FormatActiveRequest, container: ContainerDep
) -> FormatResponse:
    return _format_response(container, container.registry.set_active(format_id, payload.is_active))


@router.get("/unknown-formats", response_model=list[IntakeResponse])
def list_unknown_formats(
    container: ContainerDep,
    pending_only: Annotated[bool, Query()] = True,
) -> list[IntakeResponse]:
    """Samples awaiting review (or all samples)."""
    queue = container.review_queue
    records = queue.list_pending() if pending_only else queue.list_all()
    return [IntakeResponse.from_record(r) for r in records]


@router.post("/unknown-formats", response_model=IntakeResponse, status_code=201)
def create_unknown_format(payload: IntakeRequest, container: ContainerDep) -> IntakeResponse:
    """Quarantine a sample for review by hand."""
    if not payload.raw_text.strip():
        raise ValidationError("raw_text must not be empty")
    record = container.review_queue.intake(
        payload.raw_text,
        company_id=payload.company_id,
        image_data=payload.image_data,
        parsed_data=payload.parsed_data,
    )
    return IntakeResponse.from_record(record)


@router.get("/unknown-formats/{intake_id}", response_model=IntakeResponse)
def get_unknown_format(intake_id: int, container: ContainerDep) -> IntakeResponse:
    return IntakeResponse.from_record(container.review_queue.get(intake_id))


@router.post("/unknown-formats/{intake_id}/approve", response_model=ApprovalResponse)
def approve_unknown_format(
    intake_id: int, payload: ApprovalRequest, container: ContainerDep
) -> ApprovalResponse:
    """Promote a pending sample into a new active format."""
    fmt = container.review_queue.approve(
        intake_id,
        name=payload.name,
        pattern=payload.pattern,
        extraction_rules=payload.extraction_rules,
        company_id=payload.company_id,
    )
    return ApprovalResponse(
        success=True,
        message="DTR format approved and added to known formats",
        format=_format_response(container, fmt),
    )


@router.post("/extract/text", response_model=PredictionResponse)
def extract_text(payload: TextExtractionRequest, container: ContainerDep) -> PredictionResponse:
    """Recognize a DTR from OCR text that was produced elsewhere."""
    prediction = container.pipeline.process_text(
        payload.raw_text,
        company_id=payload.company_id,
        employee_id=payload.employee_id,
    )
    return PredictionResponse.from_prediction(prediction)


@router.post("/extract", response_model=DocumentExtractionResponse)
async def extract_document(
    container: ContainerDep,
    file: Annotated[UploadFile, File(...)],
    company_id: Annotated[int | None, Query()] = None,
    employee_id: Annotated[int | None, Query()] = None,
    denoise: Annotated[bool, Query()] = True,
    sharpen: Annotated[bool, Query()] = True,
    contrast: Annotated[bool, Query()] = True,
    perspective: Annotated[bool, Query()] = False,
    remove_background: Annotated[bool, Query()] = False,
) -> DocumentExtractionResponse:
    """Enhance, OCR and extract every page of an uploaded DTR.

    Args:
        file: Uploaded document file (PNG, JPEG, TIFF, BMP or PDF).
        company_id: Company scope for format selection.
        employee_id: Uploading employee, used as a company hint.

    Returns:
        One prediction per page.
    """
    start_time = time.time()

    if file.content_type and file.content_type not in _ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type: {file.content_type}",
        )

    options = EnhancementOptions(
        denoise=denoise,
        sharpen=sharpen,
        contrast=contrast,
        perspective=perspective,
        remove_background=remove_background,
    )
    content = await file.read()
    try:
        predictions = await run_in_threadpool(
            container.pipeline.process_document,
            content,
            company_id,
            employee_id,
            options,
        )
    except RuntimeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return DocumentExtractionResponse(
        success=True,
        document_id=str(uuid.uuid4()),
        page_count=len(predictions),
        predictions=[PredictionResponse.from_prediction(p) for p in predictions],
        processing_time_ms=(time.time() - start_time) * 1000,
    )


def create_app(container: Container | None = None) -> FastAPI:
    """Build the API around a container (a fresh one from config by default)."""
    application = FastAPI(
        title="DTR Format Intake API",
        description="Recognize Daily Time Records and review unknown layouts",
        version=VERSION,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.state.container = container or build_container(load_config())

    @application.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @application.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    application.include_router(router)
    return application


app = create_app()
