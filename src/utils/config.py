"""Configuration management for the DTR intake system.

Loads and validates YAML configuration with sensible defaults
for image enhancement, OCR, field extraction, and the format registry.
"""

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)


class PreprocessingConfig(BaseModel):
    """Configuration for pre-OCR image enhancement."""

    denoise: bool = True
    sharpen: bool = True
    contrast: bool = True
    perspective: bool = False
    remove_background: bool = False
    denoise_method: str = "bilateral"
    clahe_clip_limit: float = 2.0
    clahe_tile_size: int = 8
    timeout_seconds: float = Field(10.0, ge=0.0)


class OCRConfig(BaseModel):
    """Configuration for Tesseract OCR engine."""

    tesseract_cmd: str | None = None
    default_lang: str = "eng"
    psm: int = Field(6, ge=0, le=13)
    pdf_dpi: int = 300
    timeout_seconds: float = Field(30.0, ge=0.0)


class ExtractionConfig(BaseModel):
    """Configuration for field extraction and review routing."""

    matched_confidence: float = Field(0.8, ge=0.0, le=1.0)
    unmatched_confidence: float = Field(0.2, ge=0.0, le=1.0)
    accept_threshold: float = Field(0.7, ge=0.0, le=1.0)
    default_break_hours: float = Field(1.0, ge=0.0)
    default_overtime_hours: float = Field(0.0, ge=0.0)
    intake_low_confidence: bool = True

    @model_validator(mode="after")
    def _unmatched_below_threshold(self) -> "ExtractionConfig":
        if self.unmatched_confidence >= self.accept_threshold:
            raise ValueError(
                f"unmatched_confidence ({self.unmatched_confidence}) must be below "
                f"accept_threshold ({self.accept_threshold})"
            )
        return self


class RegistryConfig(BaseModel):
    """Configuration for the DTR format registry."""

    formats_path: str = "configs/formats.yaml"
    seed_formats: bool = True


class AppConfig(BaseModel):
    """Top-level application configuration."""

    preprocessing: PreprocessingConfig = Field(default_factory=PreprocessingConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    log_level: str = "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file. Defaults to the
            ``DTR_CONFIG`` environment variable, then configs/config.yaml.

    Returns:
        Validated application configuration.

    Raises:
        pydantic.ValidationError: If a value is out of range or mistyped.
    """
    if path is None:
        path = Path(os.environ.get("DTR_CONFIG", "configs/config.yaml"))

    if path.exists():
        logger.info("Loading configuration from %s", path)
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        return AppConfig(**raw)

    logger.info("No config file found at %s, using defaults", path)
    return AppConfig()
