"""Tesseract OCR adapter for DTR images.

The core only needs plain text out of an image; the engine is treated
as a slow, fallible collaborator and is always called through a
timeout by the pipeline.
"""

import shutil
from dataclasses import dataclass

import numpy as np
import pytesseract
from PIL import Image

from src.utils.config import OCRConfig
from src.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class OCRResult:
    """Recognized text of one page and its mean word confidence."""

    text: str
    language: str
    confidence: float
    word_count: int


class TesseractEngine:
    """Wrapper around ``pytesseract``.

    Args:
        config: Tesseract binary path, language and page segmentation mode.
    """

    def __init__(self, config: OCRConfig | None = None) -> None:
        self.config = config or OCRConfig()
        if self.config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd

    @staticmethod
    def is_available() -> bool:
        return shutil.which("tesseract") is not None

    def recognize_text(self, image: np.ndarray) -> str:
        """Plain text of an image."""
        return self.extract_text(image).text

    def extract_text(self, image: np.ndarray, lang: str | None = None) -> OCRResult:
        """Recognize text and score it by the mean word confidence.

        Args:
            image: Input image as a numpy array.
            lang: OCR language code. Defaults to the configured language.

        Returns:
            OCRResult with the full text and a 0-1 confidence.
        """
        lang = lang or self.config.default_lang
        tess_config = f"--psm {self.config.psm}"
        pil_image = Image.fromarray(image)

        text = pytesseract.image_to_string(pil_image, lang=lang, config=tess_config)
        data = pytesseract.image_to_data(
            pil_image,
            lang=lang,
            config=tess_config,
            output_type=pytesseract.Output.DICT,
        )

        confidences = [
            float(conf)
            for conf, word in zip(data["conf"], data["text"])
            if float(conf) > 0 and word.strip()
        ]
        mean_conf = sum(confidences) / len(confidences) / 100.0 if confidences else 0.0

        logger.info("OCR read %d words (mean confidence %.2f)", len(confidences), mean_conf)
        return OCRResult(
            text=text,
            language=lang,
            confidence=mean_conf,
            word_count=len(confidences),
        )
