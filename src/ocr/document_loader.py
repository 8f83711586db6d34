"""Loading DTR uploads (images or PDFs) as page images."""

import io
from pathlib import Path

import numpy as np
from pdf2image import convert_from_bytes, convert_from_path
from PIL import Image

from src.utils.logger import get_logger

logger = get_logger(__name__)

IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".tif", ".tiff", ".bmp")


def _to_array(img: Image.Image) -> np.ndarray:
    return np.array(img.convert("RGB"))


def load_pages(source: Path | bytes, dpi: int = 300) -> list[np.ndarray]:
    """Load every page of a document as an RGB image.

    Args:
        source: File path or raw file bytes. PDFs are detected by suffix
            or by their ``%PDF`` header.
        dpi: Rendering resolution for PDF pages.

    Returns:
        One array per page.

    Raises:
        FileNotFoundError: If a path is given and does not exist.
        RuntimeError: If the document cannot be decoded.
    """
    if isinstance(source, bytes):
        is_pdf = source[:4] == b"%PDF"
    else:
        source = Path(source)
        if not source.exists():
            raise FileNotFoundError(f"Document not found: {source}")
        is_pdf = source.suffix.lower() == ".pdf"

    try:
        if is_pdf:
            pil_pages = (
                convert_from_bytes(source, dpi=dpi)
                if isinstance(source, bytes)
                else convert_from_path(str(source), dpi=dpi)
            )
            pages = [_to_array(p) for p in pil_pages]
            logger.info("Rendered %d PDF pages at %d DPI", len(pages), dpi)
            return pages

        img = Image.open(io.BytesIO(source)) if isinstance(source, bytes) else Image.open(source)
        return [_to_array(img)]
    except Exception as exc:
        raise RuntimeError(f"Could not load document: {exc}") from exc
