"""Configurable pre-OCR enhancement for DTR images.

Runs the enabled filters in a fixed order and logs before/after quality
metrics. Enhancement is best-effort: if any step fails the original
image is handed to OCR untouched.
"""

from dataclasses import dataclass

import cv2
import numpy as np

from src.utils.config import PreprocessingConfig
from src.utils.logger import get_logger

from .filters import (
    correct_perspective,
    denoise,
    enhance_contrast,
    remove_background,
    sharpen,
    to_gray,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class EnhancementOptions:
    """Independent on/off switches for each enhancement step."""

    denoise: bool = False
    sharpen: bool = False
    contrast: bool = False
    perspective: bool = False
    remove_background: bool = False

    @classmethod
    def from_config(cls, config: PreprocessingConfig) -> "EnhancementOptions":
        return cls(
            denoise=config.denoise,
            sharpen=config.sharpen,
            contrast=config.contrast,
            perspective=config.perspective,
            remove_background=config.remove_background,
        )

    def any_enabled(self) -> bool:
        return any((self.denoise, self.sharpen, self.contrast, self.perspective, self.remove_background))


def calculate_sharpness(image: np.ndarray) -> float:
    """Laplacian variance (higher means sharper)."""
    return float(cv2.Laplacian(to_gray(image), cv2.CV_64F).var())


def calculate_contrast(image: np.ndarray) -> float:
    """Standard deviation of pixel intensities."""
    return float(to_gray(image).std())


class ImageEnhancer:
    """Applies the enhancement steps selected by :class:`EnhancementOptions`.

    Args:
        config: Default options and filter parameters.
    """

    def __init__(self, config: PreprocessingConfig | None = None) -> None:
        self.config = config or PreprocessingConfig()

    def enhance(self, image: np.ndarray, options: EnhancementOptions | None = None) -> np.ndarray:
        """Enhance an image for OCR.

        Args:
            image: Input document image (BGR or grayscale).
            options: Steps to run. Defaults to the configured toggles.

        Returns:
            The enhanced image, or ``image`` itself if enhancement failed.
        """
        options = options or EnhancementOptions.from_config(self.config)
        if not options.any_enabled():
            return image

        try:
            result = self._apply(image, options)
        except Exception as exc:
            logger.warning("Image enhancement failed, using original image: %s", exc)
            return image

        logger.info(
            "Enhanced image: sharpness %.1f->%.1f, contrast %.1f->%.1f",
            calculate_sharpness(image),
            calculate_sharpness(result),
            calculate_contrast(image),
            calculate_contrast(result),
        )
        return result

    def _apply(self, image: np.ndarray, options: EnhancementOptions) -> np.ndarray:
        result = image.copy()
        if options.perspective:
            result = correct_perspective(result)
        if options.remove_background:
            result = remove_background(result)
        if options.denoise:
            result = denoise(result, method=self.config.denoise_method)
        if options.contrast:
            result = enhance_contrast(
                result,
                clip_limit=self.config.clahe_clip_limit,
                tile_size=self.config.clahe_tile_size,
            )
        if options.sharpen:
            result = sharpen(result)
        return result
