"""Process-wide wiring of the registry, review queue and pipeline."""

from dataclasses import dataclass
from pathlib import Path

from src.core.events import EventBus
from src.directory.lookup import DirectoryLookup
from src.extraction.pipeline import DTRPipeline
from src.formats.registry import FormatRegistry
from src.formats.review import ReviewQueue
from src.formats.store import FormatStore
from src.ocr.tesseract_engine import TesseractEngine
from src.preprocessing.pipeline import ImageEnhancer
from src.utils.config import AppConfig
from src.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Container:
    config: AppConfig
    events: EventBus
    registry: FormatRegistry
    review_queue: ReviewQueue
    ocr_engine: TesseractEngine
    pipeline: DTRPipeline


def build_container(
    config: AppConfig,
    store: FormatStore | None = None,
    directory: DirectoryLookup | None = None,
) -> Container:
    """Build one registry and everything that shares it.

    Seed formats are registered from ``config.registry.formats_path``
    when seeding is enabled.
    """
    events = EventBus()
    registry = FormatRegistry(store, events)
    if config.registry.seed_formats:
        registry.seed_from_yaml(Path(config.registry.formats_path))

    review_queue = ReviewQueue(registry)
    ocr_engine = TesseractEngine(config.ocr)
    pipeline = DTRPipeline(
        config,
        registry,
        review_queue=review_queue,
        ocr_engine=ocr_engine,
        enhancer=ImageEnhancer(config.preprocessing),
        directory=directory,
    )
    logger.info("DTR core ready with %d active formats", len(registry.list_active()))
    return Container(
        config=config,
        events=events,
        registry=registry,
        review_queue=review_queue,
        ocr_engine=ocr_engine,
        pipeline=pipeline,
    )
