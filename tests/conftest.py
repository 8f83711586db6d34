"""Shared test fixtures for the DTR intake test suite."""

from pathlib import Path

import numpy as np
import pytest

from src.formats.models import FormatDraft
from src.formats.registry import FormatRegistry
from src.formats.review import ReviewQueue

STANDARD_PATTERN = (
    r"Employee[:\s]+([^#\n]+)#?(\d+)?.*Date[:\s]+(\d{2}[/\-]\d{2}[/\-]\d{4})"
    r".*Time In[:\s]+(\d{1,2}:\d{2}(?:\s*[AP]M)?).*Time Out[:\s]+(\d{1,2}:\d{2}(?:\s*[AP]M)?)"
)
STANDARD_RULES = {
    "employeeName": "$1",
    "employeeId": "$2",
    "date": "$3",
    "timeIn": "$4",
    "timeOut": "$5",
}
STANDARD_TEXT = (
    "Employee: John Smith #12345\nDate: 05/15/2023\nTime In: 8:30 AM\nTime Out: 5:30 PM"
)

COMPACT_PATTERN = (
    r"ID#(?<employeeId>\d+)\s+(?<date>\d{2}[/-]\d{2}[/-]\d{4})\s+"
    r"(?<timeIn>\d{1,2}:\d{2}[AP]M)-(?<timeOut>\d{1,2}:\d{2}[AP]M)"
)
COMPACT_RULES = {
    "employeeId": "employeeId",
    "date": "date",
    "timeIn": "timeIn",
    "timeOut": "timeOut",
}
COMPACT_TEXT = "ID#12345 06/15/2023 8:00AM-5:00PM"


def standard_draft(**overrides) -> FormatDraft:
    fields = {
        "name": "Standard Format",
        "pattern": STANDARD_PATTERN,
        "extraction_rules": dict(STANDARD_RULES),
        "example": STANDARD_TEXT,
    }
    fields.update(overrides)
    return FormatDraft(**fields)


@pytest.fixture
def registry() -> FormatRegistry:
    """Empty in-memory registry."""
    return FormatRegistry()


@pytest.fixture
def seeded_registry(registry: FormatRegistry) -> FormatRegistry:
    """Registry holding the standard and compact formats, in that order."""
    registry.create(standard_draft())
    registry.create(
        FormatDraft(
            name="Compact DTR Format",
            pattern=COMPACT_PATTERN,
            extraction_rules=dict(COMPACT_RULES),
            company_id=2,
            example=COMPACT_TEXT,
        )
    )
    return registry


@pytest.fixture
def review_queue(registry: FormatRegistry) -> ReviewQueue:
    return ReviewQueue(registry)


@pytest.fixture
def sample_image() -> np.ndarray:
    """Create a simple synthetic grayscale test image."""
    image = np.full((200, 300), 230, dtype=np.uint8)
    image[60:70, 40:260] = 20
    image[100:110, 40:200] = 20
    return image


@pytest.fixture
def sample_color_image() -> np.ndarray:
    """Create a simple synthetic BGR test image."""
    image = np.full((200, 300, 3), 230, dtype=np.uint8)
    image[60:70, 40:260] = (20, 20, 20)
    return image


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def standard_text() -> str:
    return STANDARD_TEXT


@pytest.fixture
def standard_pattern() -> str:
    return STANDARD_PATTERN


@pytest.fixture
def standard_rules() -> dict[str, str]:
    return dict(STANDARD_RULES)


@pytest.fixture
def compact_text() -> str:
    return COMPACT_TEXT
