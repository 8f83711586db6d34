"""Records held by the format registry and the review queue.

Both record types are immutable; edits go through
:func:`dataclasses.replace` and the store swaps in the new record, so a
reader holding a reference never observes a half-applied change.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def utcnow() -> datetime:
    """Timezone-aware current time used for record timestamps."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class FormatDraft:
    """Author-supplied fields of a format before it is registered."""

    name: str
    pattern: str
    extraction_rules: dict[str, str]
    company_id: int | None = None
    example: str = ""
    source_intake_id: int | None = None


@dataclass(frozen=True)
class DtrFormat:
    """A registered recognition rule for one DTR layout."""

    id: int
    name: str
    pattern: str
    extraction_rules: dict[str, str]
    company_id: int | None
    example: str
    is_active: bool
    created_at: datetime
    source_intake_id: int | None = None

    def applies_to(self, company_id: int | None) -> bool:
        """Whether the format is usable for documents of ``company_id``.

        Global formats apply everywhere; with no company context every
        format applies.
        """
        return company_id is None or self.company_id is None or self.company_id == company_id


@dataclass(frozen=True)
class UnknownDtrFormat:
    """A quarantined sample that no active format matched."""

    id: int
    raw_text: str
    company_id: int | None
    image_data: str | None
    parsed_data: dict[str, Any] = field(default_factory=dict)
    is_processed: bool = False
    created_at: datetime = field(default_factory=utcnow)
    processed_at: datetime | None = None
    approved_format_id: int | None = None
