"""Structured DTR fields from a format's extraction rules.

Each rule maps a logical field to a capture group. Dates and times are
normalized, ids and hour counts parsed as numbers. A field that cannot
be parsed is dropped and flags the prediction for review instead of
failing the whole document.
"""

import re
from dataclasses import asdict, dataclass, field
from typing import Any

from src.formats.models import DtrFormat
from src.utils.config import ExtractionConfig
from src.utils.logger import get_logger

from .format_matcher import RawCaptures
from .normalizer import (
    calculate_regular_hours,
    is_canonical_date,
    is_canonical_time,
    normalize_date,
    normalize_time,
)

logger = get_logger(__name__)

# Layout-independent patterns used for best-effort parsing of unknown formats.
_ANY_DATE = re.compile(r"\b(\d{1,2}[/\-]\d{1,2}[/\-]\d{4})\b")
_ANY_TIME = re.compile(r"\b(\d{1,2}:\d{2}(?:\s*[AP]\.?M\.?)?)", re.IGNORECASE)
_ANY_EMPLOYEE_ID = re.compile(r"(?:employee\s*(?:id|no\.?|number)|\bID)\s*[#:]*\s*(\d+)", re.IGNORECASE)

# Rule keys as authored (camelCase) or in snake_case.
FIELD_ALIASES: dict[str, str] = {
    "employeeName": "employee_name",
    "employeeId": "employee_id",
    "date": "date",
    "timeIn": "time_in",
    "timeOut": "time_out",
    "breakHours": "break_hours",
    "overtimeHours": "overtime_hours",
    "remarks": "remarks",
}
KNOWN_FIELDS = frozenset(FIELD_ALIASES.values())


@dataclass
class DTRPrediction:
    """Extraction result for one document."""

    raw_text: str
    confidence: float
    needs_review: bool
    is_new_format: bool = False
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
    format_id: int | None = None
    format_name: str | None = None
    intake_id: int | None = None
    employee_verified: bool = False
    failed_fields: list[str] = field(default_factory=list)
    extra_fields: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def parsed_fields(self) -> dict[str, Any]:
        """Fields that were actually extracted, for intake records."""
        keys = KNOWN_FIELDS | {"regular_hours"}
        parsed = {k: v for k, v in asdict(self).items() if k in keys and v is not None}
        parsed.update(self.extra_fields)
        return parsed


def canonical_field(name: str) -> str:
    """Map a rule key to the prediction attribute it fills."""
    return FIELD_ALIASES.get(name, name)


class FieldExtractor:
    """Applies extraction rules and assigns the review signal.

    Args:
        config: Confidence constants, accept threshold and field defaults.
    """

    def __init__(self, config: ExtractionConfig | None = None) -> None:
        self.config = config or ExtractionConfig()

    def extract(self, raw_text: str, fmt: DtrFormat, captures: RawCaptures) -> DTRPrediction:
        """Build a prediction from a matched format.

        Args:
            raw_text: The full OCR text, kept for traceability.
            fmt: The format that matched.
            captures: Groups captured by the format's pattern.

        Returns:
            Prediction with normalized fields, confidence and review flag.
        """
        prediction = DTRPrediction(
            raw_text=raw_text,
            confidence=self.config.matched_confidence,
            needs_review=False,
            company_id=fmt.company_id,
            type="Daily",
            format_id=fmt.id,
            format_name=fmt.name,
        )

        for rule_key, reference in fmt.extraction_rules.items():
            target = canonical_field(rule_key)
            value = captures.resolve(str(reference))
            if value is None or not value.strip():
                continue
            value = value.strip()

            if target not in KNOWN_FIELDS:
                prediction.extra_fields[rule_key] = value
                continue

            try:
                setattr(prediction, target, self._parse_field(target, value))
            except ValueError as exc:
                logger.warning("Format %d: field '%s' unparsable: %s", fmt.id, target, exc)
                prediction.failed_fields.append(target)

        rule_targets = {canonical_field(k) for k in fmt.extraction_rules}
        if "break_hours" not in rule_targets:
            prediction.break_hours = self.config.default_break_hours
        if "overtime_hours" not in rule_targets:
            prediction.overtime_hours = self.config.default_overtime_hours

        prediction.regular_hours = calculate_regular_hours(
            prediction.time_in, prediction.time_out, prediction.break_hours
        )
        prediction.needs_review = bool(prediction.failed_fields) or (
            prediction.confidence < self.config.accept_threshold
        )
        return prediction

    def unmatched(self, raw_text: str, company_id: int | None = None) -> DTRPrediction:
        """Prediction for text that no registered format recognized."""
        return DTRPrediction(
            raw_text=raw_text,
            confidence=self.config.unmatched_confidence,
            needs_review=True,
            is_new_format=True,
            company_id=company_id,
            remarks="Unrecognized DTR format. Please review manually.",
        )

    def best_effort(self, raw_text: str) -> dict[str, Any]:
        """Partial fields from generic date/time/id patterns.

        Used to pre-fill intake records so a reviewer sees what the
        sample probably contains. The first date and the first two times
        are taken as the work date, time-in and time-out.
        """
        parsed: dict[str, Any] = {}
        date = _ANY_DATE.search(raw_text)
        if date:
            parsed["date"] = normalize_date(date.group(1))
        times = [normalize_time(m.group(1).strip()) for m in _ANY_TIME.finditer(raw_text)]
        if times:
            parsed["time_in"] = times[0]
        if len(times) > 1:
            parsed["time_out"] = times[1]
        employee_id = _ANY_EMPLOYEE_ID.search(raw_text)
        if employee_id:
            parsed["employee_id"] = int(employee_id.group(1))
        logger.debug("Best-effort parse found %d fields", len(parsed))
        return parsed

    def failed(self, reason: str, company_id: int | None = None) -> DTRPrediction:
        """Prediction for a document whose text could not be recognized at all."""
        return DTRPrediction(
            raw_text="",
            confidence=0.0,
            needs_review=True,
            is_new_format=True,
            company_id=company_id,
            remarks=reason,
        )

    def _parse_field(self, target: str, value: str) -> Any:
        if target == "date":
            normalized = normalize_date(value)
            if not is_canonical_date(normalized):
                raise ValueError(f"unrecognized date {value!r}")
            return normalized
        if target in ("time_in", "time_out"):
            normalized = normalize_time(value)
            if not is_canonical_time(normalized):
                raise ValueError(f"unrecognized time {value!r}")
            return normalized
        if target == "employee_id":
            return int(value)
        if target in ("break_hours", "overtime_hours"):
            return float(value)
        return value
