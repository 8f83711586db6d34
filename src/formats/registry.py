"""Registry of known DTR formats.

Holds every format in creation order, hands out snapshots of the active
ones for matching, and compiles patterns on demand. A pattern that does
not compile never breaks matching: it is swapped for a regex that cannot
match and reported as a warning for an operator to fix.
"""

import dataclasses
import re
import threading
from pathlib import Path

from src.core.events import (
    FORMAT_CREATED,
    FORMAT_UPDATED,
    PATTERN_COMPILE_FAILED,
    EventBus,
)
from src.core.exceptions import NotFoundError, PatternCompileError, ValidationError
from src.utils.logger import get_logger

from .models import DtrFormat, FormatDraft, utcnow
from .store import FormatStore, InMemoryFormatStore, load_seed_formats

logger = get_logger(__name__)

PATTERN_FLAGS = re.IGNORECASE | re.DOTALL

NEVER_MATCH = re.compile(r"(?!)")

# JavaScript-style named groups, but not lookbehinds.
_JS_NAMED_GROUP = re.compile(r"\(\?<(?![=!])")

_EDITABLE_FIELDS = {"name", "pattern", "extraction_rules", "company_id", "example"}


def compile_pattern(pattern: str, format_id: int | None = None) -> re.Pattern[str]:
    """Compile pattern text with the flags every DTR format uses.

    Raises:
        PatternCompileError: If the pattern is not a valid regex.
    """
    try:
        return re.compile(_JS_NAMED_GROUP.sub("(?P<", pattern), PATTERN_FLAGS)
    except re.error as exc:
        raise PatternCompileError(pattern, str(exc), format_id) from exc


def validate_draft(pattern: str, extraction_rules: dict[str, str] | None) -> None:
    """Check the fields every format must carry.

    Raises:
        ValidationError: If the pattern is blank or the rules are empty.
    """
    if not pattern or not pattern.strip():
        raise ValidationError("pattern must not be empty")
    if not extraction_rules:
        raise ValidationError("extraction_rules must not be empty")
    for field_name, reference in extraction_rules.items():
        if not str(field_name).strip() or not str(reference).strip():
            raise ValidationError(f"invalid extraction rule {field_name!r}: {reference!r}")


class FormatRegistry:
    """Known DTR formats backed by an injected store.

    One registry is built per process and shared by the matcher, the
    review queue and the API. Writes are serialized on a single lock;
    reads return fresh lists so in-flight matches keep their snapshot.

    Args:
        store: Storage for format records. Defaults to in-memory.
        events: Bus that receives format lifecycle events.
    """

    def __init__(self, store: FormatStore | None = None, events: EventBus | None = None) -> None:
        self.store = store if store is not None else InMemoryFormatStore()
        self.events = events or EventBus()
        self._lock = threading.RLock()
        self._compiled: dict[int, tuple[str, re.Pattern[str]]] = {}
        self._compile_errors: dict[int, PatternCompileError] = {}

    @property
    def write_lock(self) -> threading.RLock:
        """Lock that serializes every registry-mutating write."""
        return self._lock

    def list_active(self, company_id: int | None = None) -> list[DtrFormat]:
        """Active formats usable for ``company_id``, in creation order."""
        return [f for f in self.store.list_formats() if f.is_active and f.applies_to(company_id)]

    def list_all(self) -> list[DtrFormat]:
        """Every format, including inactive ones, in creation order."""
        return list(self.store.list_formats())

    def get(self, format_id: int) -> DtrFormat:
        """Look up a format by id.

        Raises:
            NotFoundError: If no format has that id.
        """
        fmt = self.store.get_format(format_id)
        if fmt is None:
            raise NotFoundError(f"DTR format {format_id} not found")
        return fmt

    def create(self, draft: FormatDraft) -> DtrFormat:
        """Register a new active format.

        Args:
            draft: Name, pattern, rules and optional scope of the format.

        Returns:
            The stored format with its assigned id.

        Raises:
            ValidationError: If the pattern or the rules are empty.
        """
        fmt = self.insert(draft)
        logger.info("Registered DTR format %d '%s'", fmt.id, fmt.name)
        self.events.publish(FORMAT_CREATED, {"format_id": fmt.id, "name": fmt.name})
        return fmt

    def insert(self, draft: FormatDraft) -> DtrFormat:
        """Store a new active format without announcing it.

        Callers that register a format as part of a larger write publish
        ``FORMAT_CREATED`` themselves once that write has succeeded.
        """
        validate_draft(draft.pattern, draft.extraction_rules)
        with self._lock:
            fmt = DtrFormat(
                id=self.store.next_format_id(),
                name=draft.name,
                pattern=draft.pattern,
                extraction_rules=dict(draft.extraction_rules),
                company_id=draft.company_id,
                example=draft.example,
                is_active=True,
                created_at=utcnow(),
                source_intake_id=draft.source_intake_id,
            )
            self.store.save_format(fmt)
        return fmt

    def update(self, format_id: int, **changes) -> DtrFormat:
        """Correct fields of an existing format.

        Only ``name``, ``pattern``, ``extraction_rules``, ``company_id``
        and ``example`` may change. A pattern change drops the cached
        compiled form.

        Raises:
            NotFoundError: If no format has that id.
            ValidationError: On unknown fields or an empty pattern/rules.
        """
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"cannot update fields: {', '.join(sorted(unknown))}")

        with self._lock:
            current = self.get(format_id)
            if "extraction_rules" in changes and changes["extraction_rules"] is not None:
                changes["extraction_rules"] = dict(changes["extraction_rules"])
            updated = dataclasses.replace(current, **changes)
            validate_draft(updated.pattern, updated.extraction_rules)
            self.store.save_format(updated)
            if updated.pattern != current.pattern:
                self._invalidate(format_id)

        logger.info("Updated DTR format %d (%s)", format_id, ", ".join(sorted(changes)))
        self.events.publish(FORMAT_UPDATED, {"format_id": format_id, "fields": sorted(changes)})
        return updated

    def set_active(self, format_id: int, active: bool) -> DtrFormat:
        """Include or exclude a format from matching.

        Raises:
            NotFoundError: If no format has that id.
        """
        with self._lock:
            updated = dataclasses.replace(self.get(format_id), is_active=active)
            self.store.save_format(updated)
        logger.info("DTR format %d %s", format_id, "activated" if active else "deactivated")
        self.events.publish(FORMAT_UPDATED, {"format_id": format_id, "fields": ["is_active"]})
        return updated

    def compile(self, fmt: DtrFormat) -> re.Pattern[str]:
        """Executable matcher for ``fmt``, built lazily and cached by id.

        Never raises: a malformed pattern yields :data:`NEVER_MATCH` and the
        error is logged, published, and kept for :meth:`compile_error`.
        """
        cached = self._compiled.get(fmt.id)
        if cached is not None and cached[0] == fmt.pattern:
            return cached[1]

        try:
            compiled = compile_pattern(fmt.pattern, fmt.id)
            self._compile_errors.pop(fmt.id, None)
        except PatternCompileError as exc:
            logger.warning("%s; format '%s' will not match", exc, fmt.name)
            self._compile_errors[fmt.id] = exc
            self.events.publish(
                PATTERN_COMPILE_FAILED,
                {"format_id": fmt.id, "name": fmt.name, "reason": exc.reason},
            )
            compiled = NEVER_MATCH

        self._compiled[fmt.id] = (fmt.pattern, compiled)
        return compiled

    def compile_error(self, format_id: int) -> PatternCompileError | None:
        """The last compile failure recorded for a format, if any."""
        return self._compile_errors.get(format_id)

    def discard(self, format_id: int) -> None:
        """Remove a format outright. Used only to roll back a failed approval."""
        with self._lock:
            self.store.delete_format(format_id)
            self._invalidate(format_id)

    def seed_from_yaml(self, path: Path) -> list[DtrFormat]:
        """Register every format defined in a YAML seed file."""
        return [self.create(draft) for draft in load_seed_formats(path)]

    def _invalidate(self, format_id: int) -> None:
        self._compiled.pop(format_id, None)
        self._compile_errors.pop(format_id, None)
