"""Format detection for OCR'd DTR text.

Tries registered formats in registry order and stops at the first whose
pattern matches. There is no scoring between candidates: when two
formats both match, the one registered earlier wins.
"""

import re
from dataclasses import dataclass, field

from src.formats.models import DtrFormat
from src.formats.registry import FormatRegistry
from src.utils.logger import get_logger

logger = get_logger(__name__)

_INDEX_REF = re.compile(r"\$?(\d+)")
_NAMED_REF = re.compile(r"\$?<?(\w+)>?")


@dataclass(frozen=True)
class RawCaptures:
    """Capture groups of a successful pattern match."""

    groups: tuple[str | None, ...]
    named: dict[str, str | None] = field(default_factory=dict)

    @classmethod
    def from_match(cls, match: re.Match[str]) -> "RawCaptures":
        return cls(groups=match.groups(), named=match.groupdict())

    def resolve(self, reference: str) -> str | None:
        """Value of the group an extraction rule points at.

        Args:
            reference: ``"$2"`` or ``"2"`` for the second group,
                ``"timeIn"``, ``"$timeIn"`` or ``"$<timeIn>"`` for a named group.

        Returns:
            The captured text, or ``None`` if the group does not exist or
            did not participate in the match.
        """
        reference = reference.strip()
        index = _INDEX_REF.fullmatch(reference)
        if index:
            position = int(index.group(1))
            if 1 <= position <= len(self.groups):
                return self.groups[position - 1]
            return None

        named = _NAMED_REF.fullmatch(reference)
        if named:
            return self.named.get(named.group(1))
        return None


@dataclass(frozen=True)
class FormatMatch:
    """The format a document was recognized as and its raw captures."""

    format: DtrFormat
    captures: RawCaptures


class FormatMatcher:
    """First-match-wins detector over a sequence of formats.

    Args:
        registry: Source of compiled (and cached) patterns.
    """

    def __init__(self, registry: FormatRegistry) -> None:
        self.registry = registry

    def match(self, raw_text: str, formats: list[DtrFormat]) -> FormatMatch | None:
        """Find the first format whose pattern occurs in ``raw_text``.

        Args:
            raw_text: OCR output, possibly multi-line and noisy.
            formats: Candidates in the order they should be tried.

        Returns:
            The winning format with its captures, or ``None``.
        """
        for fmt in formats:
            match = self.registry.compile(fmt).search(raw_text)
            if match:
                logger.info("Matched DTR format %d '%s'", fmt.id, fmt.name)
                return FormatMatch(format=fmt, captures=RawCaptures.from_match(match))

        logger.info("No DTR format matched (%d tried)", len(formats))
        return None
