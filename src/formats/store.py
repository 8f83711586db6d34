"""Storage seam for DTR formats and intake records.

The registry and the review queue talk to a :class:`FormatStore`; the
in-memory implementation keeps insertion order, which is the order
formats are tried in. Seed formats are loaded from YAML.
"""

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

import yaml

from src.utils.logger import get_logger

from .models import DtrFormat, FormatDraft, UnknownDtrFormat

logger = get_logger(__name__)


class FormatStore(Protocol):
    def next_format_id(self) -> int:
        raise NotImplementedError

    def get_format(self, format_id: int) -> DtrFormat | None:
        raise NotImplementedError

    def list_formats(self) -> Sequence[DtrFormat]:
        """All formats in creation order."""

        raise NotImplementedError

    def save_format(self, fmt: DtrFormat) -> None:
        """Insert a new format or replace the record with the same id."""

        raise NotImplementedError

    def delete_format(self, format_id: int) -> bool:
        raise NotImplementedError

    def next_unknown_id(self) -> int:
        raise NotImplementedError

    def get_unknown(self, unknown_id: int) -> UnknownDtrFormat | None:
        raise NotImplementedError

    def list_unknown(self) -> Sequence[UnknownDtrFormat]:
        raise NotImplementedError

    def save_unknown(self, record: UnknownDtrFormat) -> None:
        raise NotImplementedError


class InMemoryFormatStore:
    """Dict-backed :class:`FormatStore` with monotonically increasing ids."""

    def __init__(self) -> None:
        self._formats: dict[int, DtrFormat] = {}
        self._unknown: dict[int, UnknownDtrFormat] = {}
        self._format_seq = 0
        self._unknown_seq = 0

    def next_format_id(self) -> int:
        self._format_seq += 1
        return self._format_seq

    def get_format(self, format_id: int) -> DtrFormat | None:
        return self._formats.get(format_id)

    def list_formats(self) -> list[DtrFormat]:
        return list(self._formats.values())

    def save_format(self, fmt: DtrFormat) -> None:
        self._formats[fmt.id] = fmt

    def delete_format(self, format_id: int) -> bool:
        return self._formats.pop(format_id, None) is not None

    def next_unknown_id(self) -> int:
        self._unknown_seq += 1
        return self._unknown_seq

    def get_unknown(self, unknown_id: int) -> UnknownDtrFormat | None:
        return self._unknown.get(unknown_id)

    def list_unknown(self) -> list[UnknownDtrFormat]:
        return list(self._unknown.values())

    def save_unknown(self, record: UnknownDtrFormat) -> None:
        self._unknown[record.id] = record


def load_seed_formats(path: Path) -> list[FormatDraft]:
    """Read format definitions from a YAML file.

    The file holds a top-level ``formats`` list; each entry has ``name``,
    ``pattern``, ``extraction_rules`` and optionally ``company_id`` and
    ``example``. Entries missing a pattern or rules are skipped.

    Args:
        path: Path to the formats YAML file.

    Returns:
        Drafts in file order, or an empty list if the file is absent.
    """
    if not path.exists():
        logger.debug("No seed formats file at %s", path)
        return []

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    drafts: list[FormatDraft] = []
    for entry in data.get("formats", []):
        if not entry.get("pattern") or not entry.get("extraction_rules"):
            logger.warning("Skipping seed format %r: pattern and rules are required", entry.get("name"))
            continue
        drafts.append(
            FormatDraft(
                name=entry.get("name", "Unnamed Format"),
                pattern=entry["pattern"],
                extraction_rules={str(k): str(v) for k, v in entry["extraction_rules"].items()},
                company_id=entry.get("company_id"),
                example=entry.get("example", ""),
            )
        )
    logger.info("Loaded %d seed formats from %s", len(drafts), path)
    return drafts
