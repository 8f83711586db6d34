"""Tests for the unknown-format review queue."""

import threading
from unittest.mock import MagicMock

import pytest

from src.core.events import FORMAT_CREATED, INTAKE_APPROVED, INTAKE_CREATED, EventBus
from src.core.exceptions import NotFoundError, ValidationError
from src.extraction.format_matcher import FormatMatcher
from src.formats.registry import FormatRegistry
from src.formats.review import ReviewQueue
from src.formats.store import InMemoryFormatStore

LOBBY_TEXT = "LOBBY KIOSK\nBadge 0042 swiped 07:58 / 17:03 on 2024-02-01"
LOBBY_PATTERN = r"Badge\s+(\d+)\s+swiped\s+(\d{1,2}:\d{2})\s*/\s*(\d{1,2}:\d{2})\s+on\s+(\d{4}-\d{2}-\d{2})"
LOBBY_RULES = {"employeeId": "$1", "timeIn": "$2", "timeOut": "$3", "date": "$4"}


class TestIntake:
    """Tests for quarantining samples."""

    def test_creates_pending_record(self, review_queue: ReviewQueue) -> None:
        record = review_queue.intake(LOBBY_TEXT, company_id=5, parsed_data={"time_in": "07:58"})
        assert record.id == 1
        assert record.is_processed is False
        assert record.company_id == 5
        assert record.parsed_data == {"time_in": "07:58"}
        assert record.created_at is not None
        assert review_queue.get(record.id) == record

    def test_pending_in_arrival_order(self, review_queue: ReviewQueue) -> None:
        first = review_queue.intake("a")
        second = review_queue.intake("b")
        assert [r.id for r in review_queue.list_pending()] == [first.id, second.id]

    def test_publishes_event(self) -> None:
        events = EventBus()
        handler = MagicMock()
        events.subscribe(INTAKE_CREATED, handler)
        queue = ReviewQueue(FormatRegistry(events=events))
        record = queue.intake("sample", company_id=2)
        handler.assert_called_once_with(INTAKE_CREATED, {"intake_id": record.id, "company_id": 2})

    def test_get_missing(self, review_queue: ReviewQueue) -> None:
        with pytest.raises(NotFoundError):
            review_queue.get(123)


class TestApprove:
    """Tests for promoting a sample into a format."""

    def test_closes_the_loop(self, registry: FormatRegistry, review_queue: ReviewQueue) -> None:
        record = review_queue.intake(LOBBY_TEXT, company_id=5)
        fmt = review_queue.approve(record.id, "Lobby Kiosk", LOBBY_PATTERN, LOBBY_RULES)

        assert fmt.is_active is True
        assert fmt.pattern == LOBBY_PATTERN
        assert fmt.extraction_rules == LOBBY_RULES
        assert fmt in registry.list_active()
        assert fmt.company_id == 5
        assert fmt.example == LOBBY_TEXT
        assert fmt.source_intake_id == record.id

        closed = review_queue.get(record.id)
        assert closed.is_processed is True
        assert closed.approved_format_id == fmt.id
        assert closed.processed_at is not None
        assert review_queue.list_pending() == []
        assert len(review_queue.list_all()) == 1

        result = FormatMatcher(registry).match(LOBBY_TEXT, registry.list_active(5))
        assert result is not None
        assert result.format.id == fmt.id

    def test_explicit_company_overrides_record(self, review_queue: ReviewQueue) -> None:
        record = review_queue.intake(LOBBY_TEXT, company_id=5)
        fmt = review_queue.approve(record.id, "Lobby", LOBBY_PATTERN, LOBBY_RULES, company_id=7)
        assert fmt.company_id == 7

    def test_name_is_trimmed(self, review_queue: ReviewQueue) -> None:
        record = review_queue.intake(LOBBY_TEXT)
        assert review_queue.approve(record.id, "  Lobby  ", LOBBY_PATTERN, LOBBY_RULES).name == "Lobby"

    def test_twice_rejected(self, registry: FormatRegistry, review_queue: ReviewQueue) -> None:
        record = review_queue.intake(LOBBY_TEXT)
        review_queue.approve(record.id, "Lobby", LOBBY_PATTERN, LOBBY_RULES)
        with pytest.raises(ValidationError):
            review_queue.approve(record.id, "Lobby again", LOBBY_PATTERN, LOBBY_RULES)
        assert len(registry.list_all()) == 1

    def test_unknown_intake(self, registry: FormatRegistry, review_queue: ReviewQueue) -> None:
        with pytest.raises(NotFoundError):
            review_queue.approve(99, "Lobby", LOBBY_PATTERN, LOBBY_RULES)
        assert registry.list_all() == []

    @pytest.mark.parametrize(
        ("name", "pattern", "rules"),
        [
            ("", LOBBY_PATTERN, LOBBY_RULES),
            ("Lobby", "", LOBBY_RULES),
            ("Lobby", LOBBY_PATTERN, {}),
            ("Lobby", "Badge (\\d+", LOBBY_RULES),
        ],
    )
    def test_invalid_input_changes_nothing(
        self, registry: FormatRegistry, review_queue: ReviewQueue, name: str, pattern: str, rules: dict
    ) -> None:
        record = review_queue.intake(LOBBY_TEXT)
        with pytest.raises(ValidationError):
            review_queue.approve(record.id, name, pattern, rules)
        assert registry.list_all() == []
        assert review_queue.get(record.id).is_processed is False

    def test_rolls_back_when_record_cannot_be_closed(self) -> None:
        store = InMemoryFormatStore()
        events = EventBus()
        handler = MagicMock()
        events.subscribe(FORMAT_CREATED, handler)
        events.subscribe(INTAKE_APPROVED, handler)
        registry = FormatRegistry(store=store, events=events)
        queue = ReviewQueue(registry)
        record = queue.intake(LOBBY_TEXT)

        failing = MagicMock(side_effect=OSError("disk full"))
        store.save_unknown = failing
        with pytest.raises(OSError):
            queue.approve(record.id, "Lobby", LOBBY_PATTERN, LOBBY_RULES)

        assert registry.list_all() == []
        assert queue.get(record.id).is_processed is False
        handler.assert_not_called()

    def test_publishes_event(self) -> None:
        events = EventBus()
        handler = MagicMock()
        events.subscribe(INTAKE_APPROVED, handler)
        queue = ReviewQueue(FormatRegistry(events=events))
        record = queue.intake(LOBBY_TEXT)
        fmt = queue.approve(record.id, "Lobby", LOBBY_PATTERN, LOBBY_RULES)
        handler.assert_called_once_with(INTAKE_APPROVED, {"intake_id": record.id, "format_id": fmt.id})

    def test_announces_format_after_closing_record(self) -> None:
        events = EventBus()
        seen = []
        queue = ReviewQueue(FormatRegistry(events=events))

        def on_created(event: str, payload: dict) -> None:
            seen.append((event, queue.get(record.id).is_processed))

        events.subscribe(FORMAT_CREATED, on_created)
        record = queue.intake(LOBBY_TEXT)
        fmt = queue.approve(record.id, "Lobby", LOBBY_PATTERN, LOBBY_RULES)
        assert seen == [(FORMAT_CREATED, True)]
        assert fmt.id == 1

    def test_handlers_run_outside_write_lock(self) -> None:
        events = EventBus()
        registry = FormatRegistry(events=events)
        queue = ReviewQueue(registry)
        lock_free = []

        def try_lock() -> None:
            acquired = registry.write_lock.acquire(timeout=1.0)
            lock_free.append(acquired)
            if acquired:
                registry.write_lock.release()

        def on_approved(event: str, payload: dict) -> None:
            worker = threading.Thread(target=try_lock)
            worker.start()
            worker.join()

        events.subscribe(INTAKE_APPROVED, on_approved)
        record = queue.intake(LOBBY_TEXT)
        queue.approve(record.id, "Lobby", LOBBY_PATTERN, LOBBY_RULES)
        assert lock_free == [True]
