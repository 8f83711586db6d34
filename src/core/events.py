"""In-process publish/subscribe for registry and review notifications.

Review screens and activity logs subscribe here instead of being
called directly by the registry.
"""

import threading
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from src.utils.logger import get_logger

logger = get_logger(__name__)

FORMAT_CREATED = "format_created"
FORMAT_UPDATED = "format_updated"
INTAKE_CREATED = "intake_created"
INTAKE_APPROVED = "intake_approved"
PATTERN_COMPILE_FAILED = "pattern_compile_failed"

Handler = Callable[[str, dict[str, Any]], None]


class EventBus:
    """Synchronous observer registry keyed by event name."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event: str, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for ``event``.

        Returns:
            A callable that removes the subscription.
        """
        with self._lock:
            self._handlers[event].append(handler)

        def unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers[event]:
                    self._handlers[event].remove(handler)

        return unsubscribe

    def publish(self, event: str, payload: dict[str, Any]) -> None:
        """Deliver ``payload`` to every handler of ``event``.

        A failing handler is logged and skipped; it does not affect the
        publisher or the other handlers.
        """
        with self._lock:
            handlers = list(self._handlers.get(event, ()))
        for handler in handlers:
            try:
                handler(event, payload)
            except Exception:
                logger.exception("Handler for '%s' failed", event)
