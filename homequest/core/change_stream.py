"""Change notification for committed document writes (at-least-once delivery)."""

import asyncio
import logging
import re
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from homequest.core.config import settings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    """A single committed write: document state before and after."""

    path: str
    before: dict[str, Any] | None
    after: dict[str, Any] | None
    commit_time: str
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def is_delete(self) -> bool:
        return self.after is None


ChangeHandler = Callable[[ChangeEvent, dict[str, str]], Awaitable[Any]]


def compile_path_pattern(pattern: str) -> re.Pattern[str]:
    """Compile 'households/{household_id}/tasks/{task_id}' into a regex with named groups."""
    parts = []
    for segment in pattern.strip("/").split("/"):
        wildcard = re.fullmatch(r"\{([A-Za-z_][A-Za-z0-9_]*)\}", segment)
        if wildcard:
            parts.append(f"(?P<{wildcard.group(1)}>[A-Za-z0-9_-]+)")
        else:
            parts.append(re.escape(segment))
    return re.compile("/".join(parts))


class ChangeStream:
    """Fan committed changes out to subscribers keyed by document path pattern.

    Each matching handler runs in its own task. A handler that raises is
    redelivered with exponential backoff until the attempt budget is spent, so
    handlers must tolerate seeing the same event more than once.
    """

    def __init__(
        self,
        *,
        max_delivery_attempts: int | None = None,
        retry_delay: float | None = None,
    ) -> None:
        self._subscriptions: list[tuple[str, re.Pattern[str], ChangeHandler]] = []
        self._pending: set[asyncio.Task[None]] = set()
        self._max_delivery_attempts = max_delivery_attempts or settings.trigger_max_delivery_attempts
        self._retry_delay = settings.trigger_retry_delay_seconds if retry_delay is None else retry_delay

    def subscribe(self, pattern: str, handler: ChangeHandler) -> None:
        """Register a handler for writes to documents matching the pattern."""
        self._subscriptions.append((pattern, compile_path_pattern(pattern), handler))
        logger.info("Registered change handler", extra={"pattern": pattern, "handler": handler.__name__})

    def publish(self, events: list[ChangeEvent]) -> None:
        """Schedule delivery of committed events to every matching subscriber."""
        for event in events:
            for pattern, regex, handler in self._subscriptions:
                match = regex.fullmatch(event.path)
                if not match:
                    continue
                task = asyncio.create_task(self._deliver(handler, event, match.groupdict(), pattern))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

    async def _deliver(
        self,
        handler: ChangeHandler,
        event: ChangeEvent,
        params: dict[str, str],
        pattern: str,
    ) -> None:
        for attempt in range(1, self._max_delivery_attempts + 1):
            try:
                await handler(event, params)
                return
            except Exception:
                logger.exception(
                    "Change handler failed",
                    extra={"pattern": pattern, "path": event.path, "event_id": event.event_id, "attempt": attempt},
                )
                if attempt < self._max_delivery_attempts:
                    await asyncio.sleep(self._retry_delay * (2 ** (attempt - 1)))

        logger.error(
            "Change event dropped after %d delivery attempts",
            self._max_delivery_attempts,
            extra={"pattern": pattern, "path": event.path, "event_id": event.event_id},
        )

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait until every scheduled delivery, including cascaded ones, has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
