"""In-process rule-applied notifications.

Subscribers (audit trail, UI toasts, ...) register a callable; each committed
rule application is delivered to every subscriber. A failing subscriber is
logged and does not affect the others or the batch.
"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from recotool.engine.runner import RuleAppliedEvent

logger = structlog.get_logger()

Subscriber = Callable[[RuleAppliedEvent], Awaitable[None] | None]


class RuleAppliedPublisher:
    def __init__(self):
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def publish(self, event: RuleAppliedEvent) -> None:
        for callback in list(self._subscribers):
            try:
                maybe = callback(event)
                if asyncio.iscoroutine(maybe):
                    await maybe
            except Exception as e:
                logger.warning(
                    "rule_applied_subscriber_failed",
                    rule_id=event.rule_id,
                    line_id=event.line_id,
                    error=str(e),
                )


rule_applied_publisher = RuleAppliedPublisher()
