"""
Change Channel

Per-session registry of subscribers to ledger change events.

A subscriber registers for one or more collections (or all of them) and
receives every event of those collections, in the order the coordinator
published them. Handlers may be plain functions or coroutine functions.

DESIGN DECISION: A failing subscriber never breaks a mutation. Its
exception is logged (and audited when an audit logger is attached) and
delivery continues with the next subscriber.
"""

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

import structlog

from finvoice.models.audit import AuditEventBuilder
from finvoice.models.events import LedgerEvent, event_collection
from finvoice.models.ledger import Collection


logger = structlog.get_logger(__name__)

Handler = Callable[[LedgerEvent], Union[None, Awaitable[None]]]


@dataclass(eq=False)
class _Subscription:
    handler: Handler
    collections: Optional[frozenset[Collection]]

    def wants(self, event: LedgerEvent) -> bool:
        return self.collections is None or event_collection(event) in self.collections


class ChangeChannel:
    """Delivers ledger events to subscribers."""

    def __init__(self, audit_logger: Optional[Any] = None):
        self._subscriptions: list[_Subscription] = []
        self._audit_logger = audit_logger

    def subscribe(
        self,
        handler: Handler,
        collections: Optional[Iterable[Union[Collection, str]]] = None,
    ) -> Callable[[], None]:
        """
        Register a handler.

        Args:
            handler: Called with each matching event
            collections: Collections to listen to; all of them if None

        Returns:
            A callable that removes this subscription. Calling it more than
            once is harmless.
        """
        wanted = None
        if collections is not None:
            wanted = frozenset(Collection(c) for c in collections)
        subscription = _Subscription(handler=handler, collections=wanted)
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def publish(self, events: Iterable[LedgerEvent]) -> None:
        """Deliver events in order. Never raises because of a handler."""
        for event in events:
            # Snapshot so a handler may unsubscribe while we iterate
            for subscription in list(self._subscriptions):
                if not subscription.wants(event):
                    continue
                try:
                    result = subscription.handler(event)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    await self._report(event, e)

    async def _report(self, event: LedgerEvent, error: Exception) -> None:
        event_name = type(event).__name__
        logger.error(
            "subscriber_failed",
            ledger_event=event_name,
            error=str(error),
            exc_info=True,
        )
        if self._audit_logger is not None:
            await self._audit_logger.log(
                AuditEventBuilder.subscriber_failed(
                    event_name=event_name,
                    error_message=str(error),
                    user_id=event.user_id,
                )
            )
