"""Transport-agnostic processing of one Event Grid webhook request.

A request body is either a single event object or a list of them.  An
EventGridEvent subscription validation event is answered with its
validation code; anything else is a notification whose events are
filtered by subscribed topic and dispatched one after another.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from event_propagation.core.cancellation import CancellationToken
from event_propagation.core.enums import DispatchOutcome, EventGridRequestType
from event_propagation.core.errors import MalformedEnvelopeError

from .webhook_handler import DomainEventGridWebhookHandler

logger = logging.getLogger(__name__)

SUBSCRIPTION_VALIDATION_EVENT_TYPE = "Microsoft.EventGrid.SubscriptionValidationEvent"


@dataclass
class EventGridRequestResult:
    request_type: EventGridRequestType
    response: dict[str, Any] | None = None
    outcomes: list[DispatchOutcome] = field(default_factory=list)


def _topic_key(topic: str) -> str:
    return topic.rstrip("/").rsplit("/", 1)[-1].lower()


def event_topics(event: Mapping[str, Any]) -> list[str]:
    """Topics an inbound event may be filtered on, most specific first.

    EventGridEvents carry the topic resource id in ``topic``.  CloudEvents
    carry the namespace topic name in the ``topic`` extension (set by
    this package's publisher) and the namespace endpoint in ``source``.
    """
    keys = ("topic", "source") if "specversion" in event else ("topic",)
    return [
        value for value in (event.get(key) for key in keys)
        if isinstance(value, str) and value
    ]


def event_topic(event: Mapping[str, Any]) -> str | None:
    topics = event_topics(event)
    return topics[0] if topics else None


class EventGridRequestHandler:
    """Turns a decoded webhook body into dispatches.

    Parameters
    ----------
    webhook_handler:
        Dispatcher for notification events.
    subscribed_topics:
        Topic names, full topic resource ids or namespace hosts to accept
        events from.
        Empty accepts every topic.
    """

    def __init__(
        self,
        webhook_handler: DomainEventGridWebhookHandler,
        subscribed_topics: Sequence[str] = (),
    ) -> None:
        self._webhook_handler = webhook_handler
        self._subscribed = frozenset(_topic_key(t) for t in subscribed_topics if t)

    @property
    def webhook_handler(self) -> DomainEventGridWebhookHandler:
        return self._webhook_handler

    def is_subscribed(self, event: Mapping[str, Any]) -> bool:
        if not self._subscribed:
            return True
        return any(_topic_key(topic) in self._subscribed for topic in event_topics(event))

    async def handle_request(
        self,
        body: Any,
        cancellation_token: CancellationToken | None = None,
    ) -> EventGridRequestResult:
        """Process a decoded JSON request body.

        Raises
        ------
        MalformedEnvelopeError
            If the body is neither an event object nor a list of them.
        """
        token = cancellation_token or CancellationToken.none()
        events = self._as_events(body)

        for event in events:
            if event.get("eventType") == SUBSCRIPTION_VALIDATION_EVENT_TYPE:
                return self._validate_subscription(event)

        outcomes: list[DispatchOutcome] = []
        for event in events:
            if not self.is_subscribed(event):
                logger.info(
                    "Ignoring event from unsubscribed topic %s", event_topic(event),
                )
                continue
            outcomes.append(
                await self._webhook_handler.handle_event_grid_webhook_event(event, token)
            )
        return EventGridRequestResult(
            request_type=EventGridRequestType.NOTIFICATION,
            outcomes=outcomes,
        )

    @staticmethod
    def _as_events(body: Any) -> list[Mapping[str, Any]]:
        if isinstance(body, Mapping):
            return [body]
        if isinstance(body, list) and all(isinstance(e, Mapping) for e in body):
            return body
        raise MalformedEnvelopeError(
            "Request body must be an event object or a list of event objects"
        )

    @staticmethod
    def _validate_subscription(event: Mapping[str, Any]) -> EventGridRequestResult:
        data = event.get("data") or {}
        code = data.get("validationCode") if isinstance(data, Mapping) else None
        if not code:
            raise MalformedEnvelopeError("Subscription validation event has no validationCode")
        logger.info("Answering Event Grid subscription validation for %s", event.get("topic"))
        return EventGridRequestResult(
            request_type=EventGridRequestType.SUBSCRIPTION,
            response={"validationResponse": code},
        )
